"""Logging and metrics wiring for the API process."""

from __future__ import annotations

from fastapi import FastAPI

from pawsafety.obs import logging as obs_logging
from pawsafety.obs import middleware
from pawsafety.settings import settings

_installed_on: set[int] = set()


def init(app: FastAPI) -> None:
	"""Install JSON logging and request instrumentation once per app."""
	if not settings.obs_enabled or id(app) in _installed_on:
		return
	obs_logging.configure_logging()
	middleware.install(app)
	_installed_on.add(id(app))


__all__ = ["init"]
