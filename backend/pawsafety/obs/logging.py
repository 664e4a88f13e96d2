"""JSON logging with per-request context for the PawSafety API."""

from __future__ import annotations

import json
import logging
import random
import re
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pawsafety.settings import settings

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("pawsafety_log_context", default={})

_ROOT_LOGGER = "pawsafety"

# Chat text, push tokens and pet locations must not reach the log stream.
_PRIVATE_KEY = re.compile(
	r"token|secret|authorization|password|email|text|body|caption|latitude|longitude|location",
	re.IGNORECASE,
)

_MAX_CHARS = 200
_MAX_ITEMS = 10
_MAX_DEPTH = 3

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# Socket.IO logs every packet at INFO.
_CHATTY_LIBRARIES = ("socketio", "engineio", "uvicorn.access")


def bind_context(**fields: Optional[str]) -> Token:
	"""Add fields to every log line emitted in the current task."""
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in fields.items() if value is not None})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_context() -> Mapping[str, str]:
	return _CONTEXT.get()


def current_request_id() -> Optional[str]:
	return _CONTEXT.get().get("request_id")


def scrub(key: str, value: Any, depth: int = 0) -> Any:
	"""Redact private fields and clip long values before they are serialised."""
	if _PRIVATE_KEY.search(key):
		return "[redacted]"
	if isinstance(value, str):
		return value if len(value) <= _MAX_CHARS else value[:_MAX_CHARS] + "..."
	if depth >= _MAX_DEPTH and isinstance(value, (dict, list, tuple, set)):
		return f"<{type(value).__name__} len={len(value)}>"
	if isinstance(value, dict):
		items = list(value.items())
		clipped = {str(name): scrub(str(name), nested, depth + 1) for name, nested in items[:_MAX_ITEMS]}
		if len(items) > _MAX_ITEMS:
			clipped["..."] = f"{len(items) - _MAX_ITEMS} more"
		return clipped
	if isinstance(value, (list, tuple, set)):
		values = list(value)
		clipped_list = [scrub(key, item, depth + 1) for item in values[:_MAX_ITEMS]]
		if len(values) > _MAX_ITEMS:
			clipped_list.append(f"{len(values) - _MAX_ITEMS} more")
		return clipped_list
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: fixed envelope, request context, then extras."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"event": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		payload.update(_CONTEXT.get())
		for key, value in vars(record).items():
			if key in _RECORD_FIELDS or key in payload:
				continue
			payload[key] = scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keep a fraction of INFO lines; everything else always passes."""

	def __init__(self, rate: Optional[float] = None) -> None:
		super().__init__()
		self._rate = rate

	@property
	def rate(self) -> float:
		rate = settings.obs_log_sampling_rate_info if self._rate is None else self._rate
		return min(1.0, max(0.0, rate))

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		return random.random() < self.rate


def configure_logging(level: Optional[str] = None) -> logging.Logger:
	"""Route the root logger through the JSON formatter."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers[:] = [handler]
	root.setLevel((level or settings.obs_log_level).upper())
	for name in _CHATTY_LIBRARIES:
		logging.getLogger(name).setLevel(logging.WARNING)
	return logging.getLogger(_ROOT_LOGGER)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _ROOT_LOGGER)
