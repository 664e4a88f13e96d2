"""Request-id propagation, HTTP metrics and access logs."""

from __future__ import annotations

import re
import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from pawsafety.obs import logging as obs_logging
from pawsafety.obs import metrics
from pawsafety.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"

_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._:-]{1,64}")


def _request_id(request: Request) -> str:
	"""Reuse the caller's id when it is short and printable."""
	incoming = request.headers.get(REQUEST_ID_HEADER, "")
	if _SAFE_REQUEST_ID.fullmatch(incoming):
		return incoming
	return uuid4().hex


def _route_template(request: Request) -> str:
	# Only known once the router has matched, so read it after the call.
	route = request.scope.get("route")
	path = getattr(route, "path", None)
	return path if path else "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
	def __init__(self, app, *, enabled: bool = True) -> None:
		super().__init__(app)
		self._enabled = enabled
		self._logger = obs_logging.get_logger("pawsafety.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if not (self._enabled and settings.obs_enabled):
			return await call_next(request)

		request_id = _request_id(request)
		request.state.request_id = request_id
		token = obs_logging.bind_context(request_id=request_id, method=request.method)
		started = time.perf_counter()
		try:
			response = await call_next(request)
		except Exception:
			self._finish(request, 500, started)
			self._logger.exception("http_request_failed", extra={"path": request.url.path})
			raise
		finally:
			obs_logging.reset_context(token)
		self._finish(request, response.status_code, started, request_id=request_id)
		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		return response

	def _finish(self, request: Request, status_code: int, started: float, *, request_id: str | None = None) -> None:
		elapsed = time.perf_counter() - started
		route = _route_template(request)
		metrics.observe_request(route, request.method, status_code, elapsed)
		self._logger.info(
			"http_request",
			extra={
				"request_id": request_id or getattr(request.state, "request_id", None),
				"route": route,
				"status": status_code,
				"latency_ms": round(elapsed * 1000, 3),
			},
		)


def install(app, *, enabled: bool = True) -> None:
	app.add_middleware(ObservabilityMiddleware, enabled=enabled)
