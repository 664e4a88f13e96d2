"""Liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, Tuple

from redis.exceptions import RedisError

from pawsafety.infra.redis import redis_client
from pawsafety.obs import metrics

logger = logging.getLogger(__name__)


async def check_redis(timeout: float = 0.25) -> Dict[str, Any]:
	"""The document store, change streams and sessions all live in Redis."""
	started = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
	except (asyncio.TimeoutError, RedisError, OSError) as exc:
		metrics.mark_redis(False)
		logger.warning("redis ping failed", extra={"error": type(exc).__name__})
		return {"ok": False, "error": type(exc).__name__}
	latency = perf_counter() - started
	metrics.mark_redis(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


_READINESS_CHECKS: Dict[str, Callable[[], Awaitable[Dict[str, Any]]]] = {
	"redis": check_redis,
}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	names = list(_READINESS_CHECKS)
	results = await asyncio.gather(*(_READINESS_CHECKS[name]() for name in names))
	ready = all(result.get("ok") for result in results)
	body = {"status": "ok" if ready else "degraded", "checks": dict(zip(names, results))}
	return (200 if ready else 503, body)
