"""Shared Redis connection.

Modules import ``redis_client`` once. It is a proxy, so tests can point every
importer at fakeredis with ``set_redis_client`` after the fact.
"""

from __future__ import annotations

import redis.asyncio as redis

from pawsafety.settings import settings


class RedisProxy:
	def __init__(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	def __getattr__(self, name: str):
		return getattr(self._client, name)


redis_client = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)


async def close_redis() -> None:
	await redis_client.client.aclose()
