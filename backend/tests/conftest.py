import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from pawsafety import container
from pawsafety.infra.documents import DocumentStore
from pawsafety.infra.redis import redis_client, set_redis_client
from pawsafety.settings import settings

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TickingClock:
	"""Advances one second per reading so stored timestamps are strictly ordered."""

	def __init__(self, start: datetime = BASE_TIME) -> None:
		self.current = start

	def __call__(self) -> datetime:
		self.current += timedelta(seconds=1)
		return self.current

	def advance(self, **delta) -> None:
		self.current += timedelta(**delta)


class RecordingPush:
	def __init__(self) -> None:
		self.sent: list[dict] = []
		self.fail_for: set[str] = set()

	async def send(self, token, title, body, data) -> None:
		if token in self.fail_for:
			raise RuntimeError("push rejected")
		self.sent.append({"token": token, "title": title, "body": body, "data": dict(data)})


class FailingBlobs:
	async def upload(self, path, data, content_type):
		raise RuntimeError("storage offline")


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings(tmp_path):
	"""Dev mode so API tests can authenticate with X-User-Id headers."""
	original = (
		settings.environment,
		settings.subscription_block_ms,
		settings.subscription_idle_sleep_seconds,
		settings.upload_dir,
	)
	settings.environment = "dev"
	settings.subscription_block_ms = 0
	settings.subscription_idle_sleep_seconds = 0.01
	settings.upload_dir = str(tmp_path / "uploads")
	try:
		yield
	finally:
		(
			settings.environment,
			settings.subscription_block_ms,
			settings.subscription_idle_sleep_seconds,
			settings.upload_dir,
		) = original


@pytest.fixture
def clock():
	return TickingClock()


@pytest.fixture
def store(clock):
	return DocumentStore(clock=clock)


@pytest.fixture
def push():
	return RecordingPush()


@pytest.fixture
def services(store, push, tmp_path):
	from pawsafety.infra.blobs import LocalBlobStore

	built = container.build_services(
		store=store,
		blobs=LocalBlobStore(root=tmp_path / "blobs", base_url="http://cdn.test/uploads"),
		push=push,
	)
	container.configure(built)
	try:
		yield built
	finally:
		container._services = None


async def make_user(store, user_id, name, **extra):
	await store.set("users", user_id, {"displayName": name, **extra})


async def register_push_token(store, user_id, token=None):
	await store.set("user_push_tokens", user_id, {"expoPushToken": token or f"ExponentPushToken[{user_id}]"})


@pytest_asyncio.fixture
async def api_client(services):
	from pawsafety.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


def auth_headers(user_id: str) -> dict:
	return {"X-User-Id": user_id}
