import asyncio
from unittest.mock import AsyncMock

import pytest
import socketio

from pawsafety.domain.chat.identity import ChatKind, direct_chat_id
from pawsafety.domain.chat.sockets import ChatNamespace
from pawsafety.infra import jwt as jwt_helper

CHAT_ID = direct_chat_id("alice", "bob")


def _namespace() -> ChatNamespace:
	server = socketio.AsyncServer(async_mode="asgi")
	namespace = ChatNamespace()
	server.register_namespace(namespace)
	namespace.emit = AsyncMock()
	namespace.enter_room = AsyncMock()
	namespace.leave_room = AsyncMock()
	return namespace


def _environ(headers=None) -> dict:
	return {"asgi.scope": {"headers": headers or []}}


async def _connect(namespace, sid="sid-1", user_id="alice"):
	await namespace.trigger_event("connect", sid, _environ(), {"userId": user_id})


async def _emitted(namespace, event, count=1, timeout=2.0):
	loop = asyncio.get_running_loop()
	deadline = loop.time() + timeout
	while True:
		payloads = [call.args[1] for call in namespace.emit.await_args_list if call.args[0] == event]
		if len(payloads) >= count or loop.time() > deadline:
			return payloads
		await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_connect_requires_identity():
	namespace = _namespace()
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _environ(), None)


@pytest.mark.asyncio
async def test_connect_with_header_joins_user_room():
	namespace = _namespace()

	await namespace.trigger_event("connect", "sid-1", _environ([(b"x-user-id", b"alice")]), None)

	namespace.enter_room.assert_awaited_once_with("sid-1", "user:alice")
	assert namespace.emit.await_args_list[0].args[0] == "chat:ack"


@pytest.mark.asyncio
async def test_connect_with_token():
	namespace = _namespace()
	token = jwt_helper.encode_access({"sub": "carol"})

	await namespace.trigger_event("connect", "sid-1", _environ(), {"token": token})

	namespace.enter_room.assert_awaited_once_with("sid-1", "user:carol")


@pytest.mark.asyncio
async def test_subscribe_thread_streams_messages(services):
	namespace = _namespace()
	await _connect(namespace)
	await services.messages.send(ChatKind.DIRECT, "alice", "bob", text="first")

	ack = await namespace.trigger_event("subscribe_thread", "sid-1", {"kind": "direct", "chat_id": CHAT_ID})
	assert ack == {"ok": True}
	assert namespace.active_scopes("sid-1") == ["thread"]

	first = await _emitted(namespace, "chat:message")
	assert first[0]["type"] == "added"
	assert first[0]["data"]["text"] == "first"

	await services.messages.send(ChatKind.DIRECT, "bob", "alice", text="second")
	both = await _emitted(namespace, "chat:message", count=2)
	assert [payload["data"]["text"] for payload in both] == ["first", "second"]

	await namespace.trigger_event("unsubscribe", "sid-1", {"scope": "thread"})
	assert namespace.active_scopes("sid-1") == []


@pytest.mark.asyncio
async def test_subscribe_threads_streams_inbox_changes(services):
	namespace = _namespace()
	await _connect(namespace, user_id="bob")

	await namespace.trigger_event("subscribe_threads", "sid-1", {"kind": "direct"})
	await services.messages.send(ChatKind.DIRECT, "alice", "bob", text="hello")

	changes = await _emitted(namespace, "chat:thread")
	assert changes[0]["data"]["id"] == CHAT_ID

	await namespace.trigger_event("disconnect", "sid-1")
	assert namespace.active_scopes("sid-1") == []
	namespace.leave_room.assert_awaited_once_with("sid-1", "user:bob")


@pytest.mark.asyncio
async def test_outsider_subscription_reports_error(services):
	namespace = _namespace()
	await services.messages.send(ChatKind.DIRECT, "alice", "bob", text="private")
	await _connect(namespace, user_id="mallory")

	await namespace.trigger_event("subscribe_thread", "sid-1", {"kind": "direct", "chat_id": CHAT_ID})

	errors = await _emitted(namespace, "chat:error")
	assert errors == [{"reason": "not_participant"}]
	assert await _emitted(namespace, "chat:message", timeout=0.1) == []


@pytest.mark.asyncio
async def test_invalid_kind_and_scope_are_rejected(services):
	namespace = _namespace()
	await _connect(namespace)

	assert await namespace.trigger_event("subscribe_thread", "sid-1", {"kind": "group", "chat_id": "x"}) == {
		"ok": False,
		"reason": "invalid_kind",
	}
	assert await namespace.trigger_event("unsubscribe", "sid-1", {"scope": "everything"}) == {
		"ok": False,
		"reason": "invalid_scope",
	}
