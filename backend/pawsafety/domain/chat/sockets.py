"""Socket.IO namespace streaming live thread and message changes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

import socketio
from fastapi import HTTPException

from pawsafety.container import get_services
from pawsafety.infra.auth import AuthenticatedUser, verify_access_jwt
from pawsafety.obs import metrics as obs_metrics
from pawsafety.settings import settings

from .exceptions import ChatError
from .identity import ChatKind

logger = logging.getLogger(__name__)

THREAD_SCOPE = "thread"
THREADS_SCOPE = "threads"


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def _kind(payload: dict) -> ChatKind:
	try:
		return ChatKind(str(payload.get("kind") or ChatKind.DIRECT.value))
	except ValueError:
		raise ChatError("invalid_kind") from None


class ChatNamespace(socketio.AsyncNamespace):
	"""Each client holds at most one thread subscription and one thread-list subscription."""

	def __init__(self) -> None:
		super().__init__("/chat")
		self._sessions: Dict[str, AuthenticatedUser] = {}
		self._subscriptions: Dict[str, Dict[str, asyncio.Task]] = {}

	def _authenticate(self, environ: dict, auth: Optional[dict]) -> Optional[AuthenticatedUser]:
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or {}
		token = auth_payload.get("token")
		if token:
			try:
				return verify_access_jwt(str(token))
			except HTTPException:
				return None
		user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
		if user_id and settings.is_dev():
			return AuthenticatedUser(id=str(user_id))
		return None

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		user = self._authenticate(environ, auth)
		if user is None:
			raise ConnectionRefusedError("unauthenticated")
		obs_metrics.socket_connected(self.namespace)
		self._sessions[sid] = user
		self._subscriptions[sid] = {}
		await self.enter_room(sid, self.user_room(user.id))
		await self.emit("chat:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str, *args: Any) -> None:
		user = self._sessions.pop(sid, None)
		await self._cancel(sid, None)
		self._subscriptions.pop(sid, None)
		if user:
			obs_metrics.socket_disconnected(self.namespace)
			await self.leave_room(sid, self.user_room(user.id))

	def _user(self, sid: str) -> AuthenticatedUser:
		user = self._sessions.get(sid)
		if not user:
			raise ConnectionRefusedError("unauthenticated")
		return user

	async def _cancel(self, sid: str, scope: Optional[str]) -> None:
		tasks = self._subscriptions.get(sid, {})
		scopes = [scope] if scope else list(tasks)
		for name in scopes:
			task = tasks.pop(name, None)
			if task is None:
				continue
			task.cancel()
			await asyncio.gather(task, return_exceptions=True)

	async def _start(self, sid: str, scope: str, event: str, changes: AsyncIterator[Any]) -> None:
		await self._cancel(sid, scope)
		task = asyncio.create_task(self._pump(sid, event, changes), name=f"chat-{scope}-{sid}")
		self._subscriptions.setdefault(sid, {})[scope] = task

	async def _pump(self, sid: str, event: str, changes: AsyncIterator[Any]) -> None:
		try:
			async for change in changes:
				body = change.thread if hasattr(change, "thread") else change.message
				obs_metrics.socket_event(self.namespace, event)
				await self.emit(event, {"type": change.type, "data": body.to_dict()}, room=sid)
		except ChatError as exc:
			await self.emit("chat:error", {"reason": exc.reason}, room=sid)
		except asyncio.CancelledError:
			raise
		except Exception:
			logger.exception("chat subscription failed", extra={"sid": sid, "event": event})
		finally:
			await changes.aclose()

	async def on_subscribe_thread(self, sid: str, payload: dict) -> dict:
		"""Follow one thread; any previous thread subscription is dropped."""
		user = self._user(sid)
		try:
			kind = _kind(payload)
		except ChatError as exc:
			return {"ok": False, "reason": exc.reason}
		chat_id = str(payload.get("chat_id") or "")
		changes = get_services().messages.subscribe(kind, chat_id, user.id)
		await self._start(sid, THREAD_SCOPE, "chat:message", changes)
		return {"ok": True}

	async def on_subscribe_threads(self, sid: str, payload: dict) -> dict:
		user = self._user(sid)
		try:
			kind = _kind(payload or {})
		except ChatError as exc:
			return {"ok": False, "reason": exc.reason}
		changes = get_services().threads.subscribe_for_user(user.id, kind)
		await self._start(sid, THREADS_SCOPE, "chat:thread", changes)
		return {"ok": True}

	async def on_unsubscribe(self, sid: str, payload: Optional[dict] = None) -> dict:
		self._user(sid)
		scope = (payload or {}).get("scope")
		if scope not in (None, THREAD_SCOPE, THREADS_SCOPE):
			return {"ok": False, "reason": "invalid_scope"}
		await self._cancel(sid, scope)
		return {"ok": True}

	def active_scopes(self, sid: str) -> list[str]:
		return sorted(self._subscriptions.get(sid, {}))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"
