"""Thread documents for direct and report-linked chats."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, List, Literal, Optional

from pawsafety.domain.profiles import DEFAULT_DISPLAY_NAME, load_profiles
from pawsafety.domain.reports.models import STRAY_REPORTS
from pawsafety.infra.documents import (
	SERVER_TIMESTAMP,
	ArrayRemove,
	ArrayUnion,
	DocumentNotFound,
	DocumentStore,
	array_contains,
	field_equals,
)
from pawsafety.obs import metrics as obs_metrics

from .exceptions import ChatIdentityError, ThreadForbidden, ThreadNotFound
from .identity import ChatKind, chat_id_for, ordered_pair
from .models import ChatThread, ThreadChange, ThreadSummary, hidden_field

logger = logging.getLogger(__name__)

ThreadView = Literal["active", "archived"]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ChatThreadStore:
	"""Creation, metadata, read state and per-user visibility of threads."""

	def __init__(self, store: DocumentStore) -> None:
		self._store = store

	async def get(self, kind: ChatKind, thread_id: str) -> Optional[ChatThread]:
		document = await self._store.get(kind.thread_collection, thread_id)
		if document is None:
			return None
		return ChatThread.from_document(kind, document)

	async def require_participant(self, kind: ChatKind, thread_id: str, user_id: str) -> ChatThread:
		thread = await self.get(kind, thread_id)
		if thread is None:
			raise ThreadNotFound()
		if not thread.is_participant(user_id):
			raise ThreadForbidden()
		return thread

	async def ensure_thread(
		self,
		kind: ChatKind,
		participants: Iterable[str],
		report_id: Optional[str] = None,
		*,
		sender: Optional[str] = None,
	) -> ChatThread:
		"""Read or create the thread for ``participants`` (and ``report_id``)."""
		members = list(participants)
		if len(members) != 2:
			raise ChatIdentityError("missing_participant")
		pair = ordered_pair(members[0], members[1])
		thread_id = chat_id_for(kind, pair[0], pair[1], report_id)
		body = {
			"id": thread_id,
			"participants": list(pair),
			"createdAt": SERVER_TIMESTAMP,
			"lastMessageTime": SERVER_TIMESTAMP,
		}
		if kind is ChatKind.REPORT:
			body["reportId"] = report_id
		if sender:
			body["readBy"] = [sender]
		document, created = await self._store.create_if_missing(kind.thread_collection, thread_id, body)
		if created:
			logger.info("chat thread created", extra={"thread_id": thread_id, "kind": kind.value})
		return ChatThread.from_document(kind, document)

	async def post_message_metadata(
		self,
		kind: ChatKind,
		thread: ChatThread,
		sender_id: str,
		preview: str,
	) -> ChatThread:
		"""Record the latest message and make every other participant unread.

		``readBy`` is replaced with the sender alone. The recipient is taken
		out of ``deletedBy`` so the thread reappears for them; a sender who
		deleted the thread keeps it hidden.
		"""
		changes = {
			"lastMessage": preview,
			"lastMessageTime": SERVER_TIMESTAMP,
			"readBy": [sender_id],
		}
		recipient = thread.other(sender_id)
		if recipient:
			changes["deletedBy"] = ArrayRemove(recipient)
		document = await self._store.update(kind.thread_collection, thread.id, changes)
		return ChatThread.from_document(kind, document)

	async def mark_read(self, kind: ChatKind, thread_id: str, user_id: str) -> Optional[ChatThread]:
		try:
			document = await self._store.update(
				kind.thread_collection,
				thread_id,
				{"readBy": ArrayUnion(user_id)},
			)
		except DocumentNotFound:
			return None
		obs_metrics.inc_chat_read()
		return ChatThread.from_document(kind, document)

	async def soft_delete(self, kind: ChatKind, thread_id: str, user_id: str) -> int:
		"""Hide the thread and every message in it for ``user_id``.

		Returns the number of messages hidden.
		"""
		await self._store.update(kind.thread_collection, thread_id, {"deletedBy": ArrayUnion(user_id)})
		field = hidden_field(kind)
		messages = await self._store.query(kind.message_collection, field_equals("chatId", thread_id))
		hidden = 0
		for message in messages:
			try:
				await self._store.update(kind.message_collection, message.id, {field: ArrayUnion(user_id)})
			except DocumentNotFound:
				# Report messages can be hard-deleted concurrently.
				continue
			hidden += 1
		logger.info(
			"chat thread deleted for user",
			extra={"thread_id": thread_id, "kind": kind.value, "messages": hidden},
		)
		return hidden

	async def archive(self, kind: ChatKind, thread_id: str) -> ChatThread:
		document = await self._store.update(
			kind.thread_collection,
			thread_id,
			{"archived": True, "archivedAt": SERVER_TIMESTAMP},
		)
		return ChatThread.from_document(kind, document)

	async def unarchive(self, kind: ChatKind, thread_id: str) -> ChatThread:
		document = await self._store.update(
			kind.thread_collection,
			thread_id,
			{"archived": False, "archivedAt": None},
		)
		return ChatThread.from_document(kind, document)

	async def _visible_threads(self, kind: ChatKind, user_id: str, view: ThreadView) -> List[ChatThread]:
		want_archived = view == "archived"
		documents = await self._store.query(kind.thread_collection, array_contains("participants", user_id))
		threads = [ChatThread.from_document(kind, document) for document in documents]
		return [
			thread
			for thread in threads
			if user_id not in thread.deleted_by and thread.archived == want_archived
		]

	async def list_for_user(
		self,
		user_id: str,
		view: ThreadView = "active",
		kind: Optional[ChatKind] = None,
	) -> List[ThreadSummary]:
		kinds = [kind] if kind else list(ChatKind)
		threads: List[ChatThread] = []
		for each in kinds:
			threads.extend(await self._visible_threads(each, user_id, view))
		profiles = await load_profiles(self._store, {thread.other(user_id) or "" for thread in threads})
		report_ids = {thread.report_id for thread in threads if thread.report_id}
		reports = await self._store.get_many(STRAY_REPORTS, report_ids)
		summaries: List[ThreadSummary] = []
		for thread in threads:
			other_id = thread.other(user_id)
			profile = profiles.get(other_id or "")
			report = reports.get(thread.report_id or "")
			summaries.append(
				ThreadSummary(
					thread=thread,
					other_user_id=other_id,
					other_user_name=profile.name if profile else DEFAULT_DISPLAY_NAME,
					other_user_image=profile.profile_image if profile else None,
					unread=thread.is_unread_for(user_id),
					report_status=report.get("status") if report else None,
				)
			)
		summaries.sort(key=lambda item: item.thread.last_message_time or _EPOCH, reverse=True)
		return summaries

	async def unread_count(self, user_id: str) -> int:
		total = 0
		for kind in ChatKind:
			threads = await self._visible_threads(kind, user_id, "active")
			total += sum(1 for thread in threads if thread.is_unread_for(user_id))
		return total

	async def subscribe_for_user(self, user_id: str, kind: ChatKind) -> AsyncIterator[ThreadChange]:
		"""Live changes to the threads ``user_id`` can currently see."""

		def _visible(body) -> bool:
			participants = body.get("participants") or []
			deleted_by = body.get("deletedBy") or []
			return user_id in participants and user_id not in deleted_by

		events = self._store.subscribe(kind.thread_collection, _visible)
		try:
			async for event in events:
				yield ThreadChange(type=event.type, thread=ChatThread.from_document(kind, event.document))
		finally:
			await events.aclose()
