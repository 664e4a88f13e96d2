"""Chat messages: gated send, edit, delete strategies and per-user hiding."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, List, Optional

from pawsafety.domain.profiles import USERS, load_profiles
from pawsafety.domain.reports.models import STRAY_REPORTS, ReportStatus
from pawsafety.domain.social.blocks import BlockRegistry
from pawsafety.domain.social.notifications import NotificationFanout, NotificationType
from pawsafety.infra.blobs import BlobStore
from pawsafety.infra.documents import SERVER_TIMESTAMP, ArrayUnion, Document, DocumentStore, field_equals
from pawsafety.obs import metrics as obs_metrics

from .attachments import ImageUpload, preview_for, upload_images
from .exceptions import (
	ChatError,
	ChatRestricted,
	EmptyMessage,
	MessageDeleted,
	MessageForbidden,
	MessageNotFound,
	RecipientBanned,
	ReportResolved,
	SenderBlocked,
	ThreadForbidden,
)
from .identity import ChatKind, chat_id_for, clean_id
from .models import ChatMessage, MessageChange, hidden_field
from .threads import ChatThreadStore

logger = logging.getLogger(__name__)

MESSAGE_REPORTS = "message_reports"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class MessageStore:
	def __init__(
		self,
		store: DocumentStore,
		threads: ChatThreadStore,
		blocks: BlockRegistry,
		blobs: BlobStore,
		notifications: Optional[NotificationFanout] = None,
	) -> None:
		self._store = store
		self._threads = threads
		self._blocks = blocks
		self._blobs = blobs
		self._notifications = notifications

	async def _get(self, kind: ChatKind, message_id: str) -> Document:
		document = await self._store.get(kind.message_collection, message_id)
		if document is None:
			raise MessageNotFound()
		return document

	async def _check_restriction(self, sender_id: str) -> None:
		"""Reject senders under an admin chat restriction; clear expired ones."""
		document = await self._store.get(USERS, sender_id)
		if document is None or not document.get("chatRestricted"):
			return
		expires_at = document.get("chatRestrictionExpiresAt")
		if not isinstance(expires_at, datetime):
			raise ChatRestricted()
		if self._store.now() < expires_at:
			raise ChatRestricted(expires_at)
		await self._store.update(USERS, sender_id, {"chatRestricted": False, "chatRestrictionExpiresAt": None})
		logger.info("chat restriction expired", extra={"user_id": sender_id})

	async def send(
		self,
		kind: ChatKind,
		sender_id: str,
		recipient_id: str,
		text: Optional[str] = None,
		images: Iterable[ImageUpload] | None = None,
		report_id: Optional[str] = None,
	) -> ChatMessage:
		"""Send a message, creating the thread on first use.

		Every rejection happens before anything is written.
		"""
		sender_id, recipient_id = clean_id(sender_id), clean_id(recipient_id)
		report_id = clean_id(report_id) or None
		body_text = (text or "").strip()
		uploads = list(images or [])
		try:
			if not body_text and not uploads:
				raise EmptyMessage()
			chat_id = chat_id_for(kind, sender_id, recipient_id, report_id)
			state = await self._blocks.block_state(sender_id, recipient_id)
			if state.blocked_by_other:
				raise SenderBlocked("blocked_by_recipient")
			if state.has_blocked:
				raise SenderBlocked("recipient_blocked")
			if kind is ChatKind.REPORT:
				# Snapshot read; a concurrent resolve can still slip one message in.
				report = await self._store.get(STRAY_REPORTS, report_id)
				if report is not None and report.get("status") == ReportStatus.RESOLVED.value:
					raise ReportResolved()
			await self._check_restriction(sender_id)
			profiles = await load_profiles(self._store, [sender_id, recipient_id])
			if profiles[recipient_id].is_banned:
				raise RecipientBanned()
			urls = await upload_images(self._blobs, chat_id, uploads, self._store.now())
			if not body_text and not urls:
				raise EmptyMessage("images_failed")
		except ChatError as exc:
			obs_metrics.inc_chat_send_reject(exc.reason)
			raise

		thread = await self._threads.ensure_thread(kind, (sender_id, recipient_id), report_id, sender=sender_id)
		sender_name = profiles[sender_id].name
		body = {
			"text": body_text or None,
			"images": urls or None,
			"senderId": sender_id,
			"senderName": sender_name,
			"timestamp": SERVER_TIMESTAMP,
			"chatId": chat_id,
		}
		if kind is ChatKind.REPORT:
			body["reportId"] = report_id
		document = await self._store.create(kind.message_collection, body)
		preview = preview_for(body_text, urls)
		await self._threads.post_message_metadata(kind, thread, sender_id, preview)
		obs_metrics.inc_chat_send(kind.value)
		logger.info(
			"chat message sent",
			extra={"chat_id": chat_id, "kind": kind.value, "message_id": document.id, "images": len(urls)},
		)
		if self._notifications is not None:
			await self._notifications.notify_many(
				[recipient_id],
				sender_id,
				NotificationType.NEW_MESSAGE,
				sender_name,
				preview,
				{"chatId": chat_id, "chatType": kind.value, "senderId": sender_id},
			)
		return ChatMessage.from_document(kind, document)

	async def edit(self, kind: ChatKind, message_id: str, editor_id: str, text: Optional[str]) -> ChatMessage:
		new_text = (text or "").strip()
		if not new_text:
			raise EmptyMessage()
		document = await self._get(kind, message_id)
		if document.get("senderId") != editor_id:
			raise MessageForbidden()
		if document.get("deleted"):
			raise MessageDeleted()
		updated = await self._store.update(
			kind.message_collection,
			message_id,
			{"text": new_text, "edited": True, "editedAt": SERVER_TIMESTAMP},
		)
		return ChatMessage.from_document(kind, updated)

	async def soft_delete(self, message_id: str, acting_user_id: str) -> ChatMessage:
		"""Direct threads keep the row and clear its content for everyone."""
		kind = ChatKind.DIRECT
		document = await self._get(kind, message_id)
		if document.get("senderId") != acting_user_id:
			raise MessageForbidden()
		if document.get("deleted"):
			return ChatMessage.from_document(kind, document)
		updated = await self._store.update(
			kind.message_collection,
			message_id,
			{
				"deleted": True,
				"deletedBy": acting_user_id,
				"deletedAt": SERVER_TIMESTAMP,
				"text": None,
				"images": None,
			},
		)
		return ChatMessage.from_document(kind, updated)

	async def hard_delete(self, message_id: str, acting_user_id: str) -> None:
		"""Report threads remove the row entirely."""
		kind = ChatKind.REPORT
		document = await self._get(kind, message_id)
		if document.get("senderId") != acting_user_id:
			raise MessageForbidden()
		await self._store.delete(kind.message_collection, message_id)

	async def delete(self, kind: ChatKind, message_id: str, acting_user_id: str) -> Optional[ChatMessage]:
		if kind is ChatKind.REPORT:
			await self.hard_delete(message_id, acting_user_id)
			return None
		return await self.soft_delete(message_id, acting_user_id)

	async def hide_for_user(self, kind: ChatKind, message_id: str, user_id: str) -> ChatMessage:
		document = await self._get(kind, message_id)
		await self._threads.require_participant(kind, str(document.get("chatId")), user_id)
		updated = await self._store.update(
			kind.message_collection,
			message_id,
			{hidden_field(kind): ArrayUnion(user_id)},
		)
		return ChatMessage.from_document(kind, updated)

	async def report_message(self, kind: ChatKind, message_id: str, reporter_id: str, reason: str) -> str:
		"""File a moderation report and hide the message for the reporter."""
		document = await self._get(kind, message_id)
		if document.get("deleted"):
			raise MessageDeleted()
		reported_id = str(document.get("senderId") or "")
		if reported_id == reporter_id:
			raise MessageForbidden()
		await self._threads.require_participant(kind, str(document.get("chatId")), reporter_id)
		profiles = await load_profiles(self._store, [reporter_id, reported_id])
		report = await self._store.create(
			MESSAGE_REPORTS,
			{
				"messageId": message_id,
				"chatId": document.get("chatId"),
				"chatType": kind.value,
				"reportedBy": reporter_id,
				"reportedByName": profiles[reporter_id].name,
				"reportedUser": reported_id,
				"reportedUserName": profiles[reported_id].name,
				"messageText": document.get("text"),
				"messageImages": document.get("images"),
				"reason": reason.strip(),
				"status": "pending",
				"createdAt": SERVER_TIMESTAMP,
			},
		)
		await self.hide_for_user(kind, message_id, reporter_id)
		logger.info("chat message reported", extra={"message_id": message_id, "kind": kind.value})
		await self._notify_admins(report.id, reporter_id, profiles[reporter_id].name, reason.strip())
		return report.id

	async def _notify_admins(self, report_id: str, reporter_id: str, reporter_name: str, reason: str) -> None:
		if self._notifications is None:
			return
		admins = await self._store.query(USERS, field_equals("isAdmin", True))
		await self._notifications.notify_many(
			[admin.id for admin in admins],
			reporter_id,
			NotificationType.ADMIN_REPORT,
			"Message reported",
			f"{reporter_name}: {reason}" if reason else reporter_name,
			{"messageReportId": report_id},
		)

	async def list_for_user(self, kind: ChatKind, chat_id: str, user_id: str) -> List[ChatMessage]:
		"""Messages in timestamp order, without the ones ``user_id`` has hidden."""
		thread = await self._threads.get(kind, chat_id)
		if thread is None:
			return []
		if not thread.is_participant(user_id):
			raise ThreadForbidden()
		documents = await self._store.query(kind.message_collection, field_equals("chatId", chat_id))
		messages = [ChatMessage.from_document(kind, document) for document in documents]
		visible = [message for message in messages if not message.is_hidden_for(user_id)]
		visible.sort(key=lambda message: (message.timestamp or _EPOCH, message.id))
		return visible

	async def subscribe(self, kind: ChatKind, chat_id: str, user_id: str) -> AsyncIterator[MessageChange]:
		await self._threads.require_participant(kind, chat_id, user_id)
		field = hidden_field(kind)

		def _visible(body) -> bool:
			hidden = body.get(field)
			return body.get("chatId") == chat_id and not (isinstance(hidden, list) and user_id in hidden)

		events = self._store.subscribe(kind.message_collection, _visible)
		try:
			async for event in events:
				yield MessageChange(type=event.type, message=ChatMessage.from_document(kind, event.document))
		finally:
			await events.aclose()
