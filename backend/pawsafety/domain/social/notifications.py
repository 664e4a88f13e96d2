"""Notification records plus best-effort push delivery.

One ``NotificationFanout`` is built per process and handed to every service
that notifies users. Self-notification is always suppressed, recipients are
deduplicated, and a failure for one recipient never affects the others or
the action that triggered the fan-out.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pawsafety.infra.documents import SERVER_TIMESTAMP, Document, DocumentStore, all_of, field_equals
from pawsafety.infra.push import PushDispatcher
from pawsafety.obs import metrics as obs_metrics
from pawsafety.settings import settings

from .exceptions import NotificationNotFound

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"
PUSH_TOKENS = "user_push_tokens"


class NotificationType(str, Enum):
	POST_LIKE = "post_like"
	POST_COMMENT = "post_comment"
	COMMENT_LIKE = "comment_like"
	COMMENT_REPLY = "comment_reply"
	COMMENT_MENTION = "comment_mention"
	COMMENT_MENTION_REPLY = "comment_mention_reply"
	FRIEND_REQUEST = "friend_request"
	FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
	FOUND_PET = "found_pet"
	ADMIN_REPORT = "admin_report"
	REPORT_COMMENT = "report_comment"
	NEW_MESSAGE = "new_message"


def preview(text: str, limit: Optional[int] = None) -> str:
	limit = limit or settings.notification_preview_chars
	text = text.strip()
	return f"{text[:limit]}..." if len(text) > limit else text


@dataclass(slots=True)
class Notification:
	id: str
	user_id: str
	type: str
	title: str
	body: str
	data: Dict[str, Any] = field(default_factory=dict)
	read: bool = False
	created_at: Optional[datetime] = None

	@classmethod
	def from_document(cls, document: Document) -> "Notification":
		data = document.data
		created_at = data.get("createdAt")
		return cls(
			id=document.id,
			user_id=str(data.get("userId") or ""),
			type=str(data.get("type") or ""),
			title=str(data.get("title") or ""),
			body=str(data.get("body") or ""),
			data=dict(data.get("data") or {}),
			read=bool(data.get("read", False)),
			created_at=created_at if isinstance(created_at, datetime) else None,
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"type": self.type,
			"title": self.title,
			"body": self.body,
			"data": self.data,
			"read": self.read,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}


@dataclass(slots=True)
class CommentEvent:
	"""A new comment or reply, with everyone who might hear about it."""

	actor_id: str
	actor_name: str
	text: str
	comment_id: str
	target_field: str
	target_id: str
	owner_id: Optional[str] = None
	mentioned_ids: Sequence[str] = ()
	parent_comment_id: Optional[str] = None
	parent_owner_id: Optional[str] = None
	root_comment_id: Optional[str] = None
	root_owner_id: Optional[str] = None

	@property
	def is_reply(self) -> bool:
		return self.parent_comment_id is not None


class NotificationFanout:
	def __init__(self, store: DocumentStore, push: PushDispatcher) -> None:
		self._store = store
		self._push = push

	async def notify(
		self,
		target_id: Optional[str],
		actor_id: Optional[str],
		kind: NotificationType,
		title: str,
		body: str,
		data: Optional[Mapping[str, Any]] = None,
	) -> Optional[Notification]:
		"""Write one notification and attempt one push. Returns None when suppressed."""
		if not target_id:
			obs_metrics.inc_notification_suppressed("no_target")
			return None
		if target_id == actor_id:
			obs_metrics.inc_notification_suppressed("self")
			return None
		payload = {"type": kind.value, **dict(data or {})}
		document = await self._store.create(
			NOTIFICATIONS,
			{
				"userId": target_id,
				"type": kind.value,
				"title": title,
				"body": body,
				"data": payload,
				"read": False,
				"createdAt": SERVER_TIMESTAMP,
			},
		)
		obs_metrics.inc_notification_created(kind.value)
		await self._deliver_push(target_id, title, body, payload)
		return Notification.from_document(document)

	async def _deliver_push(self, target_id: str, title: str, body: str, data: Mapping[str, Any]) -> None:
		try:
			token_doc = await self._store.get(PUSH_TOKENS, target_id)
			token = token_doc.get("expoPushToken") if token_doc else None
			if not token:
				return
			await self._push.send(str(token), title, body, data)
		except Exception:
			obs_metrics.inc_push_failure()
			logger.warning("push delivery failed", exc_info=True, extra={"target_id": target_id})

	async def notify_many(
		self,
		target_ids: Iterable[Optional[str]],
		actor_id: Optional[str],
		kind: NotificationType,
		title: str,
		body: str,
		data: Optional[Mapping[str, Any]] = None,
	) -> List[Notification]:
		"""Notify each distinct target except the actor, in parallel."""
		targets = [target for target in dict.fromkeys(target_ids) if target and target != actor_id]
		results = await asyncio.gather(
			*(self.notify(target, actor_id, kind, title, body, data) for target in targets),
			return_exceptions=True,
		)
		delivered: List[Notification] = []
		for target, result in zip(targets, results):
			if isinstance(result, BaseException):
				obs_metrics.inc_notification_failure(kind.value)
				logger.error(
					"notification failed",
					exc_info=result,
					extra={"target_id": target, "notification_type": kind.value},
				)
				continue
			if result is not None:
				delivered.append(result)
		return delivered

	async def notify_comment(self, event: CommentEvent) -> List[Notification]:
		"""Fan out a new comment or reply.

		Mentioned users hear about the mention only. Everyone else who owns
		the post/report, the parent comment or the root comment gets the
		generic notification, at most once each.
		"""
		mention_kind = NotificationType.COMMENT_MENTION_REPLY if event.is_reply else NotificationType.COMMENT_MENTION
		snippet = preview(event.text)
		base = {event.target_field: event.target_id}
		mentioned = [user_id for user_id in dict.fromkeys(event.mentioned_ids) if user_id != event.actor_id]
		tasks = [
			self.notify_many(
				mentioned,
				event.actor_id,
				mention_kind,
				"You were mentioned",
				f'{event.actor_name} mentioned you in a {"reply" if event.is_reply else "comment"}: "{snippet}"',
				{
					**base,
					"commentId": event.comment_id,
					"mentionedBy": event.actor_id,
					"mentionedByName": event.actor_name,
				},
			)
		]
		notified = set(mentioned) | {event.actor_id}

		def _claim(user_id: Optional[str]) -> bool:
			if not user_id or user_id in notified:
				return False
			notified.add(user_id)
			return True

		if event.is_reply:
			if _claim(event.parent_owner_id):
				tasks.append(
					self.notify_many(
						[event.parent_owner_id],
						event.actor_id,
						NotificationType.COMMENT_REPLY,
						"New Reply",
						f"{event.actor_name} replied to your comment",
						{**base, "commentId": event.parent_comment_id, "repliedBy": event.actor_id},
					)
				)
			if _claim(event.root_owner_id):
				tasks.append(
					self.notify_many(
						[event.root_owner_id],
						event.actor_id,
						NotificationType.COMMENT_REPLY,
						"New Reply",
						f"{event.actor_name} replied to a comment on your post",
						{**base, "commentId": event.root_comment_id, "repliedBy": event.actor_id},
					)
				)
		elif _claim(event.owner_id):
			on_report = event.target_field == "reportId"
			tasks.append(
				self.notify_many(
					[event.owner_id],
					event.actor_id,
					NotificationType.REPORT_COMMENT if on_report else NotificationType.POST_COMMENT,
					"New Comment",
					f'{event.actor_name} commented on your {"report" if on_report else "post"}: "{snippet}"',
					{**base, "commentedBy": event.actor_id, "commentedByName": event.actor_name},
				)
			)
		batches = await asyncio.gather(*tasks)
		return [notification for batch in batches for notification in batch]

	async def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Notification]:
		documents = await self._store.query(NOTIFICATIONS, field_equals("userId", user_id))
		items = [Notification.from_document(document) for document in documents]
		items.sort(key=lambda item: (item.created_at is not None, item.created_at, item.id), reverse=True)
		return items[: limit or settings.notification_list_limit]

	async def unread_count(self, user_id: str) -> int:
		documents = await self._store.query(
			NOTIFICATIONS,
			all_of(field_equals("userId", user_id), field_equals("read", False)),
		)
		return len(documents)

	async def mark_read(self, user_id: str, notification_id: str) -> Notification:
		document = await self._store.get(NOTIFICATIONS, notification_id)
		if document is None or document.get("userId") != user_id:
			raise NotificationNotFound()
		updated = await self._store.update(NOTIFICATIONS, notification_id, {"read": True})
		return Notification.from_document(updated)

	async def mark_all_read(self, user_id: str) -> int:
		documents = await self._store.query(
			NOTIFICATIONS,
			all_of(field_equals("userId", user_id), field_equals("read", False)),
		)
		for document in documents:
			await self._store.update(NOTIFICATIONS, document.id, {"read": True})
		return len(documents)
