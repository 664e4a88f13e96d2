"""Domain models for chat threads and messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from pawsafety.domain.profiles import DEFAULT_DISPLAY_NAME as DEFAULT_SENDER_NAME
from pawsafety.infra.documents import ChangeType, Document

from .identity import ChatKind, other_participant


def hidden_field(kind: ChatKind) -> str:
	"""Field holding the per-user hide list on a message document."""
	return "deletedBy" if kind is ChatKind.REPORT else "hiddenFor"


def _strings(value: Any) -> Tuple[str, ...]:
	if not isinstance(value, list):
		return ()
	return tuple(str(item) for item in value if item)


def _iso(value: Optional[datetime]) -> Optional[str]:
	return value.isoformat() if isinstance(value, datetime) else None


def _when(value: Any) -> Optional[datetime]:
	return value if isinstance(value, datetime) else None


@dataclass(slots=True)
class ChatThread:
	id: str
	kind: ChatKind
	participants: Tuple[str, ...]
	report_id: Optional[str] = None
	last_message: Optional[str] = None
	last_message_time: Optional[datetime] = None
	created_at: Optional[datetime] = None
	# None when the thread has never carried a message.
	read_by: Optional[Tuple[str, ...]] = None
	deleted_by: Tuple[str, ...] = ()
	archived: bool = False
	archived_at: Optional[datetime] = None

	@classmethod
	def from_document(cls, kind: ChatKind, document: Document) -> "ChatThread":
		data = document.data
		read_by = data.get("readBy")
		return cls(
			id=document.id,
			kind=kind,
			participants=_strings(data.get("participants")),
			report_id=data.get("reportId") if kind is ChatKind.REPORT else None,
			last_message=data.get("lastMessage"),
			last_message_time=_when(data.get("lastMessageTime")),
			created_at=_when(data.get("createdAt")),
			read_by=_strings(read_by) if isinstance(read_by, list) else None,
			deleted_by=_strings(data.get("deletedBy")),
			archived=bool(data.get("archived", False)),
			archived_at=_when(data.get("archivedAt")),
		)

	def is_participant(self, user_id: str) -> bool:
		return user_id in self.participants

	def other(self, user_id: str) -> Optional[str]:
		return other_participant(self.participants, user_id)

	def is_unread_for(self, user_id: str) -> bool:
		return self.read_by is not None and user_id not in self.read_by

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"kind": self.kind.value,
			"participants": list(self.participants),
			"report_id": self.report_id,
			"last_message": self.last_message,
			"last_message_time": _iso(self.last_message_time),
			"created_at": _iso(self.created_at),
			"read_by": list(self.read_by) if self.read_by is not None else None,
			"deleted_by": list(self.deleted_by),
			"archived": self.archived,
			"archived_at": _iso(self.archived_at),
		}


@dataclass(slots=True)
class ThreadSummary:
	"""A thread joined with what the inbox row shows for one viewer."""

	thread: ChatThread
	other_user_id: Optional[str]
	other_user_name: str
	other_user_image: Optional[str]
	unread: bool
	report_status: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		payload = self.thread.to_dict()
		payload.update(
			{
				"other_user": {
					"id": self.other_user_id,
					"name": self.other_user_name,
					"profile_image": self.other_user_image,
				},
				"unread": self.unread,
				"report_status": self.report_status,
			}
		)
		return payload


@dataclass(slots=True)
class ChatMessage:
	id: str
	kind: ChatKind
	chat_id: str
	sender_id: str
	sender_name: str
	text: Optional[str]
	images: Optional[Tuple[str, ...]]
	timestamp: Optional[datetime]
	report_id: Optional[str] = None
	edited: bool = False
	edited_at: Optional[datetime] = None
	deleted: bool = False
	deleted_by: Optional[str] = None
	deleted_at: Optional[datetime] = None
	hidden_for: Tuple[str, ...] = ()

	@classmethod
	def from_document(cls, kind: ChatKind, document: Document) -> "ChatMessage":
		data = document.data
		images = data.get("images")
		if kind is ChatKind.REPORT:
			# Report messages keep the per-user hide list under deletedBy.
			hidden_for = _strings(data.get("deletedBy"))
			deleted_by = None
		else:
			hidden_for = _strings(data.get("hiddenFor"))
			actor = data.get("deletedBy")
			deleted_by = actor if isinstance(actor, str) else None
		return cls(
			id=document.id,
			kind=kind,
			chat_id=str(data.get("chatId") or ""),
			sender_id=str(data.get("senderId") or ""),
			sender_name=data.get("senderName") or DEFAULT_SENDER_NAME,
			text=data.get("text"),
			images=_strings(images) if isinstance(images, list) else None,
			timestamp=_when(data.get("timestamp")),
			report_id=data.get("reportId"),
			edited=bool(data.get("edited", False)),
			edited_at=_when(data.get("editedAt")),
			deleted=bool(data.get("deleted", False)),
			deleted_by=deleted_by,
			deleted_at=_when(data.get("deletedAt")),
			hidden_for=hidden_for,
		)

	def is_hidden_for(self, user_id: str) -> bool:
		return user_id in self.hidden_for

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"kind": self.kind.value,
			"chat_id": self.chat_id,
			"sender_id": self.sender_id,
			"sender_name": self.sender_name,
			"text": self.text,
			"images": list(self.images) if self.images is not None else None,
			"timestamp": _iso(self.timestamp),
			"report_id": self.report_id,
			"edited": self.edited,
			"edited_at": _iso(self.edited_at),
			"deleted": self.deleted,
			"deleted_by": self.deleted_by,
			"deleted_at": _iso(self.deleted_at),
		}


@dataclass(slots=True)
class ThreadChange:
	type: ChangeType
	thread: ChatThread


@dataclass(slots=True)
class MessageChange:
	type: ChangeType
	message: ChatMessage
