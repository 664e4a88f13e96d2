"""Domain-level exceptions for chat threads and messages."""

from __future__ import annotations

from datetime import datetime


class ChatError(Exception):
    """Base class for chat feature errors."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class ChatIdentityError(ChatError):
    """A thread key cannot be derived, so the chat cannot be opened."""

    reason = "cannot_open_chat"


class EmptyMessage(ChatError):
    reason = "empty_message"


class SenderBlocked(ChatError):
    reason = "blocked"


class ReportResolved(ChatError):
    reason = "report_resolved"


class ChatRestricted(ChatError):
    reason = "chat_restricted"

    def __init__(self, expires_at: datetime | None = None) -> None:
        super().__init__()
        self.expires_at = expires_at


class RecipientBanned(ChatError):
    reason = "recipient_banned"


class ThreadNotFound(ChatError):
    reason = "thread_not_found"


class ThreadForbidden(ChatError):
    reason = "not_participant"


class MessageNotFound(ChatError):
    reason = "message_not_found"


class MessageForbidden(ChatError):
    reason = "forbidden"


class MessageDeleted(ChatError):
    reason = "message_deleted"
