"""Chat domain exports."""

from .exceptions import ChatError
from .identity import ChatKind, chat_id_for, direct_chat_id, report_chat_id

__all__ = [
	"ChatError",
	"ChatKind",
	"chat_id_for",
	"direct_chat_id",
	"report_chat_id",
]
