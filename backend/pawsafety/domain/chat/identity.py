"""Deterministic thread keys shared by both chat participants."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Tuple

from .exceptions import ChatIdentityError


class ChatKind(str, Enum):
	DIRECT = "direct"
	REPORT = "report"

	@property
	def thread_collection(self) -> str:
		return f"{self.value}_chats"

	@property
	def message_collection(self) -> str:
		return f"{self.value}_messages"


def clean_id(value: Optional[str]) -> str:
	return str(value).strip() if value is not None else ""


def ordered_pair(user_a: Optional[str], user_b: Optional[str]) -> Tuple[str, str]:
	"""Return the two participants sorted lexicographically."""
	first, second = clean_id(user_a), clean_id(user_b)
	if not first or not second:
		raise ChatIdentityError("missing_participant")
	if first == second:
		raise ChatIdentityError("self_chat")
	return (first, second) if first < second else (second, first)


def direct_chat_id(user_a: Optional[str], user_b: Optional[str]) -> str:
	low, high = ordered_pair(user_a, user_b)
	return f"direct_{low}_{high}"


def report_chat_id(report_id: Optional[str], user_a: Optional[str], user_b: Optional[str]) -> str:
	report = clean_id(report_id)
	if not report:
		raise ChatIdentityError("missing_report")
	low, high = ordered_pair(user_a, user_b)
	return f"report_{report}_{low}_{high}"


def chat_id_for(
	kind: ChatKind,
	user_a: Optional[str],
	user_b: Optional[str],
	report_id: Optional[str] = None,
) -> str:
	if kind is ChatKind.REPORT:
		return report_chat_id(report_id, user_a, user_b)
	return direct_chat_id(user_a, user_b)


def other_participant(participants: Iterable[str], user_id: str) -> Optional[str]:
	for participant in participants:
		if participant != user_id:
			return participant
	return None
