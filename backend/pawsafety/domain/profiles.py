"""Read-side helpers over the ``users`` collection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from pawsafety.infra.documents import DocumentStore

USERS = "users"
DEFAULT_DISPLAY_NAME = "Pet Lover"


def display_name(data: Mapping[str, Any] | None, default: str = DEFAULT_DISPLAY_NAME) -> str:
	if not data:
		return default
	return str(data.get("displayName") or data.get("name") or default)


@dataclass(slots=True)
class UserProfile:
	id: str
	name: str
	profile_image: Optional[str] = None
	status: Optional[str] = None

	@classmethod
	def from_data(cls, user_id: str, data: Mapping[str, Any] | None) -> "UserProfile":
		data = data or {}
		return cls(
			id=user_id,
			name=display_name(data),
			profile_image=data.get("profileImage"),
			status=data.get("status"),
		)

	@property
	def is_banned(self) -> bool:
		return self.status == "banned"


async def load_profile(store: DocumentStore, user_id: str) -> UserProfile:
	"""Missing users resolve to the default profile."""
	document = await store.get(USERS, user_id)
	return UserProfile.from_data(user_id, document.data if document else None)


async def load_profiles(store: DocumentStore, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
	ids = [user_id for user_id in user_ids if user_id]
	found = await store.get_many(USERS, ids)
	return {
		user_id: UserProfile.from_data(user_id, found[user_id].data if user_id in found else None)
		for user_id in ids
	}
