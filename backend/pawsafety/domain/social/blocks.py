"""Directional block records and the message-send gate built on them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List

from pawsafety.infra.documents import SERVER_TIMESTAMP, DocumentStore, field_equals
from pawsafety.obs import metrics as obs_metrics

from .exceptions import BlockSelfError

logger = logging.getLogger(__name__)

BLOCKS = "blocks"
FRIENDS = "friends"
FRIEND_REQUESTS = "friend_requests"


def pair_key(blocker_id: str, blocked_id: str) -> str:
	return f"{blocker_id}_{blocked_id}"


@dataclass(slots=True)
class BlockState:
	"""Both directions of a pair, from ``user``'s point of view."""

	blocked_by_other: bool
	has_blocked: bool

	@property
	def any(self) -> bool:
		return self.blocked_by_other or self.has_blocked


class BlockRegistry:
	def __init__(self, store: DocumentStore) -> None:
		self._store = store

	async def is_blocked(self, subject_id: str, actor_id: str) -> bool:
		"""True when ``subject_id`` has blocked ``actor_id``."""
		return await self._store.exists(BLOCKS, pair_key(subject_id, actor_id))

	async def block_state(self, user_id: str, other_id: str) -> BlockState:
		blocked_by_other, has_blocked = await asyncio.gather(
			self.is_blocked(other_id, user_id),
			self.is_blocked(user_id, other_id),
		)
		return BlockState(blocked_by_other=blocked_by_other, has_blocked=has_blocked)

	async def can_send(self, sender_id: str, recipient_id: str) -> bool:
		state = await self.block_state(sender_id, recipient_id)
		return not state.any

	async def block(self, blocker_id: str, blocked_id: str) -> None:
		"""Record the block, then drop friendships and requests between the pair."""
		if not blocker_id or not blocked_id or blocker_id == blocked_id:
			raise BlockSelfError()
		_, created = await self._store.create_if_missing(
			BLOCKS,
			pair_key(blocker_id, blocked_id),
			{"userId": blocker_id, "blockedUserId": blocked_id, "createdAt": SERVER_TIMESTAMP},
		)
		if created:
			obs_metrics.inc_block("block")
		for collection in (FRIENDS, FRIEND_REQUESTS):
			for key in (pair_key(blocker_id, blocked_id), pair_key(blocked_id, blocker_id)):
				try:
					await self._store.delete(collection, key)
				except Exception:
					logger.warning(
						"block cascade delete failed",
						exc_info=True,
						extra={"collection": collection, "doc_id": key},
					)

	async def unblock(self, blocker_id: str, blocked_id: str) -> bool:
		removed = await self._store.delete(BLOCKS, pair_key(blocker_id, blocked_id))
		if removed:
			obs_metrics.inc_block("unblock")
		return removed

	async def list_blocked(self, blocker_id: str) -> List[str]:
		documents = await self._store.query(BLOCKS, field_equals("userId", blocker_id))
		return [str(document.get("blockedUserId")) for document in documents]
