"""Friend requests and the friends list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pawsafety.domain.profiles import load_profiles
from pawsafety.infra.documents import SERVER_TIMESTAMP, Document, DocumentStore, all_of, field_equals

from .blocks import FRIEND_REQUESTS, FRIENDS, BlockRegistry, pair_key
from .exceptions import (
	FriendAlreadyFriends,
	FriendAlreadySent,
	FriendBlocked,
	FriendRequestForbidden,
	FriendRequestNotFound,
	FriendSelfError,
)
from .notifications import NotificationFanout, NotificationType

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FriendRequest:
	id: str
	from_user_id: str
	to_user_id: str
	status: str
	from_user_name: Optional[str] = None
	from_user_profile_image: Optional[str] = None
	created_at: Optional[datetime] = None

	@classmethod
	def from_document(cls, document: Document) -> "FriendRequest":
		data = document.data
		created_at = data.get("createdAt")
		return cls(
			id=document.id,
			from_user_id=str(data.get("fromUserId") or ""),
			to_user_id=str(data.get("toUserId") or ""),
			status=str(data.get("status") or "pending"),
			from_user_name=data.get("fromUserName"),
			from_user_profile_image=data.get("fromUserProfileImage"),
			created_at=created_at if isinstance(created_at, datetime) else None,
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"from_user_id": self.from_user_id,
			"to_user_id": self.to_user_id,
			"status": self.status,
			"from_user_name": self.from_user_name,
			"from_user_profile_image": self.from_user_profile_image,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}


class FriendService:
	def __init__(self, store: DocumentStore, blocks: BlockRegistry, notifications: NotificationFanout) -> None:
		self._store = store
		self._blocks = blocks
		self._notifications = notifications

	async def are_friends(self, user_id: str, other_id: str) -> bool:
		return await self._store.exists(FRIENDS, pair_key(user_id, other_id))

	async def send_request(self, from_user_id: str, to_user_id: str) -> FriendRequest:
		if not to_user_id or from_user_id == to_user_id:
			raise FriendSelfError()
		if not await self._blocks.can_send(from_user_id, to_user_id):
			raise FriendBlocked()
		if await self.are_friends(from_user_id, to_user_id):
			raise FriendAlreadyFriends()
		profiles = await load_profiles(self._store, [from_user_id])
		sender = profiles[from_user_id]
		request_id = pair_key(from_user_id, to_user_id)
		existing = await self._store.get(FRIEND_REQUESTS, request_id)
		if existing is not None and existing.get("status") == "pending":
			raise FriendAlreadySent()
		document = await self._store.set(
			FRIEND_REQUESTS,
			request_id,
			{
				"fromUserId": from_user_id,
				"toUserId": to_user_id,
				"fromUserName": sender.name,
				"fromUserProfileImage": sender.profile_image,
				"status": "pending",
				"createdAt": SERVER_TIMESTAMP,
			},
		)
		await self._notifications.notify_many(
			[to_user_id],
			from_user_id,
			NotificationType.FRIEND_REQUEST,
			"New Friend Request",
			f"{sender.name} sent you a friend request",
			{"fromUserId": from_user_id, "fromUserName": sender.name},
		)
		return FriendRequest.from_document(document)

	async def _pending_for(self, request_id: str, user_id: str) -> FriendRequest:
		document = await self._store.get(FRIEND_REQUESTS, request_id)
		if document is None:
			raise FriendRequestNotFound()
		request = FriendRequest.from_document(document)
		if request.to_user_id != user_id:
			raise FriendRequestForbidden()
		if request.status != "pending":
			raise FriendRequestNotFound("not_pending")
		return request

	async def accept_request(self, request_id: str, user_id: str) -> FriendRequest:
		"""Accept an incoming request and write the friendship in both directions."""
		request = await self._pending_for(request_id, user_id)
		sender_id = request.from_user_id
		document = await self._store.update(
			FRIEND_REQUESTS,
			request_id,
			{"status": "accepted", "respondedAt": SERVER_TIMESTAMP},
		)
		profiles = await load_profiles(self._store, [user_id, sender_id])
		for owner_id, friend_id in ((user_id, sender_id), (sender_id, user_id)):
			friend = profiles[friend_id]
			await self._store.set(
				FRIENDS,
				pair_key(owner_id, friend_id),
				{
					"userId": owner_id,
					"friendId": friend_id,
					"friendName": friend.name,
					"friendProfileImage": friend.profile_image,
					"createdAt": SERVER_TIMESTAMP,
				},
			)
		accepter = profiles[user_id].name
		await self._notifications.notify_many(
			[sender_id],
			user_id,
			NotificationType.FRIEND_REQUEST_ACCEPTED,
			"Friend Request Accepted",
			f"{accepter} accepted your friend request",
			{"friendId": user_id, "friendName": accepter},
		)
		logger.info("friend request accepted", extra={"request_id": request_id})
		return FriendRequest.from_document(document)

	async def decline_request(self, request_id: str, user_id: str) -> FriendRequest:
		await self._pending_for(request_id, user_id)
		document = await self._store.update(
			FRIEND_REQUESTS,
			request_id,
			{"status": "rejected", "respondedAt": SERVER_TIMESTAMP},
		)
		return FriendRequest.from_document(document)

	async def remove_friend(self, user_id: str, friend_id: str) -> bool:
		removed_mine = await self._store.delete(FRIENDS, pair_key(user_id, friend_id))
		removed_theirs = await self._store.delete(FRIENDS, pair_key(friend_id, user_id))
		return removed_mine or removed_theirs

	async def list_friends(self, user_id: str) -> List[Dict[str, Any]]:
		documents = await self._store.query(FRIENDS, field_equals("userId", user_id))
		return [
			{
				"id": document.get("friendId"),
				"name": document.get("friendName"),
				"profile_image": document.get("friendProfileImage"),
			}
			for document in documents
		]

	async def incoming_requests(self, user_id: str) -> List[FriendRequest]:
		documents = await self._store.query(
			FRIEND_REQUESTS,
			all_of(field_equals("toUserId", user_id), field_equals("status", "pending")),
		)
		return [FriendRequest.from_document(document) for document in documents]
