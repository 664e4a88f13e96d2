"""Comments and replies on posts and reports, plus post likes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pawsafety.domain.profiles import load_profile
from pawsafety.domain.reports.models import STRAY_REPORTS
from pawsafety.infra.documents import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Document, DocumentStore, field_equals

from .exceptions import CommentEmpty, CommentForbidden, CommentNotFound, TargetNotFound
from .mentions import MentionResolver
from .notifications import CommentEvent, NotificationFanout, NotificationType

logger = logging.getLogger(__name__)

POSTS = "posts"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
# Reply chains longer than this are treated as broken.
_MAX_DEPTH = 64


class CommentTarget(str, Enum):
	POST = "post"
	REPORT = "report"

	@property
	def collection(self) -> str:
		return f"{self.value}_comments"

	@property
	def parent_collection(self) -> str:
		return POSTS if self is CommentTarget.POST else STRAY_REPORTS

	@property
	def field(self) -> str:
		return f"{self.value}Id"


@dataclass(slots=True)
class Comment:
	id: str
	target: CommentTarget
	target_id: str
	user_id: str
	user_name: str
	text: str
	user_profile_image: Optional[str] = None
	likes: Tuple[str, ...] = ()
	parent_comment_id: Optional[str] = None
	mentioned_users: Tuple[str, ...] = ()
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	@classmethod
	def from_document(cls, target: CommentTarget, document: Document) -> "Comment":
		data = document.data
		created_at = data.get("createdAt")
		updated_at = data.get("updatedAt")
		return cls(
			id=document.id,
			target=target,
			target_id=str(data.get(target.field) or ""),
			user_id=str(data.get("userId") or ""),
			user_name=str(data.get("userName") or ""),
			text=str(data.get("text") or ""),
			user_profile_image=data.get("userProfileImage"),
			likes=tuple(data.get("likes") or ()),
			parent_comment_id=data.get("parentCommentId"),
			mentioned_users=tuple(data.get("mentionedUsers") or ()),
			created_at=created_at if isinstance(created_at, datetime) else None,
			updated_at=updated_at if isinstance(updated_at, datetime) else None,
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"target": self.target.value,
			"target_id": self.target_id,
			"user_id": self.user_id,
			"user_name": self.user_name,
			"user_profile_image": self.user_profile_image,
			"text": self.text,
			"likes": list(self.likes),
			"parent_comment_id": self.parent_comment_id,
			"mentioned_users": list(self.mentioned_users),
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}


@dataclass(slots=True)
class CommentNode:
	comment: Comment
	replies: List["CommentNode"] = field(default_factory=list)

	def to_dict(self) -> Dict[str, Any]:
		payload = self.comment.to_dict()
		payload["replies"] = [reply.to_dict() for reply in self.replies]
		return payload


def _created_order(node: CommentNode) -> Tuple[datetime, str]:
	return (node.comment.created_at or _EPOCH, node.comment.id)


def build_tree(comments: Iterable[Comment]) -> List[CommentNode]:
	"""Nest a flat comment list in one pass; siblings sorted by ``createdAt``.

	Replies whose parent is missing are left out, as are their own replies.
	"""
	nodes = {comment.id: CommentNode(comment=comment) for comment in comments}
	roots: List[CommentNode] = []
	for node in nodes.values():
		parent_id = node.comment.parent_comment_id
		if not parent_id:
			roots.append(node)
		elif parent_id in nodes:
			nodes[parent_id].replies.append(node)
	for node in nodes.values():
		node.replies.sort(key=_created_order)
	roots.sort(key=_created_order)
	return roots


@dataclass(slots=True)
class LikeResult:
	liked: bool
	likes: Tuple[str, ...]


class CommentService:
	def __init__(self, store: DocumentStore, mentions: MentionResolver, notifications: NotificationFanout) -> None:
		self._store = store
		self._mentions = mentions
		self._notifications = notifications

	async def _target_owner(self, target: CommentTarget, target_id: str) -> Optional[str]:
		document = await self._store.get(target.parent_collection, target_id)
		if document is None:
			raise TargetNotFound()
		return document.get("userId")

	async def _get(self, target: CommentTarget, comment_id: str) -> Document:
		document = await self._store.get(target.collection, comment_id)
		if document is None:
			raise CommentNotFound()
		return document

	async def _root_of(self, target: CommentTarget, comment: Document) -> Optional[Document]:
		"""Walk parent links to the top-level comment; None if the chain is broken."""
		current = comment
		for _ in range(_MAX_DEPTH):
			parent_id = current.get("parentCommentId")
			if not parent_id:
				return current
			parent = await self._store.get(target.collection, parent_id)
			if parent is None:
				return None
			current = parent
		return None

	async def list_for_target(self, target: CommentTarget, target_id: str) -> List[CommentNode]:
		documents = await self._store.query(target.collection, field_equals(target.field, target_id))
		return build_tree(Comment.from_document(target, document) for document in documents)

	async def add(
		self,
		target: CommentTarget,
		target_id: str,
		user_id: str,
		text: str,
		parent_comment_id: Optional[str] = None,
	) -> Comment:
		body_text = (text or "").strip()
		if not body_text:
			raise CommentEmpty()
		owner_id = await self._target_owner(target, target_id)
		parent = root = None
		if parent_comment_id:
			parent = await self._get(target, parent_comment_id)
			if parent.get(target.field) != target_id:
				raise CommentNotFound()
			root = await self._root_of(target, parent)
		author = await load_profile(self._store, user_id)
		mentioned = await self._mentions.resolve_text(body_text)
		document = await self._store.create(
			target.collection,
			{
				target.field: target_id,
				"userId": user_id,
				"userName": author.name,
				"userProfileImage": author.profile_image,
				"text": body_text,
				"createdAt": SERVER_TIMESTAMP,
				"likes": [],
				"parentCommentId": parent_comment_id,
				"mentionedUsers": mentioned,
			},
		)
		event = CommentEvent(
			actor_id=user_id,
			actor_name=author.name,
			text=body_text,
			comment_id=document.id,
			target_field=target.field,
			target_id=target_id,
			owner_id=owner_id,
			mentioned_ids=mentioned,
			parent_comment_id=parent_comment_id,
			parent_owner_id=parent.get("userId") if parent else None,
			root_comment_id=root.id if root and parent and root.id != parent.id else None,
			root_owner_id=root.get("userId") if root and parent and root.id != parent.id else None,
		)
		await self._notifications.notify_comment(event)
		return Comment.from_document(target, document)

	async def edit(self, target: CommentTarget, comment_id: str, user_id: str, text: str) -> Comment:
		"""Replace the text; only users newly mentioned by the edit are notified."""
		body_text = (text or "").strip()
		if not body_text:
			raise CommentEmpty()
		document = await self._get(target, comment_id)
		if document.get("userId") != user_id:
			raise CommentForbidden()
		previous = set(document.get("mentionedUsers") or ())
		mentioned = await self._mentions.resolve_text(body_text)
		updated = await self._store.update(
			target.collection,
			comment_id,
			{"text": body_text, "updatedAt": SERVER_TIMESTAMP, "mentionedUsers": mentioned},
		)
		fresh = [mentioned_id for mentioned_id in mentioned if mentioned_id not in previous]
		if fresh:
			author = await load_profile(self._store, user_id)
			is_reply = bool(document.get("parentCommentId"))
			await self._notifications.notify_comment(
				CommentEvent(
					actor_id=user_id,
					actor_name=author.name,
					text=body_text,
					comment_id=comment_id,
					target_field=target.field,
					target_id=str(document.get(target.field) or ""),
					mentioned_ids=fresh,
					parent_comment_id=document.get("parentCommentId") if is_reply else None,
				)
			)
		return Comment.from_document(target, updated)

	async def toggle_like(self, target: CommentTarget, comment_id: str, user_id: str) -> LikeResult:
		document = await self._get(target, comment_id)
		liked = user_id not in (document.get("likes") or [])
		change = ArrayUnion(user_id) if liked else ArrayRemove(user_id)
		updated = await self._store.update(target.collection, comment_id, {"likes": change})
		if liked:
			author = await load_profile(self._store, user_id)
			await self._notifications.notify_many(
				[document.get("userId")],
				user_id,
				NotificationType.COMMENT_LIKE,
				"New Like",
				f"{author.name} liked your comment",
				{target.field: document.get(target.field), "commentId": comment_id, "likedBy": user_id},
			)
		return LikeResult(liked=liked, likes=tuple(updated.get("likes") or ()))

	async def delete(self, target: CommentTarget, comment_id: str, user_id: str) -> int:
		"""Hard-delete a comment and every reply below it. Returns rows removed."""
		document = await self._get(target, comment_id)
		if document.get("userId") != user_id:
			raise CommentForbidden()
		siblings = await self._store.query(target.collection, field_equals(target.field, document.get(target.field)))
		children: Dict[str, List[str]] = {}
		for sibling in siblings:
			parent_id = sibling.get("parentCommentId")
			if parent_id:
				children.setdefault(parent_id, []).append(sibling.id)
		doomed: List[str] = []
		stack = [comment_id]
		while stack:
			current = stack.pop()
			if current in doomed:
				continue
			doomed.append(current)
			stack.extend(children.get(current, ()))
		removed = 0
		for doc_id in doomed:
			if await self._store.delete(target.collection, doc_id):
				removed += 1
		logger.info("comment deleted", extra={"comment_id": comment_id, "removed": removed})
		return removed

	async def toggle_post_like(self, post_id: str, user_id: str) -> LikeResult:
		post = await self._store.get(POSTS, post_id)
		if post is None:
			raise TargetNotFound()
		liked = user_id not in (post.get("likes") or [])
		change = ArrayUnion(user_id) if liked else ArrayRemove(user_id)
		updated = await self._store.update(POSTS, post_id, {"likes": change})
		if liked:
			author = await load_profile(self._store, user_id)
			await self._notifications.notify_many(
				[post.get("userId")],
				user_id,
				NotificationType.POST_LIKE,
				"New Like",
				f"{author.name} liked your post",
				{"postId": post_id, "likedBy": user_id, "likedByName": author.name},
			)
		return LikeResult(liked=liked, likes=tuple(updated.get("likes") or ()))
