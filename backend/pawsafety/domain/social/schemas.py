"""Pydantic schemas for blocks, friends, comments and notifications."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class FriendRequestSend(BaseModel):
	to_user_id: str = Field(..., min_length=1)


class CommentCreateRequest(BaseModel):
	text: str = Field(..., max_length=2000)
	parent_comment_id: Optional[str] = None


class CommentEditRequest(BaseModel):
	text: str = Field(..., max_length=2000)


class LikeResponse(BaseModel):
	liked: bool
	likes: List[str]


class BlockedUsersResponse(BaseModel):
	blocked_user_ids: List[str]


class CountResponse(BaseModel):
	count: int


class MentionSuggestion(BaseModel):
	id: Optional[str] = None
	name: str
	profile_image: Optional[str] = None
