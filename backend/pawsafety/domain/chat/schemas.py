"""Pydantic schemas for chat threads and messages."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Base64Bytes, BaseModel, Field


class ImagePayload(BaseModel):
	data: Base64Bytes = Field(..., description="Base64 encoded image bytes")
	content_type: str = Field(default="image/jpeg")


class SendMessageRequest(BaseModel):
	recipient_id: str = Field(..., min_length=1)
	text: Optional[str] = Field(default=None, max_length=4000)
	images: List[ImagePayload] = Field(default_factory=list, max_length=10)
	report_id: Optional[str] = Field(default=None, description="Required for report chats")


class EditMessageRequest(BaseModel):
	text: str = Field(..., max_length=4000)


class ReportMessageRequest(BaseModel):
	reason: str = Field(..., min_length=1, max_length=500)


class ReportMessageResponse(BaseModel):
	report_id: str


class UnreadResponse(BaseModel):
	unread: int


class DeleteThreadResponse(BaseModel):
	chat_id: str
	hidden_messages: int


ThreadViewParam = Literal["active", "archived"]
