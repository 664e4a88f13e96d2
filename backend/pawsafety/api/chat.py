"""FastAPI endpoints for direct and report chats."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pawsafety.container import get_services
from pawsafety.domain.chat.attachments import ImageUpload
from pawsafety.domain.chat.exceptions import (
	ChatError,
	ChatIdentityError,
	ChatRestricted,
	EmptyMessage,
	MessageDeleted,
	MessageForbidden,
	MessageNotFound,
	RecipientBanned,
	ReportResolved,
	SenderBlocked,
	ThreadForbidden,
	ThreadNotFound,
)
from pawsafety.domain.chat.identity import ChatKind
from pawsafety.domain.chat.schemas import (
	DeleteThreadResponse,
	EditMessageRequest,
	ReportMessageRequest,
	ReportMessageResponse,
	SendMessageRequest,
	ThreadViewParam,
	UnreadResponse,
)
from pawsafety.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])


def _map_error(exc: Exception) -> HTTPException:
	reason = getattr(exc, "reason", None)
	if isinstance(exc, ChatRestricted):
		headers = {"X-Chat-Restricted-Until": exc.expires_at.isoformat()} if exc.expires_at else None
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=reason, headers=headers)
	if isinstance(exc, (SenderBlocked, ReportResolved, RecipientBanned, ThreadForbidden, MessageForbidden)):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=reason or "forbidden")
	if isinstance(exc, (ThreadNotFound, MessageNotFound)):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=reason or "not_found")
	if isinstance(exc, MessageDeleted):
		return HTTPException(status.HTTP_410_GONE, detail=reason)
	if isinstance(exc, (EmptyMessage, ChatIdentityError)):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=reason or str(exc))


@router.get("/threads")
async def list_threads(
	view: ThreadViewParam = Query(default="active"),
	kind: Optional[ChatKind] = Query(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[Dict[str, Any]]:
	summaries = await get_services().threads.list_for_user(auth_user.id, view, kind)
	return [summary.to_dict() for summary in summaries]


@router.get("/unread", response_model=UnreadResponse)
async def unread_threads(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UnreadResponse:
	return UnreadResponse(unread=await get_services().threads.unread_count(auth_user.id))


@router.post("/{kind}/threads/{chat_id}/read")
async def mark_thread_read(
	kind: ChatKind,
	chat_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
	threads = get_services().threads
	try:
		await threads.require_participant(kind, chat_id, auth_user.id)
	except ThreadNotFound:
		# Opening a thread that has no messages yet is not an error.
		return Response(status_code=status.HTTP_204_NO_CONTENT)
	except ChatError as exc:
		raise _map_error(exc) from None
	await threads.mark_read(kind, chat_id, auth_user.id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{kind}/threads/{chat_id}", response_model=DeleteThreadResponse)
async def delete_thread(
	kind: ChatKind,
	chat_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> DeleteThreadResponse:
	threads = get_services().threads
	try:
		await threads.require_participant(kind, chat_id, auth_user.id)
	except ChatError as exc:
		raise _map_error(exc) from None
	hidden = await threads.soft_delete(kind, chat_id, auth_user.id)
	return DeleteThreadResponse(chat_id=chat_id, hidden_messages=hidden)


@router.post("/{kind}/threads/{chat_id}/archive")
async def archive_thread(
	kind: ChatKind,
	chat_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	threads = get_services().threads
	try:
		await threads.require_participant(kind, chat_id, auth_user.id)
	except ChatError as exc:
		raise _map_error(exc) from None
	return (await threads.archive(kind, chat_id)).to_dict()


@router.post("/{kind}/threads/{chat_id}/unarchive")
async def unarchive_thread(
	kind: ChatKind,
	chat_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	threads = get_services().threads
	try:
		await threads.require_participant(kind, chat_id, auth_user.id)
	except ChatError as exc:
		raise _map_error(exc) from None
	return (await threads.unarchive(kind, chat_id)).to_dict()


@router.get("/{kind}/threads/{chat_id}/messages")
async def list_messages(
	kind: ChatKind,
	chat_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[Dict[str, Any]]:
	try:
		messages = await get_services().messages.list_for_user(kind, chat_id, auth_user.id)
	except ChatError as exc:
		raise _map_error(exc) from None
	return [message.to_dict() for message in messages]


@router.post("/{kind}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
	kind: ChatKind,
	payload: SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	images = [ImageUpload(content=image.data, content_type=image.content_type) for image in payload.images]
	try:
		message = await get_services().messages.send(
			kind,
			auth_user.id,
			payload.recipient_id,
			text=payload.text,
			images=images,
			report_id=payload.report_id,
		)
	except ChatError as exc:
		raise _map_error(exc) from None
	return message.to_dict()


@router.patch("/{kind}/messages/{message_id}")
async def edit_message(
	kind: ChatKind,
	message_id: str,
	payload: EditMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		message = await get_services().messages.edit(kind, message_id, auth_user.id, payload.text)
	except ChatError as exc:
		raise _map_error(exc) from None
	return message.to_dict()


@router.delete("/{kind}/messages/{message_id}")
async def delete_message(
	kind: ChatKind,
	message_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
	try:
		await get_services().messages.delete(kind, message_id, auth_user.id)
	except ChatError as exc:
		raise _map_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{kind}/messages/{message_id}/hide")
async def hide_message(
	kind: ChatKind,
	message_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
	try:
		await get_services().messages.hide_for_user(kind, message_id, auth_user.id)
	except ChatError as exc:
		raise _map_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
	"/{kind}/messages/{message_id}/report",
	response_model=ReportMessageResponse,
	status_code=status.HTTP_201_CREATED,
)
async def report_message(
	kind: ChatKind,
	message_id: str,
	payload: ReportMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ReportMessageResponse:
	try:
		report_id = await get_services().messages.report_message(kind, message_id, auth_user.id, payload.reason)
	except ChatError as exc:
		raise _map_error(exc) from None
	return ReportMessageResponse(report_id=report_id)
