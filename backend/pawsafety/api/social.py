"""REST API surface for blocks, friends, comments, likes and notifications."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pawsafety.container import get_services
from pawsafety.domain.social.comments import CommentTarget
from pawsafety.domain.social.exceptions import (
	BlockSelfError,
	CommentEmpty,
	CommentForbidden,
	CommentNotFound,
	FriendBlocked,
	FriendConflict,
	FriendRequestForbidden,
	FriendRequestNotFound,
	NotificationNotFound,
	SocialError,
	TargetNotFound,
)
from pawsafety.domain.social.schemas import (
	BlockedUsersResponse,
	CommentCreateRequest,
	CommentEditRequest,
	CountResponse,
	FriendRequestSend,
	LikeResponse,
	MentionSuggestion,
)
from pawsafety.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["social"])


def _map_error(exc: Exception) -> HTTPException:
	reason = getattr(exc, "reason", None)
	if isinstance(exc, FriendRequestNotFound) and reason == "not_pending":
		return HTTPException(status.HTTP_409_CONFLICT, detail=reason)
	if isinstance(exc, FriendConflict):
		return HTTPException(status.HTTP_409_CONFLICT, detail=reason or "conflict")
	if isinstance(exc, (FriendBlocked, FriendRequestForbidden, CommentForbidden)):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=reason or "forbidden")
	if isinstance(exc, (FriendRequestNotFound, TargetNotFound, CommentNotFound, NotificationNotFound)):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=reason or "not_found")
	if isinstance(exc, (BlockSelfError, CommentEmpty)):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=reason or str(exc))


@router.get("/blocks", response_model=BlockedUsersResponse)
async def list_blocked(auth_user: AuthenticatedUser = Depends(get_current_user)) -> BlockedUsersResponse:
	blocked = await get_services().blocks.list_blocked(auth_user.id)
	return BlockedUsersResponse(blocked_user_ids=blocked)


@router.post("/blocks/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def block_user(user_id: str, auth_user: AuthenticatedUser = Depends(get_current_user)) -> Response:
	try:
		await get_services().blocks.block(auth_user.id, user_id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/blocks/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_user(user_id: str, auth_user: AuthenticatedUser = Depends(get_current_user)) -> Response:
	await get_services().blocks.unblock(auth_user.id, user_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/friends")
async def friends_list(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[Dict[str, Any]]:
	return await get_services().friends.list_friends(auth_user.id)


@router.delete("/friends/{friend_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(friend_id: str, auth_user: AuthenticatedUser = Depends(get_current_user)) -> Response:
	await get_services().friends.remove_friend(auth_user.id, friend_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/friends/requests", status_code=status.HTTP_201_CREATED)
async def send_friend_request(
	payload: FriendRequestSend,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		request = await get_services().friends.send_request(auth_user.id, payload.to_user_id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return request.to_dict()


@router.get("/friends/requests/incoming")
async def incoming_friend_requests(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[Dict[str, Any]]:
	requests = await get_services().friends.incoming_requests(auth_user.id)
	return [request.to_dict() for request in requests]


@router.post("/friends/requests/{request_id}/accept")
async def accept_friend_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		request = await get_services().friends.accept_request(request_id, auth_user.id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return request.to_dict()


@router.post("/friends/requests/{request_id}/decline")
async def decline_friend_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		request = await get_services().friends.decline_request(request_id, auth_user.id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return request.to_dict()


@router.get("/comments/{target}/{target_id}")
async def list_comments(
	target: CommentTarget,
	target_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[Dict[str, Any]]:
	nodes = await get_services().comments.list_for_target(target, target_id)
	return [node.to_dict() for node in nodes]


@router.post("/comments/{target}/{target_id}", status_code=status.HTTP_201_CREATED)
async def add_comment(
	target: CommentTarget,
	target_id: str,
	payload: CommentCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		comment = await get_services().comments.add(
			target,
			target_id,
			auth_user.id,
			payload.text,
			parent_comment_id=payload.parent_comment_id,
		)
	except SocialError as exc:
		raise _map_error(exc) from None
	return comment.to_dict()


@router.patch("/comments/{target}/{target_id}/{comment_id}")
async def edit_comment(
	target: CommentTarget,
	target_id: str,
	comment_id: str,
	payload: CommentEditRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		comment = await get_services().comments.edit(target, comment_id, auth_user.id, payload.text)
	except SocialError as exc:
		raise _map_error(exc) from None
	return comment.to_dict()


@router.delete("/comments/{target}/{target_id}/{comment_id}", response_model=CountResponse)
async def delete_comment(
	target: CommentTarget,
	target_id: str,
	comment_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CountResponse:
	try:
		removed = await get_services().comments.delete(target, comment_id, auth_user.id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return CountResponse(count=removed)


@router.post("/comments/{target}/{target_id}/{comment_id}/like", response_model=LikeResponse)
async def like_comment(
	target: CommentTarget,
	target_id: str,
	comment_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> LikeResponse:
	try:
		result = await get_services().comments.toggle_like(target, comment_id, auth_user.id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return LikeResponse(liked=result.liked, likes=list(result.likes))


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def like_post(post_id: str, auth_user: AuthenticatedUser = Depends(get_current_user)) -> LikeResponse:
	try:
		result = await get_services().comments.toggle_post_like(post_id, auth_user.id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return LikeResponse(liked=result.liked, likes=list(result.likes))


@router.get("/mentions/suggest", response_model=List[MentionSuggestion])
async def suggest_mentions(
	q: str = Query(default="", max_length=100),
	limit: int = Query(default=10, ge=1, le=50),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[MentionSuggestion]:
	rows = await get_services().mentions.suggest(auth_user.id, q, limit=limit)
	return [MentionSuggestion(**row) for row in rows]


@router.get("/notifications")
async def list_notifications(
	limit: int = Query(default=50, ge=1, le=200),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[Dict[str, Any]]:
	items = await get_services().notifications.list_for_user(auth_user.id, limit=limit)
	return [item.to_dict() for item in items]


@router.get("/notifications/unread", response_model=CountResponse)
async def unread_notifications(auth_user: AuthenticatedUser = Depends(get_current_user)) -> CountResponse:
	return CountResponse(count=await get_services().notifications.unread_count(auth_user.id))


@router.post("/notifications/read-all", response_model=CountResponse)
async def mark_all_notifications_read(auth_user: AuthenticatedUser = Depends(get_current_user)) -> CountResponse:
	return CountResponse(count=await get_services().notifications.mark_all_read(auth_user.id))


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		item = await get_services().notifications.mark_read(auth_user.id, notification_id)
	except SocialError as exc:
		raise _map_error(exc) from None
	return item.to_dict()
