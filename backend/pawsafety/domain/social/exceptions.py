"""Domain-level exceptions for blocks, friends, comments and notifications."""

from __future__ import annotations


class SocialError(Exception):
    """Base class for social feature errors."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class BlockSelfError(SocialError):
    reason = "self_block"


class FriendConflict(SocialError):
    reason = "conflict"


class FriendAlreadySent(FriendConflict):
    reason = "already_sent"


class FriendAlreadyFriends(FriendConflict):
    reason = "already_friends"


class FriendSelfError(FriendConflict):
    reason = "self_request"


class FriendBlocked(SocialError):
    reason = "blocked"


class FriendRequestNotFound(SocialError):
    reason = "not_found"


class FriendRequestForbidden(SocialError):
    reason = "forbidden"


class TargetNotFound(SocialError):
    """The post or report a comment or like points at does not exist."""

    reason = "target_not_found"


class CommentNotFound(SocialError):
    reason = "comment_not_found"


class CommentForbidden(SocialError):
    reason = "forbidden"


class CommentEmpty(SocialError):
    reason = "empty_comment"


class NotificationNotFound(SocialError):
    reason = "notification_not_found"
