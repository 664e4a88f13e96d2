"""Process-wide service container.

Every service is built once and receives its collaborators explicitly; the
single ``NotificationFanout`` instance is shared by all of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx

from pawsafety.domain.chat.messages import MessageStore
from pawsafety.domain.chat.threads import ChatThreadStore
from pawsafety.domain.reports.proximity import ProximityMatcher
from pawsafety.domain.reports.service import ReportService
from pawsafety.domain.social.blocks import BlockRegistry
from pawsafety.domain.social.comments import CommentService
from pawsafety.domain.social.friends import FriendService
from pawsafety.domain.social.mentions import MentionResolver
from pawsafety.domain.social.notifications import NotificationFanout
from pawsafety.infra.blobs import BlobStore, LocalBlobStore
from pawsafety.infra.documents import DocumentStore
from pawsafety.infra.push import ExpoPushDispatcher, NullPushDispatcher, PushDispatcher
from pawsafety.infra.redis import close_redis
from pawsafety.settings import settings


@dataclass(slots=True)
class Services:
    store: DocumentStore
    blocks: BlockRegistry
    threads: ChatThreadStore
    messages: MessageStore
    mentions: MentionResolver
    notifications: NotificationFanout
    proximity: ProximityMatcher
    reports: ReportService
    comments: CommentService
    friends: FriendService


def build_services(
    *,
    store: Optional[DocumentStore] = None,
    blobs: Optional[BlobStore] = None,
    push: Optional[PushDispatcher] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Services:
    store = store or DocumentStore(clock=clock)
    blobs = blobs or LocalBlobStore()
    push = push or NullPushDispatcher()
    notifications = NotificationFanout(store, push)
    blocks = BlockRegistry(store)
    threads = ChatThreadStore(store)
    mentions = MentionResolver(store)
    proximity = ProximityMatcher(store, notifications)
    return Services(
        store=store,
        blocks=blocks,
        threads=threads,
        messages=MessageStore(store, threads, blocks, blobs, notifications),
        mentions=mentions,
        notifications=notifications,
        proximity=proximity,
        reports=ReportService(store, proximity),
        comments=CommentService(store, mentions, notifications),
        friends=FriendService(store, blocks, notifications),
    )


_services: Optional[Services] = None
_http: Optional[httpx.AsyncClient] = None


def configure(services: Optional[Services] = None) -> Services:
    """Install ``services`` (or build the production set) as the process container."""
    global _services, _http
    if services is None:
        push: PushDispatcher
        if settings.push_enabled:
            _http = httpx.AsyncClient()
            push = ExpoPushDispatcher(http=_http)
        else:
            push = NullPushDispatcher()
        services = build_services(push=push)
    _services = services
    return services


def get_services() -> Services:
    if _services is None:
        return configure()
    return _services


async def shutdown() -> None:
    global _services, _http
    if _services is not None:
        await _services.reports.drain()
    if _http is not None:
        await _http.aclose()
    await close_redis()
    _services = None
    _http = None
