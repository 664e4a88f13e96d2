"""Prometheus collectors for chat, notification and HTTP activity."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary

REQUEST_COUNTER = Counter(
	"pawsafety_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"pawsafety_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REDIS_UP = Gauge("pawsafety_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("pawsafety_redis_latency_seconds", "Redis ping latency (seconds)")

SOCKET_CLIENTS = Gauge(
	"pawsafety_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"pawsafety_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

STORE_WRITE_CONFLICTS = Counter(
	"pawsafety_store_write_conflicts_total",
	"Optimistic document write retries",
	["collection"],
)

SUBSCRIPTIONS_ACTIVE = Gauge(
	"pawsafety_store_subscriptions_active",
	"Open live query subscriptions",
	["collection"],
)

CHAT_SEND = Counter(
	"pawsafety_chat_send_total",
	"Chat messages sent",
	["kind"],
)

CHAT_SEND_REJECTS = Counter(
	"pawsafety_chat_send_rejects_total",
	"Rejected chat send attempts",
	["reason"],
)

CHAT_READ_UPDATES = Counter(
	"pawsafety_chat_read_updates_total",
	"Chat threads marked as read",
)

CHAT_IMAGE_UPLOAD_FAILURES = Counter(
	"pawsafety_chat_image_upload_failures_total",
	"Chat image uploads skipped after a failure",
)

BLOCKS_TOTAL = Counter(
	"pawsafety_blocks_total",
	"Block/unblock operations",
	["action"],
)

NOTIFICATIONS_CREATED = Counter(
	"pawsafety_notifications_created_total",
	"Notification records written",
	["type"],
)

NOTIFICATIONS_SUPPRESSED = Counter(
	"pawsafety_notifications_suppressed_total",
	"Notifications skipped before delivery",
	["reason"],
)

NOTIFICATION_FAILURES = Counter(
	"pawsafety_notification_failures_total",
	"Per-recipient notification failures swallowed by fan-out",
	["type"],
)

PUSH_FAILURES = Counter(
	"pawsafety_push_failures_total",
	"Push deliveries that failed",
)

PROXIMITY_MATCHES = Counter(
	"pawsafety_proximity_matches_total",
	"Lost-report owners notified about a nearby found pet",
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_store_write_conflict(collection: str) -> None:
	STORE_WRITE_CONFLICTS.labels(collection=collection).inc()


def subscription_opened(collection: str) -> None:
	SUBSCRIPTIONS_ACTIVE.labels(collection=collection).inc()


def subscription_closed(collection: str) -> None:
	SUBSCRIPTIONS_ACTIVE.labels(collection=collection).dec()


def inc_chat_send(kind: str) -> None:
	CHAT_SEND.labels(kind=kind).inc()


def inc_chat_send_reject(reason: str) -> None:
	CHAT_SEND_REJECTS.labels(reason=reason).inc()


def inc_chat_read() -> None:
	CHAT_READ_UPDATES.inc()


def inc_chat_image_upload_failure() -> None:
	CHAT_IMAGE_UPLOAD_FAILURES.inc()


def inc_block(action: str) -> None:
	BLOCKS_TOTAL.labels(action=action).inc()


def inc_notification_created(kind: str) -> None:
	NOTIFICATIONS_CREATED.labels(type=kind).inc()


def inc_notification_suppressed(reason: str) -> None:
	NOTIFICATIONS_SUPPRESSED.labels(reason=reason).inc()


def inc_notification_failure(kind: str) -> None:
	NOTIFICATION_FAILURES.labels(type=kind).inc()


def inc_push_failure() -> None:
	PUSH_FAILURES.inc()


def inc_proximity_matches(count: int = 1) -> None:
	if count > 0:
		PROXIMITY_MATCHES.inc(count)


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)
