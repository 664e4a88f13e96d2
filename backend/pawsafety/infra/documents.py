"""Document store backed by Redis.

Documents are JSON bodies stored under ``doc:{collection}:{id}``. Each
collection keeps an id index (``idx:{collection}``) and a change stream
(``changes:{collection}``) that live subscriptions tail.

Every write runs inside a WATCH/MULTI transaction on the document key, so
field transforms such as ``ArrayUnion`` are atomic per document even with
concurrent writers. There are no cross-document transactions.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Literal, Mapping, Optional

import ulid
from redis.exceptions import WatchError

from pawsafety.infra.redis import RedisProxy, redis_client
from pawsafety.obs import metrics as obs_metrics
from pawsafety.settings import settings

logger = logging.getLogger(__name__)

ChangeType = Literal["added", "modified", "removed"]
Predicate = Callable[[Mapping[str, Any]], bool]


class _ServerTimestamp:
	def __repr__(self) -> str:
		return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()
_UNCHANGED = object()


class ArrayUnion:
	"""Add values to an array field, skipping ones already present."""

	__slots__ = ("values",)

	def __init__(self, *values: Any) -> None:
		self.values = tuple(values)


class ArrayRemove:
	"""Remove every occurrence of the given values from an array field."""

	__slots__ = ("values",)

	def __init__(self, *values: Any) -> None:
		self.values = tuple(values)


class DocumentNotFound(LookupError):
	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"{collection}/{doc_id}")
		self.collection = collection
		self.doc_id = doc_id


@dataclass(slots=True)
class Document:
	collection: str
	id: str
	data: Dict[str, Any]

	def get(self, key: str, default: Any = None) -> Any:
		return self.data.get(key, default)


@dataclass(slots=True)
class ChangeEvent:
	type: ChangeType
	document: Document


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _json_default(value: Any) -> Any:
	if isinstance(value, datetime):
		return {"$ts": value.isoformat()}
	if isinstance(value, (set, frozenset)):
		return sorted(value)
	raise TypeError(f"unsupported document value: {type(value).__name__}")


def _decode_hook(obj: Dict[str, Any]) -> Any:
	if len(obj) == 1 and "$ts" in obj:
		return datetime.fromisoformat(obj["$ts"])
	return obj


def encode_body(body: Mapping[str, Any]) -> str:
	return json.dumps(body, default=_json_default, separators=(",", ":"))


def decode_body(raw: str) -> Dict[str, Any]:
	return json.loads(raw, object_hook=_decode_hook)


def _resolve(value: Any, existing: Any, now: datetime) -> Any:
	if value is SERVER_TIMESTAMP:
		return now
	if isinstance(value, ArrayUnion):
		merged = list(existing) if isinstance(existing, list) else []
		for item in value.values:
			if item not in merged:
				merged.append(item)
		return merged
	if isinstance(value, ArrayRemove):
		current = list(existing) if isinstance(existing, list) else []
		return [item for item in current if item not in value.values]
	if isinstance(value, dict):
		nested = existing if isinstance(existing, dict) else {}
		return {key: _resolve(item, nested.get(key), now) for key, item in value.items()}
	return value


def _apply(base: Dict[str, Any], changes: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
	for key, value in changes.items():
		base[key] = _resolve(value, base.get(key), now)
	return base


def field_equals(name: str, value: Any) -> Predicate:
	return lambda body: body.get(name) == value


def array_contains(name: str, value: Any) -> Predicate:
	def _check(body: Mapping[str, Any]) -> bool:
		items = body.get(name)
		return isinstance(items, list) and value in items

	return _check


def all_of(*predicates: Predicate) -> Predicate:
	return lambda body: all(predicate(body) for predicate in predicates)


class DocumentStore:
	"""CRUD, atomic field transforms and live queries over named collections."""

	def __init__(self, client: RedisProxy | None = None, *, clock: Callable[[], datetime] | None = None) -> None:
		self._redis = client or redis_client
		self._clock = clock or _utcnow

	def now(self) -> datetime:
		return self._clock()

	@staticmethod
	def _doc_key(collection: str, doc_id: str) -> str:
		return f"doc:{collection}:{doc_id}"

	@staticmethod
	def _index_key(collection: str) -> str:
		return f"idx:{collection}"

	@staticmethod
	def _stream_key(collection: str) -> str:
		return f"changes:{collection}"

	async def get(self, collection: str, doc_id: str | None) -> Optional[Document]:
		if not doc_id:
			return None
		raw = await self._redis.get(self._doc_key(collection, doc_id))
		if raw is None:
			return None
		return Document(collection=collection, id=doc_id, data=decode_body(raw))

	async def exists(self, collection: str, doc_id: str) -> bool:
		return bool(await self._redis.exists(self._doc_key(collection, doc_id)))

	async def get_many(self, collection: str, doc_ids: Iterable[str]) -> Dict[str, Document]:
		ids = [doc_id for doc_id in dict.fromkeys(doc_ids) if doc_id]
		if not ids:
			return {}
		raws = await self._redis.mget([self._doc_key(collection, doc_id) for doc_id in ids])
		return {
			doc_id: Document(collection=collection, id=doc_id, data=decode_body(raw))
			for doc_id, raw in zip(ids, raws)
			if raw is not None
		}

	async def create(self, collection: str, data: Mapping[str, Any]) -> Document:
		"""Insert a document under a fresh ULID."""
		doc_id = str(ulid.new())
		now = self.now()
		document = await self._mutate(collection, doc_id, lambda _current: _apply({}, data, now))
		assert document is not None
		return document

	async def create_if_missing(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> tuple[Document, bool]:
		"""Create ``doc_id`` unless it already exists. Returns (document, created)."""
		now = self.now()
		created = False

		def _mutate(current: Optional[Dict[str, Any]]):
			nonlocal created
			if current is not None:
				return _UNCHANGED
			created = True
			return _apply({}, data, now)

		document = await self._mutate(collection, doc_id, _mutate)
		assert document is not None
		return document, created

	async def set(
		self,
		collection: str,
		doc_id: str,
		data: Mapping[str, Any],
		*,
		merge: bool = False,
	) -> Document:
		now = self.now()

		def _mutate(current: Optional[Dict[str, Any]]):
			base = dict(current) if merge and current else {}
			return _apply(base, data, now)

		document = await self._mutate(collection, doc_id, _mutate)
		assert document is not None
		return document

	async def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Document:
		"""Apply ``changes`` to an existing document; raises DocumentNotFound."""
		now = self.now()

		def _mutate(current: Optional[Dict[str, Any]]):
			if current is None:
				raise DocumentNotFound(collection, doc_id)
			return _apply(dict(current), changes, now)

		document = await self._mutate(collection, doc_id, _mutate)
		assert document is not None
		return document

	async def delete(self, collection: str, doc_id: str) -> bool:
		removed = False

		def _mutate(current: Optional[Dict[str, Any]]):
			nonlocal removed
			if current is None:
				return _UNCHANGED
			removed = True
			return None

		await self._mutate(collection, doc_id, _mutate)
		return removed

	async def query(self, collection: str, predicate: Predicate | None = None) -> List[Document]:
		ids = sorted(await self._redis.smembers(self._index_key(collection)))
		if not ids:
			return []
		raws = await self._redis.mget([self._doc_key(collection, doc_id) for doc_id in ids])
		documents: List[Document] = []
		for doc_id, raw in zip(ids, raws):
			if raw is None:
				continue
			body = decode_body(raw)
			if predicate is None or predicate(body):
				documents.append(Document(collection=collection, id=doc_id, data=body))
		return documents

	async def subscribe(self, collection: str, predicate: Predicate | None = None) -> AsyncIterator[ChangeEvent]:
		"""Yield the matching snapshot as ``added`` events, then live changes.

		Closing the iterator cancels the subscription.
		"""
		stream = self._stream_key(collection)
		latest = await self._redis.xrevrange(stream, count=1)
		last_id = latest[0][0] if latest else "0-0"
		matched: set[str] = set()
		obs_metrics.subscription_opened(collection)
		try:
			for document in await self.query(collection, predicate):
				matched.add(document.id)
				yield ChangeEvent(type="added", document=document)
			# A zero block time polls instead of holding the connection open.
			block = settings.subscription_block_ms or None
			while True:
				response = await self._redis.xread({stream: last_id}, count=100, block=block)
				if not response:
					await asyncio.sleep(settings.subscription_idle_sleep_seconds)
					continue
				for _stream, entries in response:
					for entry_id, fields in entries:
						last_id = entry_id
						event = self._to_event(collection, fields, predicate, matched)
						if event is not None:
							yield event
		finally:
			obs_metrics.subscription_closed(collection)

	def _to_event(
		self,
		collection: str,
		fields: Mapping[str, str],
		predicate: Predicate | None,
		matched: set[str],
	) -> Optional[ChangeEvent]:
		doc_id = fields.get("id", "")
		body = decode_body(fields["data"]) if fields.get("data") else {}
		document = Document(collection=collection, id=doc_id, data=body)
		if fields.get("type") == "removed":
			if doc_id in matched:
				matched.discard(doc_id)
				return ChangeEvent(type="removed", document=document)
			return None
		if predicate is None or predicate(body):
			change: ChangeType = "modified" if doc_id in matched else "added"
			matched.add(doc_id)
			return ChangeEvent(type=change, document=document)
		if doc_id in matched:
			# No longer part of the query result.
			matched.discard(doc_id)
			return ChangeEvent(type="removed", document=document)
		return None

	async def _mutate(
		self,
		collection: str,
		doc_id: str,
		mutate: Callable[[Optional[Dict[str, Any]]], Any],
	) -> Optional[Document]:
		"""Run ``mutate`` on the current body inside WATCH/MULTI, retrying on conflict.

		``mutate`` returns the new body, None to delete, or _UNCHANGED to skip the write.
		"""
		key = self._doc_key(collection, doc_id)
		async with self._redis.pipeline(transaction=True) as pipe:
			while True:
				try:
					await pipe.watch(key)
					raw = await pipe.get(key)
					current = decode_body(raw) if raw is not None else None
					updated = mutate(current)
					if updated is _UNCHANGED:
						await pipe.unwatch()
						if current is None:
							return None
						return Document(collection=collection, id=doc_id, data=current)
					pipe.multi()
					if updated is None:
						change = "removed"
						pipe.delete(key)
						pipe.srem(self._index_key(collection), doc_id)
						payload = encode_body(current or {})
					else:
						change = "added" if current is None else "modified"
						payload = encode_body(updated)
						pipe.set(key, payload)
						pipe.sadd(self._index_key(collection), doc_id)
					pipe.xadd(
						self._stream_key(collection),
						{"type": change, "id": doc_id, "data": payload},
						maxlen=settings.change_stream_maxlen,
						approximate=True,
					)
					await pipe.execute()
				except WatchError:
					obs_metrics.inc_store_write_conflict(collection)
					logger.debug("document write conflict, retrying", extra={"collection": collection, "doc_id": doc_id})
					continue
				if updated is None:
					return None
				return Document(collection=collection, id=doc_id, data=updated)
