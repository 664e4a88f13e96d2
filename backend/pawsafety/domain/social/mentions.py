"""Extraction and resolution of ``@name`` mentions in comments."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from pawsafety.domain.profiles import USERS
from pawsafety.infra.documents import DocumentStore, field_equals

from .blocks import FRIENDS

# A mention is one or more words joined by single spaces. Punctuation, a
# double space or the end of the text closes it.
_MENTION_RE = re.compile(r"@([A-Za-z0-9_]+(?: [A-Za-z0-9_]+)*)")
_OPEN_QUERY_RE = re.compile(r"[A-Za-z0-9_]*")

SUGGESTION_LIMIT = 10


def extract_mentions(text: Optional[str]) -> List[str]:
	"""Raw mention tokens in order of first occurrence, deduplicated case-sensitively."""
	if not text:
		return []
	seen: List[str] = []
	for match in _MENTION_RE.finditer(text):
		token = match.group(1).strip()
		if token and token not in seen:
			seen.append(token)
	return seen


def mention_query(text: str, cursor: Optional[int] = None) -> Optional[str]:
	"""The partial name being typed after the last ``@`` before ``cursor``.

	Returns None when there is no open mention, i.e. a space or punctuation
	already followed the ``@``.
	"""
	head = text if cursor is None else text[:cursor]
	at = head.rfind("@")
	if at == -1:
		return None
	partial = head[at + 1:]
	if not _OPEN_QUERY_RE.fullmatch(partial):
		return None
	return partial


def _candidates(token: str) -> List[str]:
	"""The token and its shorter word prefixes, longest first."""
	words = token.split(" ")
	return [" ".join(words[:size]) for size in range(len(words), 0, -1)]


class MentionResolver:
	def __init__(self, store: DocumentStore) -> None:
		self._store = store

	async def _name_index(self) -> Dict[str, str]:
		index: Dict[str, str] = {}
		for document in await self._store.query(USERS):
			display = str(document.get("displayName") or document.get("name") or "").strip().lower()
			name = str(document.get("name") or "").strip().lower()
			if display:
				index[display] = document.id
			if name and name != display:
				index.setdefault(name, document.id)
		return index

	async def resolve(self, raw_names: Iterable[str]) -> List[str]:
		"""Map raw mention tokens to user ids; unknown names are dropped."""
		names = [name for name in dict.fromkeys(raw_names) if name and name.strip()]
		if not names:
			return []
		index = await self._name_index()
		user_ids: List[str] = []
		for name in names:
			for candidate in _candidates(name.strip()):
				user_id = index.get(candidate.lower())
				if user_id:
					if user_id not in user_ids:
						user_ids.append(user_id)
					break
		return user_ids

	async def resolve_text(self, text: Optional[str]) -> List[str]:
		return await self.resolve(extract_mentions(text))

	async def suggest(self, user_id: str, query: str, limit: int = SUGGESTION_LIMIT) -> List[Dict[str, Optional[str]]]:
		"""Friends of ``user_id`` whose name contains ``query``."""
		needle = query.strip().lower()
		friends = await self._store.query(FRIENDS, field_equals("userId", user_id))
		matches: List[Dict[str, Optional[str]]] = []
		for document in friends:
			name = str(document.get("friendName") or "")
			if needle and needle not in name.lower():
				continue
			matches.append(
				{
					"id": document.get("friendId"),
					"name": name,
					"profile_image": document.get("friendProfileImage"),
				}
			)
			if len(matches) >= limit:
				break
		return matches
