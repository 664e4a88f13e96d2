"""Local blob storage for uploaded images."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from pawsafety.settings import settings

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}


class BlobUploadError(ValueError):
	"""Raised when a blob cannot be stored."""

	def __init__(self, reason: str) -> None:
		super().__init__(reason)
		self.reason = reason


class BlobStore(Protocol):
	async def upload(self, path: str, data: bytes, content_type: str) -> str:
		...


class LocalBlobStore:
	"""Write blobs below a root directory and serve them from ``base_url``."""

	def __init__(self, root: str | Path | None = None, base_url: str | None = None) -> None:
		self._root = Path(root or settings.upload_dir).resolve()
		self._base_url = (base_url or settings.upload_base_url).rstrip("/")

	def _target(self, path: str) -> Path:
		target = (self._root / path.lstrip("/")).resolve()
		if not target.is_relative_to(self._root) or target == self._root:
			raise BlobUploadError("path_invalid")
		return target

	async def upload(self, path: str, data: bytes, content_type: str) -> str:
		if content_type.lower() not in ALLOWED_IMAGE_TYPES:
			raise BlobUploadError("mime_invalid")
		if not data:
			raise BlobUploadError("size_invalid")
		if len(data) > settings.chat_image_max_bytes:
			raise BlobUploadError("size_exceeded")
		target = self._target(path)

		def _write() -> None:
			target.parent.mkdir(parents=True, exist_ok=True)
			target.write_bytes(data)

		await asyncio.to_thread(_write)
		return f"{self._base_url}/{target.relative_to(self._root).as_posix()}"
