"""Image attachment helpers for chat messages."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from pawsafety.infra.blobs import BlobStore
from pawsafety.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_EXTENSIONS = {
	"image/jpeg": ".jpg",
	"image/png": ".png",
	"image/webp": ".webp",
}


@dataclass(slots=True)
class ImageUpload:
	content: bytes
	content_type: str = "image/jpeg"


def preview_for(text: Optional[str], images: Sequence[str] | None) -> str:
	"""Thread preview: an image glyph when images are attached, else the text."""
	count = len(images or ())
	if count == 1:
		return "📷 Photo"
	if count > 1:
		return f"📷 {count} Photos"
	return text or ""


def image_path(chat_id: str, content_type: str, now: datetime) -> str:
	millis = int(now.timestamp() * 1000)
	ext = _EXTENSIONS.get(content_type.lower(), ".jpg")
	return f"chat_images/{chat_id}/{millis}_{secrets.token_hex(3)}{ext}"


async def upload_images(
	blobs: BlobStore,
	chat_id: str,
	images: Iterable[ImageUpload],
	now: datetime,
) -> List[str]:
	"""Upload one image at a time; failures are logged and skipped."""
	urls: List[str] = []
	for index, image in enumerate(images):
		try:
			url = await blobs.upload(image_path(chat_id, image.content_type, now), image.content, image.content_type)
		except Exception:
			obs_metrics.inc_chat_image_upload_failure()
			logger.warning("chat image upload failed", exc_info=True, extra={"chat_id": chat_id, "index": index})
			continue
		urls.append(url)
	return urls
