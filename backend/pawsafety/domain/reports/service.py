"""Stray/lost/found report submission and resolution."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from pawsafety.infra.documents import SERVER_TIMESTAMP, DocumentStore, field_equals

from .exceptions import ReportForbidden, ReportInvalid, ReportNotFound
from .models import STRAY_REPORTS, GeoPoint, ReportStatus, StrayReport
from .proximity import ProximityMatcher

logger = logging.getLogger(__name__)

_SUBMITTABLE = {
	ReportStatus.STRAY.value,
	ReportStatus.LOST.value,
	ReportStatus.FOUND.value,
	ReportStatus.INCIDENT.value,
}


class ReportService:
	def __init__(self, store: DocumentStore, matcher: ProximityMatcher) -> None:
		self._store = store
		self._matcher = matcher
		self._background: Set[asyncio.Task] = set()

	async def get(self, report_id: str) -> StrayReport:
		document = await self._store.get(STRAY_REPORTS, report_id)
		if document is None:
			raise ReportNotFound()
		return StrayReport.from_document(document)

	async def list_for_user(self, user_id: str) -> List[StrayReport]:
		documents = await self._store.query(STRAY_REPORTS, field_equals("userId", user_id))
		return [StrayReport.from_document(document) for document in documents]

	async def submit(
		self,
		user_id: str,
		status: str,
		location: GeoPoint,
		description: str = "",
		pet_name: Optional[str] = None,
	) -> StrayReport:
		"""Store the report; a Found report starts proximity matching in the background."""
		if status not in _SUBMITTABLE:
			raise ReportInvalid("invalid_status")
		body = {
			"userId": user_id,
			"status": status,
			"location": location.to_dict(),
			"description": description.strip(),
			"reportTime": SERVER_TIMESTAMP,
		}
		if pet_name:
			body["petName"] = pet_name
		document = await self._store.create(STRAY_REPORTS, body)
		report = StrayReport.from_document(document)
		logger.info("report submitted", extra={"report_id": report.id, "status": status})
		if status == ReportStatus.FOUND.value:
			task = asyncio.create_task(self._matcher.match_found_report(report))
			self._background.add(task)
			task.add_done_callback(self._background.discard)
		return report

	async def resolve(self, report_id: str, user_id: str) -> StrayReport:
		"""Mark a report resolved. This also closes its chat threads."""
		report = await self.get(report_id)
		if report.user_id != user_id:
			raise ReportForbidden()
		if report.is_resolved:
			return report
		document = await self._store.update(
			STRAY_REPORTS,
			report_id,
			{"status": ReportStatus.RESOLVED.value, "resolvedAt": SERVER_TIMESTAMP},
		)
		logger.info("report resolved", extra={"report_id": report_id})
		return StrayReport.from_document(document)

	async def drain(self) -> None:
		"""Wait for background matching started by ``submit``."""
		if self._background:
			await asyncio.gather(*list(self._background), return_exceptions=True)
