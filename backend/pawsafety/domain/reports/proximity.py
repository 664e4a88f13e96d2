"""Notify owners of nearby lost pets when a found pet is reported."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from pawsafety.domain.social.notifications import NotificationFanout, NotificationType
from pawsafety.infra.documents import DocumentStore, field_equals
from pawsafety.obs import metrics as obs_metrics
from pawsafety.settings import settings

from .models import STRAY_REPORTS, GeoPoint, ReportStatus, StrayReport

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
	lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
	d_lat = lat2 - lat1
	d_lon = math.radians(b.longitude - a.longitude)
	h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
	return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


@dataclass(slots=True)
class ProximityMatch:
	lost_report_id: str
	owner_id: str
	distance_km: float


class ProximityMatcher:
	def __init__(
		self,
		store: DocumentStore,
		notifications: NotificationFanout,
		radius_km: Optional[float] = None,
	) -> None:
		self._store = store
		self._notifications = notifications
		self._radius_km = settings.proximity_radius_km if radius_km is None else radius_km

	async def find_matches(self, found: StrayReport) -> List[ProximityMatch]:
		"""Open lost reports within the radius, one per owner (first match wins)."""
		if found.location is None:
			return []
		documents = await self._store.query(STRAY_REPORTS, field_equals("status", ReportStatus.LOST.value))
		matches: List[ProximityMatch] = []
		owners: set[str] = set()
		for document in documents:
			lost = StrayReport.from_document(document)
			if not lost.user_id or lost.user_id == found.user_id or lost.user_id in owners:
				continue
			if lost.location is None:
				continue
			distance = haversine_km(found.location, lost.location)
			if distance <= self._radius_km:
				owners.add(lost.user_id)
				matches.append(ProximityMatch(lost_report_id=lost.id, owner_id=lost.user_id, distance_km=distance))
		return matches

	async def match_found_report(self, found: StrayReport) -> List[ProximityMatch]:
		"""Notify each matching owner once. Never raises."""
		try:
			matches = await self.find_matches(found)
			for match in matches:
				await self._notifications.notify_many(
					[match.owner_id],
					found.user_id,
					NotificationType.FOUND_PET,
					"Possible match for your lost pet",
					f"A found pet was reported {match.distance_km:.1f} km from your lost pet report.",
					{
						"reportId": found.id,
						"lostReportId": match.lost_report_id,
						"distance": round(match.distance_km, 1),
					},
				)
		except Exception:
			logger.error("proximity matching failed", exc_info=True, extra={"report_id": found.id})
			return []
		obs_metrics.inc_proximity_matches(len(matches))
		if matches:
			logger.info("found report matched", extra={"report_id": found.id, "matches": len(matches)})
		return matches
