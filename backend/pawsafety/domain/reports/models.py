"""Domain models for stray/lost/found pet reports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pawsafety.infra.documents import Document

STRAY_REPORTS = "stray_reports"


class ReportStatus(str, Enum):
	STRAY = "Stray"
	LOST = "Lost"
	FOUND = "Found"
	INCIDENT = "Incident"
	RESOLVED = "Resolved"


@dataclass(slots=True, frozen=True)
class GeoPoint:
	latitude: float
	longitude: float

	@classmethod
	def from_data(cls, value: Any) -> Optional["GeoPoint"]:
		if not isinstance(value, dict):
			return None
		try:
			return cls(latitude=float(value["latitude"]), longitude=float(value["longitude"]))
		except (KeyError, TypeError, ValueError):
			return None

	def to_dict(self) -> Dict[str, float]:
		return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(slots=True)
class StrayReport:
	id: str
	user_id: str
	status: str
	location: Optional[GeoPoint]
	description: str = ""
	pet_name: Optional[str] = None
	report_time: Optional[datetime] = None
	resolved_at: Optional[datetime] = None

	@classmethod
	def from_document(cls, document: Document) -> "StrayReport":
		data = document.data
		report_time = data.get("reportTime")
		resolved_at = data.get("resolvedAt")
		return cls(
			id=document.id,
			user_id=str(data.get("userId") or ""),
			status=str(data.get("status") or ""),
			location=GeoPoint.from_data(data.get("location")),
			description=str(data.get("description") or ""),
			pet_name=data.get("petName"),
			report_time=report_time if isinstance(report_time, datetime) else None,
			resolved_at=resolved_at if isinstance(resolved_at, datetime) else None,
		)

	@property
	def is_resolved(self) -> bool:
		return self.status == ReportStatus.RESOLVED.value

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"status": self.status,
			"location": self.location.to_dict() if self.location else None,
			"description": self.description,
			"pet_name": self.pet_name,
			"report_time": self.report_time.isoformat() if self.report_time else None,
			"resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
		}
