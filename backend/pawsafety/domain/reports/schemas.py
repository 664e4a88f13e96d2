"""Pydantic schemas for pet reports."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class LocationPayload(BaseModel):
	latitude: float = Field(..., ge=-90, le=90)
	longitude: float = Field(..., ge=-180, le=180)


class ReportSubmitRequest(BaseModel):
	status: Literal["Stray", "Lost", "Found", "Incident"]
	location: LocationPayload
	description: str = Field(default="", max_length=2000)
	pet_name: Optional[str] = Field(default=None, max_length=100)
