"""FastAPI endpoints for stray, lost and found reports."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from pawsafety.container import get_services
from pawsafety.domain.reports.exceptions import ReportError, ReportForbidden, ReportInvalid, ReportNotFound
from pawsafety.domain.reports.models import GeoPoint
from pawsafety.domain.reports.schemas import ReportSubmitRequest
from pawsafety.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/reports", tags=["reports"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, ReportNotFound):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	if isinstance(exc, ReportForbidden):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=exc.reason)
	if isinstance(exc, ReportInvalid):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=getattr(exc, "reason", str(exc)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_report(
	payload: ReportSubmitRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, Any]:
	try:
		report = await get_services().reports.submit(
			auth_user.id,
			payload.status,
			GeoPoint(latitude=payload.location.latitude, longitude=payload.location.longitude),
			description=payload.description,
			pet_name=payload.pet_name,
		)
	except ReportError as exc:
		raise _map_error(exc) from None
	return report.to_dict()


@router.get("/mine")
async def my_reports(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[Dict[str, Any]]:
	reports = await get_services().reports.list_for_user(auth_user.id)
	return [report.to_dict() for report in reports]


@router.get("/{report_id}")
async def get_report(report_id: str, auth_user: AuthenticatedUser = Depends(get_current_user)) -> Dict[str, Any]:
	try:
		report = await get_services().reports.get(report_id)
	except ReportError as exc:
		raise _map_error(exc) from None
	return report.to_dict()


@router.post("/{report_id}/resolve")
async def resolve_report(report_id: str, auth_user: AuthenticatedUser = Depends(get_current_user)) -> Dict[str, Any]:
	try:
		report = await get_services().reports.resolve(report_id, auth_user.id)
	except ReportError as exc:
		raise _map_error(exc) from None
	return report.to_dict()
