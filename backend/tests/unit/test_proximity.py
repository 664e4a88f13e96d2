import pytest

from pawsafety.domain.reports.exceptions import ReportForbidden, ReportInvalid, ReportNotFound
from pawsafety.domain.reports.models import STRAY_REPORTS, GeoPoint, StrayReport
from pawsafety.domain.reports.proximity import ProximityMatcher, haversine_km

ORIGIN = GeoPoint(latitude=45.0, longitude=-73.0)


def _north(degrees: float) -> dict:
	return {"latitude": ORIGIN.latitude + degrees, "longitude": ORIGIN.longitude}


async def _lost(store, report_id, owner, location):
	await store.set(STRAY_REPORTS, report_id, {"userId": owner, "status": "Lost", "location": location})


def test_haversine_along_meridian():
	# One degree of latitude is about 111.19 km on a 6371 km sphere.
	assert haversine_km(ORIGIN, GeoPoint(46.0, -73.0)) == pytest.approx(111.19, abs=0.01)
	assert haversine_km(ORIGIN, ORIGIN) == 0


@pytest.mark.asyncio
async def test_radius_boundary(services, store):
	await _lost(store, "near", "owner-near", _north(0.089))  # ~9.9 km
	await _lost(store, "far", "owner-far", _north(0.091))  # ~10.1 km
	found = StrayReport(id="f1", user_id="finder", status="Found", location=ORIGIN)

	matches = await services.proximity.find_matches(found)

	assert [match.lost_report_id for match in matches] == ["near"]
	assert matches[0].distance_km == pytest.approx(9.9, abs=0.05)


@pytest.mark.asyncio
async def test_one_match_per_owner_and_finder_excluded(services, store):
	await _lost(store, "a1", "owner", _north(0.01))
	await _lost(store, "a2", "owner", _north(0.02))
	await _lost(store, "mine", "finder", _north(0.0))
	await store.set(STRAY_REPORTS, "stray", {"userId": "x", "status": "Stray", "location": _north(0.0)})
	await store.set(STRAY_REPORTS, "nowhere", {"userId": "y", "status": "Lost"})
	found = StrayReport(id="f1", user_id="finder", status="Found", location=ORIGIN)

	matches = await services.proximity.find_matches(found)

	assert [(match.owner_id, match.lost_report_id) for match in matches] == [("owner", "a1")]


@pytest.mark.asyncio
async def test_custom_radius(services, store):
	await _lost(store, "near", "owner", _north(0.02))
	matcher = ProximityMatcher(store, services.notifications, radius_km=1.0)
	found = StrayReport(id="f1", user_id="finder", status="Found", location=ORIGIN)
	assert await matcher.find_matches(found) == []


@pytest.mark.asyncio
async def test_submitting_found_report_notifies_nearby_owner(services, store):
	await _lost(store, "lost-1", "owner", _north(0.03))

	found = await services.reports.submit("finder", "Found", ORIGIN, description=" brown dog ")
	await services.reports.drain()

	assert found.description == "brown dog"
	notes = await services.notifications.list_for_user("owner")
	assert [note.type for note in notes] == ["found_pet"]
	assert notes[0].data["reportId"] == found.id
	assert notes[0].data["lostReportId"] == "lost-1"
	assert "3.3 km" in notes[0].body


@pytest.mark.asyncio
async def test_lost_report_does_not_trigger_matching(services, store):
	await _lost(store, "lost-1", "owner", _north(0.03))
	await services.reports.submit("someone", "Lost", ORIGIN)
	await services.reports.drain()
	assert await services.notifications.list_for_user("owner") == []


@pytest.mark.asyncio
async def test_report_lifecycle(services):
	report = await services.reports.submit("alice", "Stray", ORIGIN, pet_name="Mittens")
	assert report.pet_name == "Mittens"
	assert [item.id for item in await services.reports.list_for_user("alice")] == [report.id]

	with pytest.raises(ReportForbidden):
		await services.reports.resolve(report.id, "bob")

	resolved = await services.reports.resolve(report.id, "alice")
	assert resolved.is_resolved
	assert resolved.resolved_at is not None

	with pytest.raises(ReportNotFound):
		await services.reports.get("missing")
	with pytest.raises(ReportInvalid):
		await services.reports.submit("alice", "Resolved", ORIGIN)
