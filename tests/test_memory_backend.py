"""
In-memory backend tests: the similar-reports query filters and ordering.
"""

import pytest

from conftest import BASE_LAT, BASE_LNG, make_record
from reportgate.errors import BackendError
from reportgate.models.report import ReportStatus, Visibility, utcnow
from reportgate.services.memory_backend import InMemoryReportBackend
from reportgate.utils.geo import haversine_meters


def test_haversine_known_distance():
    # One thousandth of a degree of latitude is about 111 m
    d = haversine_meters(0.0, 0.0, 0.001, 0.0)
    assert 110 < d < 112


@pytest.mark.asyncio
async def test_filters_radius_window_status_visibility():
    backend = InMemoryReportBackend()
    backend.add_report(make_record("near", lat=BASE_LAT + 0.0003))
    backend.add_report(make_record("far", lat=BASE_LAT + 0.01))
    backend.add_report(make_record("old", hours_old=30))
    backend.add_report(make_record("resolved", status=ReportStatus.RESOLVED))
    backend.add_report(make_record("private", visibility=Visibility.PRIVATE))
    backend.add_report(make_record("deleted", deleted_at=utcnow()))

    found = await backend.find_similar(BASE_LAT, BASE_LNG, radius_meters=100, lookback_hours=24)

    assert [c.id for c in found] == ["near"]


@pytest.mark.asyncio
async def test_nearest_first_and_capped():
    backend = InMemoryReportBackend(max_results=2)
    backend.add_report(make_record("b", lat=BASE_LAT + 0.0005))
    backend.add_report(make_record("a", lat=BASE_LAT + 0.0001))
    backend.add_report(make_record("c", lat=BASE_LAT + 0.0007))

    found = await backend.find_similar(BASE_LAT, BASE_LNG)

    assert [c.id for c in found] == ["a", "b"]
    assert found[0].distance_meters < found[1].distance_meters


@pytest.mark.asyncio
async def test_type_filter_and_reporter_profile():
    backend = InMemoryReportBackend()
    backend.profiles["user-author"] = {"name": "Ana Torres", "avatar": "https://img.test/a.png"}
    backend.add_report(make_record("typed", type_id="lamp"))
    backend.add_report(make_record("other", type_id="pothole"))

    found = await backend.find_similar(BASE_LAT, BASE_LNG, type_id="lamp")

    assert [c.id for c in found] == ["typed"]
    assert found[0].reporter_name == "Ana Torres"


@pytest.mark.asyncio
async def test_confirmation_count_reflects_distinct_users():
    backend = InMemoryReportBackend()
    backend.add_report(make_record("rep-1"))

    await backend.confirm_report("rep-1", "u1")
    await backend.confirm_report("rep-1", "u1")
    await backend.confirm_report("rep-1", "u2")
    found = await backend.find_similar(BASE_LAT, BASE_LNG)

    assert found[0].confirmation_count == 2


@pytest.mark.asyncio
async def test_confirm_unknown_report():
    with pytest.raises(BackendError):
        await InMemoryReportBackend().confirm_report("nope", "u1")
