"""
Hosted backend client tests against httpx.MockTransport.
"""

import json

import httpx
import pytest

from reportgate.errors import BackendError
from reportgate.models.report import DraftReport, Priority, ReportLocation
from reportgate.services.backend import HttpReportBackend, candidate_from_row, report_to_row

BASE = "https://db.example.test"

RPC_ROW = {
    "id": "7d4c1b0e-0000-0000-0000-000000000001",
    "nombre": "Luz dañada",
    "descripcion": "Poste sin luz",
    "status": "en_progreso",
    "priority": "alto",
    "location": {"lat": -0.2, "lng": -78.5, "direccion": "Av. América", "edificio": "B"},
    "created_at": "2025-12-06T10:00:00+00:00",
    "distancia_metros": 42.5,
    "confirmaciones_count": 3,
    "user_name": "Ana",
    "user_avatar": None,
    "imagenes": None,
}


def _backend(handler) -> HttpReportBackend:
    return HttpReportBackend(BASE, "anon-key", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_find_similar_sends_rpc_params_and_maps_rows():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json=[RPC_ROW])

    found = await _backend(handler).find_similar(-0.2, -78.5, category_id="cat-1")

    assert seen["url"] == f"{BASE}/rest/v1/rpc/get_reportes_similares_cercanos"
    assert seen["body"] == {
        "p_lat": -0.2,
        "p_lng": -78.5,
        "p_radio_metros": 100,
        "p_horas_atras": 24,
        "p_categoria_id": "cat-1",
    }
    assert seen["apikey"] == "anon-key"
    assert len(found) == 1
    c = found[0]
    assert c.name == "Luz dañada"
    assert c.status == "in_progress"
    assert c.priority == "high"
    assert c.confirmation_count == 3
    assert c.images == []
    assert c.location.address == "Av. América"
    assert c.location.building == "B"


@pytest.mark.asyncio
async def test_find_similar_error_raises_backend_error():
    backend = _backend(lambda r: httpx.Response(500, json={"message": "boom"}))

    with pytest.raises(BackendError) as exc:
        await backend.find_similar(0, 0)

    assert exc.value.status_code == 500


@pytest.mark.asyncio
async def test_confirm_duplicate_is_success():
    def handler(request):
        return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

    await _backend(handler).confirm_report("rep-1", "user-1")


@pytest.mark.asyncio
async def test_confirm_other_errors_raise():
    backend = _backend(lambda r: httpx.Response(403, json={"code": "42501", "message": "rls"}))

    with pytest.raises(BackendError) as exc:
        await backend.confirm_report("rep-1", "user-1")

    assert exc.value.code == "42501"


@pytest.mark.asyncio
async def test_network_error_becomes_backend_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(BackendError):
        await _backend(handler).confirm_report("rep-1", "user-1")


@pytest.mark.asyncio
async def test_create_report_posts_row_and_parses_representation():
    draft = DraftReport(
        title="  Broken light ",
        description="",
        priority=Priority.URGENT,
        location=ReportLocation(lat=-0.2, lng=-78.5, floor="2"),
        user_id="user-1",
    )
    seen = {}

    def handler(request):
        seen["prefer"] = request.headers.get("Prefer")
        seen["body"] = json.loads(request.content)
        row = dict(seen["body"], id="new-1", created_at="2025-12-06T12:00:00+00:00")
        return httpx.Response(201, json=[row])

    record = await _backend(handler).create_report(draft, ["https://res.cloudinary.com/x.png"])

    assert seen["prefer"] == "return=representation"
    assert seen["body"]["nombre"] == "Broken light"
    assert seen["body"]["descripcion"] is None
    assert seen["body"]["priority"] == "urgente"
    assert seen["body"]["location"]["floor"] == "2"
    assert record.id == "new-1"
    assert record.priority == Priority.URGENT
    assert record.images == ["https://res.cloudinary.com/x.png"]


def test_report_row_without_images_sends_null():
    draft = DraftReport(title="Leak", location=ReportLocation(lat=0, lng=0), user_id="u")
    assert report_to_row(draft, [])["imagenes"] is None


def test_candidate_row_negative_distance_is_clamped():
    row = dict(RPC_ROW, distancia_metros=-0.0001)
    assert candidate_from_row(row).distance_meters == 0.0
