"""Hosted backend client (PostgREST over httpx) and the backend contract.

The hosted backend owns auth, row-level security, geospatial search and the
uniqueness of confirmations. This module only shapes requests and rows.
"""
import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from reportgate.config import settings
from reportgate.errors import BackendError
from reportgate.models.report import (
    CandidateReport,
    DraftReport,
    ReportLocation,
    ReportRecord,
)

logger = logging.getLogger(__name__)

SIMILAR_REPORTS_RPC = "get_reportes_similares_cercanos"
REPORTS_TABLE = "reportes"
CONFIRMATIONS_TABLE = "reporte_confirmaciones"
STATUSES_TABLE = "estados"
POSTS_TABLE = "publicaciones"

# Postgres unique_violation: the user already confirmed this report.
UNIQUE_VIOLATION = "23505"

PRIORITY_TO_BACKEND = {"low": "bajo", "medium": "medio", "high": "alto", "urgent": "urgente"}
STATUS_TO_BACKEND = {
    "pending": "pendiente",
    "in_progress": "en_progreso",
    "resolved": "resuelto",
    "rejected": "rechazado",
    "cancelled": "cancelado",
    "deleted": "eliminado",
}
VISIBILITY_TO_BACKEND = {"public": "publico", "private": "privado"}

PRIORITY_FROM_BACKEND = {v: k for k, v in PRIORITY_TO_BACKEND.items()}
STATUS_FROM_BACKEND = {v: k for k, v in STATUS_TO_BACKEND.items()}
VISIBILITY_FROM_BACKEND = {v: k for k, v in VISIBILITY_TO_BACKEND.items()}


class ReportBackend(Protocol):
    """What the submission flow needs from the hosted backend."""

    async def find_similar(
        self,
        lat: float,
        lng: float,
        radius_meters: int = 100,
        lookback_hours: int = 24,
        category_id: Optional[str] = None,
        type_id: Optional[str] = None,
    ) -> list[CandidateReport]: ...

    async def confirm_report(self, report_id: str, user_id: str) -> None: ...

    async def create_report(self, draft: DraftReport, image_urls: list[str]) -> ReportRecord: ...

    async def create_status(
        self, user_id: str, content: str, images: list[str], expires_at: datetime
    ) -> str: ...

    async def create_post(
        self, user_id: str, content: str, images: list[str], status_id: str, visibility: str
    ) -> str: ...


def _parse_location(raw: Any) -> Optional[ReportLocation]:
    if not isinstance(raw, dict) or raw.get("lat") is None or raw.get("lng") is None:
        return None
    try:
        return ReportLocation.model_validate(raw)
    except ValueError as e:
        logger.warning("Ignoring malformed stored location %s: %s", raw, e)
        return None


def candidate_from_row(row: dict[str, Any]) -> CandidateReport:
    """Map one row of the similar-reports RPC to a CandidateReport."""
    return CandidateReport(
        id=str(row["id"]),
        name=row.get("nombre") or "",
        description=row.get("descripcion"),
        created_at=row["created_at"],
        distance_meters=max(0.0, float(row.get("distancia_metros") or 0.0)),
        confirmation_count=int(row.get("confirmaciones_count") or 0),
        images=list(row.get("imagenes") or []),
        reporter_name=row.get("user_name"),
        reporter_avatar=row.get("user_avatar"),
        priority=PRIORITY_FROM_BACKEND.get(row.get("priority"), row.get("priority") or "medium"),
        status=STATUS_FROM_BACKEND.get(row.get("status"), row.get("status") or "pending"),
        location=_parse_location(row.get("location")),
    )


def report_to_row(draft: DraftReport, image_urls: list[str]) -> dict[str, Any]:
    """Assemble the insert payload for a new report."""
    return {
        "nombre": draft.title.strip(),
        "descripcion": draft.description.strip() or None,
        "categoria_id": draft.category_id or None,
        "tipo_reporte_id": draft.type_id or None,
        "priority": PRIORITY_TO_BACKEND[draft.priority.value],
        "status": STATUS_TO_BACKEND[draft.status.value],
        "visibility": VISIBILITY_TO_BACKEND[draft.visibility.value],
        "assigned_to": draft.assigned_to or None,
        "activo": draft.active,
        "imagenes": image_urls or None,
        "location": draft.location.model_dump() if draft.location else None,
        "user_id": draft.user_id,
    }


def record_from_row(row: dict[str, Any]) -> ReportRecord:
    return ReportRecord(
        id=str(row["id"]),
        title=row.get("nombre") or "",
        description=row.get("descripcion"),
        category_id=row.get("categoria_id"),
        type_id=row.get("tipo_reporte_id"),
        priority=PRIORITY_FROM_BACKEND.get(row.get("priority"), "medium"),
        status=STATUS_FROM_BACKEND.get(row.get("status"), "pending"),
        visibility=VISIBILITY_FROM_BACKEND.get(row.get("visibility"), "public"),
        assigned_to=row.get("assigned_to"),
        active=row.get("activo", True),
        images=list(row.get("imagenes") or []),
        location=row["location"],
        user_id=str(row["user_id"]),
        created_at=row["created_at"],
        deleted_at=row.get("deleted_at"),
    )


class HttpReportBackend:
    """PostgREST client for the hosted backend."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/rest/v1"
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self, **extra: str) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            **extra,
        }

    async def _post(self, path: str, payload: dict[str, Any], **headers: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                return await client.post(
                    f"{self._base_url}/{path}",
                    headers=self._headers(**headers),
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise BackendError(f"{path} request failed: {e}") from e

    @staticmethod
    def _error(r: httpx.Response, what: str) -> BackendError:
        code = None
        message = r.text
        try:
            body = r.json()
            if isinstance(body, dict):
                code = body.get("code")
                message = body.get("message") or message
        except ValueError:
            pass
        return BackendError(f"{what} failed with status {r.status_code}: {message}", r.status_code, code)

    async def find_similar(
        self,
        lat: float,
        lng: float,
        radius_meters: int = 100,
        lookback_hours: int = 24,
        category_id: Optional[str] = None,
        type_id: Optional[str] = None,
    ) -> list[CandidateReport]:
        params: dict[str, Any] = {
            "p_lat": lat,
            "p_lng": lng,
            "p_radio_metros": radius_meters,
            "p_horas_atras": lookback_hours,
        }
        if category_id:
            params["p_categoria_id"] = category_id
        if type_id:
            params["p_tipo_reporte_id"] = type_id
        r = await self._post(f"rpc/{SIMILAR_REPORTS_RPC}", params)
        if not r.is_success:
            raise self._error(r, "Similar reports query")
        return [candidate_from_row(row) for row in (r.json() or [])]

    async def confirm_report(self, report_id: str, user_id: str) -> None:
        r = await self._post(CONFIRMATIONS_TABLE, {"reporte_id": report_id, "user_id": user_id})
        if r.is_success:
            return
        err = self._error(r, "Confirmation")
        if err.code == UNIQUE_VIOLATION or r.status_code == 409:
            logger.info("User %s already confirmed report %s", user_id, report_id)
            return
        raise err

    async def create_report(self, draft: DraftReport, image_urls: list[str]) -> ReportRecord:
        r = await self._post(
            REPORTS_TABLE,
            report_to_row(draft, image_urls),
            Prefer="return=representation",
        )
        if not r.is_success:
            raise self._error(r, "Report insert")
        rows = r.json()
        if not rows:
            raise BackendError("Report insert returned no row")
        return record_from_row(rows[0])

    async def create_status(
        self, user_id: str, content: str, images: list[str], expires_at: datetime
    ) -> str:
        r = await self._post(
            STATUSES_TABLE,
            {
                "user_id": user_id,
                "contenido": content,
                "imagenes": images or None,
                "visibilidad": "todos",
                "tipo": "imagen" if images else "texto",
                "expires_at": expires_at.isoformat(),
                "activo": True,
                "compartido_en_social": True,
            },
            Prefer="return=representation",
        )
        if not r.is_success:
            raise self._error(r, "Status insert")
        return str(r.json()[0]["id"])

    async def create_post(
        self, user_id: str, content: str, images: list[str], status_id: str, visibility: str
    ) -> str:
        r = await self._post(
            POSTS_TABLE,
            {
                "user_id": user_id,
                "contenido": content,
                "imagenes": images or None,
                "visibilidad": VISIBILITY_TO_BACKEND.get(visibility, visibility),
                "estado_id": status_id,
                "activo": True,
            },
            Prefer="return=representation",
        )
        if not r.is_success:
            raise self._error(r, "Post insert")
        return str(r.json()[0]["id"])


_instance: "ReportBackend | None" = None


def get_backend() -> ReportBackend:
    """Return the process-wide backend, building it from settings on first use."""
    global _instance
    if _instance is None:
        if settings.backend_configured:
            _instance = HttpReportBackend(
                settings.backend_url,
                settings.backend_api_key,
                timeout=settings.http_timeout_seconds,
            )
            logger.info("Hosted backend client initialized for %s", settings.backend_url)
        else:
            from reportgate.services.memory_backend import InMemoryReportBackend

            logger.warning(
                "Backend not configured: set BACKEND_URL and BACKEND_API_KEY. Using in-memory backend"
            )
            _instance = InMemoryReportBackend(max_results=settings.similar_max_results)
    return _instance


def set_backend(backend: "ReportBackend | None") -> None:
    global _instance
    _instance = backend
