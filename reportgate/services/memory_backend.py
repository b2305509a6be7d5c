"""In-memory backend: reports, confirmations and shares kept in process dicts.

Mirrors the hosted similar-reports query so development and tests behave like
production without a database.
"""
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from reportgate.errors import BackendError
from reportgate.models.report import (
    OPEN_STATUSES,
    CandidateReport,
    DraftReport,
    ReportRecord,
    Visibility,
    utcnow,
)
from reportgate.utils.geo import haversine_meters
from reportgate.utils.ids import generate_report_id

logger = logging.getLogger(__name__)

MAX_RESULTS = 10


class InMemoryReportBackend:
    def __init__(self, max_results: int = MAX_RESULTS) -> None:
        self.max_results = max_results
        self.reports: dict[str, ReportRecord] = {}
        self.confirmations: dict[str, set[str]] = defaultdict(set)  # report_id -> {user_ids}
        self.profiles: dict[str, dict[str, str]] = {}  # user_id -> {name, avatar}
        self.statuses: list[dict[str, Any]] = []
        self.posts: list[dict[str, Any]] = []

    def add_report(self, record: ReportRecord) -> ReportRecord:
        self.reports[record.id] = record
        return record

    def confirmation_count(self, report_id: str) -> int:
        return len(self.confirmations.get(report_id, ()))

    async def find_similar(
        self,
        lat: float,
        lng: float,
        radius_meters: int = 100,
        lookback_hours: int = 24,
        category_id: Optional[str] = None,
        type_id: Optional[str] = None,
    ) -> list[CandidateReport]:
        since = utcnow() - timedelta(hours=lookback_hours)
        found: list[CandidateReport] = []
        for r in self.reports.values():
            if r.deleted_at is not None or r.visibility != Visibility.PUBLIC:
                continue
            if r.status not in OPEN_STATUSES:
                continue
            if category_id and r.category_id != category_id:
                continue
            if type_id and r.type_id != type_id:
                continue
            created = r.created_at if r.created_at.tzinfo else r.created_at.replace(tzinfo=timezone.utc)
            if created < since:
                continue
            dist = haversine_meters(lat, lng, r.location.lat, r.location.lng)
            if dist > radius_meters:
                continue
            profile = self.profiles.get(r.user_id, {})
            found.append(CandidateReport(
                id=r.id,
                name=r.title,
                description=r.description,
                created_at=r.created_at,
                distance_meters=dist,
                confirmation_count=self.confirmation_count(r.id),
                images=list(r.images),
                reporter_name=profile.get("name"),
                reporter_avatar=profile.get("avatar"),
                priority=r.priority.value,
                status=r.status.value,
                location=r.location,
            ))
        found.sort(key=lambda c: c.distance_meters)
        return found[: self.max_results]

    async def confirm_report(self, report_id: str, user_id: str) -> None:
        if report_id not in self.reports:
            raise BackendError(f"Report {report_id} not found", 404)
        # Set membership keeps (report_id, user_id) unique.
        self.confirmations[report_id].add(user_id)

    async def create_report(self, draft: DraftReport, image_urls: list[str]) -> ReportRecord:
        if draft.location is None or not draft.user_id:
            raise BackendError("Report needs a location and a reporter", 400)
        record = ReportRecord(
            id=generate_report_id(),
            title=draft.title.strip(),
            description=draft.description.strip() or None,
            category_id=draft.category_id,
            type_id=draft.type_id,
            priority=draft.priority,
            status=draft.status,
            visibility=draft.visibility,
            assigned_to=draft.assigned_to,
            active=draft.active,
            images=list(image_urls),
            location=draft.location,
            user_id=draft.user_id,
        )
        self.reports[record.id] = record
        logger.info("Stored report %s in memory", record.id)
        return record

    async def create_status(
        self, user_id: str, content: str, images: list[str], expires_at: datetime
    ) -> str:
        status_id = generate_report_id()
        self.statuses.append({
            "id": status_id,
            "user_id": user_id,
            "content": content,
            "images": list(images),
            "expires_at": expires_at,
        })
        return status_id

    async def create_post(
        self, user_id: str, content: str, images: list[str], status_id: str, visibility: str
    ) -> str:
        post_id = generate_report_id()
        self.posts.append({
            "id": post_id,
            "user_id": user_id,
            "content": content,
            "images": list(images),
            "status_id": status_id,
            "visibility": visibility,
        })
        return post_id
