"""Auto-share: publish a newly created report as a 24h status and a linked feed post."""
import logging
from datetime import timedelta
from typing import Any, Optional

from reportgate.config import settings
from reportgate.event_bus import REPORT_CREATED, on
from reportgate.models.report import ReportRecord, utcnow
from reportgate.services.backend import ReportBackend, get_backend

logger = logging.getLogger(__name__)

STATUS_DURATION_HOURS = 24
MAX_DESCRIPTION_CHARS = 200
SHARE_HASHTAGS = "#Reporte"


def build_share_content(report: ReportRecord) -> str:
    """Title, truncated description, address and hashtags, blank-line separated."""
    parts = [f"📢 {report.title}"]
    if report.description:
        desc = report.description
        if len(desc) > MAX_DESCRIPTION_CHARS:
            desc = desc[: MAX_DESCRIPTION_CHARS - 3] + "..."
        parts.append(desc)
    if report.location.address:
        parts.append(f"📍 {report.location.address}")
    parts.append(SHARE_HASHTAGS)
    return "\n\n".join(parts)


async def share_report(
    report: ReportRecord,
    backend: ReportBackend,
    visibility: str = "public",
) -> dict[str, Optional[str]]:
    """Create the status, then the post linked to it. Never raises."""
    result: dict[str, Optional[str]] = {"status_id": None, "post_id": None}
    content = build_share_content(report)
    try:
        result["status_id"] = await backend.create_status(
            report.user_id,
            content,
            report.images,
            utcnow() + timedelta(hours=STATUS_DURATION_HOURS),
        )
        result["post_id"] = await backend.create_post(
            report.user_id,
            content,
            report.images,
            result["status_id"],
            visibility,
        )
    except Exception as e:
        logger.warning("Auto-share of report %s failed: %s", report.id, e)
    return result


async def handle_report_created(payload: dict[str, Any]) -> None:
    if not settings.auto_share_reports:
        return
    report = ReportRecord.model_validate(payload["report"])
    result = await share_report(report, get_backend(), settings.auto_share_visibility)
    logger.info("Auto-shared report %s: %s", report.id, result)


def register_handlers() -> None:
    on(REPORT_CREATED)(handle_report_created)
