"""In-memory store of submission sessions, one flow per draft.

Sessions are dropped once their flow resolves. Abandoned drafts are evicted
oldest first when the store is full.
"""
import logging
from collections import OrderedDict

from reportgate.config import settings
from reportgate.models.report import DraftReport
from reportgate.models.session import SubmissionState
from reportgate.pipelines.submission import ReportSubmissionFlow
from reportgate.services.backend import get_backend
from reportgate.services.media import get_uploader

logger = logging.getLogger(__name__)

_sessions: "OrderedDict[str, ReportSubmissionFlow]" = OrderedDict()


def create_session(draft: DraftReport) -> ReportSubmissionFlow:
    flow = ReportSubmissionFlow(
        draft,
        get_backend(),
        get_uploader(),
        radius_meters=settings.similar_radius_meters,
        lookback_hours=settings.similar_lookback_hours,
        media_folder=settings.media_folder,
    )
    _sessions[flow.id] = flow
    while len(_sessions) > settings.max_open_sessions:
        evicted, _ = _sessions.popitem(last=False)
        logger.info("Evicted abandoned submission session %s", evicted)
    logger.info("Opened submission session %s", flow.id)
    return flow


def get_session(session_id: str) -> ReportSubmissionFlow | None:
    flow = _sessions.get(session_id)
    if flow is not None:
        _sessions.move_to_end(session_id)
    return flow


def remove_session(session_id: str) -> None:
    if _sessions.pop(session_id, None) is not None:
        logger.info("Closed submission session %s", session_id)


def release_if_done(flow: ReportSubmissionFlow) -> None:
    """Drop a resolved flow; its final snapshot has already been taken."""
    if flow.state == SubmissionState.DONE:
        remove_session(flow.id)


def session_count() -> int:
    return len(_sessions)


def clear_all() -> None:
    _sessions.clear()
