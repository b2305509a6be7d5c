"""Reports router: submission sessions and the similar-reports lookup."""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from reportgate.config import settings
from reportgate.errors import InvalidTransition, UnknownCandidateError
from reportgate.models.report import CandidateReport, DraftReport
from reportgate.models.session import ConfirmRequest, SessionOut
from reportgate.pipelines.submission import ReportSubmissionFlow
from reportgate.services.backend import get_backend
from reportgate.session_store import create_session, get_session, release_if_done

router = APIRouter(prefix="/api/reports", tags=["reports"])


def _flow_or_404(session_id: str) -> ReportSubmissionFlow:
    flow = get_session(session_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Submission session not found")
    return flow


def _respond(flow: ReportSubmissionFlow) -> SessionOut:
    snapshot = flow.snapshot()
    release_if_done(flow)
    return snapshot


@router.post("/drafts", response_model=SessionOut, status_code=201)
async def open_draft(body: DraftReport):
    """Start a submission session for a new report draft."""
    return create_session(body).snapshot()


@router.get("/drafts/{session_id}", response_model=SessionOut)
async def get_draft(session_id: str):
    return _flow_or_404(session_id).snapshot()


@router.put("/drafts/{session_id}", response_model=SessionOut)
async def update_draft(session_id: str, body: DraftReport):
    flow = _flow_or_404(session_id)
    try:
        flow.update_draft(body)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return flow.snapshot()


@router.post("/drafts/{session_id}/submit", response_model=SessionOut)
async def submit_draft(session_id: str):
    """Validate, run the proximity check once, then create or open the gate."""
    flow = _flow_or_404(session_id)
    try:
        await flow.submit()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _respond(flow)


@router.post("/drafts/{session_id}/confirm", response_model=SessionOut)
async def confirm_similar(session_id: str, body: ConfirmRequest):
    """Confirm an existing report ("I saw it too") instead of creating one."""
    flow = _flow_or_404(session_id)
    try:
        await flow.confirm_existing(body.candidate_id, body.user_id)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnknownCandidateError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _respond(flow)


@router.post("/drafts/{session_id}/continue", response_model=SessionOut)
async def continue_creating(session_id: str):
    """The event is different: create the report without another proximity check."""
    flow = _flow_or_404(session_id)
    try:
        await flow.continue_creating()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _respond(flow)


@router.post("/drafts/{session_id}/dismiss", response_model=SessionOut)
async def dismiss_gate(session_id: str):
    flow = _flow_or_404(session_id)
    try:
        flow.dismiss_gate()
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    return flow.snapshot()


@router.get("/similar", response_model=list[CandidateReport])
async def find_similar(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius_meters: Optional[int] = Query(default=None, gt=0),
    lookback_hours: Optional[int] = Query(default=None, gt=0),
    category_id: Optional[str] = None,
    type_id: Optional[str] = None,
):
    """Direct proximity lookup. Backend failures answer 502 here, unlike the flow."""
    try:
        return await get_backend().find_similar(
            lat,
            lng,
            radius_meters=radius_meters or settings.similar_radius_meters,
            lookback_hours=lookback_hours or settings.similar_lookback_hours,
            category_id=category_id,
            type_id=type_id,
        )
    except Exception as e:
        raise HTTPException(status_code=502, detail=f"Similar reports query failed: {e}")
