"""Submission session models: flow states, notices and API payloads."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from reportgate.models.report import CandidateReport, DraftReport, ReportRecord


class SubmissionState(str, Enum):
    IDLE = "idle"
    CHECKING_PROXIMITY = "checking_proximity"
    AWAITING_GATE_DECISION = "awaiting_gate_decision"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    level: NoticeLevel
    message: str


class ConfirmRequest(BaseModel):
    candidate_id: str
    user_id: Optional[str] = None


class GateOut(BaseModel):
    open: bool
    checked: bool
    is_confirming: bool
    candidates: list[CandidateReport] = Field(default_factory=list)


class SessionOut(BaseModel):
    id: str
    state: SubmissionState
    draft: DraftReport
    gate: GateOut
    is_submitting: bool = False
    progress: list[str] = Field(default_factory=list)
    notices: list[Notice] = Field(default_factory=list)
    created_report: Optional[ReportRecord] = None
    confirmed_report_id: Optional[str] = None
