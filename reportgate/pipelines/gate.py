"""Similar-report gate: holds nearby candidates until the user confirms one or moves on."""
import logging

from reportgate.errors import InvalidTransition, UnknownCandidateError
from reportgate.models.report import CandidateReport
from reportgate.models.session import GateOut
from reportgate.services.backend import ReportBackend

logger = logging.getLogger(__name__)


class SimilarReportGate:
    """Candidate list plus the flags the submission flow needs around it.

    ``checked`` records that the proximity query already ran for the current
    draft. ``is_confirming`` is true only while a confirm call is outstanding;
    every gate action is refused while it is set.
    """

    def __init__(self, backend: ReportBackend) -> None:
        self._backend = backend
        self.candidates: list[CandidateReport] = []
        self.is_open = False
        self.checked = False
        self.is_confirming = False

    def open(self, candidates: list[CandidateReport]) -> bool:
        """Show the gate. Never opens with zero candidates."""
        if not candidates:
            return False
        self.candidates = list(candidates)
        self.is_open = True
        return True

    def get(self, candidate_id: str) -> CandidateReport:
        for c in self.candidates:
            if c.id == candidate_id:
                return c
        raise UnknownCandidateError(f"Report {candidate_id} is not a similar-report candidate")

    def _ensure_actionable(self, action: str) -> None:
        if not self.is_open:
            raise InvalidTransition(action, "gate closed")
        if self.is_confirming:
            raise InvalidTransition(action, "confirming")

    async def confirm_existing(self, candidate_id: str, acting_user_id: str) -> CandidateReport:
        """Record that ``acting_user_id`` also saw ``candidate_id``.

        On success the gate closes. On failure the error propagates and the
        gate stays open with its candidates so the user can retry.
        """
        self._ensure_actionable("confirm")
        candidate = self.get(candidate_id)
        self.is_confirming = True
        try:
            await self._backend.confirm_report(candidate.id, acting_user_id)
        finally:
            self.is_confirming = False
        self._close()
        return candidate

    def continue_creating(self) -> None:
        """Discard candidates; the caller proceeds straight to creation."""
        self._ensure_actionable("continue")
        self._close()

    def dismiss(self) -> None:
        """Close without a decision and re-arm the proximity check."""
        if self.is_confirming:
            raise InvalidTransition("dismiss", "confirming")
        self._close()
        self.checked = False

    def _close(self) -> None:
        self.candidates = []
        self.is_open = False

    def snapshot(self) -> GateOut:
        return GateOut(
            open=self.is_open,
            checked=self.checked,
            is_confirming=self.is_confirming,
            candidates=list(self.candidates),
        )
