"""Report submission flow: proximity check, similar-report gate, upload and persist.

States::

    idle -> checking_proximity -> awaiting_gate_decision -> done        (confirm)
                               |                        -> submitting  (continue)
                               |                        -> idle        (dismiss)
                               -> submitting -> done | failed
    failed -> (submit again, draft intact)

Every backend or media failure is caught here and turned into a notice.
Only ``InvalidTransition`` escapes, for actions the current state forbids.
"""
import logging
from typing import Callable, Optional

from reportgate.errors import DraftValidationError, InvalidTransition, UnknownCandidateError
from reportgate.event_bus import REPORT_CONFIRMED, REPORT_CREATED, emit
from reportgate.models.report import CandidateReport, DraftReport, ReportRecord
from reportgate.models.session import Notice, NoticeLevel, SessionOut, SubmissionState
from reportgate.pipelines.gate import SimilarReportGate
from reportgate.services.backend import ReportBackend
from reportgate.services.media import MediaUploader
from reportgate.utils import audit
from reportgate.utils.ids import generate_session_id

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 2
DEFAULT_RADIUS_METERS = 100
DEFAULT_LOOKBACK_HOURS = 24
DEFAULT_MEDIA_FOLDER = "reportes"

ProgressCallback = Callable[[str], None]


def validate_draft(draft: DraftReport) -> None:
    """Raise DraftValidationError unless the draft has a title and a location."""
    if len(draft.title.strip()) < MIN_TITLE_LENGTH:
        raise DraftValidationError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
    if draft.location is None:
        raise DraftValidationError("Select a location on the map")


class ReportSubmissionFlow:
    """One report-creation attempt, from first submit to done."""

    def __init__(
        self,
        draft: DraftReport,
        backend: ReportBackend,
        uploader: MediaUploader,
        session_id: Optional[str] = None,
        radius_meters: int = DEFAULT_RADIUS_METERS,
        lookback_hours: int = DEFAULT_LOOKBACK_HOURS,
        media_folder: str = DEFAULT_MEDIA_FOLDER,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.id = session_id or generate_session_id()
        self.draft = draft
        self.state = SubmissionState.IDLE
        self.gate = SimilarReportGate(backend)
        self.is_submitting = False
        self.progress: list[str] = []
        self.notices: list[Notice] = []
        self.created_report: Optional[ReportRecord] = None
        self.confirmed_report_id: Optional[str] = None
        self.radius_meters = radius_meters
        self.lookback_hours = lookback_hours
        self.media_folder = media_folder
        self._backend = backend
        self._uploader = uploader
        self._on_progress = on_progress
        self._uploaded: dict[str, str] = {}  # source ref -> hosted URL
        self._passed_over: list[str] = []

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    def _record_progress(self, message: str) -> None:
        self.progress.append(message)
        if self._on_progress:
            self._on_progress(message)

    def _require(self, action: str, *allowed: SubmissionState) -> None:
        if self.state not in allowed:
            raise InvalidTransition(action, self.state.value)

    def update_draft(self, draft: DraftReport) -> None:
        """Replace the draft. Does not re-arm the proximity check."""
        self._require("edit draft", SubmissionState.IDLE, SubmissionState.FAILED)
        self.draft = draft

    async def submit(self) -> SubmissionState:
        """Submit the draft: validate, check proximity once, then create or wait on the gate."""
        self._require("submit", SubmissionState.IDLE, SubmissionState.FAILED)
        try:
            validate_draft(self.draft)
        except DraftValidationError as e:
            self._notify(NoticeLevel.ERROR, str(e))
            return self.state

        if not self.gate.checked:
            self.state = SubmissionState.CHECKING_PROXIMITY
            candidates = await self._check_proximity()
            self.gate.checked = True
            if self.gate.open(candidates):
                self.state = SubmissionState.AWAITING_GATE_DECISION
                n = len(candidates)
                self._notify(
                    NoticeLevel.INFO,
                    f"Found {n} similar report{'s' if n != 1 else ''} near this location",
                )
                return self.state

        return await self._create()

    async def confirm_existing(self, candidate_id: str, user_id: Optional[str] = None) -> SubmissionState:
        """User says "I saw it too": confirm the candidate instead of creating a report."""
        self._require("confirm", SubmissionState.AWAITING_GATE_DECISION)
        acting_user = user_id or self.draft.user_id
        if not acting_user:
            self._notify(NoticeLevel.ERROR, "Sign in to confirm a report")
            return self.state
        candidate_ids = [c.id for c in self.gate.candidates]
        try:
            candidate = await self.gate.confirm_existing(candidate_id, acting_user)
        except (InvalidTransition, UnknownCandidateError):
            raise
        except Exception as e:
            logger.warning("Confirming report %s for %s failed: %s", candidate_id, acting_user, e)
            self._notify(NoticeLevel.ERROR, "Could not confirm the report")
            return self.state

        self.confirmed_report_id = candidate.id
        self.state = SubmissionState.DONE
        self._notify(NoticeLevel.SUCCESS, "Thanks for confirming the report!")
        audit.record(audit.AuditEntry(
            action=audit.REPORT_CONFIRMED,
            session_id=self.id,
            user_id=acting_user,
            report_id=candidate.id,
            candidate_ids=candidate_ids,
            details={"distance_meters": candidate.distance_meters},
        ))
        await emit(REPORT_CONFIRMED, {
            "session_id": self.id,
            "report_id": candidate.id,
            "user_id": acting_user,
        })
        return self.state

    async def continue_creating(self) -> SubmissionState:
        """User says the event is different: drop candidates and create without re-checking."""
        self._require("continue", SubmissionState.AWAITING_GATE_DECISION)
        self._passed_over = [c.id for c in self.gate.candidates]
        self.gate.continue_creating()
        return await self._create()

    def dismiss_gate(self) -> SubmissionState:
        """Gate closed without a decision; the next submit queries proximity again."""
        self._require("dismiss", SubmissionState.AWAITING_GATE_DECISION)
        candidate_ids = [c.id for c in self.gate.candidates]
        self.gate.dismiss()
        self.state = SubmissionState.IDLE
        audit.record(audit.AuditEntry(
            action=audit.GATE_DISMISSED,
            session_id=self.id,
            user_id=self.draft.user_id,
            candidate_ids=candidate_ids,
        ))
        return self.state

    async def _check_proximity(self) -> list[CandidateReport]:
        loc = self.draft.location
        assert loc is not None
        try:
            return await self._backend.find_similar(
                loc.lat,
                loc.lng,
                radius_meters=self.radius_meters,
                lookback_hours=self.lookback_hours,
                category_id=self.draft.category_id or None,
                type_id=self.draft.type_id or None,
            )
        except Exception as e:
            logger.warning("Similar reports query failed, continuing without candidates: %s", e)
            return []

    async def _upload_images(self) -> list[str]:
        images = self.draft.images
        urls: list[str] = []
        for i, ref in enumerate(images, start=1):
            self._record_progress(f"Uploading image {i} of {len(images)}...")
            if ref in self._uploaded:
                urls.append(self._uploaded[ref])
                continue
            if self._uploader.is_hosted(ref):
                urls.append(ref)
                continue
            url = await self._uploader.upload(ref, self.media_folder)
            self._uploaded[ref] = url
            urls.append(url)
        return urls

    async def _create(self) -> SubmissionState:
        self.state = SubmissionState.SUBMITTING
        self.is_submitting = True
        self.progress = []
        try:
            if not self.draft.user_id:
                self._notify(NoticeLevel.ERROR, "Sign in to create a report")
                self.state = SubmissionState.FAILED
                return self.state

            try:
                urls = await self._upload_images()
            except Exception as e:
                logger.warning("Image upload failed for session %s: %s", self.id, e)
                self._notify(NoticeLevel.ERROR, "Image upload failed")
                self.state = SubmissionState.FAILED
                return self.state

            if urls:
                self._record_progress("Saving report...")
            try:
                record = await self._backend.create_report(self.draft, urls)
            except Exception as e:
                logger.warning("Creating report failed for session %s: %s", self.id, e)
                orphaned = [u for u in urls if u in self._uploaded.values()]
                if orphaned:
                    logger.warning("Uploaded media not attached to any report: %s", orphaned)
                self._notify(NoticeLevel.ERROR, "Could not create the report")
                self.state = SubmissionState.FAILED
                return self.state

            self.created_report = record
            self.state = SubmissionState.DONE
            self._notify(NoticeLevel.SUCCESS, "Report created")
            audit.record(audit.AuditEntry(
                action=audit.REPORT_CREATED,
                session_id=self.id,
                user_id=record.user_id,
                report_id=record.id,
                candidate_ids=self._passed_over,
                details={"images": len(urls), "category_id": record.category_id},
            ))
            await emit(REPORT_CREATED, {
                "session_id": self.id,
                "report": record.model_dump(mode="json"),
            })
            return self.state
        finally:
            self.is_submitting = False

    def snapshot(self) -> SessionOut:
        return SessionOut(
            id=self.id,
            state=self.state,
            draft=self.draft,
            gate=self.gate.snapshot(),
            is_submitting=self.is_submitting,
            progress=list(self.progress),
            notices=list(self.notices),
            created_report=self.created_report,
            confirmed_report_id=self.confirmed_report_id,
        )
