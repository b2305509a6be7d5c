"""Exception types raised by backend clients, uploaders and the submission flow."""


class ReportGateError(Exception):
    """Base class for reportgate errors."""


class DraftValidationError(ReportGateError):
    """Draft is missing a title or a location."""


class BackendError(ReportGateError):
    """Hosted backend call failed (proximity query, confirm, create, share)."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class MediaUploadError(ReportGateError):
    """Media storage rejected or failed an upload."""


class InvalidTransition(ReportGateError):
    """Action is not allowed in the session's current state."""

    def __init__(self, action: str, state: str):
        super().__init__(f"Cannot {action} ({state})")
        self.action = action
        self.state = state


class UnknownCandidateError(ReportGateError):
    """Confirmation targets a report that is not among the gate's candidates."""
