"""In-memory audit trail of gate decisions and report creation.

Each entry ties a session to the report it resolved into, so a confirmation
and the report it counted against can be traced without the backend.
"""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

REPORT_CREATED = "report_created"
REPORT_CONFIRMED = "report_confirmed"
GATE_DISMISSED = "gate_dismissed"


@dataclass
class AuditEntry:
    action: str
    session_id: str
    user_id: Optional[str]
    report_id: Optional[str] = None
    candidate_ids: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_audit_log: deque[AuditEntry] = deque(maxlen=10_000)


def record(entry: AuditEntry) -> AuditEntry:
    _audit_log.append(entry)
    return entry


def get_audit_log(
    limit: int = 100,
    session_id: Optional[str] = None,
    report_id: Optional[str] = None,
) -> list[AuditEntry]:
    """Most recent first, optionally narrowed to one session or one report."""
    entries = [
        e for e in reversed(_audit_log)
        if (session_id is None or e.session_id == session_id)
        and (report_id is None or e.report_id == report_id)
    ]
    return entries[:limit]


def clear_audit_log() -> None:
    _audit_log.clear()
