"""Identifier generation for sessions and locally stored records."""
import uuid


def generate_session_id() -> str:
    """Generate unique submission session ID."""
    return f"SUB-{uuid.uuid4().hex[:12].upper()}"


def generate_report_id() -> str:
    """Generate unique report ID for the in-memory backend."""
    return str(uuid.uuid4())


def generate_media_name(extension: str = "") -> str:
    """Generate unique file name for a locally stored upload."""
    return f"{uuid.uuid4()}{extension}"
