"""Report models: draft, persisted record, location and proximity candidates."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, computed_field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReportStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    DELETED = "deleted"


# Only these statuses are offered as possible duplicates.
OPEN_STATUSES = (ReportStatus.PENDING, ReportStatus.IN_PROGRESS)


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class ReportLocation(BaseModel):
    """Coordinate plus free-text place details.

    Written with the canonical keys below. Older stored rows used Spanish
    keys for the sub-fields; those are accepted when reading.
    """

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str = Field(default="", validation_alias=AliasChoices("address", "direccion"))
    reference_point: str = Field(
        default="", validation_alias=AliasChoices("reference_point", "puntoReferencia")
    )
    building: str = Field(default="", validation_alias=AliasChoices("building", "edificio"))
    floor: str = Field(default="", validation_alias=AliasChoices("floor", "piso"))
    room: str = Field(default="", validation_alias=AliasChoices("room", "aulaSala"))
    additional_info: str = Field(
        default="", validation_alias=AliasChoices("additional_info", "infoAdicional")
    )


class DraftReport(BaseModel):
    """Everything the user has entered for a report that is not persisted yet."""

    title: str = ""
    description: str = ""
    category_id: Optional[str] = None
    type_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: ReportStatus = ReportStatus.PENDING
    visibility: Visibility = Visibility.PUBLIC
    assigned_to: Optional[str] = None
    active: bool = True
    images: list[str] = Field(default_factory=list)
    location: Optional[ReportLocation] = None
    user_id: Optional[str] = None


class ReportRecord(BaseModel):
    """A persisted report as returned by the backend."""

    id: str
    title: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    type_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    status: ReportStatus = ReportStatus.PENDING
    visibility: Visibility = Visibility.PUBLIC
    assigned_to: Optional[str] = None
    active: bool = True
    images: list[str] = Field(default_factory=list)
    location: ReportLocation
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None


class CandidateReport(BaseModel):
    """An existing report near a new submission, possibly the same event."""

    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime
    distance_meters: float = Field(ge=0)
    confirmation_count: int = Field(default=0, ge=0)
    images: list[str] = Field(default_factory=list)
    reporter_name: Optional[str] = None
    reporter_avatar: Optional[str] = None
    priority: str = Priority.MEDIUM.value
    status: str = ReportStatus.PENDING.value
    location: Optional[ReportLocation] = None

    def hours_ago(self, now: datetime | None = None) -> float:
        now = now or utcnow()
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return max(0.0, (now - created).total_seconds() / 3600)

    @computed_field
    @property
    def age_hours(self) -> float:
        return round(self.hours_ago(), 1)

    @computed_field
    @property
    def distance_label(self) -> str:
        if self.distance_meters < 1000:
            return f"{round(self.distance_meters)}m away"
        return f"{self.distance_meters / 1000:.1f}km away"

    @computed_field
    @property
    def confirmation_label(self) -> str:
        suffix = "" if self.confirmation_count == 1 else "s"
        return f"{self.confirmation_count} confirmation{suffix}"
