"""
Calendar domain models.

These models mirror the rows the calendar store keeps (events, exceptions,
deadlines, categories, shares and invitations) together with the
occurrence and sync representations the core hands back to clients. All
timestamps are held as aware UTC datetimes and cross the wire as RFC3339
strings with camelCase field names.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .recurrence import RecurrenceRuleError, validate_rrule
from .timeutil import to_utc

logger = logging.getLogger(__name__)


# --- Enums ---


class InvitationStatus(str, Enum):
    """An invitee's answer to an event invitation."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MAYBE = "maybe"


class PrivacyLevel(str, Enum):
    """How much of a shared calendar a viewer may see."""

    FULL = "full"
    LIMITED = "limited"


class DeadlinePriority(str, Enum):
    NORMAL = "normal"
    IMPORTANT = "important"
    URGENT = "urgent"


class WorkloadUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


# --- Base Models ---


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AuditedModel(CamelModel):
    """
    A mutable row with audit timestamps.

    ``updated_at`` is the sole change signal used by sync, so a soft delete
    must advance it along with setting ``deleted_at``.
    """

    created_at: datetime = Field(..., description="Row creation time")
    updated_at: datetime = Field(..., description="Last modification time")
    deleted_at: Optional[datetime] = Field(
        None, description="Soft-delete tombstone"
    )

    @field_validator("created_at", "updated_at", "deleted_at")
    @classmethod
    def audit_times_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None


# --- Core Domain Models ---


class Category(AuditedModel):
    category_id: int
    owner_user_id: int
    name: str = Field(..., min_length=1)
    color: str = Field(..., description="Display colour, e.g. '#3366ff'")
    is_visible: bool = Field(True, description="Shown in the owner's view")


class Event(AuditedModel):
    """A calendar event, recurring when ``rrule`` is set."""

    event_id: int
    owner_user_id: int
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    start_time: datetime = Field(..., description="Start (DTSTART) time")
    end_time: datetime = Field(..., description="End of the first instance")
    location: Optional[str] = None
    rrule: Optional[str] = Field(
        None, description="RFC 5545 recurrence rule; None if non-recurring"
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @field_validator("rrule")
    @classmethod
    def rrule_must_parse(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            return validate_rrule(v)
        except RecurrenceRuleError as e:
            raise ValueError(f"Invalid recurrence rule: {e}") from e

    @model_validator(mode="after")
    def end_after_start(self) -> "Event":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def is_recurring(self) -> bool:
        return self.rrule is not None


class EventException(AuditedModel):
    """
    A per-occurrence override or cancellation of a recurring event.

    The exception is keyed by the occurrence's unmodified start time. A
    non-cancelling exception always restates its own window; other
    override fields fall back to the base event when unset.
    """

    exception_id: int
    event_id: int
    original_occurrence_time: datetime
    is_deleted: bool = Field(
        False, description="True when the occurrence is cancelled"
    )
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None

    @field_validator("original_occurrence_time", "start_time", "end_time")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None

    @model_validator(mode="after")
    def override_has_window(self) -> "EventException":
        if self.is_deleted:
            return self
        if self.start_time is None or self.end_time is None:
            raise ValueError(
                "A modifying exception must set both start_time and end_time"
            )
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Deadline(AuditedModel):
    deadline_id: int
    owner_user_id: int
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    due_date: datetime
    priority: DeadlinePriority = DeadlinePriority.NORMAL
    workload_magnitude: Optional[int] = Field(None, gt=0)
    workload_unit: Optional[WorkloadUnit] = None

    @field_validator("due_date")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @model_validator(mode="after")
    def workload_fields_paired(self) -> "Deadline":
        if (self.workload_magnitude is None) != (self.workload_unit is None):
            raise ValueError(
                "workload_magnitude and workload_unit must be set together"
            )
        return self


class ShareScope(AuditedModel):
    """Fields common to private and open calendar shares."""

    owner_user_id: int
    privacy_level: PrivacyLevel = PrivacyLevel.FULL
    expires_at: Optional[datetime] = None
    shared_category_ids: List[int] = Field(
        default_factory=list, description="Categories visible to the viewer"
    )

    @field_validator("expires_at")
    @classmethod
    def expires_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None

    @field_validator("shared_category_ids")
    @classmethod
    def unique_sorted_categories(cls, v: List[int]) -> List[int]:
        return sorted(set(v))


class CalendarShare(ShareScope):
    """A calendar shared with one specific user."""

    share_id: int
    shared_with_user_id: int
    message: Optional[str] = None

    @model_validator(mode="after")
    def not_shared_with_owner(self) -> "CalendarShare":
        if self.shared_with_user_id == self.owner_user_id:
            raise ValueError("A calendar cannot be shared with its owner")
        return self


class OpenCalendarShare(ShareScope):
    """A calendar published under an unguessable public identifier."""

    open_share_id: UUID


class EventInvitation(AuditedModel):
    invitation_id: int
    event_id: int
    owner_user_id: int = Field(..., description="Owner of the invited event")
    invited_user_id: int
    status: InvitationStatus = InvitationStatus.PENDING


# --- Occurrence Models ---


class EventOccurrence(CamelModel):
    """One concrete instance of an event, after exceptions are applied."""

    event_id: int
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    original_occurrence_time: Optional[datetime] = Field(
        None, description="Unmodified start; only set for recurring events"
    )
    exception_id: Optional[int] = Field(
        None, description="Exception applied to this occurrence, if any"
    )

    # Carried for projection, never serialised
    owner_user_id: Optional[int] = Field(None, exclude=True)
    rrule: Optional[str] = Field(None, exclude=True)


class SharedCalendarEvent(CamelModel):
    """An event or occurrence as seen through a share."""

    event_id: int
    owner_user_id: int
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    rrule: Optional[str] = None
    original_occurrence_time: Optional[datetime] = None
    exception_id: Optional[int] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_event(cls, event: Event) -> "SharedCalendarEvent":
        return cls(
            event_id=event.event_id,
            owner_user_id=event.owner_user_id,
            category_id=event.category_id,
            title=event.title,
            description=event.description,
            start_time=event.start_time,
            end_time=event.end_time,
            location=event.location,
            rrule=event.rrule,
            updated_at=event.updated_at,
            deleted_at=event.deleted_at,
        )

    @classmethod
    def from_occurrence(
        cls, occurrence: EventOccurrence
    ) -> "SharedCalendarEvent":
        return cls(
            event_id=occurrence.event_id,
            owner_user_id=occurrence.owner_user_id,
            category_id=occurrence.category_id,
            title=occurrence.title,
            description=occurrence.description,
            start_time=occurrence.start_time,
            end_time=occurrence.end_time,
            location=occurrence.location,
            rrule=occurrence.rrule,
            original_occurrence_time=occurrence.original_occurrence_time,
            exception_id=occurrence.exception_id,
        )


class SharedCalendarDeadline(CamelModel):
    """A deadline as seen through a share."""

    deadline_id: int
    owner_user_id: int
    category_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    due_date: datetime
    priority: Optional[DeadlinePriority] = None
    workload_magnitude: Optional[int] = None
    workload_unit: Optional[WorkloadUnit] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_deadline(cls, deadline: Deadline) -> "SharedCalendarDeadline":
        return cls(
            deadline_id=deadline.deadline_id,
            owner_user_id=deadline.owner_user_id,
            category_id=deadline.category_id,
            title=deadline.title,
            description=deadline.description,
            due_date=deadline.due_date,
            priority=deadline.priority,
            workload_magnitude=deadline.workload_magnitude,
            workload_unit=deadline.workload_unit,
            updated_at=deadline.updated_at,
            deleted_at=deadline.deleted_at,
        )


# --- View and Sync Models ---


class SharedCalendarView(CamelModel):
    """A privacy-scoped range view of someone else's calendar."""

    owner_user_id: int
    privacy_level: PrivacyLevel
    events: List[SharedCalendarEvent] = Field(default_factory=list)
    deadlines: List[SharedCalendarDeadline] = Field(default_factory=list)


class OwnedSyncResponse(CamelModel):
    """Everything the principal owns or receives, changed since ``since``."""

    categories: List[Category] = Field(default_factory=list)
    deadlines: List[Deadline] = Field(default_factory=list)
    events: List[Event] = Field(
        default_factory=list,
        description="Owned events plus events with an accepted invitation",
    )
    event_exceptions: List[EventException] = Field(default_factory=list)
    received_invitations: List[EventInvitation] = Field(default_factory=list)
    shares_created: List[CalendarShare] = Field(default_factory=list)
    shares_received: List[CalendarShare] = Field(default_factory=list)
    sync_timestamp: datetime = Field(
        ..., description="Safe to send back as the next ``since``"
    )


class SharedCalendarSyncResponse(CamelModel):
    """Changes visible through one private share since ``since``."""

    share_info: Optional[CalendarShare] = None
    events: List[SharedCalendarEvent] = Field(default_factory=list)
    deadlines: List[SharedCalendarDeadline] = Field(default_factory=list)
    sync_timestamp: datetime
