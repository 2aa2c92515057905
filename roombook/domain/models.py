"""Domain models for the room booking service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from roombook.domain.timeutil import to_minutes

# Alias so fields named ``date`` can still be annotated with the date type.
CalendarDate = date


class BookingStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class RejectionReason(StrEnum):
    INVALID_TIME_RANGE = "InvalidTimeRange"
    SLOT_CONFLICT = "SlotConflict"


class AdmissionState(StrEnum):
    ADMITTED = "admitted"
    REJECTED = "rejected"


class AuditAction(StrEnum):
    ROOM_CREATED = "ROOM_CREATED"
    ROOM_UPDATED = "ROOM_UPDATED"
    ROOM_DEACTIVATED = "ROOM_DEACTIVATED"
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_UPDATED = "BOOKING_UPDATED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    BOOKING_DELETED = "BOOKING_DELETED"
    BOOKING_REJECTED = "BOOKING_REJECTED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_time(value: str) -> str:
    to_minutes(value)
    return value


# ---------------------------------------------------------------------------
# Time ranges and slots
# ---------------------------------------------------------------------------


class TimeRange(BaseModel):
    """A pair of ``HH:MM`` times.

    Both ends must be well-formed, but the ordering is *not* enforced here:
    an inverted range is a recoverable admission outcome, not a parse error.
    """

    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _well_formed(cls, value: str) -> str:
        return _check_time(value)

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end_time)

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


class BookingSlot(TimeRange):
    """A time range scoped to a room and a calendar date."""

    room_id: str = Field(min_length=1)
    date: CalendarDate

    def to_slot(self) -> BookingSlot:
        return BookingSlot(
            room_id=self.room_id,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class ValidatedBooking(BookingSlot):
    """A slot whose range has passed validation. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _start_before_end(self) -> ValidatedBooking:
        if self.start_minutes >= self.end_minutes:
            raise ValueError("start_time must be before end_time")
        return self


class AdmissionResult(BaseModel):
    state: AdmissionState
    reason: RejectionReason | None = None
    booking: ValidatedBooking | None = None
    conflicts: list[BookingSlot] = Field(default_factory=list)

    @property
    def admitted(self) -> bool:
        return self.state == AdmissionState.ADMITTED


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Room(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    building: str = Field(min_length=1)
    floor: str = Field(min_length=1)
    capacity: int = Field(gt=0)
    description: str | None = None
    equipment: list[str] = Field(default_factory=list)
    is_active: bool = True
    opening_time: str = "08:00"
    closing_time: str = "20:00"
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("opening_time", "closing_time")
    @classmethod
    def _well_formed(cls, value: str) -> str:
        return _check_time(value)

    @model_validator(mode="after")
    def _opens_before_closing(self) -> Room:
        if to_minutes(self.opening_time) >= to_minutes(self.closing_time):
            raise ValueError("opening_time must be before closing_time")
        return self

    @property
    def operating_window(self) -> TimeRange:
        return TimeRange(start_time=self.opening_time, end_time=self.closing_time)


class Booking(BookingSlot):
    id: str = Field(default_factory=_new_id)
    title: str
    description: str | None = None
    notes: str | None = None
    requested_by: str | None = None
    status: BookingStatus = BookingStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class AuditEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    entity_id: str
    action: AuditAction
    timestamp: datetime = Field(default_factory=_utcnow)
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class CreateRoomRequest(BaseModel):
    name: str = Field(min_length=1)
    building: str = Field(min_length=1)
    floor: str = Field(min_length=1)
    capacity: int = Field(gt=0)
    description: str | None = None
    equipment: list[str] = Field(default_factory=list)
    opening_time: str | None = None
    closing_time: str | None = None


class UpdateRoomRequest(BaseModel):
    """Partial room update. Omitted fields keep their stored value."""

    name: str | None = Field(default=None, min_length=1)
    building: str | None = Field(default=None, min_length=1)
    floor: str | None = Field(default=None, min_length=1)
    capacity: int | None = Field(default=None, gt=0)
    description: str | None = None
    equipment: list[str] | None = None
    is_active: bool | None = None
    opening_time: str | None = None
    closing_time: str | None = None

    def field_updates(self, mode: str = "python") -> dict:
        return _sent_fields(self, clearable={"description"}, mode=mode)


def _sent_fields(model: BaseModel, clearable: set[str], mode: str) -> dict:
    # An explicit null only clears optional text fields; elsewhere it means "unchanged".
    return {
        name: value
        for name, value in model.model_dump(exclude_unset=True, mode=mode).items()
        if value is not None or name in clearable
    }


class CreateBookingRequest(BaseModel):
    room_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    date: CalendarDate
    start_time: str
    end_time: str
    description: str | None = None
    notes: str | None = None
    requested_by: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _well_formed(cls, value: str) -> str:
        return _check_time(value)

    def to_slot(self) -> BookingSlot:
        return BookingSlot(
            room_id=self.room_id,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class UpdateBookingRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    notes: str | None = None
    date: CalendarDate | None = None
    start_time: str | None = None
    end_time: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _well_formed(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _check_time(value)

    @property
    def changes_slot(self) -> bool:
        return any(v is not None for v in (self.date, self.start_time, self.end_time))

    def field_updates(self, mode: str = "python") -> dict:
        return _sent_fields(self, clearable={"description", "notes"}, mode=mode)


class StatusUpdateRequest(BaseModel):
    status: BookingStatus

    @field_validator("status")
    @classmethod
    def _not_pending(cls, value: BookingStatus) -> BookingStatus:
        if value == BookingStatus.PENDING:
            raise ValueError("status must be CONFIRMED, CANCELLED, or COMPLETED")
        return value


class ConflictDetail(BaseModel):
    room_id: str
    date: CalendarDate
    start_time: str
    end_time: str
    booking_id: str | None = None
    title: str | None = None

    @classmethod
    def from_slot(cls, slot: BookingSlot) -> ConflictDetail:
        return cls(
            room_id=slot.room_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            booking_id=getattr(slot, "id", None),
            title=getattr(slot, "title", None),
        )


class CheckAvailabilityResponse(BaseModel):
    available: bool
    reason: RejectionReason | None = None
    conflicts: list[ConflictDetail] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    room_id: str
    date: CalendarDate
    opening_time: str
    closing_time: str
    slot_duration: int | None = None
    slots: list[TimeRange]


class OccupancySummary(BaseModel):
    operating_minutes: int = Field(ge=0)
    booked_minutes: int = Field(ge=0)
    occupancy_percent: int = Field(ge=0, le=100)


class RoomOccupancy(BaseModel):
    room_id: str
    name: str
    capacity: int
    date: CalendarDate
    booking_count: int
    occupancy: OccupancySummary
