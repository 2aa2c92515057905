"""Domain events emitted during the booking lifecycle."""

from __future__ import annotations

from pydantic import BaseModel, Field

from roombook.domain.models import BookingStatus, ConflictDetail, RejectionReason


class RoomCreated(BaseModel):
    room_id: str
    name: str


class RoomUpdated(BaseModel):
    room_id: str
    changes: dict


class RoomDeactivated(BaseModel):
    """Fired when a room is taken out of service. Its bookings are kept."""

    room_id: str
    name: str


class BookingCreated(BaseModel):
    """Fired when a new Booking is persisted."""

    booking_id: str


class BookingUpdated(BaseModel):
    """Fired after a stored booking's fields changed."""

    booking_id: str
    changes: dict


class BookingStatusChanged(BaseModel):
    booking_id: str
    old_status: BookingStatus
    new_status: BookingStatus


class BookingDeleted(BaseModel):
    booking_id: str
    room_id: str
    title: str


class BookingRejected(BaseModel):
    """Fired when an admission attempt was turned down.

    ``booking_id`` is only set when an update to a stored booking was refused.
    """

    room_id: str
    booking_id: str | None = None
    reason: RejectionReason
    conflicts: list[ConflictDetail] = Field(default_factory=list)
