"""FastAPI application — entry point for the room booking service."""

from __future__ import annotations

from datetime import date

from fastapi import FastAPI, HTTPException, Query

from roombook.domain.bus import EventBus
from roombook.domain.handlers import HandlerRegistry
from roombook.domain.models import (
    AdmissionResult,
    AuditEntry,
    AvailabilityResponse,
    Booking,
    BookingSlot,
    BookingStatus,
    CheckAvailabilityResponse,
    ConflictDetail,
    CreateBookingRequest,
    CreateRoomRequest,
    RejectionReason,
    Room,
    RoomOccupancy,
    StatusUpdateRequest,
    UpdateBookingRequest,
    UpdateRoomRequest,
)
from roombook.domain.timeutil import TIME_PATTERN
from roombook.repos.memory import (
    AuditRepository,
    BookingRepository,
    create_room_repository,
)
from roombook.services.bookings import (
    BookingNotFoundError,
    BookingService,
    BookingStateError,
    InvalidWindowError,
    RoomNotFoundError,
)
from roombook.utils.config import get_settings

settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
room_repo = create_room_repository(seed=settings.seed_rooms)
booking_repo = BookingRepository()
audit_repo = AuditRepository()

handler_registry = HandlerRegistry(
    bus=event_bus,
    booking_repo=booking_repo,
    audit_repo=audit_repo,
)
booking_service = BookingService(
    room_repo=room_repo,
    booking_repo=booking_repo,
    bus=event_bus,
    settings=settings,
)

_REJECTION_MESSAGES = {
    RejectionReason.INVALID_TIME_RANGE: "Start time must be before end time",
    RejectionReason.SLOT_CONFLICT: "Time slot conflicts with existing booking",
}


def _conflict_details(result: AdmissionResult) -> list[ConflictDetail]:
    return [ConflictDetail.from_slot(c) for c in result.conflicts]


def _raise_rejection(result: AdmissionResult) -> None:
    status_code = 400 if result.reason == RejectionReason.INVALID_TIME_RANGE else 409
    raise HTTPException(
        status_code=status_code,
        detail={
            "reason": result.reason,
            "message": _REJECTION_MESSAGES[result.reason],
            "conflicts": [c.model_dump(mode="json") for c in _conflict_details(result)],
        },
    )


def _room_or_404(room_id: str) -> Room:
    try:
        return booking_service.get_room(room_id)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")


def _booking_or_404(booking_id: str) -> Booking:
    try:
        return booking_service.get_booking(booking_id)
    except BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")


# ── Rooms ─────────────────────────────────────────────────────────────


@app.post("/rooms", response_model=Room, status_code=201)
def create_room(payload: CreateRoomRequest) -> Room:
    try:
        return booking_service.create_room(payload)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/rooms", response_model=list[Room])
def list_rooms(
    building: str | None = None,
    min_capacity: int | None = Query(default=None, gt=0),
    max_capacity: int | None = Query(default=None, gt=0),
    equipment: str | None = None,
    is_active: bool | None = None,
) -> list[Room]:
    """List rooms. *equipment* is a comma-separated list; rooms must have all of it."""
    wanted = [e.strip() for e in equipment.split(",") if e.strip()] if equipment else None
    return room_repo.list_filtered(
        building=building,
        min_capacity=min_capacity,
        max_capacity=max_capacity,
        equipment=wanted,
        is_active=is_active,
    )


@app.get("/rooms/occupancy", response_model=list[RoomOccupancy])
def room_occupancy(date: date) -> list[RoomOccupancy]:
    """Share of each active room's operating hours taken by live bookings."""
    return booking_service.occupancy_for(date)


@app.get("/rooms/{room_id}", response_model=Room)
def get_room(room_id: str) -> Room:
    return _room_or_404(room_id)


@app.put("/rooms/{room_id}", response_model=Room)
def update_room(room_id: str, payload: UpdateRoomRequest) -> Room:
    try:
        return booking_service.update_room(room_id, payload)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.delete("/rooms/{room_id}", response_model=Room)
def deactivate_room(room_id: str) -> Room:
    """Soft delete: the room stops taking bookings but keeps its history."""
    try:
        return booking_service.deactivate_room(room_id)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")


@app.get("/rooms/{room_id}/audit", response_model=list[AuditEntry])
def room_audit(room_id: str) -> list[AuditEntry]:
    """Room changes plus rejected booking attempts for the room."""
    _room_or_404(room_id)
    return audit_repo.list_for_entity(room_id)


@app.get("/rooms/{room_id}/availability", response_model=AvailabilityResponse)
def room_availability(
    room_id: str,
    date: date,
    slot_duration: int | None = Query(default=None, gt=0, le=24 * 60),
    opening_time: str | None = Query(default=None, pattern=TIME_PATTERN),
    closing_time: str | None = Query(default=None, pattern=TIME_PATTERN),
) -> AvailabilityResponse:
    """Bookable fixed-length slots for a room on a date.

    The operating window defaults to the room's hours and the slot length to
    the configured default.
    """
    _room_or_404(room_id)
    try:
        window, duration, slots = booking_service.room_slots(
            room_id, date, slot_duration, opening_time, closing_time
        )
    except InvalidWindowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return AvailabilityResponse(
        room_id=room_id,
        date=date,
        opening_time=window.start_time,
        closing_time=window.end_time,
        slot_duration=duration,
        slots=slots,
    )


@app.get("/rooms/{room_id}/gaps", response_model=AvailabilityResponse)
def room_gaps(
    room_id: str,
    date: date,
    opening_time: str | None = Query(default=None, pattern=TIME_PATTERN),
    closing_time: str | None = Query(default=None, pattern=TIME_PATTERN),
) -> AvailabilityResponse:
    """Maximal free gaps in a room's schedule, without slicing into slots."""
    _room_or_404(room_id)
    try:
        window, gaps = booking_service.room_gaps(room_id, date, opening_time, closing_time)
    except InvalidWindowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return AvailabilityResponse(
        room_id=room_id,
        date=date,
        opening_time=window.start_time,
        closing_time=window.end_time,
        slots=gaps,
    )


# ── Bookings ──────────────────────────────────────────────────────────


@app.get("/bookings/check-availability", response_model=CheckAvailabilityResponse)
def check_availability(
    room_id: str = Query(min_length=1),
    date: date = Query(),
    start_time: str = Query(pattern=TIME_PATTERN),
    end_time: str = Query(pattern=TIME_PATTERN),
) -> CheckAvailabilityResponse:
    """Report whether a slot could be booked right now, without booking it."""
    slot = BookingSlot(room_id=room_id, date=date, start_time=start_time, end_time=end_time)
    try:
        result = booking_service.check_slot(slot)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    return CheckAvailabilityResponse(
        available=result.admitted,
        reason=result.reason,
        conflicts=_conflict_details(result),
    )


@app.post("/bookings", response_model=Booking, status_code=201)
def create_booking(payload: CreateBookingRequest) -> Booking:
    """Request a booking. New bookings start out PENDING until confirmed."""
    try:
        outcome = booking_service.create_booking(payload)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found or inactive")
    if outcome.booking is None:
        _raise_rejection(outcome.admission)
    return outcome.booking


@app.get("/bookings", response_model=list[Booking])
def list_bookings(
    room_id: str | None = None,
    status: BookingStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Booking]:
    """Return bookings ordered by date and start time."""
    return booking_repo.list_filtered(
        room_id=room_id, status=status, start_date=start_date, end_date=end_date
    )


@app.get("/bookings/{booking_id}", response_model=Booking)
def get_booking(booking_id: str) -> Booking:
    return _booking_or_404(booking_id)


@app.put("/bookings/{booking_id}", response_model=Booking)
def update_booking(booking_id: str, payload: UpdateBookingRequest) -> Booking:
    """Edit a live booking. Date or time changes go through admission again."""
    try:
        outcome = booking_service.update_booking(booking_id, payload)
    except BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")
    except BookingStateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if outcome.booking is None:
        _raise_rejection(outcome.admission)
    return outcome.booking


@app.put("/bookings/{booking_id}/status", response_model=Booking)
def update_booking_status(booking_id: str, body: StatusUpdateRequest) -> Booking:
    """Confirm, cancel or complete a booking."""
    try:
        return booking_service.change_status(booking_id, body.status)
    except BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")
    except BookingStateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/bookings/{booking_id}", status_code=200)
def delete_booking(booking_id: str) -> dict:
    try:
        booking_service.delete_booking(booking_id)
    except BookingNotFoundError:
        raise HTTPException(status_code=404, detail="Booking not found")
    return {"status": "deleted"}


@app.get("/bookings/{booking_id}/audit", response_model=list[AuditEntry])
def booking_audit(booking_id: str) -> list[AuditEntry]:
    """Audit trail for a booking. Still available after the booking is deleted."""
    entries = audit_repo.list_for_entity(booking_id)
    if not entries:
        raise HTTPException(status_code=404, detail="Booking not found")
    return entries
