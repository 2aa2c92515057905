"""Booking service: runs admission, writes bookings and publishes lifecycle events."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone

from roombook.domain.bus import EventBus
from roombook.domain.events import (
    BookingCreated,
    BookingDeleted,
    BookingRejected,
    BookingStatusChanged,
    BookingUpdated,
    RoomCreated,
    RoomDeactivated,
    RoomUpdated,
)
from roombook.domain.models import (
    AdmissionResult,
    AdmissionState,
    Booking,
    BookingSlot,
    BookingStatus,
    ConflictDetail,
    CreateBookingRequest,
    CreateRoomRequest,
    RejectionReason,
    Room,
    RoomOccupancy,
    TimeRange,
    UpdateBookingRequest,
    UpdateRoomRequest,
)
from roombook.repos.memory import (
    BookingRepository,
    ConcurrentWriteConflict,
    RoomRepository,
)
from roombook.services.admission import admit
from roombook.services.availability import available_slots, free_gaps, occupancy
from roombook.services.conflicts import is_valid_range
from roombook.utils.config import Settings
from roombook.utils.logger import get_logger

logger = get_logger(__name__)

_ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED, BookingStatus.COMPLETED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.COMPLETED: set(),
}


class BookingError(Exception):
    """Base class for booking service errors."""


class RoomNotFoundError(BookingError):
    pass


class BookingNotFoundError(BookingError):
    pass


class BookingStateError(BookingError):
    """The booking's current status does not allow the requested change."""


class InvalidWindowError(BookingError):
    pass


@dataclass
class BookingWriteResult:
    admission: AdmissionResult
    booking: Booking | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    def __init__(
        self,
        room_repo: RoomRepository,
        booking_repo: BookingRepository,
        bus: EventBus,
        settings: Settings,
    ) -> None:
        self._rooms = room_repo
        self._bookings = booking_repo
        self._bus = bus
        self._settings = settings

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def create_room(self, payload: CreateRoomRequest) -> Room:
        room = Room(
            name=payload.name,
            building=payload.building,
            floor=payload.floor,
            capacity=payload.capacity,
            description=payload.description,
            equipment=payload.equipment,
            opening_time=payload.opening_time or self._settings.default_opening_time,
            closing_time=payload.closing_time or self._settings.default_closing_time,
        )
        self._rooms.add(room)
        self._bus.publish(RoomCreated(room_id=room.id, name=room.name))
        logger.info("Room created: %s (%s)", room.name, room.id)
        return room

    def update_room(self, room_id: str, payload: UpdateRoomRequest) -> Room:
        current = self.get_room(room_id)
        changes = payload.field_updates(mode="json")
        # Re-validate the merged room so the hours stay well-formed and ordered.
        room = Room.model_validate({**current.model_dump(), **payload.field_updates()})
        self._rooms.replace(room)
        self._bus.publish(RoomUpdated(room_id=room.id, changes=changes))
        logger.info("Room updated: %s (%s)", room.name, room.id)
        return room

    def deactivate_room(self, room_id: str) -> Room:
        """Take a room out of service. Existing bookings are left as they are."""
        room = self.get_room(room_id)
        if not room.is_active:
            return room
        room = room.model_copy(update={"is_active": False})
        self._rooms.replace(room)
        self._bus.publish(RoomDeactivated(room_id=room.id, name=room.name))
        logger.info("Room deactivated: %s (%s)", room.name, room.id)
        return room

    def get_room(self, room_id: str, require_active: bool = False) -> Room:
        room = self._rooms.get(room_id)
        if room is None or (require_active and not room.is_active):
            raise RoomNotFoundError(room_id)
        return room

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def check_slot(self, slot: BookingSlot) -> AdmissionResult:
        """Run admission for *slot* without writing anything."""
        self.get_room(slot.room_id)
        return admit(slot, self._bookings.list_active)

    def _reject_after_race(self, exc: ConcurrentWriteConflict) -> AdmissionResult:
        logger.warning("Concurrent write conflict: %s", exc)
        return AdmissionResult(
            state=AdmissionState.REJECTED,
            reason=RejectionReason.SLOT_CONFLICT,
            conflicts=exc.conflicts,
        )

    def _publish_rejection(
        self,
        slot: BookingSlot,
        result: AdmissionResult,
        booking_id: str | None = None,
    ) -> None:
        logger.info(
            "Booking rejected (%s) for room %s on %s %s-%s",
            result.reason,
            slot.room_id,
            slot.date,
            slot.start_time,
            slot.end_time,
        )
        self._bus.publish(
            BookingRejected(
                room_id=slot.room_id,
                booking_id=booking_id,
                reason=result.reason,
                conflicts=[ConflictDetail.from_slot(c) for c in result.conflicts],
            )
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_booking(self, payload: CreateBookingRequest) -> BookingWriteResult:
        self.get_room(payload.room_id, require_active=True)
        slot = payload.to_slot()

        with self._bookings.slot_lock(slot.room_id, slot.date):
            result = admit(slot, self._bookings.list_active)
            if result.admitted:
                validated = result.booking
                booking = Booking(
                    room_id=validated.room_id,
                    date=validated.date,
                    start_time=validated.start_time,
                    end_time=validated.end_time,
                    title=payload.title,
                    description=payload.description,
                    notes=payload.notes,
                    requested_by=payload.requested_by,
                )
                try:
                    self._bookings.add(booking)
                except ConcurrentWriteConflict as exc:
                    result = self._reject_after_race(exc)

        if not result.admitted:
            self._publish_rejection(slot, result)
            return BookingWriteResult(admission=result)

        self._bus.publish(BookingCreated(booking_id=booking.id))
        logger.info("Booking created: %s (%s) in room %s", booking.title, booking.id, booking.room_id)
        return BookingWriteResult(admission=result, booking=booking)

    @contextmanager
    def _hold_booking(
        self, booking_id: str, new_date: date | None = None
    ) -> Iterator[Booking]:
        """Lock the booking's slot (and *new_date*'s) and yield a fresh read of it.

        Retries when the booking moved to another date before the lock was taken.
        """
        while True:
            seen = self.get_booking(booking_id)
            held = (seen.room_id, seen.date)
            with self._bookings.slot_locks(held, (seen.room_id, new_date or seen.date)):
                current = self.get_booking(booking_id)
                if (current.room_id, current.date) == held:
                    yield current
                    return
            logger.debug("Booking %s moved while waiting for its slot lock", booking_id)

    def update_booking(
        self, booking_id: str, payload: UpdateBookingRequest
    ) -> BookingWriteResult:
        changes = payload.field_updates(mode="json")
        slot = None

        with self._hold_booking(booking_id, payload.date) as current:
            if not current.is_active:
                raise BookingStateError(f"Booking is already {current.status}")

            updated = current.model_copy(
                update={**payload.field_updates(), "updated_at": _utcnow()}
            )
            if payload.changes_slot:
                slot = updated.to_slot()

                def fetch_others(room_id: str, day: date) -> list[Booking]:
                    return self._bookings.list_active(room_id, day, exclude_id=booking_id)

                result = admit(slot, fetch_others)
            else:
                result = AdmissionResult(state=AdmissionState.ADMITTED)

            if result.admitted:
                try:
                    self._bookings.replace(updated)
                except ConcurrentWriteConflict as exc:
                    result = self._reject_after_race(exc)

        if not result.admitted:
            self._publish_rejection(slot or updated.to_slot(), result, booking_id=booking_id)
            return BookingWriteResult(admission=result)

        self._bus.publish(BookingUpdated(booking_id=booking_id, changes=changes))
        logger.info("Booking updated: %s (%s)", updated.title, booking_id)
        return BookingWriteResult(admission=result, booking=updated)

    def change_status(self, booking_id: str, status: BookingStatus) -> Booking:
        with self._hold_booking(booking_id) as current:
            old_status = current.status
            if status not in _ALLOWED_TRANSITIONS[old_status]:
                raise BookingStateError(
                    f"Cannot change booking from {old_status} to {status}"
                )
            booking = current.model_copy(update={"status": status, "updated_at": _utcnow()})
            self._bookings.replace(booking)

        self._bus.publish(
            BookingStatusChanged(
                booking_id=booking_id, old_status=old_status, new_status=status
            )
        )
        logger.info("Booking %s: %s -> %s", booking_id, old_status, status)
        return booking

    def delete_booking(self, booking_id: str) -> Booking:
        with self._hold_booking(booking_id):
            booking = self._bookings.delete(booking_id)
        self._bus.publish(
            BookingDeleted(
                booking_id=booking.id, room_id=booking.room_id, title=booking.title
            )
        )
        logger.info("Booking deleted: %s (%s)", booking.title, booking.id)
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def _operating_window(
        self,
        room: Room,
        opening_time: str | None,
        closing_time: str | None,
    ) -> TimeRange:
        window = TimeRange(
            start_time=opening_time or room.opening_time,
            end_time=closing_time or room.closing_time,
        )
        if not is_valid_range(window):
            raise InvalidWindowError(f"Operating window {window} is empty or inverted")
        return window

    def room_slots(
        self,
        room_id: str,
        day: date,
        slot_duration: int | None = None,
        opening_time: str | None = None,
        closing_time: str | None = None,
    ) -> tuple[TimeRange, int, list[TimeRange]]:
        """Return the operating window, the slot length used and the free slots."""
        room = self.get_room(room_id)
        window = self._operating_window(room, opening_time, closing_time)
        duration = slot_duration or self._settings.default_slot_duration_minutes
        booked = self._bookings.list_active(room_id, day)
        return window, duration, available_slots(window, booked, duration)

    def room_gaps(
        self,
        room_id: str,
        day: date,
        opening_time: str | None = None,
        closing_time: str | None = None,
    ) -> tuple[TimeRange, list[TimeRange]]:
        room = self.get_room(room_id)
        window = self._operating_window(room, opening_time, closing_time)
        return window, free_gaps(window, self._bookings.list_active(room_id, day))

    def occupancy_for(self, day: date) -> list[RoomOccupancy]:
        results = []
        for room in self._rooms.list_filtered(is_active=True):
            booked = self._bookings.list_active(room.id, day)
            results.append(
                RoomOccupancy(
                    room_id=room.id,
                    name=room.name,
                    capacity=room.capacity,
                    date=day,
                    booking_count=len(booked),
                    occupancy=occupancy(room.operating_window, booked),
                )
            )
        return results
