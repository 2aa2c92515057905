"""In-memory repositories for rooms, bookings and audit entries."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from datetime import date
from threading import Lock

from roombook.domain.models import (
    AuditEntry,
    Booking,
    BookingSlot,
    BookingStatus,
    Room,
)
from roombook.services.conflicts import find_conflicts


class ConcurrentWriteConflict(Exception):
    """A colliding active booking was stored after the caller's conflict check."""

    def __init__(self, conflicts: list[BookingSlot]) -> None:
        super().__init__(f"{len(conflicts)} conflicting booking(s) already stored")
        self.conflicts = conflicts


class _SlotLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class RoomRepository:
    """Dict-backed store for Room instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Room] = {}

    def add(self, room: Room) -> None:
        self._store[room.id] = room

    def replace(self, room: Room) -> None:
        if room.id not in self._store:
            raise KeyError(room.id)
        self._store[room.id] = room

    def get(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def list_all(self) -> list[Room]:
        return sorted(self._store.values(), key=lambda r: r.name)

    def list_filtered(
        self,
        building: str | None = None,
        min_capacity: int | None = None,
        max_capacity: int | None = None,
        equipment: list[str] | None = None,
        is_active: bool | None = None,
    ) -> list[Room]:
        rooms = self.list_all()
        if building is not None:
            rooms = [r for r in rooms if r.building == building]
        if min_capacity is not None:
            rooms = [r for r in rooms if r.capacity >= min_capacity]
        if max_capacity is not None:
            rooms = [r for r in rooms if r.capacity <= max_capacity]
        if equipment:
            rooms = [r for r in rooms if set(equipment) <= set(r.equipment)]
        if is_active is not None:
            rooms = [r for r in rooms if r.is_active == is_active]
        return rooms


class BookingRepository:
    """Dict-backed store for Booking instances, keyed by id.

    Writers serialize per ``(room_id, date)`` through :meth:`slot_lock` so a
    fetch-check-write sequence runs as one unit. ``add`` and ``replace``
    re-check overlaps under the store lock and raise
    :class:`ConcurrentWriteConflict` if a caller skipped the slot lock.

    A slot lock only lives while some caller holds or waits for it.
    """

    def __init__(self) -> None:
        self._store: dict[str, Booking] = {}
        self._lock = Lock()
        self._slot_locks: dict[tuple[str, date], _SlotLock] = {}
        self._slot_locks_guard = Lock()

    @contextmanager
    def slot_lock(self, room_id: str, day: date) -> Iterator[None]:
        key = (room_id, day)
        with self._slot_locks_guard:
            entry = self._slot_locks.get(key)
            if entry is None:
                entry = self._slot_locks[key] = _SlotLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._slot_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._slot_locks[key]

    @contextmanager
    def slot_locks(self, *keys: tuple[str, date]) -> Iterator[None]:
        """Hold the slot locks for several ``(room_id, date)`` keys, in sorted order."""
        with ExitStack() as stack:
            for room_id, day in sorted(set(keys)):
                stack.enter_context(self.slot_lock(room_id, day))
            yield

    def _check_free(self, booking: Booking) -> None:
        if not booking.is_active:
            return
        others = [
            b for b in self._store.values() if b.id != booking.id and b.is_active
        ]
        conflicts = find_conflicts(booking, others)
        if conflicts:
            raise ConcurrentWriteConflict(conflicts)

    def add(self, booking: Booking) -> None:
        with self._lock:
            self._check_free(booking)
            self._store[booking.id] = booking

    def replace(self, booking: Booking) -> None:
        with self._lock:
            if booking.id not in self._store:
                raise KeyError(booking.id)
            self._check_free(booking)
            self._store[booking.id] = booking

    def get(self, booking_id: str) -> Booking | None:
        return self._store.get(booking_id)

    def delete(self, booking_id: str) -> Booking | None:
        with self._lock:
            return self._store.pop(booking_id, None)

    def list_all(self) -> list[Booking]:
        return list(self._store.values())

    def list_active(
        self,
        room_id: str,
        day: date,
        exclude_id: str | None = None,
    ) -> list[Booking]:
        """Return PENDING/CONFIRMED bookings for a room on a date, by start time."""
        with self._lock:
            matches = [
                b
                for b in self._store.values()
                if b.room_id == room_id
                and b.date == day
                and b.is_active
                and b.id != exclude_id
            ]
        return sorted(matches, key=lambda b: b.start_minutes)

    def list_filtered(
        self,
        room_id: str | None = None,
        status: BookingStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Booking]:
        bookings = self.list_all()
        if room_id is not None:
            bookings = [b for b in bookings if b.room_id == room_id]
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        if start_date is not None:
            bookings = [b for b in bookings if b.date >= start_date]
        if end_date is not None:
            bookings = [b for b in bookings if b.date <= end_date]
        return sorted(bookings, key=lambda b: (b.date, b.start_minutes))


class AuditRepository:
    """List-backed store for AuditEntry instances."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    def add(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    def list_for_entity(self, entity_id: str) -> list[AuditEntry]:
        return sorted(
            [e for e in self._entries if e.entity_id == entity_id],
            key=lambda e: e.timestamp,
        )


# ---------------------------------------------------------------------------
# Seed data – a few rooms useful for trying out the availability endpoints
# ---------------------------------------------------------------------------


def _seed_rooms(repo: RoomRepository) -> None:
    repo.add(
        Room(
            name="Lecture Hall A",
            building="Main Building",
            floor="1",
            capacity=120,
            equipment=["projector", "microphone"],
        )
    )
    repo.add(
        Room(
            name="Seminar Room 2.14",
            building="Science Block",
            floor="2",
            capacity=30,
            equipment=["whiteboard"],
            opening_time="09:00",
            closing_time="18:00",
        )
    )
    repo.add(
        Room(
            name="Computer Lab 3",
            building="Science Block",
            floor="3",
            capacity=40,
            equipment=["computers", "projector"],
        )
    )


def create_room_repository(seed: bool = False) -> RoomRepository:
    """Return a RoomRepository, optionally pre-loaded with sample rooms."""
    repo = RoomRepository()
    if seed:
        _seed_rooms(repo)
    return repo
