"""Service for detecting scheduling conflicts between room bookings."""

from __future__ import annotations

from collections.abc import Iterable

from roombook.domain.models import BookingSlot, TimeRange


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """Half-open intersection test.

    Exact boundary touches (a.end == b.start) are NOT considered overlaps, so
    back-to-back bookings are allowed.
    """
    return a.start_minutes < b.end_minutes and b.start_minutes < a.end_minutes


def is_valid_range(time_range: TimeRange) -> bool:
    return time_range.start_minutes < time_range.end_minutes


def find_conflicts(
    proposed: BookingSlot,
    existing: Iterable[BookingSlot],
) -> list[BookingSlot]:
    """Return the existing slots that collide with *proposed*.

    A collision needs the same room, the same calendar date and overlapping
    times. Input order is preserved. The proposed range is assumed to have
    been validated already.
    """
    return [
        slot
        for slot in existing
        if slot.room_id == proposed.room_id
        and slot.date == proposed.date
        and overlaps(proposed, slot)
    ]
