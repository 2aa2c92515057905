"""Service for computing free time in a room's daily schedule."""

from __future__ import annotations

from collections.abc import Sequence

from roombook.domain.models import OccupancySummary, TimeRange
from roombook.domain.timeutil import to_time_of_day


def _range(start: int, end: int) -> TimeRange:
    return TimeRange(start_time=to_time_of_day(start), end_time=to_time_of_day(end))


def _sorted_by_start(booked: Sequence[TimeRange]) -> list[TimeRange]:
    # sorted() is stable, so equal starts keep their input order.
    return sorted(booked, key=lambda r: r.start_minutes)


def available_slots(
    operating: TimeRange,
    booked: Sequence[TimeRange],
    slot_duration: int,
) -> list[TimeRange]:
    """Tile the free parts of *operating* into ``slot_duration``-minute slots.

    Slots are laid out from ``operating.start`` and restart at the end of each
    booking. A trailing gap shorter than ``slot_duration`` is dropped, so an
    empty result means nothing of the full duration can be offered.
    """
    if slot_duration <= 0:
        raise ValueError("slot_duration must be a positive number of minutes")

    slots: list[TimeRange] = []
    current = operating.start_minutes
    window_end = operating.end_minutes

    for booking in _sorted_by_start(booked):
        # Bookings reaching past closing time must not open slots beyond it.
        limit = min(booking.start_minutes, window_end)
        while current + slot_duration <= limit:
            slots.append(_range(current, current + slot_duration))
            current += slot_duration
        # Bookings can overlap each other; never move the cursor backwards.
        current = max(current, booking.end_minutes)

    while current + slot_duration <= window_end:
        slots.append(_range(current, current + slot_duration))
        current += slot_duration

    return slots


def free_gaps(operating: TimeRange, booked: Sequence[TimeRange]) -> list[TimeRange]:
    """Return one range per maximal free gap inside *operating*."""
    gaps: list[TimeRange] = []
    current = operating.start_minutes
    window_end = operating.end_minutes

    for booking in _sorted_by_start(booked):
        gap_end = min(booking.start_minutes, window_end)
        if current < gap_end:
            gaps.append(_range(current, gap_end))
        current = max(current, booking.end_minutes)
        if current >= window_end:
            return gaps

    if current < window_end:
        gaps.append(_range(current, window_end))
    return gaps


def occupancy(operating: TimeRange, booked: Sequence[TimeRange]) -> OccupancySummary:
    """Summarize how much of *operating* is covered by *booked*.

    Overlapping bookings are only counted once, and time outside the window
    is ignored.
    """
    operating_minutes = operating.end_minutes - operating.start_minutes
    free_minutes = sum(
        gap.end_minutes - gap.start_minutes for gap in free_gaps(operating, booked)
    )
    booked_minutes = operating_minutes - free_minutes
    percent = round(booked_minutes * 100 / operating_minutes) if operating_minutes else 0
    return OccupancySummary(
        operating_minutes=operating_minutes,
        booked_minutes=booked_minutes,
        occupancy_percent=percent,
    )
