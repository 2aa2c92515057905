"""Admission workflow: validate a candidate slot, then check it for conflicts.

Rejections are ordinary results, not exceptions. The caller supplies
``fetch_active``, which returns the live bookings for a room on a date; it is
never called for a candidate whose range is invalid.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date

from roombook.domain.models import (
    AdmissionResult,
    AdmissionState,
    BookingSlot,
    RejectionReason,
    ValidatedBooking,
)
from roombook.services.conflicts import find_conflicts, is_valid_range

ActiveBookingFetcher = Callable[[str, date], Sequence[BookingSlot]]


def validate_candidate(candidate: BookingSlot) -> ValidatedBooking | None:
    """Return the validated form of *candidate*, or ``None`` if start >= end."""
    if not is_valid_range(candidate):
        return None
    return ValidatedBooking(
        room_id=candidate.room_id,
        date=candidate.date,
        start_time=candidate.start_time,
        end_time=candidate.end_time,
    )


def admit(candidate: BookingSlot, fetch_active: ActiveBookingFetcher) -> AdmissionResult:
    validated = validate_candidate(candidate)
    if validated is None:
        return AdmissionResult(
            state=AdmissionState.REJECTED,
            reason=RejectionReason.INVALID_TIME_RANGE,
        )

    existing = fetch_active(validated.room_id, validated.date)
    conflicts = find_conflicts(validated, existing)
    if conflicts:
        return AdmissionResult(
            state=AdmissionState.REJECTED,
            reason=RejectionReason.SLOT_CONFLICT,
            conflicts=conflicts,
        )

    return AdmissionResult(state=AdmissionState.ADMITTED, booking=validated)
