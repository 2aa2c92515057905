"""Domain event handlers — wired up at application startup."""

from __future__ import annotations

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
from roombook.domain.models import AuditAction, AuditEntry, BookingStatus
from roombook.repos.memory import AuditRepository, BookingRepository

_STATUS_ACTIONS = {
    BookingStatus.CONFIRMED: AuditAction.BOOKING_CONFIRMED,
    BookingStatus.CANCELLED: AuditAction.BOOKING_CANCELLED,
    BookingStatus.COMPLETED: AuditAction.BOOKING_COMPLETED,
}


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the repositories."""

    def __init__(
        self,
        bus: EventBus,
        booking_repo: BookingRepository,
        audit_repo: AuditRepository,
    ) -> None:
        self.bus = bus
        self.booking_repo = booking_repo
        self.audit_repo = audit_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(RoomCreated, self.on_room_created)
        self.bus.subscribe(RoomUpdated, self.on_room_updated)
        self.bus.subscribe(RoomDeactivated, self.on_room_deactivated)
        self.bus.subscribe(BookingCreated, self.on_booking_created)
        self.bus.subscribe(BookingUpdated, self.on_booking_updated)
        self.bus.subscribe(BookingStatusChanged, self.on_status_changed)
        self.bus.subscribe(BookingDeleted, self.on_booking_deleted)
        self.bus.subscribe(BookingRejected, self.on_booking_rejected)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_room_created(self, event: RoomCreated) -> None:
        self.audit_repo.add(
            AuditEntry(
                entity_id=event.room_id,
                action=AuditAction.ROOM_CREATED,
                payload={"name": event.name},
            )
        )

    def on_room_updated(self, event: RoomUpdated) -> None:
        self.audit_repo.add(
            AuditEntry(
                entity_id=event.room_id,
                action=AuditAction.ROOM_UPDATED,
                payload={"changes": event.changes},
            )
        )

    def on_room_deactivated(self, event: RoomDeactivated) -> None:
        self.audit_repo.add(
            AuditEntry(
                entity_id=event.room_id,
                action=AuditAction.ROOM_DEACTIVATED,
                payload={"name": event.name, "is_active": False},
            )
        )

    def on_booking_created(self, event: BookingCreated) -> None:
        stored = self.booking_repo.get(event.booking_id)
        if stored is None:
            return

        self.audit_repo.add(
            AuditEntry(
                entity_id=stored.id,
                action=AuditAction.BOOKING_CREATED,
                payload={
                    "room_id": stored.room_id,
                    "title": stored.title,
                    "date": stored.date.isoformat(),
                    "start_time": stored.start_time,
                    "end_time": stored.end_time,
                    "status": stored.status,
                },
            )
        )

    def on_booking_updated(self, event: BookingUpdated) -> None:
        if self.booking_repo.get(event.booking_id) is None:
            return

        self.audit_repo.add(
            AuditEntry(
                entity_id=event.booking_id,
                action=AuditAction.BOOKING_UPDATED,
                payload={"changes": event.changes},
            )
        )

    def on_status_changed(self, event: BookingStatusChanged) -> None:
        self.audit_repo.add(
            AuditEntry(
                entity_id=event.booking_id,
                action=_STATUS_ACTIONS[event.new_status],
                payload={"old_status": event.old_status, "new_status": event.new_status},
            )
        )

    def on_booking_deleted(self, event: BookingDeleted) -> None:
        # The booking is already gone from the store; the audit trail keeps it.
        self.audit_repo.add(
            AuditEntry(
                entity_id=event.booking_id,
                action=AuditAction.BOOKING_DELETED,
                payload={"room_id": event.room_id, "title": event.title},
            )
        )

    def on_booking_rejected(self, event: BookingRejected) -> None:
        self.audit_repo.add(
            AuditEntry(
                entity_id=event.booking_id or event.room_id,
                action=AuditAction.BOOKING_REJECTED,
                payload={
                    "reason": event.reason,
                    "conflicting_booking_ids": [
                        c.booking_id for c in event.conflicts if c.booking_id
                    ],
                },
            )
        )
