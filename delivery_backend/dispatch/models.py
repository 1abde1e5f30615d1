from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class AssignmentStatus(str, Enum):
    ASSIGNED = "ASSIGNED"
    PICKED_UP = "PICKED_UP"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class CancelReason(str, Enum):
    DISPATCHER = "DISPATCHER"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# Requests a courier turned down or let lapse; the order needs someone else.
REASSIGN_REASONS = frozenset({CancelReason.REJECTED, CancelReason.EXPIRED})

ACTIVE_STATUSES = frozenset({AssignmentStatus.ASSIGNED, AssignmentStatus.PICKED_UP})

ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.ASSIGNED: frozenset({AssignmentStatus.PICKED_UP, AssignmentStatus.CANCELLED}),
    AssignmentStatus.PICKED_UP: frozenset({AssignmentStatus.DELIVERED, AssignmentStatus.CANCELLED}),
    AssignmentStatus.DELIVERED: frozenset(),
    AssignmentStatus.CANCELLED: frozenset(),
}


class CourierAssignment(BaseModel):
    id: int | None = None
    order_id: int
    courier_id: int | None = None
    status: AssignmentStatus = AssignmentStatus.ASSIGNED
    assigned_at: datetime
    accepted_at: datetime | None = None
    picked_up_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: CancelReason | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_pending_request(self) -> bool:
        """Sent to a courier who has neither accepted nor picked it up yet."""
        return (
            self.status == AssignmentStatus.ASSIGNED
            and self.courier_id is not None
            and self.accepted_at is None
        )
