from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from ..analytics.store import ASSIGNMENT, record_event
from ..config import DEFAULT_CONFIG, DeliveryConfig
from ..errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from ..orders.events import record_status_change
from ..orders.models import Order, OrderStatus
from ..orders.transitions import is_behind
from ..store import records
from ..store.models import Courier
from .models import (
    ASSIGNMENT_TRANSITIONS,
    REASSIGN_REASONS,
    AssignmentStatus,
    CancelReason,
    CourierAssignment,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _load_order(order_id: int) -> Order:
    order = records.find_order_by_id(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", entity="order", entity_id=order_id)
    return order


def _load_courier(courier_id: int) -> Courier:
    courier = records.find_courier_by_id(courier_id)
    if courier is None:
        raise NotFoundError(f"Courier {courier_id} not found", entity="courier", entity_id=courier_id)
    return courier


def get_assignment(assignment_id: int) -> CourierAssignment:
    assignment = records.get("assignments", assignment_id)
    if assignment is None:
        raise NotFoundError(
            f"Assignment {assignment_id} not found", entity="assignment", entity_id=assignment_id,
        )
    return assignment


def active_assignment(order_id: int) -> CourierAssignment | None:
    """Return the order's single non-terminal assignment, if any."""
    for assignment in records.find_assignments_by_order(order_id):
        if assignment.is_active:
            return assignment
    return None


def assignment_history(order_id: int) -> list[CourierAssignment]:
    _load_order(order_id)
    return records.find_assignments_by_order(order_id)


def courier_history(courier_id: int) -> list[CourierAssignment]:
    _load_courier(courier_id)
    return records.find_assignments_by_courier(courier_id)


def _set_courier_available(courier_id: int | None, available: bool, config: DeliveryConfig) -> None:
    if courier_id is None or not config.courier_exclusive:
        return
    courier = records.find_courier_by_id(courier_id)
    if courier is not None and courier.available != available:
        courier.available = available
        records.save("couriers", courier)


def _claim_courier(courier: Courier, order: Order, config: DeliveryConfig) -> None:
    if config.courier_exclusive and not courier.available:
        logger.warning("Courier %s is busy; cannot take order %s", courier.id, order.id)
        raise ConflictError(
            f"Courier {courier.id} is not available", entity="courier", entity_id=courier.id,
        )
    _set_courier_available(courier.id, False, config)
    order.courier_id = courier.id
    records.save("orders", order)


def _check_transition(assignment: CourierAssignment, target: AssignmentStatus) -> None:
    if target not in ASSIGNMENT_TRANSITIONS[assignment.status]:
        logger.warning(
            "Rejected assignment %s transition %s -> %s",
            assignment.id, assignment.status.value, target.value,
        )
        raise InvalidStateError(
            f"Cannot move assignment {assignment.id} from {assignment.status.value} to {target.value}",
            field="status",
            entity="assignment",
            entity_id=assignment.id,
        )


def _record(assignment: CourierAssignment) -> None:
    logger.info(
        "Assignment %s for order %s is now %s (courier %s)",
        assignment.id, assignment.order_id, assignment.status.value, assignment.courier_id,
    )
    record_event(ASSIGNMENT, {
        "assignment_id": assignment.id,
        "order_id": assignment.order_id,
        "courier_id": assignment.courier_id,
        "status": assignment.status.value,
        "reason": assignment.cancel_reason.value if assignment.cancel_reason else None,
    })


def assign(
    order_id: int,
    courier_id: int | None = None,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment:
    """Create an ASSIGNED assignment for ``order_id``.

    ``courier_id`` may be omitted to open the assignment for a courier to
    accept later. The order's status is left alone.
    """
    with records.transaction():
        order = _load_order(order_id)
        courier = _load_courier(courier_id) if courier_id is not None else None

        if order.is_terminal:
            raise InvalidStateError(
                f"Order {order_id} is {order.status.value}; cannot assign a courier",
                field="status", entity="order", entity_id=order_id,
            )

        existing = active_assignment(order_id)
        if existing is not None:
            logger.warning("Order %s already has active assignment %s", order_id, existing.id)
            raise ConflictError(
                f"Order {order_id} already has an active assignment",
                entity="assignment", entity_id=existing.id,
            )

        if courier is not None:
            _claim_courier(courier, order, config)

        assignment = records.save("assignments", CourierAssignment(
            order_id=order_id,
            courier_id=courier_id,
            assigned_at=_now(),
        ))

    _record(assignment)
    return assignment


def accept_assignment(
    assignment_id: int,
    courier_id: int,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment:
    """Let a courier take an open assignment or confirm a request sent to them."""
    with records.transaction():
        assignment = get_assignment(assignment_id)
        courier = _load_courier(courier_id)

        if assignment.status != AssignmentStatus.ASSIGNED:
            raise InvalidStateError(
                f"Assignment {assignment_id} is {assignment.status.value}; only ASSIGNED can be accepted",
                field="status", entity="assignment", entity_id=assignment_id,
            )
        if assignment.courier_id is not None and assignment.courier_id != courier_id:
            raise ConflictError(
                f"Assignment {assignment_id} already belongs to courier {assignment.courier_id}",
                entity="assignment", entity_id=assignment_id,
            )
        if assignment.accepted_at is not None:
            return assignment

        now = _now()
        if assignment.courier_id is None:
            order = _load_order(assignment.order_id)
            _claim_courier(courier, order, config)
            assignment.courier_id = courier_id
        elif _request_expired(assignment, now, config):
            raise InvalidStateError(
                f"Delivery request {assignment_id} has expired",
                field="assigned_at", entity="assignment", entity_id=assignment_id,
            )
        assignment.accepted_at = now
        assignment = records.save("assignments", assignment)

    _record(assignment)
    return assignment


def reject_assignment(
    assignment_id: int,
    courier_id: int,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment:
    """Turn down a delivery request; the order is freed for another courier."""
    with records.transaction():
        assignment = get_assignment(assignment_id)
        if assignment.courier_id != courier_id:
            raise ForbiddenError(
                f"Assignment {assignment_id} was not sent to courier {courier_id}",
                entity="assignment", entity_id=assignment_id,
            )
        if assignment.cancel_reason == CancelReason.REJECTED:
            return assignment
        if not assignment.is_pending_request:
            raise InvalidStateError(
                f"Assignment {assignment_id} is no longer an open request",
                field="status", entity="assignment", entity_id=assignment_id,
            )

        _unlink_order(assignment)
        assignment = _cancel(assignment, config, CancelReason.REJECTED)

    _record(assignment)
    return assignment


def mark_picked_up(assignment_id: int) -> CourierAssignment:
    """ASSIGNED -> PICKED_UP; the order moves to OUT_FOR_DELIVERY if behind."""
    with records.transaction():
        assignment = get_assignment(assignment_id)
        if assignment.status == AssignmentStatus.PICKED_UP:
            return assignment
        _check_transition(assignment, AssignmentStatus.PICKED_UP)
        if assignment.courier_id is None:
            raise InvalidStateError(
                f"Assignment {assignment_id} has no courier yet",
                field="courier_id", entity="assignment", entity_id=assignment_id,
            )

        order = _load_order(assignment.order_id)
        if order.is_terminal:
            raise InvalidStateError(
                f"Order {order.id} is {order.status.value}",
                field="status", entity="order", entity_id=order.id,
            )

        now = _now()
        assignment.status = AssignmentStatus.PICKED_UP
        assignment.picked_up_at = now
        if assignment.accepted_at is None:
            assignment.accepted_at = now
        previous = order.status
        if is_behind(order.status, OrderStatus.OUT_FOR_DELIVERY):
            order.status = OrderStatus.OUT_FOR_DELIVERY
        order.courier_id = assignment.courier_id
        order = records.save("orders", order)
        assignment = records.save("assignments", assignment)

    if order.status != previous:
        record_status_change(order, previous)
    _record(assignment)
    return assignment


def mark_delivered(
    assignment_id: int,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment:
    """PICKED_UP -> DELIVERED; the order is stamped DELIVERED alongside."""
    with records.transaction():
        assignment = get_assignment(assignment_id)
        if assignment.status == AssignmentStatus.DELIVERED:
            return assignment
        _check_transition(assignment, AssignmentStatus.DELIVERED)

        order = _load_order(assignment.order_id)
        previous = order.status
        now = _now()
        assignment.status = AssignmentStatus.DELIVERED
        assignment.delivered_at = now
        if order.status != OrderStatus.DELIVERED:
            order.status = OrderStatus.DELIVERED
            order.delivered_at = now
            order = records.save("orders", order)
        _set_courier_available(assignment.courier_id, True, config)
        assignment = records.save("assignments", assignment)

    if order.status != previous:
        record_status_change(order, previous)
    _record(assignment)
    return assignment


def cancel_assignment(
    assignment_id: int,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment:
    """Cancel an active assignment so the order can be reassigned."""
    with records.transaction():
        assignment = get_assignment(assignment_id)
        if assignment.status == AssignmentStatus.CANCELLED:
            return assignment
        _check_transition(assignment, AssignmentStatus.CANCELLED)

        _unlink_order(assignment)
        assignment = _cancel(assignment, config, CancelReason.DISPATCHER)

    _record(assignment)
    return assignment


def _unlink_order(assignment: CourierAssignment) -> None:
    order = _load_order(assignment.order_id)
    if order.courier_id is not None and order.courier_id == assignment.courier_id:
        order.courier_id = None
        records.save("orders", order)


def _cancel(
    assignment: CourierAssignment,
    config: DeliveryConfig,
    reason: CancelReason,
) -> CourierAssignment:
    assignment.status = AssignmentStatus.CANCELLED
    assignment.cancelled_at = _now()
    assignment.cancel_reason = reason
    _set_courier_available(assignment.courier_id, True, config)
    return records.save("assignments", assignment)


# ── Delivery requests ────────────────────────────────────────────────────


def _request_expired(assignment: CourierAssignment, now: datetime, config: DeliveryConfig) -> bool:
    if not assignment.is_pending_request:
        return False
    return assignment.assigned_at + timedelta(seconds=config.assignment_request_ttl) <= now


def expire_requests(
    order_id: int | None = None,
    now: datetime | None = None,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> list[CourierAssignment]:
    """Cancel delivery requests nobody accepted within ``assignment_request_ttl``.

    Limited to one order when ``order_id`` is given. Returns what expired.
    """
    now = now or _now()
    expired: list[CourierAssignment] = []
    with records.transaction():
        if order_id is not None:
            candidates = records.find_assignments_by_order(order_id)
        else:
            candidates = sorted(records.all_records("assignments"), key=lambda a: a.id)
        for assignment in candidates:
            if _request_expired(assignment, now, config):
                _unlink_order(assignment)
                expired.append(_cancel(assignment, config, CancelReason.EXPIRED))

    if expired:
        logger.info("Expired %d unanswered delivery request(s)", len(expired))
    for assignment in expired:
        _record(assignment)
    return expired


def pending_requests(
    courier_id: int,
    now: datetime | None = None,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> list[CourierAssignment]:
    """Requests sent to the courier that are still waiting for an answer."""
    _load_courier(courier_id)
    now = now or _now()
    return [
        a for a in records.find_assignments_by_courier(courier_id)
        if a.is_pending_request and not _request_expired(a, now, config)
    ]


def orders_needing_courier(restaurant_id: int) -> list[Order]:
    """PROCESSING orders with no assignment yet, or only rejected and expired ones."""
    if records.find_restaurant_by_id(restaurant_id) is None:
        raise NotFoundError(
            f"Restaurant {restaurant_id} not found", entity="restaurant", entity_id=restaurant_id,
        )
    orders = records.find_orders_by(restaurant_id=restaurant_id, status=OrderStatus.PROCESSING)
    return [
        order
        for order in sorted(orders, key=lambda o: o.id)
        if all(
            a.status == AssignmentStatus.CANCELLED and a.cancel_reason in REASSIGN_REASONS
            for a in records.find_assignments_by_order(order.id)
        )
    ]


# ── Order-driven reconciliation ──────────────────────────────────────────
# Called by the order service while it holds the store transaction; the
# caller saves the order it passes in.


def release_order_assignment(
    order: Order,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment | None:
    """Cancel the active assignment of an order that is being cancelled."""
    assignment = active_assignment(order.id)
    if assignment is None:
        return None
    assignment = _cancel(assignment, config, CancelReason.ORDER_CANCELLED)
    order.courier_id = None
    _record(assignment)
    return assignment


def complete_order_assignment(
    order: Order,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> CourierAssignment | None:
    """Deliver the active assignment of an order being marked DELIVERED.

    An assignment that was never picked up blocks the delivery.
    """
    assignment = active_assignment(order.id)
    if assignment is None:
        return None
    _check_transition(assignment, AssignmentStatus.DELIVERED)
    assignment.status = AssignmentStatus.DELIVERED
    assignment.delivered_at = order.delivered_at or _now()
    _set_courier_available(assignment.courier_id, True, config)
    assignment = records.save("assignments", assignment)
    _record(assignment)
    return assignment
