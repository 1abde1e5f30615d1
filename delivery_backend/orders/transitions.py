from __future__ import annotations

from .models import OrderStatus

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Position along the delivery path; CANCELLED sits off the path.
_PROGRESS = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.OUT_FOR_DELIVERY: 2,
    OrderStatus.DELIVERED: 3,
}


def allowed(current: OrderStatus, target: OrderStatus, strict: bool = True) -> bool:
    """Return whether an order may move from ``current`` to ``target``.

    In loose mode any change is accepted, matching the historical behaviour
    where status was a freely settable field, except that nothing returns to
    PENDING and a delivered order is never cancelled.
    """
    if target == OrderStatus.PENDING:
        return False
    if current == OrderStatus.DELIVERED and target == OrderStatus.CANCELLED:
        return False
    if not strict:
        return True
    return target in ORDER_TRANSITIONS[current]


def is_behind(current: OrderStatus, target: OrderStatus) -> bool:
    """True when ``current`` is an earlier, non-terminal step than ``target``."""
    if current in TERMINAL_STATUSES or target not in _PROGRESS:
        return False
    return _PROGRESS[current] < _PROGRESS[target]
