from __future__ import annotations

import logging

from ..analytics.store import ORDER_STATUS, record_event
from .models import Order, OrderStatus

logger = logging.getLogger(__name__)


def record_status_change(order: Order, previous: OrderStatus) -> None:
    """Log and record an accepted order status change, whoever drove it."""
    logger.info("Order %s moved %s -> %s", order.id, previous.value, order.status.value)
    record_event(ORDER_STATUS, {
        "order_id": order.id,
        "restaurant_id": order.restaurant_id,
        "from": previous.value,
        "to": order.status.value,
        "created_at": order.created_at.timestamp(),
        "delivered_at": order.delivered_at.timestamp() if order.delivered_at else None,
    })
