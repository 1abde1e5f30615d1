from __future__ import annotations

from decimal import Decimal

import pytest

from delivery_backend.dispatch.engine import assign, mark_delivered, mark_picked_up
from delivery_backend.dispatch.models import AssignmentStatus
from delivery_backend.errors import ForbiddenError
from delivery_backend.orders.models import OrderStatus
from delivery_backend.orders.service import place_order, update_order_status
from delivery_backend.ratings.aggregator import average_rating, can_rate, create_rating


def test_order_to_rating(world):
    order = place_order({
        "customer_id": world.ada.id,
        "restaurant_id": world.pizzeria.id,
        "address_id": world.ada_home.id,
        "items": [{"menu_item_id": world.margherita.id, "quantity": 2}],
    })
    assert order.total_price == Decimal("25.98")
    assert order.status == OrderStatus.PENDING

    assignment = assign(order.id, world.courier_a.id)
    assert assignment.status == AssignmentStatus.ASSIGNED
    assert mark_picked_up(assignment.id).status == AssignmentStatus.PICKED_UP
    assert mark_delivered(assignment.id).status == AssignmentStatus.DELIVERED

    # Already DELIVERED through dispatch; re-setting it is a no-op
    assert update_order_status(order.id, OrderStatus.DELIVERED).status == OrderStatus.DELIVERED

    assert can_rate(world.ada.id, order.id) is True
    result = create_rating(world.ada.id, {"order_id": order.id, "rating": 5})
    assert result.subject_name == "Luigi's Pizzeria"
    assert average_rating(world.pizzeria.id) == 5.0

    with pytest.raises(ForbiddenError):
        create_rating(world.ada.id, {"order_id": order.id, "rating": 5})
