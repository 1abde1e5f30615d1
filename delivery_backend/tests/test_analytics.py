from __future__ import annotations

from decimal import Decimal

from delivery_backend.analytics.aggregator import (
    compute_analytics,
    customer_analytics,
    restaurant_analytics,
)
from delivery_backend.analytics.store import ORDER_PLACED, get_events
from delivery_backend.dispatch.engine import assign, cancel_assignment, mark_delivered, mark_picked_up
from delivery_backend.orders.service import cancel_order, place_order
from delivery_backend.ratings.aggregator import create_rating
from delivery_backend.search.index import search


def test_empty_analytics():
    body = compute_analytics(get_events())
    assert body["orders_placed"] == 0
    assert body["revenue"] == "0.00"
    assert body["avg_delivery_minutes"] == 0.0
    assert body["ratings"] == {"total": 0, "average_score": 0.0}
    assert body["searches"]["total"] == 0


def test_tracks_lifecycle(world, pizza_order):
    first = assign(pizza_order.id, world.courier_a.id)
    cancel_assignment(first.id)
    second = assign(pizza_order.id, world.courier_b.id)
    mark_picked_up(second.id)
    mark_delivered(second.id)
    create_rating(world.ada.id, {"order_id": pizza_order.id, "rating": 5})
    search({"city": "Istanbul"})
    search({"city": "Istanbul"})

    body = compute_analytics(get_events())
    assert body["orders_placed"] == 1
    assert body["revenue"] == "25.98"
    assert body["status_transitions"] == {"OUT_FOR_DELIVERY": 1, "DELIVERED": 1}
    assert body["avg_delivery_minutes"] >= 0.0
    assert body["assignment_events"] == {
        "ASSIGNED": 2, "CANCELLED": 1, "PICKED_UP": 1, "DELIVERED": 1,
    }
    assert body["ratings"] == {"total": 1, "average_score": 5.0}
    assert body["searches"]["total"] == 2
    assert body["searches"]["cache_hits"] == 1


def test_order_status_events(world, pizza_order):
    cancel_order(pizza_order.id)
    body = compute_analytics(get_events())
    assert body["status_transitions"] == {"CANCELLED": 1}
    assert get_events(ORDER_PLACED)[0]["order_id"] == pizza_order.id


def test_restaurant_analytics(world, pizza_order):
    place_order({
        "customer_id": world.ada.id,
        "restaurant_id": world.pizzeria.id,
        "address_id": world.ada_home.id,
        "items": [{"menu_item_id": world.cola.id, "quantity": 1}],
    })
    rows = {r["restaurant_id"]: r for r in restaurant_analytics()}

    assert rows[world.pizzeria.id]["total_orders"] == 2
    assert rows[world.pizzeria.id]["total_revenue"] == Decimal("28.48")
    assert rows[world.pizzeria.id]["average_order_value"] == Decimal("14.24")
    assert rows[world.kebab.id]["total_orders"] == 0
    assert rows[world.kebab.id]["average_order_value"] == Decimal("0.00")


def test_customer_analytics(world, pizza_order):
    rows = {r["customer_id"]: r for r in customer_analytics()}
    assert rows[world.ada.id]["total_spent"] == Decimal("25.98")
    assert rows[world.ada.id]["customer_name"] == "Ada"
    assert rows[world.bob.id]["total_orders"] == 0
