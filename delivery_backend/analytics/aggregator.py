from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Any

import pandas as pd

from ..orders.models import to_money
from ..store import records
from .store import ASSIGNMENT, ORDER_PLACED, ORDER_STATUS, RATING, SEARCH


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    """Summarise the event log into order, dispatch, rating and search figures."""
    placed = [e for e in events if e["type"] == ORDER_PLACED]
    status_changes = [e for e in events if e["type"] == ORDER_STATUS]
    assignments = [e for e in events if e["type"] == ASSIGNMENT]
    ratings = [e for e in events if e["type"] == RATING]
    searches = [e for e in events if e["type"] == SEARCH]

    revenue = sum((Decimal(e["total_price"]) for e in placed), Decimal("0"))

    # Order status changes by target status
    transition_counter: Counter[str] = Counter(e["to"] for e in status_changes)

    # Delivery time from placement to delivery, in minutes
    durations = [
        (e["delivered_at"] - e["created_at"]) / 60.0
        for e in status_changes
        if e["to"] == "DELIVERED" and e.get("delivered_at") is not None
    ]
    avg_delivery_min = round(sum(durations) / len(durations), 1) if durations else 0.0

    # Assignment events by resulting status
    assignment_counter: Counter[str] = Counter(e["status"] for e in assignments)

    scores = [e["score"] for e in ratings]
    times = [s["response_time_ms"] for s in searches if "response_time_ms" in s]
    cache_hits = sum(1 for s in searches if s.get("cache_hit"))

    return {
        "orders_placed": len(placed),
        "revenue": str(to_money(revenue)),
        "status_transitions": dict(transition_counter),
        "avg_delivery_minutes": avg_delivery_min,
        "assignment_events": dict(assignment_counter),
        "ratings": {
            "total": len(scores),
            "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0,
        },
        "searches": {
            "total": len(searches),
            "avg_response_time_ms": round(sum(times) / len(times), 1) if times else 0.0,
            "cache_hits": cache_hits,
            "hit_rate": round(cache_hits / len(searches) * 100, 1) if searches else 0.0,
        },
    }


def _orders_frame() -> pd.DataFrame:
    orders = records.all_records("orders")
    return pd.DataFrame(
        [
            {
                "order_id": o.id,
                "customer_id": o.customer_id,
                "restaurant_id": o.restaurant_id,
                "total_price": o.total_price,
            }
            for o in orders
        ],
        columns=["order_id", "customer_id", "restaurant_id", "total_price"],
    )


def _per_owner(table: str, key: str, id_field: str, name_field: str) -> list[dict[str, Any]]:
    orders = _orders_frame()
    grouped = {
        owner_id: group["total_price"].tolist()
        for owner_id, group in orders.groupby(key)
    }

    results: list[dict[str, Any]] = []
    for owner in sorted(records.all_records(table), key=lambda r: r.id):
        totals = grouped.get(owner.id, [])
        revenue = sum(totals, Decimal("0"))
        results.append({
            id_field: owner.id,
            name_field: owner.name,
            "total_orders": len(totals),
            "total_revenue": to_money(revenue),
            "average_order_value": to_money(revenue / len(totals)) if totals else Decimal("0.00"),
        })
    return results


def restaurant_analytics() -> list[dict[str, Any]]:
    """Order count, revenue and average order value per restaurant."""
    return _per_owner("restaurants", "restaurant_id", "restaurant_id", "restaurant_name")


def customer_analytics() -> list[dict[str, Any]]:
    """Order count, spend and average order value per customer."""
    rows = _per_owner("customers", "customer_id", "customer_id", "customer_name")
    for row in rows:
        row["total_spent"] = row.pop("total_revenue")
    return rows
