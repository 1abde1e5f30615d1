"""
In-process record store.

Stands in for the durable store the delivery core is written against:
create/read/update/delete by primary key and lookups by foreign key. Every
public function takes the store lock, and ``transaction()`` holds it across a
whole check-then-write sequence.
"""
from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from pydantic import BaseModel

from ..errors import StorageError

RecordT = TypeVar("RecordT", bound=BaseModel)

TABLES = (
    "customers",
    "addresses",
    "restaurants",
    "menu_items",
    "couriers",
    "orders",
    "assignments",
    "ratings",
)

_lock = threading.RLock()
_tables: dict[str, dict[int, BaseModel]] = {name: {} for name in TABLES}
_sequences: dict[str, int] = {name: 0 for name in TABLES}
_rating_totals: dict[tuple[str, int], dict[str, int]] = {}
_version: int = 0


def _table(name: str) -> dict[int, BaseModel]:
    try:
        return _tables[name]
    except KeyError:
        raise StorageError(f"Unknown table '{name}'", entity=name) from None


@contextmanager
def transaction() -> Iterator[None]:
    """Hold the store lock for a multi-step unit of work."""
    with _lock:
        yield


def save(table: str, record: RecordT) -> RecordT:
    """Insert or replace ``record``; assigns an id when ``record.id`` is None."""
    global _version
    with _lock:
        rows = _table(table)
        if record.id is None:
            _sequences[table] += 1
            record = record.model_copy(update={"id": _sequences[table]})
        rows[record.id] = record.model_copy(deep=True)
        _version += 1
        return record.model_copy(deep=True)


def get(table: str, record_id: int | None) -> Any | None:
    with _lock:
        row = _table(table).get(record_id)
        return row.model_copy(deep=True) if row is not None else None


def delete(table: str, record_id: int) -> bool:
    global _version
    with _lock:
        removed = _table(table).pop(record_id, None)
        if removed is not None:
            _version += 1
        return removed is not None


def find_by(table: str, **criteria: Any) -> list[Any]:
    """Return copies of every row whose attributes equal ``criteria``."""
    with _lock:
        return [
            row.model_copy(deep=True)
            for row in _table(table).values()
            if all(getattr(row, key) == value for key, value in criteria.items())
        ]


def all_records(table: str) -> list[Any]:
    return find_by(table)


def version() -> int:
    """Monotonic counter bumped on every write; used for cache invalidation."""
    with _lock:
        return _version


# ── Typed lookups ────────────────────────────────────────────────────────


def find_customer_by_id(customer_id: int):
    return get("customers", customer_id)


def find_address_by_id(address_id: int):
    return get("addresses", address_id)


def find_restaurant_by_id(restaurant_id: int):
    return get("restaurants", restaurant_id)


def find_menu_item_by_id(menu_item_id: int):
    return get("menu_items", menu_item_id)


def find_menu_items_by_restaurant(restaurant_id: int):
    return find_by("menu_items", restaurant_id=restaurant_id)


def find_courier_by_id(courier_id: int):
    return get("couriers", courier_id)


def find_order_by_id(order_id: int):
    return get("orders", order_id)


def find_orders_by(**criteria: Any):
    return find_by("orders", **criteria)


def find_assignments_by_order(order_id: int):
    return sorted(find_by("assignments", order_id=order_id), key=lambda a: a.id)


def find_assignments_by_courier(courier_id: int):
    return sorted(find_by("assignments", courier_id=courier_id), key=lambda a: a.id)


def find_ratings_by_order(order_id: int):
    return find_by("ratings", order_id=order_id)


def find_ratings_by_subject(subject_id: int, role: str):
    return [r for r in find_by("ratings", subject_id=subject_id) if r.role == role]


# ── Rating totals ────────────────────────────────────────────────────────


def add_rating_total(role: str, subject_id: int, score: int) -> None:
    global _version
    with _lock:
        totals = _rating_totals.setdefault((role, subject_id), {"count": 0, "sum": 0})
        totals["count"] += 1
        totals["sum"] += score
        _version += 1


def get_rating_total(role: str, subject_id: int) -> dict[str, int]:
    with _lock:
        return dict(_rating_totals.get((role, subject_id), {"count": 0, "sum": 0}))


def clear_store() -> None:
    global _version
    with _lock:
        for name in TABLES:
            _tables[name].clear()
            _sequences[name] = 0
        _rating_totals.clear()
        _version += 1
