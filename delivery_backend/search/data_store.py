from __future__ import annotations

import math

import pandas as pd

from ..store import records

COLUMNS = [
    "id",
    "name",
    "cuisine_type",
    "city",
    "state",
    "country",
    "latitude",
    "longitude",
    "delivery_range_km",
    "prices",
    "average_rating",
]

_df: pd.DataFrame | None = None
_df_version: int = -1


def _coordinate(value) -> float:
    return float(value) if value is not None else math.nan


def _load() -> pd.DataFrame:
    rows = []
    for restaurant in records.all_records("restaurants"):
        prices = [
            float(item.price)
            for item in records.find_menu_items_by_restaurant(restaurant.id)
            if item.available
        ]
        totals = records.get_rating_total("RESTAURANT", restaurant.id)
        rows.append({
            "id": restaurant.id,
            "name": restaurant.name,
            "cuisine_type": restaurant.cuisine_type,
            "city": restaurant.city,
            "state": restaurant.state,
            "country": restaurant.country,
            "latitude": _coordinate(restaurant.latitude),
            "longitude": _coordinate(restaurant.longitude),
            "delivery_range_km": restaurant.delivery_range_km,
            "prices": prices,
            "average_rating": totals["sum"] / totals["count"] if totals["count"] else 0.0,
        })

    df = pd.DataFrame(rows, columns=COLUMNS)

    df["latitude"] = df["latitude"].astype(float)
    df["longitude"] = df["longitude"].astype(float)

    # Lowercase text columns for case-insensitive matching
    for col in ("name", "cuisine_type", "city", "state", "country"):
        df[f"{col}_lower"] = df[col].fillna("").astype(str).str.strip().str.lower()

    return df.sort_values("id", kind="stable").reset_index(drop=True)


def snapshot() -> tuple[int, pd.DataFrame]:
    """Return the store version and the restaurant projection built at it.

    Runs under the store transaction so no write lands between reading the
    version and reading the rows.
    """
    global _df, _df_version
    with records.transaction():
        current = records.version()
        if _df is None or _df_version != current:
            _df = _load()
            _df_version = current
        return _df_version, _df


def clear_dataframe() -> None:
    global _df, _df_version
    with records.transaction():
        _df = None
        _df_version = -1
