from __future__ import annotations

import logging
import time
from typing import Any

import numpy as np
import pandas as pd

from ..analytics.store import SEARCH, record_event
from ..config import DEFAULT_CONFIG, DeliveryConfig
from ..errors import ValidationError
from ..geo.distance import distances_from
from ..store import records
from ..validation import validate_request
from .cache import cache_get, cache_set
from .data_store import snapshot
from .models import RestaurantResult, SearchCriteria

logger = logging.getLogger(__name__)

_EXACT_FILTERS = ("cuisine_type", "city", "state", "country")


def _check_criteria(criteria: SearchCriteria) -> None:
    if (
        criteria.min_price is not None
        and criteria.max_price is not None
        and criteria.min_price > criteria.max_price
    ):
        raise ValidationError(
            f"min_price ({criteria.min_price}) is greater than max_price ({criteria.max_price})",
            field="min_price",
        )
    if (criteria.latitude is None) != (criteria.longitude is None):
        raise ValidationError(
            "latitude and longitude must be supplied together",
            field="latitude" if criteria.latitude is None else "longitude",
        )


def _any_price_in_band(prices: list[float], low: float | None, high: float | None) -> bool:
    return any(
        (low is None or p >= low) and (high is None or p <= high)
        for p in prices
    )


def _optional(value: Any) -> Any:
    return value if pd.notna(value) else None


def _to_result(row: dict[str, Any]) -> RestaurantResult:
    prices = row["prices"]
    distance = row.get("distance_km")
    if distance is not None and distance < 0:
        distance = None
    delivery_range = _optional(row["delivery_range_km"])

    within_range = None
    if distance is not None and delivery_range is not None:
        within_range = bool(distance <= float(delivery_range))

    return RestaurantResult(
        id=int(row["id"]),
        name=row["name"],
        cuisine_type=row["cuisine_type"] or "",
        city=_optional(row["city"]),
        state=_optional(row["state"]),
        country=_optional(row["country"]),
        latitude=_optional(row["latitude"]),
        longitude=_optional(row["longitude"]),
        delivery_range_km=float(delivery_range) if delivery_range is not None else None,
        average_rating=float(row["average_rating"]),
        average_price=round(sum(prices) / len(prices), 2) if prices else None,
        distance_km=round(float(distance), 3) if distance is not None else None,
        within_delivery_range=within_range,
    )


def _filter(df: pd.DataFrame, criteria: SearchCriteria) -> pd.DataFrame:
    # --- Text filters ---
    mask = pd.Series(True, index=df.index)
    if criteria.name:
        name_lower = criteria.name.strip().lower()
        mask = mask & df["name_lower"].str.contains(name_lower, regex=False, na=False)
    for field in _EXACT_FILTERS:
        value = getattr(criteria, field)
        if value:
            mask = mask & (df[f"{field}_lower"] == value.strip().lower())
    candidates = df.loc[mask]
    logger.debug("Text filters left %d of %d restaurants", len(candidates), len(df))

    # --- Price band ---
    if criteria.min_price is not None or criteria.max_price is not None:
        keep = np.array(
            [
                _any_price_in_band(prices, criteria.min_price, criteria.max_price)
                for prices in candidates["prices"]
            ],
            dtype=bool,
        )
        candidates = candidates.loc[keep]
        logger.debug("Price band left %d restaurants", len(candidates))

    if criteria.delivery_time:
        logger.debug("Delivery time hint %r is advisory and not applied", criteria.delivery_time)

    # --- Distance ---
    if criteria.latitude is not None and criteria.longitude is not None:
        dist = distances_from(
            criteria.latitude,
            criteria.longitude,
            candidates["latitude"].to_numpy(dtype=float),
            candidates["longitude"].to_numpy(dtype=float),
        )
        candidates = candidates.assign(distance_km=dist)
        if criteria.max_distance_km is not None:
            # Unknown distance (-1) fails every bound
            keep = (dist >= 0) & (dist <= criteria.max_distance_km)
            candidates = candidates.loc[keep]
            logger.debug("Distance bound left %d restaurants", len(candidates))

        if criteria.sort_by_distance:
            sort_key = candidates["distance_km"].where(candidates["distance_km"] >= 0, np.inf)
            candidates = candidates.assign(_sort=sort_key).sort_values("_sort", kind="stable")

    return candidates


def search(
    criteria: SearchCriteria | dict[str, Any] | None = None,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> list[RestaurantResult]:
    """Return restaurants matching every supplied criterion.

    Results keep store insertion order unless ``sort_by_distance`` is set.
    An empty list is a normal outcome.
    """
    start_time = time.time()
    criteria = validate_request(SearchCriteria, criteria or {})
    _check_criteria(criteria)

    criteria_dict = criteria.model_dump()
    store_version = records.version()

    if config.search_cache_enabled:
        cached = cache_get(criteria_dict, store_version, config.search_cache_ttl)
        if cached is not None:
            logger.debug("Search cache hit for %s", criteria_dict)
            _record_search(criteria, len(cached), start_time, cache_hit=True)
            return [r.model_copy() for r in cached]

    store_version, df = snapshot()
    if df.empty:
        results: list[RestaurantResult] = []
    else:
        candidates = _filter(df, criteria)
        results = [_to_result(row) for row in candidates.to_dict("records")]

    if config.search_cache_enabled:
        cache_set(criteria_dict, store_version, results)

    _record_search(criteria, len(results), start_time, cache_hit=False)
    return [r.model_copy() for r in results]


def _record_search(criteria: SearchCriteria, count: int, start_time: float, cache_hit: bool) -> None:
    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    record_event(SEARCH, {
        "name": criteria.name,
        "cuisine_type": criteria.cuisine_type,
        "city": criteria.city,
        "price_filter": criteria.min_price is not None or criteria.max_price is not None,
        "distance_filter": criteria.max_distance_km is not None and criteria.latitude is not None,
        "results_returned": count,
        "response_time_ms": elapsed_ms,
        "cache_hit": cache_hit,
    })
