from __future__ import annotations

import math
from decimal import Decimal
from typing import Union

import numpy as np

EARTH_RADIUS_KM = 6371.0
UNKNOWN_DISTANCE = -1.0

Coordinate = Union[float, Decimal, None]


def distance(lat1: Coordinate, lon1: Coordinate, lat2: Coordinate, lon2: Coordinate) -> float:
    """Return the Haversine distance in kilometres between two points.

    Any missing coordinate yields ``UNKNOWN_DISTANCE`` (-1).
    """
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return UNKNOWN_DISTANCE

    lat1, lon1, lat2, lon2 = float(lat1), float(lon1), float(lat2), float(lon2)
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2)
        * math.sin(d_lon / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distances_from(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorised :func:`distance` from one origin to many points.

    NaN entries in ``lats``/``lons`` map to ``UNKNOWN_DISTANCE``.
    """
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)
    missing = np.isnan(lats) | np.isnan(lons)

    d_lat = np.radians(lats - lat)
    d_lon = np.radians(lons - lon)
    a = (
        np.sin(d_lat / 2) * np.sin(d_lat / 2)
        + math.cos(math.radians(lat))
        * np.cos(np.radians(lats))
        * np.sin(d_lon / 2)
        * np.sin(d_lon / 2)
    )
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return np.where(missing, UNKNOWN_DISTANCE, EARTH_RADIUS_KM * c)
