from __future__ import annotations

from pydantic import BaseModel, Field


class SearchCriteria(BaseModel):
    name: str | None = Field(default=None, description="Case-insensitive substring of the name")
    cuisine_type: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    min_price: float | None = Field(default=None, ge=0.0)
    max_price: float | None = Field(default=None, ge=0.0)
    delivery_time: str | None = Field(
        default=None, description="Desired delivery time; advisory only",
    )
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    max_distance_km: float | None = Field(default=None, ge=0.0)
    sort_by_distance: bool = False


class RestaurantResult(BaseModel):
    id: int
    name: str
    cuisine_type: str
    city: str | None
    state: str | None
    country: str | None
    latitude: float | None
    longitude: float | None
    delivery_range_km: float | None
    average_rating: float
    average_price: float | None
    distance_km: float | None = None
    within_delivery_range: bool | None = None
