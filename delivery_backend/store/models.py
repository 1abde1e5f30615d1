from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class Customer(BaseModel):
    id: int | None = None
    name: str
    email: str | None = None


class Address(BaseModel):
    id: int | None = None
    customer_id: int
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    latitude: Decimal | None = None
    longitude: Decimal | None = None


class Restaurant(BaseModel):
    id: int | None = None
    name: str
    cuisine_type: str = ""
    street: str = ""
    city: str | None = None
    state: str | None = None
    country: str | None = None
    latitude: Decimal | None = None
    longitude: Decimal | None = None
    delivery_range_km: float | None = None


class MenuItem(BaseModel):
    id: int | None = None
    restaurant_id: int
    name: str
    price: Decimal = Field(..., ge=0)
    available: bool = True


class Courier(BaseModel):
    id: int | None = None
    name: str
    vehicle_type: str | None = None
    available: bool = True
