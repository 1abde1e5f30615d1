from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, Field

CENTS = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to two places, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class OrderItemRequest(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., gt=0)


class PlaceOrderRequest(BaseModel):
    customer_id: int
    restaurant_id: int
    address_id: int
    items: list[OrderItemRequest] = Field(..., min_length=1)


class OrderLine(BaseModel):
    menu_item_id: int
    name: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


class Order(BaseModel):
    id: int | None = None
    customer_id: int
    restaurant_id: int
    address_id: int
    courier_id: int | None = None
    items: list[OrderLine]
    total_price: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime
    delivered_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)
