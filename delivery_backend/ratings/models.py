from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RatingRole(str, Enum):
    RESTAURANT = "RESTAURANT"
    COURIER = "COURIER"


class RatingRequest(BaseModel):
    order_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)
    role: RatingRole = RatingRole.RESTAURANT


class RatingReplyRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=2000)


class Rating(BaseModel):
    id: int | None = None
    order_id: int
    customer_id: int
    subject_id: int
    role: RatingRole
    score: int = Field(..., ge=1, le=5)
    comment: str | None = None
    created_at: datetime
    response: str | None = None
    responded_at: datetime | None = None


class RatingResult(BaseModel):
    id: int
    order_id: int
    customer_id: int
    subject_id: int
    role: RatingRole
    rating: int
    comment: str | None = None
    subject_name: str
    customer_name: str | None = None
    created_at: datetime
    response: str | None = None
    responded_at: datetime | None = None
