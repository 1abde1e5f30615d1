from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from ..analytics.store import RATING, record_event
from ..auth.identity import Caller, CallerRole, require_caller
from ..dispatch.models import AssignmentStatus
from ..errors import ConflictError, ForbiddenError, NotFoundError
from ..orders.models import Order, OrderStatus
from ..store import records
from ..validation import validate_request
from .models import Rating, RatingReplyRequest, RatingRequest, RatingResult, RatingRole

logger = logging.getLogger(__name__)

# role -> lookup of the rated subject record
_SUBJECT_LOOKUPS: dict[RatingRole, Callable[[int], Any]] = {
    RatingRole.RESTAURANT: records.find_restaurant_by_id,
    RatingRole.COURIER: records.find_courier_by_id,
}

# callers who can be rated, and under which role
_SUBJECT_ROLES = {
    CallerRole.RESTAURANT: RatingRole.RESTAURANT,
    CallerRole.COURIER: RatingRole.COURIER,
}


def _subject_for(order: Order, role: RatingRole) -> int | None:
    """Return the id of whoever ``role`` points at for this order."""
    if role == RatingRole.RESTAURANT:
        return order.restaurant_id
    for assignment in records.find_assignments_by_order(order.id):
        if assignment.status == AssignmentStatus.DELIVERED:
            return assignment.courier_id
    return order.courier_id


def _subject_name(role: RatingRole, subject_id: int) -> str:
    subject = _SUBJECT_LOOKUPS[role](subject_id)
    if subject is None:
        raise NotFoundError(
            f"{role.value.title()} {subject_id} not found",
            entity=role.value.lower(), entity_id=subject_id,
        )
    return subject.name


def _already_rated(order_id: int, role: RatingRole) -> bool:
    return any(r.role == role for r in records.find_ratings_by_order(order_id))


def _ineligibility(customer_id: int, order_id: int, role: RatingRole) -> str | None:
    order = records.find_order_by_id(order_id)
    if order is None:
        return f"Order {order_id} not found"
    if order.customer_id != customer_id:
        return "You can only rate your own orders"
    if order.status != OrderStatus.DELIVERED:
        return "You can only rate delivered orders"
    if _subject_for(order, role) is None:
        return f"Order {order_id} has no {role.value.lower()} to rate"
    if _already_rated(order_id, role):
        return f"Order {order_id} already has a {role.value.lower()} rating"
    return None


def can_rate(customer_id: int, order_id: int, role: RatingRole = RatingRole.RESTAURANT) -> bool:
    """True iff the order exists, is the customer's, is DELIVERED and is unrated for ``role``."""
    return _ineligibility(customer_id, order_id, RatingRole(role)) is None


def _to_result(rating: Rating, subject_name: str | None = None) -> RatingResult:
    customer = records.find_customer_by_id(rating.customer_id)
    return RatingResult(
        id=rating.id,
        order_id=rating.order_id,
        customer_id=rating.customer_id,
        subject_id=rating.subject_id,
        role=rating.role,
        rating=rating.score,
        comment=rating.comment,
        subject_name=subject_name or _subject_name(rating.role, rating.subject_id),
        customer_name=customer.name if customer else None,
        created_at=rating.created_at,
        response=rating.response,
        responded_at=rating.responded_at,
    )


def create_rating(customer_id: int, request: RatingRequest | dict[str, Any]) -> RatingResult:
    """Persist a rating for a delivered order and return it with the subject's name.

    Nothing is written unless every lookup the result needs has succeeded.
    """
    request = validate_request(RatingRequest, request)

    with records.transaction():
        reason = _ineligibility(customer_id, request.order_id, request.role)
        if reason is not None:
            logger.warning(
                "Customer %s may not rate order %s: %s", customer_id, request.order_id, reason,
            )
            raise ForbiddenError(reason, entity="order", entity_id=request.order_id)

        order = records.find_order_by_id(request.order_id)
        subject_id = _subject_for(order, request.role)
        subject_name = _subject_name(request.role, subject_id)

        rating = records.save("ratings", Rating(
            order_id=order.id,
            customer_id=customer_id,
            subject_id=subject_id,
            role=request.role,
            score=request.rating,
            comment=request.comment,
            created_at=datetime.now(timezone.utc),
        ))
        records.add_rating_total(request.role.value, subject_id, request.rating)
        result = _to_result(rating, subject_name)

    logger.info(
        "Customer %s rated %s %s with %s for order %s",
        customer_id, request.role.value.lower(), subject_id, request.rating, order.id,
    )
    record_event(RATING, {
        "order_id": order.id,
        "role": request.role.value,
        "subject_id": subject_id,
        "score": request.rating,
    })
    return result


def average_rating(subject_id: int, role: RatingRole = RatingRole.RESTAURANT) -> float:
    """Mean score for a subject; 0.0 when nobody has rated it yet."""
    totals = records.get_rating_total(RatingRole(role).value, subject_id)
    if totals["count"] == 0:
        return 0.0
    return totals["sum"] / totals["count"]


def list_subject_ratings(subject_id: int, role: RatingRole = RatingRole.RESTAURANT) -> list[RatingResult]:
    ratings = records.find_ratings_by_subject(subject_id, RatingRole(role))
    return [_to_result(r) for r in sorted(ratings, key=lambda r: r.id)]


def list_customer_ratings(customer_id: int) -> list[RatingResult]:
    ratings = records.find_by("ratings", customer_id=customer_id)
    return [_to_result(r) for r in sorted(ratings, key=lambda r: r.id)]


# ── Replies from the rated restaurant or courier ─────────────────────────


def _load_rating(rating_id: int) -> Rating:
    rating = records.get("ratings", rating_id)
    if rating is None:
        raise NotFoundError(f"Rating {rating_id} not found", entity="rating", entity_id=rating_id)
    return rating


def _is_subject(rating: Rating, caller: Caller) -> bool:
    return _SUBJECT_ROLES.get(caller.role) == rating.role and caller.id == rating.subject_id


def can_reply(rating_id: int, caller: Caller | None = None) -> bool:
    """True iff the caller is the rated subject and nobody has replied yet."""
    rating = _load_rating(rating_id)
    return _is_subject(rating, require_caller(caller)) and not rating.response


def reply_to_rating(
    rating_id: int,
    request: RatingReplyRequest | dict[str, Any],
    caller: Caller | None = None,
) -> RatingResult:
    """Attach the rated subject's one public reply to a rating."""
    request = validate_request(RatingReplyRequest, request)
    caller = require_caller(caller)

    with records.transaction():
        rating = _load_rating(rating_id)
        if not _is_subject(rating, caller):
            logger.warning(
                "%s %s may not reply to rating %s", caller.role.value, caller.id, rating_id,
            )
            raise ForbiddenError(
                "You can only reply to ratings about you", entity="rating", entity_id=rating_id,
            )
        if rating.response:
            raise ConflictError(
                f"Rating {rating_id} already has a reply", entity="rating", entity_id=rating_id,
            )

        rating.response = request.response
        rating.responded_at = datetime.now(timezone.utc)
        rating = records.save("ratings", rating)
        result = _to_result(rating)

    logger.info("%s %s replied to rating %s", caller.role.value, caller.id, rating_id)
    return result
