from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from ..analytics.store import ORDER_PLACED, record_event
from ..auth.identity import Caller, CallerRole, get_current_caller
from ..config import DEFAULT_CONFIG, DeliveryConfig
from ..dispatch import engine as dispatch_engine
from ..dispatch.models import ACTIVE_STATUSES
from ..errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from ..store import records
from ..validation import validate_request
from .events import record_status_change
from .models import Order, OrderLine, OrderStatus, PlaceOrderRequest, to_money
from .transitions import allowed

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _load_order(order_id: int) -> Order:
    order = records.find_order_by_id(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", entity="order", entity_id=order_id)
    return order


def _check_access(order: Order, caller: Caller | None, action: str = "read") -> None:
    """Customers see their own orders, restaurants theirs, couriers the ones they carry.

    ``action`` is one of read, update or cancel. Customers never update
    status and couriers never cancel. Without any caller the request is
    treated as internal and allowed.
    """
    caller = caller or get_current_caller()
    if caller is None or caller.role == CallerRole.ADMIN:
        return

    if caller.role == CallerRole.CUSTOMER:
        entitled = order.customer_id == caller.id and action != "update"
    elif caller.role == CallerRole.RESTAURANT:
        entitled = order.restaurant_id == caller.id
    else:
        entitled = order.courier_id == caller.id and action != "cancel"

    if not entitled:
        logger.warning(
            "%s %s denied access to order %s", caller.role.value, caller.id, order.id,
        )
        raise ForbiddenError(
            f"Access denied to order {order.id}", entity="order", entity_id=order.id,
        )


def place_order(request: PlaceOrderRequest | dict[str, Any]) -> Order:
    """Validate a placement request and persist the order in PENDING.

    Unit prices are copied from the menu at this moment; later menu edits do
    not touch the order.
    """
    request = validate_request(PlaceOrderRequest, request)

    customer = records.find_customer_by_id(request.customer_id)
    if customer is None:
        raise ValidationError(
            f"Customer {request.customer_id} does not exist",
            field="customer_id", entity="customer", entity_id=request.customer_id,
        )

    restaurant = records.find_restaurant_by_id(request.restaurant_id)
    if restaurant is None:
        raise ValidationError(
            f"Restaurant {request.restaurant_id} does not exist",
            field="restaurant_id", entity="restaurant", entity_id=request.restaurant_id,
        )

    address = records.find_address_by_id(request.address_id)
    if address is None:
        raise ValidationError(
            f"Address {request.address_id} does not exist",
            field="address_id", entity="address", entity_id=request.address_id,
        )
    if address.customer_id != customer.id:
        raise ValidationError(
            f"Address {address.id} does not belong to customer {customer.id}",
            field="address_id", entity="address", entity_id=address.id,
        )

    lines: list[OrderLine] = []
    for index, item in enumerate(request.items):
        field = f"items.{index}.menu_item_id"
        menu_item = records.find_menu_item_by_id(item.menu_item_id)
        if menu_item is None:
            raise ValidationError(
                f"Menu item {item.menu_item_id} does not exist",
                field=field, entity="menu_item", entity_id=item.menu_item_id,
            )
        if menu_item.restaurant_id != restaurant.id:
            raise ValidationError(
                f"Menu item {menu_item.id} does not belong to restaurant {restaurant.id}",
                field=field, entity="menu_item", entity_id=menu_item.id,
            )
        if not menu_item.available:
            raise ValidationError(
                f"Menu item {menu_item.id} is not available",
                field=field, entity="menu_item", entity_id=menu_item.id,
            )
        lines.append(OrderLine(
            menu_item_id=menu_item.id,
            name=menu_item.name,
            quantity=item.quantity,
            unit_price=to_money(menu_item.price),
        ))

    total = to_money(sum((line.subtotal for line in lines), Decimal("0")))

    order = records.save("orders", Order(
        customer_id=customer.id,
        restaurant_id=restaurant.id,
        address_id=address.id,
        items=lines,
        total_price=total,
        status=OrderStatus.PENDING,
        created_at=_now(),
    ))

    logger.info(
        "Placed order %s for customer %s at restaurant %s (total %s)",
        order.id, customer.id, restaurant.id, total,
    )
    record_event(ORDER_PLACED, {
        "order_id": order.id,
        "customer_id": customer.id,
        "restaurant_id": restaurant.id,
        "total_price": str(total),
        "item_count": sum(line.quantity for line in lines),
    })
    return order


def get_order(order_id: int, caller: Caller | None = None) -> Order:
    order = _load_order(order_id)
    _check_access(order, caller)
    return order


def _apply_status(order: Order, status: OrderStatus, config: DeliveryConfig) -> Order:
    previous = order.status
    order.status = status
    if status == OrderStatus.DELIVERED:
        order.delivered_at = _now()
        dispatch_engine.complete_order_assignment(order, config)
    elif status == OrderStatus.CANCELLED:
        dispatch_engine.release_order_assignment(order, config)

    order = records.save("orders", order)
    record_status_change(order, previous)
    return order


def update_order_status(
    order_id: int,
    status: OrderStatus | str,
    caller: Caller | None = None,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> Order:
    """Operator-driven status change.

    Re-setting the current status is a no-op. With ``strict_transitions``
    the transition table applies; otherwise any change is accepted.
    """
    try:
        status = OrderStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown order status '{status}'", field="status") from None
    if status == OrderStatus.PENDING:
        raise ValidationError("Orders cannot be moved back to PENDING", field="status")

    with records.transaction():
        order = _load_order(order_id)
        _check_access(order, caller, "update")

        if order.status == status:
            return order
        if not allowed(order.status, status, strict=config.strict_transitions):
            logger.warning(
                "Rejected order %s transition %s -> %s", order_id, order.status.value, status.value,
            )
            raise InvalidStateError(
                f"Cannot move order {order_id} from {order.status.value} to {status.value}",
                field="status", entity="order", entity_id=order_id,
            )
        return _apply_status(order, status, config)


def cancel_order(
    order_id: int,
    caller: Caller | None = None,
    config: DeliveryConfig = DEFAULT_CONFIG,
) -> Order:
    """Customer, restaurant or admin cancellation from any non-terminal status.

    Delivered orders can never be cancelled; cancelling twice is a no-op.
    """
    with records.transaction():
        order = _load_order(order_id)
        _check_access(order, caller, "cancel")

        if order.status == OrderStatus.CANCELLED:
            return order
        if order.status == OrderStatus.DELIVERED:
            logger.warning("Rejected cancellation of delivered order %s", order_id)
            raise InvalidStateError(
                f"Order {order_id} has already been delivered",
                field="status", entity="order", entity_id=order_id,
            )
        return _apply_status(order, OrderStatus.CANCELLED, config)


def list_customer_orders(customer_id: int) -> list[Order]:
    return sorted(records.find_orders_by(customer_id=customer_id), key=lambda o: o.id)


def list_restaurant_orders(restaurant_id: int, status: OrderStatus | None = None) -> list[Order]:
    if records.find_restaurant_by_id(restaurant_id) is None:
        raise NotFoundError(
            f"Restaurant {restaurant_id} not found", entity="restaurant", entity_id=restaurant_id,
        )
    criteria: dict[str, Any] = {"restaurant_id": restaurant_id}
    if status is not None:
        criteria["status"] = OrderStatus(status)
    return sorted(records.find_orders_by(**criteria), key=lambda o: o.id)


def list_courier_active_orders(courier_id: int) -> list[Order]:
    """Orders the courier currently holds an ASSIGNED or PICKED_UP assignment for."""
    if records.find_courier_by_id(courier_id) is None:
        raise NotFoundError(f"Courier {courier_id} not found", entity="courier", entity_id=courier_id)
    orders: list[Order] = []
    for assignment in records.find_assignments_by_courier(courier_id):
        if assignment.status in ACTIVE_STATUSES:
            order = records.find_order_by_id(assignment.order_id)
            if order is not None:
                orders.append(order)
    return orders
