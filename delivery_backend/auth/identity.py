"""
Authenticated caller identity.

The trust layer that verifies credentials lives outside this package; it
hands over a :class:`Caller` which operations receive directly or read from
the current context.
"""
from __future__ import annotations

import contextvars
from enum import Enum

from pydantic import BaseModel

from ..errors import ForbiddenError


class CallerRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    RESTAURANT = "RESTAURANT"
    COURIER = "COURIER"
    ADMIN = "ADMIN"


class Caller(BaseModel):
    id: int
    role: CallerRole


_current_caller: contextvars.ContextVar[Caller | None] = contextvars.ContextVar(
    "_current_caller", default=None,
)


def set_current_caller(caller: Caller | None) -> contextvars.Token:
    """Bind the verified caller to the current request context."""
    return _current_caller.set(caller)


def reset_current_caller(token: contextvars.Token) -> None:
    _current_caller.reset(token)


def get_current_caller() -> Caller | None:
    """Return the caller bound to this context, or ``None``."""
    return _current_caller.get()


def require_caller(caller: Caller | None = None) -> Caller:
    """Return ``caller`` or the context caller; raise 403-style if neither."""
    resolved = caller or _current_caller.get()
    if resolved is None:
        raise ForbiddenError("No authenticated caller")
    return resolved


def require_role(caller: Caller | None, *roles: CallerRole) -> Caller:
    """Raise if the caller is missing or holds none of ``roles``."""
    resolved = require_caller(caller)
    if resolved.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise ForbiddenError(
            f"{resolved.role.value} callers may not perform this action (requires {allowed})",
            entity="caller",
            entity_id=resolved.id,
        )
    return resolved
