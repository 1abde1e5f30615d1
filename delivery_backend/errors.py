from __future__ import annotations

from typing import Any


class DeliveryError(Exception):
    """Base class for every failure raised by the delivery core.

    Carries enough structure (kind, offending field, entity and id) for an
    upstream layer to render a user-facing message without string parsing.
    """

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        entity: str | None = None,
        entity_id: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.entity = entity
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "entity": self.entity,
            "entity_id": self.entity_id,
        }


class ValidationError(DeliveryError):
    kind = "validation"


class NotFoundError(DeliveryError):
    kind = "not_found"


class ConflictError(DeliveryError):
    kind = "conflict"


class ForbiddenError(DeliveryError):
    kind = "forbidden"


class InvalidStateError(DeliveryError):
    kind = "invalid_state"


class StorageError(DeliveryError):
    kind = "storage"
