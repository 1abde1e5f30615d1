from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_request(model_cls: type[ModelT], data: ModelT | dict[str, Any]) -> ModelT:
    """Build ``model_cls`` from a raw mapping, or pass an instance through.

    Pydantic failures are re-raised as :class:`ValidationError` naming the
    first offending field.
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        message = first.get("msg", "Invalid request")
        raise ValidationError(f"{field}: {message}" if field else message, field=field) from exc
