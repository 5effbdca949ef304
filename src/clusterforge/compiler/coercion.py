"""Conversion of intent records into schema models.

Compilers accept either a model instance or a plain mapping. Mappings are
validated here and pydantic errors are re-raised as ValidationError with the
location of the first failure as the field path.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from clusterforge.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def error_location(error: pydantic.ValidationError) -> str | None:
    """Dotted location of the first error, or None for model-level errors."""
    errors = error.errors()
    if not errors:
        return None
    loc = [str(part) for part in errors[0].get("loc", ())]
    return ".".join(loc) or None


def coerce_record(
    model_cls: type[ModelT],
    data: ModelT | Mapping[str, Any],
    *,
    record: str | None = None,
) -> ModelT:
    """Return ``data`` as a ``model_cls`` instance.

    Args:
        model_cls: Target schema model.
        data: A model instance (returned as-is) or a mapping to validate.
        record: Record name for the error context.

    Raises:
        ValidationError: If the mapping does not match the schema.
    """
    if isinstance(data, model_cls):
        return data
    if record is None and isinstance(data, Mapping):
        name = data.get("name")
        record = name if isinstance(name, str) else None
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        raise ValidationError(
            f"Invalid {model_cls.__name__}: {first.get('msg', 'validation failed')}",
            record=record,
            field_path=error_location(e),
            internal_details=str(e),
        ) from e
