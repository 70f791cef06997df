"""Validation boundary.

Every component runs external or constructed data through ``validate``
before trusting it.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from omnisync.utils.errors import SchemaViolationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def field_paths(error: ValidationError) -> list[str]:
    """Dotted paths of every violating field in a pydantic error."""
    paths = []
    for issue in error.errors():
        path = ".".join(str(loc) for loc in issue.get("loc", ()))
        paths.append(path or "__root__")
    return paths


def validate(schema: type[ModelT], value: Any, context: str) -> ModelT:
    """Validate ``value`` against ``schema``.

    Args:
        schema: Pydantic model class describing the contract
        value: Model instance or mapping to check
        context: Name of the caller, carried on the error

    Returns:
        Validated model instance

    Raises:
        SchemaViolationError: If the value breaks the contract
    """
    try:
        if isinstance(value, schema):
            return schema.model_validate(value.model_dump())
        return schema.model_validate(value)
    except ValidationError as e:
        paths = field_paths(e)
        raise SchemaViolationError(
            message=f"Contract violation in {context}: {', '.join(paths)}",
            context=context,
            field_paths=paths,
            cause=e,
        ) from e
