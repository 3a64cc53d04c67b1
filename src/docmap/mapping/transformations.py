"""Validation of per-field transformations."""

from collections.abc import Iterable
from typing import Any

from docmap.mapping.types import OPERATIONS, Transformation

REQUIRED_PARAMETERS: dict[str, tuple[str, ...]] = {
    "rename": ("source_field", "target_field"),
    "compute": ("target_field", "expression"),
    "cast": ("source_field",),
    "filter": ("expression",),
    "default": ("source_field",),
    "exclude": ("source_field",),
}


class UnknownOperationError(ValueError):
    """Raised for a transformation whose operation is not recognised."""

    def __init__(self, operation: Any) -> None:  # noqa: ANN401
        """Record the offending operation."""
        super().__init__(f"Unknown transformation operation: {operation!r}")
        self.operation = operation


def validate_transformation(transformation: Transformation) -> None:
    """Check that a transformation names a known operation with its parameters."""
    operation = transformation.get("operation")
    if operation not in OPERATIONS:
        raise UnknownOperationError(operation)

    for parameter in REQUIRED_PARAMETERS[operation]:
        value = transformation.get(parameter)
        if not isinstance(value, str) or not value:
            msg = f"{operation}: {parameter} is required"
            raise ValueError(msg)
    if operation == "default":
        if "value" not in transformation:
            msg = "default: value is required"
            raise ValueError(msg)
        value = transformation.get("value")
        if value is not None and not isinstance(value, str | int | float | bool):
            msg = f"default: value must be a scalar, not {type(value).__name__}"
            raise ValueError(msg)


def validate_transformations(transformations: Iterable[Transformation]) -> None:
    """Validate each transformation and reject conflicting field operations."""
    renamed: set[str] = set()
    excluded: set[str] = set()

    for position, transformation in enumerate(transformations):
        try:
            validate_transformation(transformation)
        except UnknownOperationError:
            raise
        except ValueError as err:
            msg = f"transformation {position}: {err}"
            raise ValueError(msg) from err

        match transformation:
            case {"operation": "rename", "source_field": str(field)}:
                if field in excluded:
                    msg = f"transformation {position}: cannot rename excluded field {field!r}"
                    raise ValueError(msg)
                renamed.add(field)
            case {"operation": "exclude", "source_field": str(field)}:
                if field in renamed:
                    msg = f"transformation {position}: cannot exclude renamed field {field!r}"
                    raise ValueError(msg)
                excluded.add(field)
            case _:
                pass
