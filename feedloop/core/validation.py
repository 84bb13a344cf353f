"""Single validation entry point for inbound payloads.

``validate`` runs a pydantic schema and returns a tagged result instead of
raising, so expected validation failures never travel as exceptions
through service code. Routers that prefer exception flow call ``unwrap``.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

import pydantic
from pydantic import BaseModel

from feedloop.core.errors import ValidationError

T = TypeVar("T", bound=BaseModel)

# RFC-4122 textual form: version 1-5, variant 8/9/a/b
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

_VALUE_ERROR_PREFIX = "Value error, "


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Err:
    errors: list[FieldError]
    ok: bool = field(default=False, init=False)


ValidationResult = Union[Ok[T], Err]


def field_errors_from_pydantic(exc: pydantic.ValidationError) -> list[FieldError]:
    errors = []
    for item in exc.errors():
        message = item.get("msg", "Invalid value")
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        errors.append(FieldError(".".join(str(p) for p in item.get("loc", ())), message))
    return errors


def validate(schema: type[T], payload: Any) -> ValidationResult:
    """Validate ``payload`` against ``schema``; never raises for bad input."""
    if isinstance(payload, schema):
        return Ok(payload)
    if not isinstance(payload, dict):
        return Err([FieldError("", "Request body must be a JSON object")])
    try:
        return Ok(schema.model_validate(payload))
    except pydantic.ValidationError as exc:
        return Err(field_errors_from_pydantic(exc))


def unwrap(result: ValidationResult, message: str = "Validation failed") -> Any:
    """Return the validated value or raise ``ValidationError`` with field details."""
    if isinstance(result, Ok):
        return result.value
    # Whole-payload errors ("No fields to update") become the message itself
    if len(result.errors) == 1 and not result.errors[0].field:
        message = result.errors[0].message
    raise ValidationError(message, details=[e.to_dict() for e in result.errors])


def is_valid_uuid(value: str | None) -> bool:
    return bool(value) and bool(UUID_PATTERN.match(value))


def parse_uuid(value: str, label: str) -> uuid.UUID:
    """Parse a path/body identifier, rejecting anything that is not RFC-4122 shaped."""
    if not isinstance(value, str) or not is_valid_uuid(value):
        raise ValidationError(f"Invalid {label} ID format")
    return uuid.UUID(value)
