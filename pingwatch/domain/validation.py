"""Typed validation of request payloads and query parameters.

Each wire field has a pydantic `TypeAdapter` carrying its constraints.
`validate_required` collects every failing field into one `InvalidInput`;
`validate_optional` keeps whatever was supplied and valid.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import AfterValidator, Field, Strict, StringConstraints, TypeAdapter, ValidationError

from .errors import InvalidInput
from .records import HttpMethod, Protocol

__all__ = [
    "PHONE",
    "NAME",
    "PASSWORD",
    "RECORD_ID",
    "PROTOCOL",
    "URL",
    "METHOD",
    "SUCCESS_CODES",
    "TIMEOUT_SECONDS",
    "AFFIRMATIVE",
    "validate_field",
    "validate_required",
    "validate_optional",
]

_MISSING = "field required"


def _must_be_true(value: bool) -> bool:
    if value is not True:
        raise ValueError("must be true")
    return value


Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[0-9]{10}$")]
Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
RecordId = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[a-z0-9]{20}$")]
SuccessCodes = Annotated[list[Annotated[int, Strict()]], Field(min_length=1)]
TimeoutSeconds = Annotated[int, Strict(), Field(ge=1, le=5)]
Affirmative = Annotated[bool, Strict(), AfterValidator(_must_be_true)]

PHONE: TypeAdapter[str] = TypeAdapter(Phone)
NAME: TypeAdapter[str] = TypeAdapter(Text)
PASSWORD: TypeAdapter[str] = TypeAdapter(Text)
URL: TypeAdapter[str] = TypeAdapter(Text)
RECORD_ID: TypeAdapter[str] = TypeAdapter(RecordId)
PROTOCOL: TypeAdapter[str] = TypeAdapter(Protocol)
METHOD: TypeAdapter[str] = TypeAdapter(HttpMethod)
SUCCESS_CODES: TypeAdapter[list[int]] = TypeAdapter(SuccessCodes)
TIMEOUT_SECONDS: TypeAdapter[int] = TypeAdapter(TimeoutSeconds)
AFFIRMATIVE: TypeAdapter[bool] = TypeAdapter(Affirmative)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    return errors[0]["msg"] if errors else "invalid value"


def validate_field(name: str, value: Any, adapter: TypeAdapter) -> Any:
    """Validate a single value, raising InvalidInput that names the field."""
    if value is None:
        raise InvalidInput(f"Missing required field: {name}", details={"fields": {name: _MISSING}})
    try:
        return adapter.validate_python(value)
    except ValidationError as e:
        raise InvalidInput(
            f"Invalid field: {name}", details={"fields": {name: _first_error(e)}}
        ) from e


def _as_mapping(source: Any) -> Mapping[str, Any]:
    if source is None:
        raise InvalidInput("Payload is missing or could not be parsed as JSON")
    if not isinstance(source, Mapping):
        raise InvalidInput("Payload must be a JSON object")
    return source


def validate_required(source: Any, rules: Mapping[str, TypeAdapter]) -> dict[str, Any]:
    """Validate that every field in `rules` is present and valid.

    Raises InvalidInput enumerating all failing fields; no partial result.
    """
    data = _as_mapping(source)
    values: dict[str, Any] = {}
    failures: dict[str, str] = {}
    for name, adapter in rules.items():
        raw = data.get(name)
        if raw is None:
            failures[name] = _MISSING
            continue
        try:
            values[name] = adapter.validate_python(raw)
        except ValidationError as e:
            failures[name] = _first_error(e)
    if failures:
        raise InvalidInput(
            "Missing required inputs or inputs are invalid", details={"fields": failures}
        )
    return values


def validate_optional(source: Any, rules: Mapping[str, TypeAdapter]) -> dict[str, Any]:
    """Return the subset of `rules` fields that were supplied and valid.

    Invalid supplied fields are dropped. Raises InvalidInput only when nothing
    usable remains.
    """
    data = _as_mapping(source)
    values: dict[str, Any] = {}
    failures: dict[str, str] = {}
    for name, adapter in rules.items():
        raw = data.get(name)
        if raw is None:
            continue
        try:
            values[name] = adapter.validate_python(raw)
        except ValidationError as e:
            failures[name] = _first_error(e)
    if not values:
        raise InvalidInput(
            f"Missing at least one of: {', '.join(rules)}; or inputs are invalid",
            details={"fields": failures} if failures else None,
        )
    return values
