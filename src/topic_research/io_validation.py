"""Pydantic-based validation helpers for inbound IO payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict

from pydantic import JsonValue, TypeAdapter, ValidationError


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class ProviderErrorDetailInput(TypedDict, total=False):
    code: str | int | None
    type: str | None
    message: str | None


class ProviderErrorEnvelopeInput(TypedDict, total=False):
    error: ProviderErrorDetailInput | str | None


@dataclass(frozen=True)
class ProviderErrorMeta:
    """Structured fields pulled from a provider error body."""

    code: str | None = None
    type: str | None = None
    message: str | None = None


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


_JSON_VALUE_ADAPTER: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)


def validate_json_value(payload: str | bytes | bytearray) -> JsonValue:
    """Decode any JSON document: object, array, string, number, boolean or null."""
    try:
        return _JSON_VALUE_ADAPTER.validate_json(payload)
    except ValidationError as exc:
        raise IncomingDataError("Invalid JSON document.") from exc


def _as_optional_str(value: object) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    return None


def parse_provider_error(body: str | None) -> ProviderErrorMeta:
    """Extract `error.code`, `error.type` and `error.message` from a provider body.

    Absent, empty or malformed bodies give an empty result rather than an error.
    """
    if not body:
        return ProviderErrorMeta()
    try:
        envelope = validate_json_as(ProviderErrorEnvelopeInput, body)
    except IncomingDataError:
        return ProviderErrorMeta()
    detail = envelope.get("error")
    if isinstance(detail, str):
        return ProviderErrorMeta(message=detail or None)
    if not detail:
        return ProviderErrorMeta()
    return ProviderErrorMeta(
        code=_as_optional_str(detail.get("code")),
        type=_as_optional_str(detail.get("type")),
        message=_as_optional_str(detail.get("message")),
    )
