"""Typed document values and their wire encoding.

The document store wraps every field in a single-key object naming its type,
for example ``{"integerValue": "12"}``. Integers travel as strings and
timestamps as RFC 3339 UTC strings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..exceptions import SerializationError, ValidationError
from ..util import format_utc_timestamp, parse_timestamp


@dataclass(frozen=True, slots=True)
class StringValue:
    value: str

    def encode(self) -> dict[str, Any]:
        return {"stringValue": self.value}


@dataclass(frozen=True, slots=True)
class IntegerValue:
    value: int

    def encode(self) -> dict[str, Any]:
        return {"integerValue": str(self.value)}


@dataclass(frozen=True, slots=True)
class DoubleValue:
    value: float

    def encode(self) -> dict[str, Any]:
        return {"doubleValue": self.value}


@dataclass(frozen=True, slots=True)
class TimestampValue:
    value: datetime

    def encode(self) -> dict[str, Any]:
        return {"timestampValue": format_utc_timestamp(self.value)}


FieldValue = StringValue | IntegerValue | DoubleValue | TimestampValue
PlainValue = str | int | float | datetime


def to_value(value: PlainValue | FieldValue) -> FieldValue:
    if isinstance(value, StringValue | IntegerValue | DoubleValue | TimestampValue):
        return value
    if isinstance(value, bool):
        raise SerializationError("Boolean fields are not supported.")
    if isinstance(value, str):
        return StringValue(value)
    if isinstance(value, int):
        return IntegerValue(value)
    if isinstance(value, float):
        return DoubleValue(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise SerializationError("Timestamp fields must include timezone information.")
        return TimestampValue(value)
    raise SerializationError(f"Unsupported field type {type(value).__name__}.")


def decode_value(raw: Any) -> FieldValue:
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise SerializationError("Field value must be an object with a single type key.")
    ((kind, value),) = raw.items()
    if kind == "stringValue":
        if not isinstance(value, str):
            raise SerializationError("stringValue must be a string.")
        return StringValue(value)
    if kind == "integerValue":
        # Some writers send integers as JSON numbers instead of strings.
        if isinstance(value, bool):
            raise SerializationError("integerValue must be an integer.")
        try:
            return IntegerValue(int(value))
        except (TypeError, ValueError) as exc:
            raise SerializationError("integerValue must be an integer.") from exc
    if kind == "doubleValue":
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise SerializationError("doubleValue must be a number.")
        return DoubleValue(float(value))
    if kind == "timestampValue":
        try:
            return TimestampValue(parse_timestamp(value))
        except ValidationError as exc:
            raise SerializationError("timestampValue is not a valid timestamp.") from exc
    raise SerializationError(f"Unsupported field value type {kind!r}.")


def encode_fields(fields: Mapping[str, PlainValue | FieldValue]) -> dict[str, Any]:
    return {name: to_value(value).encode() for name, value in fields.items()}


def decode_fields(raw: Any) -> dict[str, PlainValue]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise SerializationError("Document fields must be an object.")
    return {name: decode_value(value).value for name, value in raw.items()}
