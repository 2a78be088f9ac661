"""Shared utilities for validation and normalization."""

from __future__ import annotations

import re
from datetime import UTC, datetime, time, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ConfigError, ValidationError

_TIME_OF_DAY_RE = re.compile(r"^\s*(\d{1,2}):([0-5]\d)\s*([ap]m)\s*$", re.IGNORECASE)
_NON_DIGIT_RE = re.compile(r"\D")


def parse_time_of_day(value: str) -> time:
    """Parse an ``h:mma`` string such as ``6:00am`` or ``10:30 PM``."""
    if not isinstance(value, str):
        raise ValidationError("Time of day must be a string.")
    match = _TIME_OF_DAY_RE.match(value)
    if match is None:
        raise ValidationError(f"Time of day {value!r} is not in h:mma form.")
    hour = int(match.group(1))
    minute = int(match.group(2))
    if not 1 <= hour <= 12:
        raise ValidationError(f"Time of day {value!r} has an invalid hour.")
    meridiem = match.group(3).lower()
    hour %= 12
    if meridiem == "pm":
        hour += 12
    return time(hour, minute)


def parse_timestamp(value: str) -> datetime:
    if not isinstance(value, str) or not value:
        raise ValidationError("Timestamp must be a non-empty string.")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError("Timestamp is not a valid ISO 8601 value.") from exc
    if parsed.tzinfo is None:
        raise ValidationError("Timestamp must include timezone information.")
    return parsed.astimezone(UTC)


def format_utc_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        raise ValidationError("Timestamp must include timezone information.")
    normalized = value.astimezone(UTC).replace(microsecond=0)
    return normalized.isoformat().replace("+00:00", "Z")


def ensure_aware(value: datetime, name: str = "Timestamp") -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a datetime.")
    if value.tzinfo is None:
        raise ValidationError(f"{name} must include timezone information.")
    return value.astimezone(UTC)


def validate_duration_hours(duration_hours: int) -> int:
    if isinstance(duration_hours, bool) or not isinstance(duration_hours, int):
        raise ValidationError("Duration must be a whole number of hours.")
    if duration_hours < 1:
        raise ValidationError("Duration must be at least one hour.")
    return duration_hours


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open overlap test: touching intervals do not overlap."""
    return start_a < end_b and end_a > start_b


def resolve_timezone(name: str | tzinfo) -> tzinfo:
    if isinstance(name, tzinfo):
        return name
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown timezone {name!r}.") from exc


def last_four_digits(card_number: str) -> str:
    if not isinstance(card_number, str):
        raise ValidationError("Card number must be a string.")
    digits = _NON_DIGIT_RE.sub("", card_number)
    if len(digits) < 4:
        raise ValidationError("Card number has fewer than four digits.")
    return digits[-4:]


def mask_card_number(card_number: str) -> str:
    if not isinstance(card_number, str):
        return "****"
    digits = _NON_DIGIT_RE.sub("", card_number)
    if len(digits) <= 4:
        return "*" * len(digits) or "****"
    return f"{'*' * (len(digits) - 4)}{digits[-4:]}"
