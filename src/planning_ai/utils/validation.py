"""
planning-ai-core — field validators

File: src/planning_ai/utils/validation.py
Last updated: 2026-10-19

Purpose
- Shared checks used by the ``__post_init__`` of frozen value objects.

Functional requirements
- String and id validators return the normalized value; bad input raises
  ``TypeError`` or ``ValueError`` naming the field.
- Datetimes must be timezone-aware and are normalized to UTC; ISO output ends in ``Z``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime


def validate_non_empty_str(value: str, field_name: str, *, strip: bool = True) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    normalized = value.strip() if strip else value
    if not normalized:
        raise ValueError(f"{field_name} cannot be empty")
    return normalized


def validate_optional_str(value: str | None, field_name: str, *, strip: bool = True) -> str | None:
    if value is None:
        return None
    return validate_non_empty_str(value, field_name, strip=strip)


def validate_id_tuple(values: Iterable[str], field_name: str) -> tuple[str, ...]:
    """Return ids as an order-preserving, de-duplicated tuple."""

    if isinstance(values, (str, bytes)):
        raise TypeError(f"{field_name} must be a sequence of strings, not a string")
    seen: dict[str, None] = {}
    for index, item in enumerate(values):
        seen.setdefault(validate_non_empty_str(item, f"{field_name}[{index}]"), None)
    return tuple(seen)


def validate_non_negative_int(value: int, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field_name} must be an integer")
    if value < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return value


def validate_positive_int(value: int, field_name: str) -> int:
    validate_non_negative_int(value, field_name)
    if value == 0:
        raise ValueError(f"{field_name} must be > 0")
    return value


def as_utc(value: datetime, field_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise TypeError(f"{field_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must be timezone-aware")
    return value.astimezone(UTC)


def as_optional_utc(value: datetime | None, field_name: str) -> datetime | None:
    if value is None:
        return None
    return as_utc(value, field_name)


def iso8601z(value: datetime) -> str:
    return as_utc(value, "datetime").isoformat(timespec="microseconds").replace("+00:00", "Z")


def optional_iso8601z(value: datetime | None) -> str | None:
    if value is None:
        return None
    return iso8601z(value)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


__all__ = [
    "as_optional_utc",
    "as_utc",
    "iso8601z",
    "optional_iso8601z",
    "utc_now",
    "validate_id_tuple",
    "validate_non_empty_str",
    "validate_non_negative_int",
    "validate_optional_str",
    "validate_positive_int",
]
