# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Field coercion helpers for JSON-LD capability documents."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from .exceptions import CapabilityFormatError


def utc_now() -> datetime:
    """Default verification clock."""
    return datetime.now(UTC)


def parse_timestamp(value: Any, field: str) -> datetime | None:
    """Parse an XSD dateTime string into an aware datetime.

    Naive values are taken as UTC. ``None`` passes through.

    Raises:
        CapabilityFormatError: If the value is not an ISO 8601 timestamp.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            # fromisoformat handles a trailing "Z" since Python 3.11
            parsed = datetime.fromisoformat(value)
        except ValueError as e:
            raise CapabilityFormatError(f"Invalid timestamp in '{field}'", field=field, value=value) from e
    else:
        raise CapabilityFormatError(f"'{field}' must be a timestamp string", field=field, value=value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime the way capability documents carry it."""
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def as_string_tuple(value: Any, field: str) -> tuple[str, ...]:
    """Normalize a JSON-LD value that may be a string or a list of strings.

    Raises:
        CapabilityFormatError: If any member is not a string.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        for item in value:
            if not isinstance(item, str):
                raise CapabilityFormatError(
                    f"'{field}' entries must be strings", field=field, value=item
                )
        return tuple(value)
    raise CapabilityFormatError(f"'{field}' must be a string or a list of strings", field=field, value=value)


def compact(values: tuple[str, ...]) -> str | list[str] | None:
    """Inverse of ``as_string_tuple`` for serialization."""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)
