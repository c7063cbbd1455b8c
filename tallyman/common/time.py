"""Common time utilities."""

from __future__ import annotations

import datetime as dt
import typing as typ

Clock = typ.Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def parse_iso_datetime(text: str) -> dt.datetime:
    """Parse an ISO-8601 string, accepting a trailing ``Z``.

    Raises ``ValueError`` for malformed text or when no offset is present.
    """
    parsed = dt.datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = f"{text!r} has no timezone offset"
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)
