"""Storage-layer error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a ``UTCDateTime`` column."""

    def __init__(self) -> None:
        """Attach a consistent message."""
        super().__init__("datetime values must be timezone aware")
