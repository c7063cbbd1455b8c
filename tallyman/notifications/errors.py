"""Notification delivery errors."""

from __future__ import annotations


class NotificationDeliveryError(RuntimeError):
    """Raised when a sink cannot deliver a notification."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int) -> NotificationDeliveryError:
        """Return an error for non-2xx webhook responses."""
        return cls(f"Discord webhook HTTP {status_code}", status_code=status_code)

    @classmethod
    def transport_error(cls, exc: Exception) -> NotificationDeliveryError:
        """Return an error for a request that never produced a response."""
        return cls(f"Discord webhook request failed: {exc}")
