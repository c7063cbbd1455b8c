"""Errors raised while decoding or applying webhook deliveries."""

from __future__ import annotations

import enum


class WebhookRejectReason(enum.StrEnum):
    """Machine-readable reasons a delivery was rejected."""

    EMPTY_PAYLOAD = "empty_payload"
    NOT_AN_OBJECT = "not_an_object"
    MISSING_FIELD = "missing_field"
    INVALID_PAYLOAD = "invalid_payload"
    INVALID_TIMESTAMP = "invalid_timestamp"
    MISSING_ACCOUNT = "missing_account"


class WebhookPayloadError(Exception):
    """Raised when a delivery is malformed; nothing is written for it."""

    def __init__(
        self,
        message: str,
        reason: WebhookRejectReason,
        *,
        field: str | None = None,
    ) -> None:
        """Store the reason and offending field for callers."""
        super().__init__(message)
        self.reason = reason
        self.field = field

    @classmethod
    def empty_payload(cls) -> WebhookPayloadError:
        """Create an error for a null or empty body."""
        return cls("webhook payload is empty", WebhookRejectReason.EMPTY_PAYLOAD)

    @classmethod
    def not_an_object(cls, type_name: str) -> WebhookPayloadError:
        """Create an error for a body that is not a JSON object."""
        return cls(
            f"webhook payload must be a JSON object, got {type_name}",
            WebhookRejectReason.NOT_AN_OBJECT,
        )

    @classmethod
    def missing_field(cls, field: str, event: str) -> WebhookPayloadError:
        """Create an error for a required sub-object that is absent."""
        return cls(
            f"{event} event is missing '{field}'",
            WebhookRejectReason.MISSING_FIELD,
            field=field,
        )

    @classmethod
    def invalid_payload(cls, message: str) -> WebhookPayloadError:
        """Create an error for a payload that fails typed decoding."""
        return cls(message, WebhookRejectReason.INVALID_PAYLOAD)

    @classmethod
    def invalid_timestamp(cls, field: str) -> WebhookPayloadError:
        """Create an error for a malformed or naive timestamp."""
        return cls(
            f"{field} is not a timezone-aware ISO-8601 datetime",
            WebhookRejectReason.INVALID_TIMESTAMP,
            field=field,
        )

    @classmethod
    def missing_account(cls, field: str) -> WebhookPayloadError:
        """Create an error when no GitHub account id can be attributed."""
        return cls(
            f"{field} carries no GitHub account id",
            WebhookRejectReason.MISSING_ACCOUNT,
            field=field,
        )
