"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Register error handlers on the Falcon app::

    from tallyman.api.errors import (
        InvalidInputError,
        UserNotFoundError,
        handle_invalid_input,
        handle_user_not_found,
        handle_webhook_payload,
    )

    app.add_error_handler(UserNotFoundError, handle_user_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(WebhookPayloadError, handle_webhook_payload)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tallyman.webhooks.errors import WebhookPayloadError

__all__ = [
    "InvalidInputError",
    "UserNotFoundError",
    "handle_invalid_input",
    "handle_user_not_found",
    "handle_webhook_payload",
]


class UserNotFoundError(Exception):
    """Raised when no stored user has the requested login.

    Attributes
    ----------
    login
        The GitHub login that was looked up.

    """

    def __init__(self, login: str) -> None:
        """Initialize with the login that matched nothing."""
        self.login = login
        super().__init__(f"No user with login '{login}' exists.")


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Use this instead of ``ValueError`` so that only *intentional*
    validation failures are surfaced to the caller, while genuine
    programmer mistakes still propagate as unhandled 500s.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


async def handle_user_not_found(
    _req: Request,
    resp: Response,
    ex: UserNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UserNotFoundError`` to an HTTP 404 JSON response."""
    resp.status = falcon.HTTP_404
    resp.media = {
        "title": "User not found",
        "description": str(ex),
    }


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The validation exception containing reason and optional field.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_webhook_payload(
    _req: Request,
    resp: Response,
    ex: WebhookPayloadError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a rejected webhook delivery to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid webhook payload",
        "description": str(ex),
        "reason": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media
