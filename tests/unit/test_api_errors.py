"""Unit tests for tallyman.api.errors domain exceptions and error handlers.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_errors.py

"""

from __future__ import annotations

import falcon.asgi
import falcon.testing
import pytest

from tallyman.api.errors import (
    InvalidInputError,
    UserNotFoundError,
    handle_invalid_input,
    handle_user_not_found,
    handle_webhook_payload,
)
from tallyman.webhooks.errors import WebhookPayloadError


class _RaisingResource:
    """Resource that raises the exception it was built with."""

    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        raise self._exc


@pytest.fixture
def client() -> falcon.testing.TestClient:
    """Build a test client with error handlers registered."""
    app = falcon.asgi.App()
    app.add_route("/not-found", _RaisingResource(UserNotFoundError("marina")))
    app.add_route("/bad-request", _RaisingResource(InvalidInputError("bad window")))
    app.add_route(
        "/bad-request-field",
        _RaisingResource(InvalidInputError("not a date", field="startDate")),
    )
    app.add_route(
        "/bad-payload",
        _RaisingResource(WebhookPayloadError.invalid_timestamp("closed_at")),
    )
    app.add_route(
        "/empty-payload", _RaisingResource(WebhookPayloadError.empty_payload())
    )
    app.add_error_handler(UserNotFoundError, handle_user_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(WebhookPayloadError, handle_webhook_payload)
    return falcon.testing.TestClient(app)


class TestUserNotFoundError:
    """Tests for UserNotFoundError and its handler."""

    def test_returns_404(self, client: falcon.testing.TestClient) -> None:
        """Handler maps UserNotFoundError to HTTP 404."""
        result = client.simulate_get("/not-found")
        assert result.status == falcon.HTTP_404, "expected HTTP 404"
        assert result.json == {
            "title": "User not found",
            "description": "No user with login 'marina' exists.",
        }, "wrong 404 body"


class TestInvalidInputHandler:
    """Tests for InvalidInputError and its handler."""

    def test_without_field(self, client: falcon.testing.TestClient) -> None:
        """The body carries the reason and omits the field."""
        result = client.simulate_get("/bad-request")
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json == {
            "title": "Invalid input",
            "description": "bad window",
        }, "wrong 400 body"

    def test_with_field(self, client: falcon.testing.TestClient) -> None:
        """The body names the offending field when set."""
        result = client.simulate_get("/bad-request-field")
        assert result.json["field"] == "startDate", "wrong field value"
        assert result.json["description"] == "not a date", "wrong description"

    def test_message_includes_field(self) -> None:
        """String representation includes the field prefix."""
        ex = InvalidInputError("not a date", field="endDate")
        assert str(ex) == "endDate: not a date", "message should include field"


class TestWebhookPayloadHandler:
    """Tests for rejected deliveries."""

    def test_reason_and_field(self, client: falcon.testing.TestClient) -> None:
        """The machine-readable reason and field are returned."""
        result = client.simulate_get("/bad-payload")
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["title"] == "Invalid webhook payload", "wrong title"
        assert result.json["reason"] == "invalid_timestamp", "wrong reason"
        assert result.json["field"] == "closed_at", "wrong field"

    def test_without_field(self, client: falcon.testing.TestClient) -> None:
        """Reasons without a field omit the key."""
        result = client.simulate_get("/empty-payload")
        assert result.json["reason"] == "empty_payload", "wrong reason"
        assert "field" not in result.json, "field should be absent"
