"""Webhook delivery and maintenance resources.

``GitHubWebhookResource`` accepts ``POST /webhooks/github`` deliveries and
hands them to the ingestion service. ``DuplicateCleanupResource`` runs the
duplicate resolver on ``POST /webhooks/github/cleanup``.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/webhooks/github", GitHubWebhookResource(service))
    app.add_route("/webhooks/github/cleanup", DuplicateCleanupResource(resolver))

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tallyman.webhooks.cleanup import DuplicatePullRequestResolver
    from tallyman.webhooks.service import WebhookIngestionService

__all__ = ["DuplicateCleanupResource", "GitHubWebhookResource"]

EVENT_HEADER = "X-GitHub-Event"


class GitHubWebhookResource:
    """Resource receiving GitHub webhook deliveries.

    Malformed deliveries raise ``WebhookPayloadError``, which the app maps
    to HTTP 400. Ignored events (``ping`` and friends) still answer 200 so
    GitHub does not mark the hook as failing.
    """

    def __init__(self, service: WebhookIngestionService) -> None:
        """Store the ingestion service."""
        self._service = service

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhooks/github."""
        payload = await req.get_media(default_when_empty=None)
        outcome = await self._service.handle(
            payload, event_name=req.get_header(EVENT_HEADER)
        )
        resp.media = outcome.as_dict()
        resp.status = falcon.HTTP_200


class DuplicateCleanupResource:
    """Administrative resource collapsing duplicate pull requests."""

    def __init__(self, resolver: DuplicatePullRequestResolver) -> None:
        """Store the duplicate resolver."""
        self._resolver = resolver

    async def on_post(self, _req: Request, resp: Response) -> None:
        """Handle POST /webhooks/github/cleanup."""
        deleted = await self._resolver.cleanup()
        resp.media = {"deleted": deleted}
        resp.status = falcon.HTTP_200
