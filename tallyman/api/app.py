"""Application factory for the Tallyman Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when database dependencies are
available, the webhook, cleanup and statistics endpoints.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with domain endpoints::

    from tallyman.api.app import AppDependencies, create_app

    deps = AppDependencies(
        session_factory=session_factory,
        ingestion_service=ingestion_service,
        cleanup=resolver,
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import falcon.asgi

from tallyman.api.errors import (
    InvalidInputError,
    UserNotFoundError,
    handle_invalid_input,
    handle_user_not_found,
    handle_webhook_payload,
)
from tallyman.api.health.resources import HealthResource, ReadyResource
from tallyman.webhooks.errors import WebhookPayloadError

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tallyman.api.middleware import StorageBootstrap
    from tallyman.api.stats.resources import StatisticsResourceDependencies
    from tallyman.webhooks.cleanup import DuplicatePullRequestResolver
    from tallyman.webhooks.service import WebhookIngestionService

__all__ = ["WEBHOOK_PREFIX", "AppDependencies", "create_app"]

WEBHOOK_PREFIX = "/webhooks/github"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    When ``session_factory``, ``ingestion_service`` and ``cleanup`` are all
    provided, the application includes session middleware and the domain
    endpoints. Otherwise only health endpoints are registered.

    Attributes
    ----------
    session_factory
        Async session factory for database access.
    ingestion_service
        Service applying webhook deliveries.
    cleanup
        Duplicate resolver behind the maintenance endpoint.
    statistics
        Statistics resource configuration; defaults apply when ``None``.
    bootstrap
        Optional lifespan middleware preparing storage at startup.
    cors_origins
        Origins allowed cross-origin access; empty disables CORS.

    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    ingestion_service: WebhookIngestionService | None = None
    cleanup: DuplicatePullRequestResolver | None = None
    statistics: StatisticsResourceDependencies | None = None
    bootstrap: StorageBootstrap | None = None
    cors_origins: tuple[str, ...] = ()


def _has_domain_deps(deps: AppDependencies | None) -> bool:
    """Return True when deps provide the session factory and both services."""
    return (
        deps is not None
        and deps.session_factory is not None
        and deps.ingestion_service is not None
        and deps.cleanup is not None
    )


def _build_middleware(deps: AppDependencies | None) -> list[object]:
    middleware: list[object] = []
    if deps is None:
        return middleware
    if deps.cors_origins:
        middleware.append(falcon.CORSMiddleware(allow_origins=list(deps.cors_origins)))
    if deps.bootstrap is not None:
        middleware.append(deps.bootstrap)
    if _has_domain_deps(deps):
        from tallyman.api.middleware import SQLAlchemySessionManager

        sf = typ.cast("async_sessionmaker[AsyncSession]", deps.session_factory)
        middleware.append(SQLAlchemySessionManager(sf))
    return middleware


def _add_domain_routes(app: falcon.asgi.App, deps: AppDependencies) -> None:
    from tallyman.api.stats.resources import (
        STATISTICS_ROUTES,
        StatisticsResource,
        StatisticsResourceDependencies,
    )
    from tallyman.api.webhooks.resources import (
        DuplicateCleanupResource,
        GitHubWebhookResource,
    )

    service = typ.cast("WebhookIngestionService", deps.ingestion_service)
    resolver = typ.cast("DuplicatePullRequestResolver", deps.cleanup)
    app.add_route(WEBHOOK_PREFIX, GitHubWebhookResource(service))
    app.add_route(f"{WEBHOOK_PREFIX}/cleanup", DuplicateCleanupResource(resolver))

    stats = StatisticsResource(deps.statistics or StatisticsResourceDependencies())
    for suffix, path in STATISTICS_ROUTES:
        app.add_route(f"{WEBHOOK_PREFIX}/{path}", stats, suffix=suffix)


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies.  When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App(middleware=_build_middleware(dependencies))  # type: ignore[no-matching-overload]  # Falcon stubs

    session_factory = dependencies.session_factory if dependencies else None
    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(session_factory))

    if _has_domain_deps(dependencies) and dependencies is not None:
        _add_domain_routes(app, dependencies)

    app.add_error_handler(UserNotFoundError, handle_user_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(WebhookPayloadError, handle_webhook_payload)

    return app
