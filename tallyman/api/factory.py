"""Assemble ``AppDependencies`` from a :class:`TallymanConfig`.

Usage
-----
Build the full dependency graph for the API layer::

    from tallyman.api.factory import build_app_dependencies

    deps = build_app_dependencies(TallymanConfig.from_env())

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker

from tallyman.api.app import AppDependencies
from tallyman.api.middleware import StorageBootstrap
from tallyman.api.stats.resources import StatisticsResourceDependencies
from tallyman.notifications.sink import NullNotificationSink
from tallyman.store.storage import build_engine
from tallyman.webhooks.cleanup import DuplicatePullRequestResolver
from tallyman.webhooks.observability import IngestionEventLogger
from tallyman.webhooks.service import WebhookIngestionService

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tallyman.config import TallymanConfig
    from tallyman.notifications.sink import NotificationSink

__all__ = ["build_app_dependencies", "build_notification_sink"]


def build_notification_sink(
    config: TallymanConfig,
) -> tuple[NotificationSink, list[cabc.Callable[[], cabc.Awaitable[None]]]]:
    """Return the configured sink and the callables that release it."""
    if config.discord_webhook_url is None:
        return (NullNotificationSink(), [])

    from tallyman.notifications.discord import DiscordConfig, DiscordNotificationSink

    sink = DiscordNotificationSink(
        DiscordConfig(
            webhook_url=config.discord_webhook_url,
            timeout_s=config.notify_timeout_s,
        )
    )
    return (sink, [sink.aclose])


def build_app_dependencies(config: TallymanConfig) -> AppDependencies:
    """Build every collaborator the domain endpoints need.

    Raises
    ------
    ValueError
        If ``config`` carries no database URL.

    """
    if config.database_url is None:
        msg = "database_url is required to build domain dependencies"
        raise ValueError(msg)

    engine = build_engine(config.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    event_logger = IngestionEventLogger()
    sink, closers = build_notification_sink(config)
    resolver = DuplicatePullRequestResolver(session_factory, event_logger=event_logger)

    return AppDependencies(
        session_factory=session_factory,
        ingestion_service=WebhookIngestionService(
            session_factory, notification_sink=sink, event_logger=event_logger
        ),
        cleanup=resolver,
        statistics=StatisticsResourceDependencies(
            window_days=config.stats_window_days
        ),
        bootstrap=StorageBootstrap(
            engine,
            resolver,
            enforce_uniqueness=config.enforce_pr_uniqueness,
            closers=closers,
        ),
        cors_origins=config.cors_origins,
    )
