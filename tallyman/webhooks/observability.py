"""Structured log events emitted while ingesting webhook deliveries.

Every event is a single femtologging line of the form
``[event.type] key=value ...`` so log aggregators can parse it.
Recoverable data-integrity signals (a close for an unknown pull request, a
repeated ``opened``) are WARNING; notification failures are ERROR.
"""

from __future__ import annotations

import enum
import typing as typ

from tallyman.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    from tallyman.webhooks.errors import WebhookPayloadError

logger = get_logger(__name__)


class IngestionEventType(enum.StrEnum):
    """Structured log event types for webhook ingestion."""

    WEBHOOK_PROCESSED = "webhook.processed"
    WEBHOOK_IGNORED = "webhook.ignored"
    WEBHOOK_REJECTED = "webhook.rejected"
    MISSING_ON_CLOSE = "pull_request.missing_on_close"
    MISSING_ON_SYNCHRONIZE = "pull_request.missing_on_synchronize"
    DUPLICATE_OPENED = "pull_request.duplicate_opened"
    STALE_OPENED = "pull_request.stale_opened"
    CONCURRENT_INSERT = "pull_request.concurrent_insert"
    NOTIFICATION_FAILED = "notification.failed"
    CLEANUP_COMPLETED = "cleanup.completed"


class IngestionEventLogger:
    """Emit structured ingestion events via femtologging."""

    def log_processed(
        self,
        *,
        event_kind: str,
        action: str,
        transition: str,
        repo_slug: str,
        commits_recorded: int,
    ) -> None:
        """Log a delivery that was applied to the store."""
        log_info(
            logger,
            "[%s] event_kind=%s action=%s transition=%s repo_slug=%s "
            "commits_recorded=%d",
            IngestionEventType.WEBHOOK_PROCESSED,
            event_kind,
            action,
            transition,
            repo_slug,
            commits_recorded,
        )

    def log_ignored(self, *, event_kind: str, action: str, reason: str) -> None:
        """Log a delivery that required no write."""
        log_info(
            logger,
            "[%s] event_kind=%s action=%s reason=%s",
            IngestionEventType.WEBHOOK_IGNORED,
            event_kind,
            action,
            reason,
        )

    def log_rejected(self, error: WebhookPayloadError) -> None:
        """Log a malformed delivery."""
        log_warning(
            logger,
            "[%s] reason=%s field=%s error_message=%s",
            IngestionEventType.WEBHOOK_REJECTED,
            error.reason,
            error.field,
            str(error),
        )

    def log_missing_on_close(self, *, repo_slug: str, number: int) -> None:
        """Log a close event for a pull request that was never recorded."""
        log_warning(
            logger,
            "[%s] repo_slug=%s number=%d recovery=create_closed",
            IngestionEventType.MISSING_ON_CLOSE,
            repo_slug,
            number,
        )

    def log_missing_on_synchronize(self, *, repo_slug: str, number: int) -> None:
        """Log a synchronize event for a pull request that was never recorded."""
        log_warning(
            logger,
            "[%s] repo_slug=%s number=%d recovery=create_from_snapshot",
            IngestionEventType.MISSING_ON_SYNCHRONIZE,
            repo_slug,
            number,
        )

    def log_duplicate_opened(self, *, repo_slug: str, number: int) -> None:
        """Log a repeated ``opened`` for a pull request already stored."""
        log_warning(
            logger,
            "[%s] repo_slug=%s number=%d",
            IngestionEventType.DUPLICATE_OPENED,
            repo_slug,
            number,
        )

    def log_stale_opened(self, *, repo_slug: str, number: int) -> None:
        """Log an ``opened`` that arrived after the pull request was closed."""
        log_warning(
            logger,
            "[%s] repo_slug=%s number=%d",
            IngestionEventType.STALE_OPENED,
            repo_slug,
            number,
        )

    def log_concurrent_insert(self, *, repo_slug: str, number: int) -> None:
        """Log a lost insert race resolved by reusing the winning row."""
        log_warning(
            logger,
            "[%s] repo_slug=%s number=%d",
            IngestionEventType.CONCURRENT_INSERT,
            repo_slug,
            number,
        )

    def log_notification_failed(
        self, *, kind: str, repo_slug: str, number: int, error: BaseException
    ) -> None:
        """Log a notification sink failure; ingestion has already succeeded."""
        log_error(
            logger,
            "[%s] kind=%s repo_slug=%s number=%d error_type=%s error_message=%s",
            IngestionEventType.NOTIFICATION_FAILED,
            kind,
            repo_slug,
            number,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_cleanup_completed(self, *, groups: int, deleted: int) -> None:
        """Log the outcome of a duplicate cleanup run."""
        log_info(
            logger,
            "[%s] duplicate_groups=%d deleted=%d",
            IngestionEventType.CLEANUP_COMPLETED,
            groups,
            deleted,
        )
