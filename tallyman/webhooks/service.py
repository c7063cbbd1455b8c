"""Single entry point for GitHub webhook deliveries.

Usage
-----
>>> from sqlalchemy.ext.asyncio import async_sessionmaker
>>> from tallyman.store import build_engine
>>> engine = build_engine("sqlite+aiosqlite:///tallyman.db")
>>> service = WebhookIngestionService(
...     async_sessionmaker(engine, expire_on_commit=False)
... )
>>> outcome = await service.handle(payload, event_name="pull_request")

"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from tallyman.common.time import Clock, utcnow
from tallyman.notifications.sink import NullNotificationSink
from tallyman.webhooks.commits import CommitRecorder
from tallyman.webhooks.errors import WebhookPayloadError
from tallyman.webhooks.observability import IngestionEventLogger
from tallyman.webhooks.payloads import decode_pull_request_event, decode_push_event
from tallyman.webhooks.reconciler import PullRequestReconciler
from tallyman.webhooks.users import UserRegistry

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from tallyman.notifications.sink import NotificationSink, PullRequestNotification
    from tallyman.webhooks.payloads import PullRequestEvent, PushEvent


class EventKind(enum.StrEnum):
    """Webhook event families Tallyman ingests."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"


class IngestionStatus(enum.StrEnum):
    """Whether a delivery changed anything."""

    PROCESSED = "processed"
    IGNORED = "ignored"


@dc.dataclass(frozen=True, slots=True)
class IngestionOutcome:
    """Summary of one handled delivery, returned to the HTTP layer."""

    status: IngestionStatus
    event_kind: str
    action: str | None = None
    transition: str | None = None
    pull_request_id: int | None = None
    commits_recorded: int = 0
    notified: bool = False

    def as_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-serialisable view of the outcome."""
        return dc.asdict(self)


def classify_event(payload: object, event_name: str | None = None) -> EventKind | None:
    """Decide which event family ``payload`` belongs to.

    The ``X-GitHub-Event`` header wins when present; unknown header values
    (``ping``, ``issues``...) return ``None``. Without a header a top-level
    ``commits`` key marks a push and anything else is treated as a pull
    request delivery.

    Raises
    ------
    WebhookPayloadError
        If ``payload`` is missing or not a JSON object.

    """
    if payload is None:
        raise WebhookPayloadError.empty_payload()
    if not isinstance(payload, dict):
        raise WebhookPayloadError.not_an_object(type(payload).__name__)

    name = (event_name or "").strip().lower()
    if name:
        try:
            return EventKind(name)
        except ValueError:
            return None
    return EventKind.PUSH if "commits" in payload else EventKind.PULL_REQUEST


class WebhookIngestionService:
    """Decode, reconcile and announce webhook deliveries.

    Each delivery runs in its own transaction. Notifications are sent only
    after that transaction commits, and their failures are logged without
    affecting the outcome.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        notification_sink: NotificationSink | None = None,
        event_logger: IngestionEventLogger | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Build the collaborators shared by every delivery."""
        self._session_factory = session_factory
        self._sink = notification_sink or NullNotificationSink()
        self._events = event_logger or IngestionEventLogger()
        users = UserRegistry()
        self._commits = CommitRecorder(users, clock=clock)
        self._reconciler = PullRequestReconciler(
            users, self._commits, event_logger=self._events, clock=clock
        )

    async def handle(
        self, payload: object, *, event_name: str | None = None
    ) -> IngestionOutcome:
        """Apply one delivery and return what happened.

        Raises
        ------
        WebhookPayloadError
            If the delivery is malformed. Nothing is written in that case.

        """
        try:
            kind = classify_event(payload, event_name)
            if kind is None:
                self._events.log_ignored(
                    event_kind=event_name or "", action="", reason="unsupported_event"
                )
                return IngestionOutcome(
                    status=IngestionStatus.IGNORED, event_kind=event_name or ""
                )

            body = typ.cast("dict[str, typ.Any]", payload)
            if kind is EventKind.PUSH:
                return await self._handle_push(decode_push_event(body))
            return await self._handle_pull_request(decode_pull_request_event(body))
        except WebhookPayloadError as exc:
            self._events.log_rejected(exc)
            raise

    async def _handle_push(self, event: PushEvent) -> IngestionOutcome:
        async with self._session_factory() as session, session.begin():
            commits = await self._commits.record_push(session, event)

        self._events.log_processed(
            event_kind=EventKind.PUSH,
            action="",
            transition="record_push",
            repo_slug=event.repository.full_name,
            commits_recorded=len(commits),
        )
        return IngestionOutcome(
            status=IngestionStatus.PROCESSED,
            event_kind=EventKind.PUSH,
            commits_recorded=len(commits),
        )

    async def _handle_pull_request(self, event: PullRequestEvent) -> IngestionOutcome:
        async with self._session_factory() as session, session.begin():
            result = await self._reconciler.apply(session, event)
            record_id = result.pull_request.id if result.pull_request else None

        status = (
            IngestionStatus.PROCESSED
            if result.transition.writes
            else IngestionStatus.IGNORED
        )
        if result.transition.writes:
            self._events.log_processed(
                event_kind=EventKind.PULL_REQUEST,
                action=result.action,
                transition=result.transition,
                repo_slug=event.repository.full_name,
                commits_recorded=len(result.commits),
            )

        notified = False
        if result.notification is not None:
            notified = await self._notify(result.notification)

        return IngestionOutcome(
            status=status,
            event_kind=EventKind.PULL_REQUEST,
            action=result.action,
            transition=result.transition,
            pull_request_id=record_id,
            commits_recorded=len(result.commits),
            notified=notified,
        )

    async def _notify(self, notification: PullRequestNotification) -> bool:
        try:
            await self._sink.notify(notification)
        except Exception as exc:
            self._events.log_notification_failed(
                kind=notification.kind,
                repo_slug=notification.repository_full_name,
                number=notification.number,
                error=exc,
            )
            return False
        return True
