"""Apply pull request deliveries to the stored pull request aggregate.

The reconciler looks up the canonical record for the delivery's natural key
(number within repository), asks :func:`plan_transition` what to do for the
``(action, stored state)`` pair and performs exactly that write. It never
commits: the caller owns the transaction and sends the returned notification
once the transaction has committed.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tallyman.common.time import Clock, utcnow
from tallyman.notifications.sink import (
    AccountSummary,
    NotificationKind,
    PullRequestNotification,
)
from tallyman.store.storage import PullRequest, PullRequestState
from tallyman.webhooks.actions import (
    PullRequestAction,
    StoredState,
    Transition,
    plan_transition,
)
from tallyman.webhooks.errors import WebhookPayloadError
from tallyman.webhooks.observability import IngestionEventLogger
from tallyman.webhooks.payloads import parse_timestamp

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession

    from tallyman.store.storage import Commit, User
    from tallyman.webhooks.commits import CommitRecorder
    from tallyman.webhooks.payloads import (
        AccountRef,
        PullRequestBody,
        PullRequestEvent,
    )
    from tallyman.webhooks.users import UserRegistry

_NOTIFYING_TRANSITIONS: dict[Transition, NotificationKind] = {
    Transition.CREATE_OPEN: NotificationKind.OPENED,
    Transition.CLOSE: NotificationKind.CLOSED,
}


@dc.dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of applying one pull request delivery."""

    action: PullRequestAction
    transition: Transition
    pull_request: PullRequest | None
    commits: list[Commit] = dc.field(default_factory=list)
    notification: PullRequestNotification | None = None


@dc.dataclass(frozen=True, slots=True)
class _Actors:
    author: User
    merged_by: User | None


@dc.dataclass(frozen=True, slots=True)
class _Timestamps:
    created_at: dt.datetime | None
    updated_at: dt.datetime | None
    closed_at: dt.datetime | None
    merged_at: dt.datetime | None

    @classmethod
    def parse(cls, pr: PullRequestBody) -> _Timestamps:
        return cls(
            created_at=parse_timestamp(pr.created_at, "pull_request.created_at"),
            updated_at=parse_timestamp(pr.updated_at, "pull_request.updated_at"),
            closed_at=parse_timestamp(pr.closed_at, "pull_request.closed_at"),
            merged_at=parse_timestamp(pr.merged_at, "pull_request.merged_at"),
        )


def _validate(action: PullRequestAction, event: PullRequestEvent) -> None:
    """Reject a delivery that cannot be applied, before anything is written."""
    pr = event.pull_request
    if pr.user is None or pr.user.id is None:
        raise WebhookPayloadError.missing_account("pull_request.user")
    if pr.merged is True and pr.merged_by is not None and pr.merged_by.id is None:
        raise WebhookPayloadError.missing_account("pull_request.merged_by")
    match action:
        case PullRequestAction.OPENED if (pr.commits or 0) > 0 and not pr.head.sha:
            raise WebhookPayloadError.missing_field("pull_request.head.sha", "opened")
        case PullRequestAction.SYNCHRONIZE if not (event.after or pr.head.sha):
            raise WebhookPayloadError.missing_field("after", "synchronize")
        case _:
            pass


def _summary(account: AccountRef | None) -> AccountSummary:
    if account is None:
        return AccountSummary()
    return AccountSummary(
        login=account.login,
        html_url=account.html_url,
        avatar_url=account.avatar_url,
    )


def build_notification(
    kind: NotificationKind, event: PullRequestEvent
) -> PullRequestNotification:
    """Build the sink payload for ``event`` on the ``kind`` channel."""
    pr = event.pull_request
    head_repo = pr.head.repo
    repository_name = (
        (head_repo.name if head_repo is not None else None)
        or event.repository.name
        or event.repository.full_name
    )
    merged = bool(pr.merged)
    return PullRequestNotification(
        kind=kind,
        repository_full_name=event.repository.full_name,
        repository_name=repository_name,
        number=pr.number,
        title=pr.title or "",
        html_url=pr.html_url,
        author=_summary(pr.user),
        merged=merged,
        merged_by=_summary(pr.merged_by) if merged and pr.merged_by else None,
    )


class PullRequestReconciler:
    """Apply ``opened``/``closed``/``synchronize`` deliveries to the store."""

    def __init__(
        self,
        users: UserRegistry,
        commits: CommitRecorder,
        *,
        event_logger: IngestionEventLogger | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Wire the collaborators used for every delivery."""
        self._users = users
        self._commits = commits
        self._events = event_logger or IngestionEventLogger()
        self._clock = clock

    async def apply(
        self, session: AsyncSession, event: PullRequestEvent
    ) -> ReconcileResult:
        """Reconcile one delivery and return what was written."""
        action = PullRequestAction.parse(event.action)
        existing = await self.find_canonical(
            session, event.repository.full_name, event.pull_request.number
        )
        transition = plan_transition(
            action, StoredState.of(existing.state if existing else None)
        )
        if not transition.writes:
            self._log_skip(event, transition)
            return ReconcileResult(action, transition, existing)

        _validate(action, event)
        times = _Timestamps.parse(event.pull_request)
        actors = await self._resolve_actors(session, event)

        commits: list[Commit] = []
        if action is PullRequestAction.SYNCHRONIZE:
            commits.append(
                await self._commits.record_synchronize(session, event, actors.author)
            )

        record, transition = await self._write(
            session, event, transition, existing, actors, times
        )
        if transition is Transition.CREATE_OPEN:
            commits.extend(
                await self._commits.synthesize_opened(session, event, actors.author)
            )

        kind = _NOTIFYING_TRANSITIONS.get(transition)
        notification = build_notification(kind, event) if kind else None
        return ReconcileResult(action, transition, record, commits, notification)

    @staticmethod
    async def find_canonical(
        session: AsyncSession, repo_slug: str, number: int
    ) -> PullRequest | None:
        """Return the most recently updated record for a natural key."""
        return await session.scalar(
            select(PullRequest)
            .where(
                PullRequest.repository_full_name == repo_slug,
                PullRequest.number == number,
            )
            .order_by(PullRequest.updated_at.desc(), PullRequest.id.desc())
            .limit(1)
        )

    async def _resolve_actors(
        self, session: AsyncSession, event: PullRequestEvent
    ) -> _Actors:
        pr = event.pull_request
        author = await self._users.resolve(
            session, typ.cast("AccountRef", pr.user), field="pull_request.user"
        )
        merged_by: User | None = None
        if pr.merged is True and pr.merged_by is not None:
            merged_by = await self._users.resolve(
                session, pr.merged_by, field="pull_request.merged_by"
            )
        return _Actors(author=author, merged_by=merged_by)

    async def _write(
        self,
        session: AsyncSession,
        event: PullRequestEvent,
        transition: Transition,
        existing: PullRequest | None,
        actors: _Actors,
        times: _Timestamps,
    ) -> tuple[PullRequest, Transition]:
        repo_slug = event.repository.full_name
        number = event.pull_request.number
        if existing is not None:
            self._assign(existing, event, transition, actors, times)
            await session.flush()
            return (existing, transition)

        if transition is Transition.CREATE_CLOSED:
            self._events.log_missing_on_close(repo_slug=repo_slug, number=number)
        elif transition is Transition.CREATE_FROM_SNAPSHOT:
            self._events.log_missing_on_synchronize(repo_slug=repo_slug, number=number)

        record = PullRequest(number=number, repository_full_name=repo_slug)
        self._assign(record, event, transition, actors, times)
        try:
            async with session.begin_nested():
                session.add(record)
                await session.flush()
        except IntegrityError:
            # Only reachable with the natural-key index in place: a
            # concurrent delivery created the row first.
            winner = await self.find_canonical(session, repo_slug, number)
            if winner is None:
                raise
            self._events.log_concurrent_insert(repo_slug=repo_slug, number=number)
            retry = plan_transition(
                PullRequestAction.parse(event.action), StoredState.of(winner.state)
            )
            if not retry.writes:
                self._log_skip(event, retry)
                return (winner, retry)
            self._assign(winner, event, retry, actors, times)
            await session.flush()
            return (winner, retry)
        return (record, transition)

    def _assign(
        self,
        record: PullRequest,
        event: PullRequestEvent,
        transition: Transition,
        actors: _Actors,
        times: _Timestamps,
    ) -> None:
        """Overwrite the mutable columns of ``record`` from the delivery."""
        pr = event.pull_request
        now = self._clock()

        state, merged = self._target_state(record, event, transition)

        record.repository = event.repository.snapshot()
        record.node_id = pr.node_id
        record.title = pr.title or ""
        record.locked = pr.locked
        record.body = pr.body
        record.url = pr.url
        record.html_url = pr.html_url
        record.diff_url = pr.diff_url
        record.patch_url = pr.patch_url
        record.issue_url = pr.issue_url
        record.merge_commit_sha = pr.merge_commit_sha
        record.mergeable = pr.mergeable
        record.rebaseable = pr.rebaseable
        record.mergeable_state = pr.mergeable_state
        record.head = pr.head.snapshot()
        record.base = pr.base.snapshot()
        record.labels = [label.name for label in pr.labels or () if label.name]
        record.author = actors.author
        record.created_at = times.created_at or record.created_at or now
        record.updated_at = times.updated_at or now

        record.state = state
        record.merged = merged
        if merged:
            record.merged_by = actors.merged_by or record.merged_by
            record.merged_at = times.merged_at or record.merged_at
        else:
            record.merged_by = None
            record.merged_at = None
        if state == PullRequestState.CLOSED:
            record.closed_at = times.closed_at or record.closed_at or now
        else:
            record.closed_at = None

    @staticmethod
    def _target_state(
        record: PullRequest, event: PullRequestEvent, transition: Transition
    ) -> tuple[PullRequestState, bool]:
        merged = bool(event.pull_request.merged)
        match transition:
            case Transition.CREATE_OPEN:
                return (PullRequestState.OPEN, False)
            case Transition.CREATE_CLOSED | Transition.CLOSE:
                return (PullRequestState.CLOSED, merged)
            case _:
                if record.state == PullRequestState.CLOSED:
                    # Closed is terminal; a late snapshot cannot reopen it.
                    return (PullRequestState.CLOSED, record.merged or merged)
                if event.pull_request.state == PullRequestState.CLOSED:
                    return (PullRequestState.CLOSED, merged)
                return (PullRequestState.OPEN, False)

    def _log_skip(self, event: PullRequestEvent, transition: Transition) -> None:
        repo_slug = event.repository.full_name
        number = event.pull_request.number
        match transition:
            case Transition.IGNORE_DUPLICATE_OPENED:
                self._events.log_duplicate_opened(repo_slug=repo_slug, number=number)
            case Transition.IGNORE_STALE_OPENED:
                self._events.log_stale_opened(repo_slug=repo_slug, number=number)
            case _:
                self._events.log_ignored(
                    event_kind="pull_request",
                    action=event.action or "",
                    reason=transition.value,
                )
