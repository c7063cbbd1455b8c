"""Commit records derived from push and pull request deliveries.

Push deliveries list real commits and map one-to-one onto rows. Pull request
deliveries only report a commit count (``opened``) or a new head sha
(``synchronize``), so those call sites write synthetic placeholder rows that
approximate commit volume. Synthetic rows are never deduplicated.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

from tallyman.common.time import Clock, utcnow
from tallyman.store.storage import Commit, CommitOrigin
from tallyman.webhooks.errors import WebhookPayloadError
from tallyman.webhooks.payloads import parse_timestamp

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tallyman.store.storage import User
    from tallyman.webhooks.payloads import (
        AccountRef,
        PullRequestEvent,
        PushCommit,
        PushEvent,
        RepositoryRef,
    )
    from tallyman.webhooks.users import UserRegistry

SYNTHETIC_COMMIT_SPACING = dt.timedelta(minutes=1)


def _commit_links(
    repository: RepositoryRef, sha: str
) -> tuple[str | None, str | None]:
    if not repository.html_url:
        return (None, None)
    html_url = f"{repository.html_url}/commit/{sha}"
    return (html_url, f"{html_url}/comments")


def synthetic_shas(head_sha: str, count: int) -> list[str]:
    """Return ``count`` shas where only the last is the real head sha."""
    return [f"{head_sha}-{index}" for index in range(1, count)] + [head_sha]


def staggered_timestamps(latest: dt.datetime, count: int) -> list[dt.datetime]:
    """Return ``count`` ascending timestamps one minute apart ending at ``latest``."""
    return [
        latest - SYNTHETIC_COMMIT_SPACING * (count - 1 - index)
        for index in range(count)
    ]


class CommitRecorder:
    """Write commit rows for the three webhook call sites."""

    def __init__(self, users: UserRegistry, *, clock: Clock = utcnow) -> None:
        """Store the user registry and the clock used for synthetic rows."""
        self._users = users
        self._clock = clock

    async def record_push(
        self, session: AsyncSession, event: PushEvent
    ) -> list[Commit]:
        """Record one commit per entry of a push delivery.

        Entries whose author has no GitHub id are attributed to the pushing
        account (``sender``). Every entry is validated before the first
        write.
        """
        planned = [
            (
                entry,
                self._push_account(event, entry, index),
                parse_timestamp(entry.timestamp, f"commits[{index}].timestamp"),
            )
            for index, entry in enumerate(event.commits)
        ]
        commits: list[Commit] = []
        for entry, (account, field), created_at in planned:
            author = await self._users.resolve(session, account, field=field)
            commits.append(self._push_commit(event, entry, author, created_at))
        session.add_all(commits)
        await session.flush()
        return commits

    async def synthesize_opened(
        self, session: AsyncSession, event: PullRequestEvent, author: User
    ) -> list[Commit]:
        """Write one placeholder per commit counted by an ``opened`` delivery.

        The last placeholder carries the real head sha and is the most
        recent; additions and deletions are split evenly (floor) across all
        placeholders. Nothing is written when the count is absent or zero.
        """
        pr = event.pull_request
        count = pr.commits or 0
        if count <= 0:
            return []

        head_sha = pr.head.sha
        if not head_sha:
            raise WebhookPayloadError.missing_field("pull_request.head.sha", "opened")

        latest = parse_timestamp(pr.created_at, "pull_request.created_at")
        additions = (pr.additions or 0) // count
        deletions = (pr.deletions or 0) // count
        title = pr.title or ""

        commits: list[Commit] = []
        for position, (sha, created_at) in enumerate(
            zip(
                synthetic_shas(head_sha, count),
                staggered_timestamps(latest or self._clock(), count),
                strict=True,
            ),
            start=1,
        ):
            html_url, comments_url = _commit_links(event.repository, sha)
            commits.append(
                Commit(
                    sha=sha,
                    author=author,
                    message=f"Commit {position}/{count} on PR #{pr.number}: {title}",
                    html_url=html_url,
                    comments_url=comments_url,
                    repository=event.repository.snapshot(),
                    repository_full_name=event.repository.full_name,
                    branch=pr.head.ref,
                    added=[],
                    removed=[],
                    modified=[],
                    total_changes=additions + deletions,
                    additions=additions,
                    deletions=deletions,
                    origin=CommitOrigin.PULL_REQUEST_OPENED.value,
                    created_at=created_at,
                )
            )
        session.add_all(commits)
        await session.flush()
        return commits

    async def record_synchronize(
        self, session: AsyncSession, event: PullRequestEvent, author: User
    ) -> Commit:
        """Write the single placeholder for a ``synchronize`` delivery."""
        pr = event.pull_request
        sha = event.after or pr.head.sha
        if not sha:
            raise WebhookPayloadError.missing_field("after", "synchronize")

        html_url, comments_url = _commit_links(event.repository, sha)
        url = (
            f"{event.repository.url}/commits/{sha}" if event.repository.url else None
        )
        commit = Commit(
            sha=sha,
            author=author,
            message=f"New commit on PR #{pr.number}: {pr.title or ''}",
            url=url,
            html_url=html_url,
            comments_url=comments_url,
            repository=event.repository.snapshot(),
            repository_full_name=event.repository.full_name,
            branch=pr.head.ref,
            added=[],
            removed=[],
            modified=[],
            total_changes=1,
            additions=0,
            deletions=0,
            origin=CommitOrigin.PULL_REQUEST_SYNCHRONIZE.value,
            created_at=self._clock(),
        )
        session.add(commit)
        await session.flush()
        return commit

    @staticmethod
    def _push_account(
        event: PushEvent, entry: PushCommit, index: int
    ) -> tuple[AccountRef, str]:
        if entry.author is not None and entry.author.id is not None:
            return (entry.author, f"commits[{index}].author")
        if event.sender is None or event.sender.id is None:
            raise WebhookPayloadError.missing_account(f"commits[{index}].author")
        return (event.sender, "sender")

    def _push_commit(
        self,
        event: PushEvent,
        entry: PushCommit,
        author: User,
        created_at: dt.datetime | None,
    ) -> Commit:
        html_url, comments_url = _commit_links(event.repository, entry.id)
        return Commit(
            sha=entry.id,
            node_id=entry.node_id,
            author=author,
            message=entry.message,
            url=entry.url,
            html_url=html_url,
            comments_url=comments_url,
            repository=event.repository.snapshot(),
            repository_full_name=event.repository.full_name,
            branch=event.branch,
            added=list(entry.added),
            removed=list(entry.removed),
            modified=list(entry.modified),
            total_changes=len(entry.added) + len(entry.removed) + len(entry.modified),
            additions=len(entry.added),
            deletions=len(entry.removed),
            origin=CommitOrigin.PUSH.value,
            created_at=created_at or self._clock(),
        )
