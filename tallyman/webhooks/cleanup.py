"""Collapse pull request records that share a natural key."""

from __future__ import annotations

import typing as typ

from sqlalchemy import delete, func, select

from tallyman.store.storage import PullRequest
from tallyman.webhooks.observability import IngestionEventLogger

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class DuplicatePullRequestResolver:
    """Keep one canonical pull request per ``(repository, number)``.

    Within a group of duplicates the record with the latest ``updated_at``
    survives; on a tie the larger internal id wins. Running ``cleanup`` twice
    without intervening writes deletes nothing the second time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Store the session factory used for each cleanup run."""
        self._session_factory = session_factory
        self._events = event_logger or IngestionEventLogger()

    async def cleanup(self) -> int:
        """Delete every non-canonical duplicate and return how many went."""
        async with self._session_factory() as session, session.begin():
            groups = (
                await session.execute(
                    select(PullRequest.repository_full_name, PullRequest.number)
                    .group_by(PullRequest.repository_full_name, PullRequest.number)
                    .having(func.count(PullRequest.id) > 1)
                )
            ).all()

            doomed: list[int] = []
            for repo_slug, number in groups:
                doomed.extend(await _losers(session, repo_slug, number))

            if doomed:
                await session.execute(
                    delete(PullRequest).where(PullRequest.id.in_(doomed))
                )

        self._events.log_cleanup_completed(groups=len(groups), deleted=len(doomed))
        return len(doomed)


async def _losers(session: AsyncSession, repo_slug: str, number: int) -> list[int]:
    ids = (
        await session.scalars(
            select(PullRequest.id)
            .where(
                PullRequest.repository_full_name == repo_slug,
                PullRequest.number == number,
            )
            .order_by(PullRequest.updated_at.desc(), PullRequest.id.desc())
        )
    ).all()
    return list(ids[1:])
