"""Direct row builders for tests that need exact stored state."""

from __future__ import annotations

import datetime as dt
import typing as typ

from tallyman.store.storage import Commit, CommitOrigin, PullRequest, User

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

BASE_TIME = dt.datetime(2024, 3, 1, 10, tzinfo=dt.UTC)


def make_user(github_id: int, login: str | None = None) -> User:
    """Return an unsaved user."""
    login = login or f"user{github_id}"
    return User(
        github_id=github_id,
        login=login,
        html_url=f"https://github.com/{login}",
        avatar_url=f"https://avatars.example.com/u/{github_id}",
    )


def make_pull_request(  # noqa: PLR0913
    author: User,
    *,
    number: int = 7,
    repo: str = "octo/reef",
    state: str = "open",
    merged: bool = False,
    merged_by: User | None = None,
    created_at: dt.datetime = BASE_TIME,
    updated_at: dt.datetime | None = None,
    closed_at: dt.datetime | None = None,
    title: str = "Add tallies",
) -> PullRequest:
    """Return an unsaved pull request."""
    return PullRequest(
        number=number,
        repository_full_name=repo,
        repository={"full_name": repo, "name": repo.partition("/")[2]},
        title=title,
        state=state,
        author=author,
        merged=merged,
        merged_by=merged_by,
        created_at=created_at,
        updated_at=updated_at or created_at,
        closed_at=closed_at,
        merged_at=closed_at if merged else None,
    )


def make_commit(  # noqa: PLR0913
    author: User,
    *,
    sha: str = "c1",
    repo: str = "octo/reef",
    created_at: dt.datetime = BASE_TIME,
    additions: int = 1,
    deletions: int = 0,
    origin: CommitOrigin = CommitOrigin.PUSH,
) -> Commit:
    """Return an unsaved commit."""
    return Commit(
        sha=sha,
        author=author,
        message=f"commit {sha}",
        repository={"full_name": repo},
        repository_full_name=repo,
        branch="main",
        total_changes=additions + deletions,
        additions=additions,
        deletions=deletions,
        origin=origin.value,
        created_at=created_at,
    )


async def seed(session: AsyncSession, *rows: object) -> None:
    """Add ``rows`` and flush so they receive ids."""
    session.add_all(rows)
    await session.flush()
