"""Read-side statistics over stored pull requests, commits and users.

Every windowed query filters on ``created_at`` with inclusive bounds taken
from a :class:`~tallyman.stats.window.ReportingWindow`; callers build that
window with :func:`~tallyman.stats.window.resolve_window`.

Usage
-----
>>> async with session_factory() as session:
...     stats = StatisticsService(session)
...     window = resolve_window(None, None, now=utcnow())
...     report = await stats.open_pull_requests(window)

"""

from __future__ import annotations

import collections
import typing as typ

from sqlalchemy import Integer, case, func, select
from sqlalchemy.orm import aliased

from tallyman.store.storage import Commit, PullRequest, PullRequestState, User

from .models import (
    AuthorCommitStats,
    AuthorPullRequestStats,
    CommitStatistics,
    CommitSummary,
    DailyActivity,
    PullRequestCounts,
    PullRequestStatistics,
    PullRequestSummary,
    RepositoryCommits,
    RepositoryCommitStats,
    RepositoryPullRequests,
    RepositoryPullRequestStats,
    SelfMergedPullRequests,
    SelfMergeRepositoryStats,
    SelfMergeUserStats,
    UserActivity,
    UserDetail,
    UsersActivity,
    UserSummary,
    WindowedCommits,
    WindowedPullRequests,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from .window import ReportingWindow


def summarize_user(user: User) -> UserSummary:
    """Project a stored user onto its display fields."""
    return UserSummary(
        id=user.id,
        github_id=user.github_id,
        login=user.login,
        avatar_url=user.avatar_url,
        html_url=user.html_url,
    )


def summarize_pull_request(pr: PullRequest) -> PullRequestSummary:
    """Project a stored pull request onto its listing fields."""
    return PullRequestSummary(
        id=pr.id,
        number=pr.number,
        repository_full_name=pr.repository_full_name,
        title=pr.title,
        state=pr.state,
        merged=pr.merged,
        html_url=pr.html_url,
        author=summarize_user(pr.author) if pr.author is not None else None,
        merged_by=summarize_user(pr.merged_by) if pr.merged_by is not None else None,
        head=dict(pr.head or {}),
        base=dict(pr.base or {}),
        created_at=pr.created_at,
        updated_at=pr.updated_at,
        closed_at=pr.closed_at,
        merged_at=pr.merged_at,
    )


def summarize_commit(commit: Commit) -> CommitSummary:
    """Project a stored commit onto its listing fields."""
    return CommitSummary(
        id=commit.id,
        sha=commit.sha,
        repository_full_name=commit.repository_full_name,
        origin=commit.origin,
        message=commit.message,
        branch=commit.branch,
        html_url=commit.html_url,
        author=summarize_user(commit.author) if commit.author is not None else None,
        additions=commit.additions,
        deletions=commit.deletions,
        total_changes=commit.total_changes,
        created_at=commit.created_at,
    )


def _within(
    column: InstrumentedAttribute[typ.Any], window: ReportingWindow
) -> typ.Any:  # noqa: ANN401
    return column.between(window.start, window.end)


def _count_where(condition: typ.Any) -> typ.Any:  # noqa: ANN401
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0).cast(Integer)


def _group_pull_requests(
    records: typ.Iterable[PullRequest],
) -> tuple[RepositoryPullRequests, ...]:
    grouped: dict[str, list[PullRequest]] = collections.defaultdict(list)
    for pr in records:
        grouped[pr.repository_full_name].append(pr)
    groups = [
        RepositoryPullRequests(
            repository_full_name=slug,
            total=len(prs),
            merged=sum(1 for pr in prs if pr.merged),
            pull_requests=tuple(summarize_pull_request(pr) for pr in prs),
        )
        for slug, prs in grouped.items()
    ]
    groups.sort(key=lambda group: (-group.total, group.repository_full_name))
    return tuple(groups)


class StatisticsService:
    """Aggregate queries behind the ``/webhooks/github`` read endpoints."""

    def __init__(self, session: AsyncSession) -> None:
        """Bind the service to a request-scoped session."""
        self._session = session

    async def all_pull_requests(self) -> list[PullRequestSummary]:
        """Return every pull request, newest first."""
        records = await self._session.scalars(
            select(PullRequest).order_by(
                PullRequest.created_at.desc(), PullRequest.id.desc()
            )
        )
        return [summarize_pull_request(pr) for pr in records.unique()]

    async def pull_request_statistics(self) -> PullRequestStatistics:
        """Return store-wide counts with a per-author breakdown."""
        closed = PullRequest.state == PullRequestState.CLOSED
        totals = (
            await self._session.execute(
                select(
                    func.count(PullRequest.id),
                    _count_where(PullRequest.state == PullRequestState.OPEN),
                    _count_where(closed),
                    _count_where(PullRequest.merged.is_(True)),
                )
            )
        ).one()

        rows = (
            await self._session.execute(
                select(
                    User,
                    func.count(PullRequest.id).label("total"),
                    _count_where(closed).label("closed"),
                    _count_where(PullRequest.merged.is_(True)).label("merged"),
                )
                .join(PullRequest, PullRequest.author_id == User.id)
                .group_by(User.id)
                .order_by(func.count(PullRequest.id).desc(), User.id)
            )
        ).all()

        return PullRequestStatistics(
            summary=PullRequestCounts(
                total=totals[0], open=totals[1], closed=totals[2], merged=totals[3]
            ),
            by_author=tuple(
                AuthorPullRequestStats(
                    user=summarize_user(user),
                    total=total,
                    closed=closed_count,
                    merged=merged_count,
                )
                for user, total, closed_count, merged_count in rows
            ),
        )

    async def repository_statistics(self) -> list[RepositoryPullRequestStats]:
        """Return pull request totals per repository, busiest first."""
        rows = (
            await self._session.execute(
                select(
                    PullRequest.repository_full_name,
                    func.count(PullRequest.id),
                    _count_where(PullRequest.state == PullRequestState.OPEN),
                    _count_where(PullRequest.state == PullRequestState.CLOSED),
                    _count_where(PullRequest.merged.is_(True)),
                )
                .group_by(PullRequest.repository_full_name)
                .order_by(
                    func.count(PullRequest.id).desc(),
                    PullRequest.repository_full_name,
                )
            )
        ).all()
        return [
            RepositoryPullRequestStats(
                repository_full_name=slug,
                total=total,
                open=open_count,
                closed=closed_count,
                merged=merged_count,
            )
            for slug, total, open_count, closed_count, merged_count in rows
        ]

    async def open_pull_requests(self, window: ReportingWindow) -> WindowedPullRequests:
        """Return open pull requests created in ``window``, by repository."""
        return await self._pull_requests_in_state(PullRequestState.OPEN, window)

    async def closed_pull_requests(
        self, window: ReportingWindow
    ) -> WindowedPullRequests:
        """Return closed pull requests created in ``window``, by repository."""
        return await self._pull_requests_in_state(PullRequestState.CLOSED, window)

    async def commits_in_window(self, window: ReportingWindow) -> WindowedCommits:
        """Return commits created in ``window`` with per-repository totals."""
        records = (
            await self._session.scalars(
                select(Commit)
                .where(_within(Commit.created_at, window))
                .order_by(Commit.created_at.desc(), Commit.id.desc())
            )
        ).unique()

        grouped: dict[str, list[Commit]] = collections.defaultdict(list)
        total = 0
        for commit in records:
            grouped[commit.repository_full_name].append(commit)
            total += 1

        repositories = sorted(
            (
                RepositoryCommits(
                    repository_full_name=slug,
                    total_commits=len(commits),
                    total_additions=sum(c.additions for c in commits),
                    total_deletions=sum(c.deletions for c in commits),
                    commits=tuple(summarize_commit(c) for c in commits),
                )
                for slug, commits in grouped.items()
            ),
            key=lambda group: (-group.total_commits, group.repository_full_name),
        )
        return WindowedCommits(
            window_start=window.start,
            window_end=window.end,
            total_commits=total,
            repositories=tuple(repositories),
        )

    async def commit_statistics(self) -> CommitStatistics:
        """Return store-wide commit totals by author and by repository."""
        total_commits, total_authors = (
            await self._session.execute(
                select(
                    func.count(Commit.id), func.count(func.distinct(Commit.author_id))
                )
            )
        ).one()

        author_rows = (
            await self._session.execute(
                select(
                    User,
                    func.count(Commit.id),
                    func.coalesce(func.sum(Commit.additions), 0),
                    func.coalesce(func.sum(Commit.deletions), 0),
                )
                .join(Commit, Commit.author_id == User.id)
                .group_by(User.id)
                .order_by(func.count(Commit.id).desc(), User.id)
            )
        ).all()
        author_repos = await self._distinct_pairs(
            Commit.author_id, Commit.repository_full_name
        )

        repo_rows = (
            await self._session.execute(
                select(
                    Commit.repository_full_name,
                    func.count(Commit.id),
                    func.coalesce(func.sum(Commit.additions), 0),
                    func.coalesce(func.sum(Commit.deletions), 0),
                    func.count(func.distinct(Commit.author_id)),
                )
                .group_by(Commit.repository_full_name)
                .order_by(func.count(Commit.id).desc(), Commit.repository_full_name)
            )
        ).all()
        repo_branches = await self._distinct_pairs(
            Commit.repository_full_name, Commit.branch
        )

        return CommitStatistics(
            total_commits=total_commits,
            total_authors=total_authors,
            by_author=tuple(
                AuthorCommitStats(
                    user=summarize_user(user),
                    total_commits=count,
                    total_additions=additions,
                    total_deletions=deletions,
                    repositories=tuple(author_repos.get(user.id, ())),
                )
                for user, count, additions, deletions in author_rows
            ),
            by_repository=tuple(
                RepositoryCommitStats(
                    repository_full_name=slug,
                    total_commits=count,
                    total_additions=additions,
                    total_deletions=deletions,
                    branches=tuple(repo_branches.get(slug, ())),
                    author_count=authors,
                )
                for slug, count, additions, deletions, authors in repo_rows
            ),
        )

    async def self_merged_pull_requests(
        self, window: ReportingWindow
    ) -> SelfMergedPullRequests:
        """Return closed, merged pull requests whose author merged them.

        Author and merge actor are compared by GitHub id, not internal id.
        """
        author = aliased(User)
        merger = aliased(User)
        records = (
            await self._session.scalars(
                select(PullRequest)
                .join(author, PullRequest.author_id == author.id)
                .join(merger, PullRequest.merged_by_id == merger.id)
                .where(
                    PullRequest.state == PullRequestState.CLOSED,
                    PullRequest.merged.is_(True),
                    author.github_id == merger.github_id,
                    _within(PullRequest.created_at, window),
                )
                .order_by(PullRequest.created_at.desc(), PullRequest.id.desc())
            )
        ).unique()

        by_account: dict[int, list[PullRequest]] = collections.defaultdict(list)
        by_repo: collections.Counter[str] = collections.Counter()
        for pr in records:
            by_account[pr.author.github_id].append(pr)
            by_repo[pr.repository_full_name] += 1

        users = sorted(
            (
                SelfMergeUserStats(
                    user=summarize_user(prs[0].author),
                    total_self_merges=len(prs),
                    pull_requests=tuple(summarize_pull_request(pr) for pr in prs),
                )
                for prs in by_account.values()
            ),
            key=lambda stats: (-stats.total_self_merges, stats.user.login),
        )
        repositories = sorted(
            (
                SelfMergeRepositoryStats(repository_full_name=slug, total_self_merges=n)
                for slug, n in by_repo.items()
            ),
            key=lambda stats: (-stats.total_self_merges, stats.repository_full_name),
        )
        return SelfMergedPullRequests(
            window_start=window.start,
            window_end=window.end,
            total_self_merged=sum(by_repo.values()),
            unique_users=len(users),
            by_user=tuple(users),
            by_repository=tuple(repositories),
        )

    async def users_activity(self, window: ReportingWindow) -> UsersActivity:
        """Return every known account with its activity in ``window``."""
        users = (await self._session.scalars(select(User).order_by(User.id))).all()
        pr_counts = await self._pull_request_counts_by_author(window)
        commit_totals = await self._commit_totals_by_author(window)

        activity = [
            _activity(user, pr_counts.get(user.id), commit_totals.get(user.id))
            for user in users
        ]
        activity.sort(
            key=lambda item: (-(item.pull_requests + item.commits), item.user.login)
        )
        return UsersActivity(
            window_start=window.start, window_end=window.end, users=tuple(activity)
        )

    async def user_detail(
        self, login: str, window: ReportingWindow
    ) -> UserDetail | None:
        """Return one account's activity in ``window``; ``None`` if unknown."""
        user = await self._session.scalar(
            select(User).where(User.login == login).order_by(User.id).limit(1)
        )
        if user is None:
            return None

        pull_requests = (
            await self._session.scalars(
                select(PullRequest)
                .where(
                    PullRequest.author_id == user.id,
                    _within(PullRequest.created_at, window),
                )
                .order_by(PullRequest.created_at.desc(), PullRequest.id.desc())
            )
        ).unique().all()
        commits = (
            await self._session.scalars(
                select(Commit)
                .where(Commit.author_id == user.id, _within(Commit.created_at, window))
                .order_by(Commit.created_at.desc(), Commit.id.desc())
            )
        ).unique().all()

        daily: dict[typ.Any, list[int]] = collections.defaultdict(lambda: [0, 0])
        for pr in pull_requests:
            daily[pr.created_at.date()][0] += 1
        for commit in commits:
            daily[commit.created_at.date()][1] += 1

        activity = UserActivity(
            user=summarize_user(user),
            pull_requests=len(pull_requests),
            merged_pull_requests=sum(1 for pr in pull_requests if pr.merged),
            commits=len(commits),
            additions=sum(c.additions for c in commits),
            deletions=sum(c.deletions for c in commits),
        )
        return UserDetail(
            window_start=window.start,
            window_end=window.end,
            activity=activity,
            pull_requests=tuple(summarize_pull_request(pr) for pr in pull_requests),
            commits=tuple(summarize_commit(c) for c in commits),
            daily=tuple(
                DailyActivity(day=day, pull_requests=counts[0], commits=counts[1])
                for day, counts in sorted(daily.items())
            ),
        )

    async def _pull_requests_in_state(
        self, state: PullRequestState, window: ReportingWindow
    ) -> WindowedPullRequests:
        records = (
            await self._session.scalars(
                select(PullRequest)
                .where(
                    PullRequest.state == state,
                    _within(PullRequest.created_at, window),
                )
                .order_by(PullRequest.created_at.desc(), PullRequest.id.desc())
            )
        ).unique().all()
        return WindowedPullRequests(
            window_start=window.start,
            window_end=window.end,
            total=len(records),
            merged=sum(1 for pr in records if pr.merged),
            repositories=_group_pull_requests(records),
        )

    async def _distinct_pairs(
        self,
        key: InstrumentedAttribute[typ.Any],
        value: InstrumentedAttribute[typ.Any],
    ) -> dict[typ.Any, list[typ.Any]]:
        rows = (
            await self._session.execute(
                select(key, value)
                .where(value.is_not(None))
                .distinct()
                .order_by(key, value)
            )
        ).all()
        pairs: dict[typ.Any, list[typ.Any]] = collections.defaultdict(list)
        for left, right in rows:
            pairs[left].append(right)
        return pairs

    async def _pull_request_counts_by_author(
        self, window: ReportingWindow
    ) -> dict[int, tuple[int, int]]:
        rows = (
            await self._session.execute(
                select(
                    PullRequest.author_id,
                    func.count(PullRequest.id),
                    _count_where(PullRequest.merged.is_(True)),
                )
                .where(_within(PullRequest.created_at, window))
                .group_by(PullRequest.author_id)
            )
        ).all()
        return {author_id: (total, merged) for author_id, total, merged in rows}

    async def _commit_totals_by_author(
        self, window: ReportingWindow
    ) -> dict[int, tuple[int, int, int]]:
        rows = (
            await self._session.execute(
                select(
                    Commit.author_id,
                    func.count(Commit.id),
                    func.coalesce(func.sum(Commit.additions), 0),
                    func.coalesce(func.sum(Commit.deletions), 0),
                )
                .where(_within(Commit.created_at, window))
                .group_by(Commit.author_id)
            )
        ).all()
        return {
            author_id: (count, additions, deletions)
            for author_id, count, additions, deletions in rows
        }


def _activity(
    user: User,
    pr_counts: tuple[int, int] | None,
    commit_totals: tuple[int, int, int] | None,
) -> UserActivity:
    total_prs, merged_prs = pr_counts or (0, 0)
    commits, additions, deletions = commit_totals or (0, 0, 0)
    return UserActivity(
        user=summarize_user(user),
        pull_requests=total_prs,
        merged_pull_requests=merged_prs,
        commits=commits,
        additions=additions,
        deletions=deletions,
    )
