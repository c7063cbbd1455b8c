"""Result structures returned by the statistics service."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

import msgspec


class UserSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Display fields for a stored GitHub account.

    Attributes
    ----------
    id
        Internal user id.
    github_id
        GitHub account id; the identity used for self-merge checks.
    login
        GitHub login, empty when the account was first seen without one.
    avatar_url
        Avatar image URL.
    html_url
        Profile page URL.

    """

    id: int
    github_id: int
    login: str
    avatar_url: str | None = None
    html_url: str | None = None


class PullRequestSummary(msgspec.Struct, kw_only=True, frozen=True):
    """One pull request as listed by the statistics endpoints."""

    id: int
    number: int
    repository_full_name: str
    title: str
    state: str
    merged: bool
    html_url: str | None = None
    author: UserSummary | None = None
    merged_by: UserSummary | None = None
    head: dict[str, str | None] = msgspec.field(default_factory=dict)
    base: dict[str, str | None] = msgspec.field(default_factory=dict)
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    closed_at: dt.datetime | None = None
    merged_at: dt.datetime | None = None


class CommitSummary(msgspec.Struct, kw_only=True, frozen=True):
    """One commit record; ``origin`` tells real and synthetic rows apart."""

    id: int
    sha: str
    repository_full_name: str
    origin: str
    message: str | None = None
    branch: str | None = None
    html_url: str | None = None
    author: UserSummary | None = None
    additions: int = 0
    deletions: int = 0
    total_changes: int = 0
    created_at: dt.datetime | None = None


class PullRequestCounts(msgspec.Struct, kw_only=True, frozen=True):
    """Totals by lifecycle outcome."""

    total: int = 0
    open: int = 0
    closed: int = 0
    merged: int = 0


class AuthorPullRequestStats(msgspec.Struct, kw_only=True, frozen=True):
    """Pull request totals for one author."""

    user: UserSummary
    total: int = 0
    closed: int = 0
    merged: int = 0


class PullRequestStatistics(msgspec.Struct, kw_only=True, frozen=True):
    """Store-wide pull request summary with a per-author breakdown."""

    summary: PullRequestCounts
    by_author: tuple[AuthorPullRequestStats, ...] = ()


class RepositoryPullRequestStats(msgspec.Struct, kw_only=True, frozen=True):
    """Pull request totals for one repository."""

    repository_full_name: str
    total: int = 0
    open: int = 0
    closed: int = 0
    merged: int = 0


class RepositoryPullRequests(msgspec.Struct, kw_only=True, frozen=True):
    """Pull requests in a window for one repository."""

    repository_full_name: str
    total: int = 0
    merged: int = 0
    pull_requests: tuple[PullRequestSummary, ...] = ()


class WindowedPullRequests(msgspec.Struct, kw_only=True, frozen=True):
    """Open or closed pull requests created inside a window."""

    window_start: dt.datetime
    window_end: dt.datetime
    total: int = 0
    merged: int = 0
    repositories: tuple[RepositoryPullRequests, ...] = ()


class RepositoryCommits(msgspec.Struct, kw_only=True, frozen=True):
    """Commits in a window for one repository."""

    repository_full_name: str
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    commits: tuple[CommitSummary, ...] = ()


class WindowedCommits(msgspec.Struct, kw_only=True, frozen=True):
    """Commits created inside a window, grouped by repository."""

    window_start: dt.datetime
    window_end: dt.datetime
    total_commits: int = 0
    repositories: tuple[RepositoryCommits, ...] = ()


class AuthorCommitStats(msgspec.Struct, kw_only=True, frozen=True):
    """Commit totals for one author."""

    user: UserSummary
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    repositories: tuple[str, ...] = ()


class RepositoryCommitStats(msgspec.Struct, kw_only=True, frozen=True):
    """Commit totals for one repository."""

    repository_full_name: str
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    branches: tuple[str, ...] = ()
    author_count: int = 0


class CommitStatistics(msgspec.Struct, kw_only=True, frozen=True):
    """Store-wide commit summary.

    Synthetic commit rows are counted alongside real ones, so totals
    approximate rather than equal real commit volume.
    """

    total_commits: int = 0
    total_authors: int = 0
    by_author: tuple[AuthorCommitStats, ...] = ()
    by_repository: tuple[RepositoryCommitStats, ...] = ()


class SelfMergeUserStats(msgspec.Struct, kw_only=True, frozen=True):
    """Self-merged pull requests for one account."""

    user: UserSummary
    total_self_merges: int = 0
    pull_requests: tuple[PullRequestSummary, ...] = ()


class SelfMergeRepositoryStats(msgspec.Struct, kw_only=True, frozen=True):
    """Self-merge count for one repository."""

    repository_full_name: str
    total_self_merges: int = 0


class SelfMergedPullRequests(msgspec.Struct, kw_only=True, frozen=True):
    """Self-merged pull requests created inside a window."""

    window_start: dt.datetime
    window_end: dt.datetime
    total_self_merged: int = 0
    unique_users: int = 0
    by_user: tuple[SelfMergeUserStats, ...] = ()
    by_repository: tuple[SelfMergeRepositoryStats, ...] = ()


class UserActivity(msgspec.Struct, kw_only=True, frozen=True):
    """Activity counts for one account inside a window."""

    user: UserSummary
    pull_requests: int = 0
    merged_pull_requests: int = 0
    commits: int = 0
    additions: int = 0
    deletions: int = 0


class UsersActivity(msgspec.Struct, kw_only=True, frozen=True):
    """Activity for every known account inside a window."""

    window_start: dt.datetime
    window_end: dt.datetime
    users: tuple[UserActivity, ...] = ()


class DailyActivity(msgspec.Struct, kw_only=True, frozen=True):
    """Per-day counts used by the single-user view."""

    day: dt.date
    pull_requests: int = 0
    commits: int = 0


class UserDetail(msgspec.Struct, kw_only=True, frozen=True):
    """One account with its activity inside a window."""

    window_start: dt.datetime
    window_end: dt.datetime
    activity: UserActivity
    pull_requests: tuple[PullRequestSummary, ...] = ()
    commits: tuple[CommitSummary, ...] = ()
    daily: tuple[DailyActivity, ...] = ()
