"""Relational models for users, commits and pull requests seen via webhooks."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from tallyman.common.time import utcnow
from tallyman.store.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

PULL_REQUEST_KEY_INDEX = "uq_pull_requests_natural_key"


class PullRequestState(enum.StrEnum):
    """Lifecycle states stored on a pull request."""

    OPEN = "open"
    CLOSED = "closed"


class CommitOrigin(enum.StrEnum):
    """Where a commit record came from.

    Only ``PUSH`` records correspond one-to-one with real commits; the pull
    request origins are synthetic placeholders approximating commit volume.
    """

    PUSH = "push"
    PULL_REQUEST_OPENED = "pull_request.opened"
    PULL_REQUEST_SYNCHRONIZE = "pull_request.synchronize"


class Base(DeclarativeBase):
    """Declarative base for all Tallyman tables."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and store everything in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reattach UTC to values read back from backends that drop it."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class User(Base):
    """GitHub account captured the first time any event references it.

    Profile fields are a snapshot from first sight and are never refreshed.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    github_id: Mapped[int] = mapped_column(BigInteger, unique=True)
    login: Mapped[str] = mapped_column(String(255), default="")
    node_id: Mapped[str | None] = mapped_column(String(255), default=None)
    avatar_url: Mapped[str | None] = mapped_column(String(512), default=None)
    gravatar_id: Mapped[str | None] = mapped_column(String(255), default=None)
    url: Mapped[str | None] = mapped_column(String(512), default=None)
    html_url: Mapped[str | None] = mapped_column(String(512), default=None)
    followers_url: Mapped[str | None] = mapped_column(String(512), default=None)
    following_url: Mapped[str | None] = mapped_column(String(512), default=None)
    gists_url: Mapped[str | None] = mapped_column(String(512), default=None)
    starred_url: Mapped[str | None] = mapped_column(String(512), default=None)
    subscriptions_url: Mapped[str | None] = mapped_column(String(512), default=None)
    organizations_url: Mapped[str | None] = mapped_column(String(512), default=None)
    repos_url: Mapped[str | None] = mapped_column(String(512), default=None)
    events_url: Mapped[str | None] = mapped_column(String(512), default=None)
    received_events_url: Mapped[str | None] = mapped_column(
        String(512), default=None
    )
    type: Mapped[str | None] = mapped_column(String(32), default=None)
    site_admin: Mapped[bool | None] = mapped_column(Boolean, default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class Commit(Base):
    """Append-only commit record, real (push) or synthetic (pull request)."""

    __tablename__ = "commits"
    __table_args__ = (
        Index("ix_commits_repo_time", "repository_full_name", "created_at"),
        Index("ix_commits_sha", "sha"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sha: Mapped[str] = mapped_column(String(128))
    node_id: Mapped[str | None] = mapped_column(String(255), default=None)
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    message: Mapped[str | None] = mapped_column(Text(), default=None)
    url: Mapped[str | None] = mapped_column(String(512), default=None)
    html_url: Mapped[str | None] = mapped_column(String(512), default=None)
    comments_url: Mapped[str | None] = mapped_column(String(512), default=None)
    repository: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    repository_full_name: Mapped[str] = mapped_column(String(255))
    branch: Mapped[str | None] = mapped_column(String(255), default=None)
    added: Mapped[list[str]] = mapped_column(JSON, default=list)
    removed: Mapped[list[str]] = mapped_column(JSON, default=list)
    modified: Mapped[list[str]] = mapped_column(JSON, default=list)
    total_changes: Mapped[int] = mapped_column(Integer, default=0)
    additions: Mapped[int] = mapped_column(Integer, default=0)
    deletions: Mapped[int] = mapped_column(Integer, default=0)
    origin: Mapped[str] = mapped_column(String(32), default=CommitOrigin.PUSH.value)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    recorded_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    author: Mapped[User] = relationship(lazy="joined")

    @property
    def stats(self) -> dict[str, int]:
        """Return the ``total``/``additions``/``deletions`` triple."""
        return {
            "total": self.total_changes,
            "additions": self.additions,
            "deletions": self.deletions,
        }


class PullRequest(Base):
    """Mutable pull request aggregate keyed by number within a repository.

    The natural key is ``(repository_full_name, number)``. Uniqueness is only
    enforced once :func:`ensure_pull_request_key_index` has run; until then
    duplicates are possible and are repaired by the duplicate resolver.
    """

    __tablename__ = "pull_requests"
    __table_args__ = (
        Index("ix_pull_requests_natural_key", "repository_full_name", "number"),
        Index("ix_pull_requests_state_created", "state", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    number: Mapped[int] = mapped_column(Integer)
    repository_full_name: Mapped[str] = mapped_column(String(255))
    repository: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    node_id: Mapped[str | None] = mapped_column(String(255), default=None)
    title: Mapped[str] = mapped_column(String(1024), default="")
    state: Mapped[str] = mapped_column(String(16))
    locked: Mapped[bool | None] = mapped_column(Boolean, default=None)
    body: Mapped[str | None] = mapped_column(Text(), default=None)
    url: Mapped[str | None] = mapped_column(String(512), default=None)
    html_url: Mapped[str | None] = mapped_column(String(512), default=None)
    diff_url: Mapped[str | None] = mapped_column(String(512), default=None)
    patch_url: Mapped[str | None] = mapped_column(String(512), default=None)
    issue_url: Mapped[str | None] = mapped_column(String(512), default=None)
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    merged_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    merged: Mapped[bool] = mapped_column(Boolean, default=False)
    merge_commit_sha: Mapped[str | None] = mapped_column(String(128), default=None)
    mergeable: Mapped[bool | None] = mapped_column(Boolean, default=None)
    rebaseable: Mapped[bool | None] = mapped_column(Boolean, default=None)
    mergeable_state: Mapped[str | None] = mapped_column(String(32), default=None)
    head: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    base: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    labels: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    closed_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    merged_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    recorded_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    author: Mapped[User] = relationship(foreign_keys=[author_id], lazy="joined")
    merged_by: Mapped[User | None] = relationship(
        foreign_keys=[merged_by_id], lazy="joined"
    )

    @property
    def is_self_merged(self) -> bool:
        """Return whether the author merged their own pull request.

        Accounts are compared by GitHub id rather than internal id, so two
        user rows sharing a GitHub id still count as the same person.
        """
        if self.state != PullRequestState.CLOSED or not self.merged:
            return False
        if self.author is None or self.merged_by is None:
            return False
        return self.author.github_id == self.merged_by.github_id


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_pull_request_key_index(engine: AsyncEngine) -> None:
    """Create the unique natural-key index on ``pull_requests``.

    Existing duplicates make index creation fail, so callers run the
    duplicate resolver first.
    """
    ddl = text(
        f"CREATE UNIQUE INDEX IF NOT EXISTS {PULL_REQUEST_KEY_INDEX} "
        "ON pull_requests (repository_full_name, number)"
    )
    async with engine.begin() as conn:
        await conn.execute(ddl)


def build_engine(database_url: str, **kwargs: typ.Any) -> AsyncEngine:
    """Return an async engine whose nested transactions roll back together.

    The sqlite drivers commit on every ``RELEASE SAVEPOINT`` unless an
    explicit ``BEGIN`` is outstanding, so for sqlite URLs the driver's own
    transaction handling is switched off and SQLAlchemy emits ``BEGIN``.
    """
    engine = create_async_engine(database_url, **kwargs)
    if make_url(database_url).get_backend_name() != "sqlite":
        return engine

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(
        dbapi_connection: typ.Any,  # noqa: ANN401
        _connection_record: object,
    ) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN")

    return engine
