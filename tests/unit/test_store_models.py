"""Unit tests for the storage models and schema helpers."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tallyman.store.errors import TimezoneAwareRequiredError
from tallyman.store.storage import (
    PullRequest,
    UTCDateTime,
    User,
    ensure_pull_request_key_index,
)
from tests.helpers.records import BASE_TIME, make_pull_request, make_user, seed

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


class TestUTCDateTime:
    """Tests for the timezone-preserving column type."""

    def test_naive_values_rejected(self) -> None:
        """Binding a naive datetime raises."""
        with pytest.raises(TimezoneAwareRequiredError):
            UTCDateTime().process_bind_param(dt.datetime(2024, 3, 1), None)  # type: ignore[arg-type]

    def test_offsets_normalised_to_utc(self) -> None:
        """Aware values are converted to UTC before storage."""
        plus_two = dt.timezone(dt.timedelta(hours=2))
        value = dt.datetime(2024, 3, 1, 12, tzinfo=plus_two)

        bound = UTCDateTime().process_bind_param(value, None)  # type: ignore[arg-type]

        assert bound == dt.datetime(2024, 3, 1, 10, tzinfo=dt.UTC), "Expected UTC"
        assert bound is not None, "Expected a value"
        assert bound.tzinfo is dt.UTC, "Expected the UTC tzinfo"

    def test_naive_results_get_utc(self) -> None:
        """Values read back without tzinfo are tagged as UTC."""
        value = UTCDateTime().process_result_value(dt.datetime(2024, 3, 1), None)  # type: ignore[arg-type]

        assert value == dt.datetime(2024, 3, 1, tzinfo=dt.UTC), "Expected UTC"

    @pytest.mark.asyncio
    async def test_round_trip(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Stored timestamps come back aware on SQLite."""
        async with session_factory() as session, session.begin():
            await seed(session, make_pull_request(make_user(1)))

        async with session_factory() as session:
            pr = (await session.scalars(select(PullRequest))).unique().one()

        assert pr.created_at == BASE_TIME, "Expected the stored instant"
        assert pr.created_at.tzinfo is not None, "Expected an aware value"


class TestIsSelfMerged:
    """Tests for PullRequest.is_self_merged."""

    def test_same_account(self) -> None:
        """Merges by the author count."""
        alice = make_user(1)
        pr = make_pull_request(alice, state="closed", merged=True, merged_by=alice)
        assert pr.is_self_merged, "Expected a self-merge"

    def test_same_github_id_different_rows(self) -> None:
        """Accounts are compared by GitHub id."""
        pr = make_pull_request(
            make_user(1), state="closed", merged=True, merged_by=make_user(1)
        )
        assert pr.is_self_merged, "Expected a self-merge by GitHub id"

    @pytest.mark.parametrize(
        ("state", "merged", "merger_id"),
        [
            ("closed", True, 2),
            ("closed", False, 1),
            ("open", True, 1),
            ("closed", True, None),
        ],
    )
    def test_not_self_merged(
        self, state: str, merged: bool, merger_id: int | None
    ) -> None:
        """Merges by others, unmerged and open records do not count."""
        merged_by = make_user(merger_id) if merger_id is not None else None
        pr = make_pull_request(
            make_user(1), state=state, merged=merged, merged_by=merged_by
        )
        assert not pr.is_self_merged, "Expected no self-merge"


class TestNaturalKeyIndex:
    """Tests for the unique pull request index."""

    @pytest.mark.asyncio
    async def test_blocks_duplicates(
        self,
        sqlite_engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Once installed, a second record for the same key is rejected."""
        await ensure_pull_request_key_index(sqlite_engine)
        await ensure_pull_request_key_index(sqlite_engine)

        async with session_factory() as session:
            author = make_user(1)
            await seed(session, make_pull_request(author))
            with pytest.raises(IntegrityError):
                await seed(session, make_pull_request(author))

    @pytest.mark.asyncio
    async def test_github_id_is_unique(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Two user rows cannot share a GitHub id."""
        async with session_factory() as session:
            await seed(session, make_user(1))
            with pytest.raises(IntegrityError):
                await seed(session, User(github_id=1, login="again"))
