"""Unit tests for tallyman.api.middleware.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_middleware.py

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus
from unittest import mock

import falcon.asgi
import falcon.testing
import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from tallyman.api.middleware import SQLAlchemySessionManager, StorageBootstrap
from tallyman.store.storage import PULL_REQUEST_KEY_INDEX
from tallyman.webhooks.cleanup import DuplicatePullRequestResolver
from tests.helpers import RecordingEventLogger
from tests.helpers.records import make_pull_request, make_user, seed

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


class _MockSession:
    """Lightweight mock of an AsyncSession for middleware tests."""

    def __init__(self, *, is_active: bool = True) -> None:
        self.is_active = is_active
        self.commit = mock.AsyncMock()
        self.rollback = mock.AsyncMock()
        self.close = mock.AsyncMock()


class _EchoResource:
    """Resource that records whether a session was attached."""

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        """Echo whether a session is present on the request context."""
        resp.media = {"has_session": hasattr(req.context, "session")}
        resp.status = HTTPStatus.OK


class _StatusResource:
    """Resource that raises the HTTP error named in the route."""

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, *, code: int
    ) -> None:
        """Raise an HTTP error with the requested status."""
        raise falcon.HTTPError(code)


@pytest.fixture
def session() -> _MockSession:
    """Provide a fresh mock session for each test."""
    return _MockSession()


@pytest.fixture
def client(session: _MockSession) -> falcon.testing.TestClient:
    """Build a test client with the session middleware installed."""
    mw = SQLAlchemySessionManager(mock.MagicMock(return_value=session))
    app = falcon.asgi.App(middleware=[mw])  # type: ignore[no-matching-overload]  # Falcon stubs
    app.add_route("/echo", _EchoResource())
    app.add_route("/status/{code:int}", _StatusResource())
    return falcon.testing.TestClient(app)


async def _index_names(engine: AsyncEngine) -> set[str]:
    async with engine.connect() as conn:
        indexes = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).get_indexes("pull_requests")
        )
    return {index["name"] for index in indexes}


class TestSessionManager:
    """Request-scoped sessions are finalised by response status."""

    def test_session_is_attached(self, client: falcon.testing.TestClient) -> None:
        """process_request attaches a session to req.context."""
        result = client.simulate_get("/echo")
        assert result.json["has_session"] is True, "session not attached to context"

    def test_committed_and_closed_on_success(
        self, client: falcon.testing.TestClient, session: _MockSession
    ) -> None:
        """Successful requests commit, then close the session."""
        client.simulate_get("/echo")
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()
        session.close.assert_awaited_once()

    @pytest.mark.parametrize("code", [400, 404, 500])
    def test_rolled_back_and_closed_on_error(
        self, client: falcon.testing.TestClient, session: _MockSession, code: int
    ) -> None:
        """Client and server errors roll back, then close the session."""
        client.simulate_get(f"/status/{code}")
        session.rollback.assert_awaited()
        session.commit.assert_not_awaited()
        session.close.assert_awaited_once()

    def test_inactive_session_only_closed(self) -> None:
        """Sessions that are no longer active are just closed."""
        inactive = _MockSession(is_active=False)
        mw = SQLAlchemySessionManager(mock.MagicMock(return_value=inactive))
        app = falcon.asgi.App(middleware=[mw])  # type: ignore[no-matching-overload]  # Falcon stubs
        app.add_route("/echo", _EchoResource())

        falcon.testing.TestClient(app).simulate_get("/echo")

        inactive.commit.assert_not_awaited()
        inactive.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_commit_failure_is_reraised(self, session: _MockSession) -> None:
        """A failing commit is rolled back, closed and re-raised."""
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("gone"))
        mw = SQLAlchemySessionManager(mock.MagicMock(return_value=session))
        req = mock.MagicMock()
        req.context.session = session
        resp = mock.MagicMock()
        resp.status = falcon.HTTP_200

        with pytest.raises(OperationalError):
            await mw.process_response(req, resp, None, True)  # noqa: FBT003

        session.rollback.assert_awaited_once()
        session.close.assert_awaited_once()


class TestStorageBootstrap:
    """Lifespan hooks prepare and release storage."""

    @pytest.mark.asyncio
    async def test_startup_collapses_duplicates_and_indexes(
        self,
        sqlite_engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Duplicates are removed before the unique index is created."""
        async with session_factory() as s, s.begin():
            author = make_user(1)
            await seed(s, make_pull_request(author), make_pull_request(author))
        resolver = DuplicatePullRequestResolver(
            session_factory, event_logger=RecordingEventLogger()
        )

        await StorageBootstrap(sqlite_engine, resolver).process_startup(None, None)

        assert PULL_REQUEST_KEY_INDEX in await _index_names(sqlite_engine), (
            "expected the natural-key index"
        )
        assert await resolver.cleanup() == 0, "expected duplicates already removed"

    @pytest.mark.asyncio
    async def test_startup_without_enforcement(
        self, sqlite_engine: AsyncEngine
    ) -> None:
        """Disabling enforcement skips cleanup and the index."""
        resolver = mock.MagicMock()
        resolver.cleanup = mock.AsyncMock()
        bootstrap = StorageBootstrap(sqlite_engine, resolver, enforce_uniqueness=False)

        await bootstrap.process_startup(None, None)

        resolver.cleanup.assert_not_awaited()
        assert PULL_REQUEST_KEY_INDEX not in await _index_names(sqlite_engine), (
            "expected no unique index"
        )

    @pytest.mark.asyncio
    async def test_shutdown_runs_closers(self) -> None:
        """Closers are awaited before the engine is disposed."""
        order: list[str] = []
        engine = mock.MagicMock()
        engine.dispose = mock.AsyncMock(side_effect=lambda: order.append("dispose"))

        async def close() -> None:
            order.append("close")

        bootstrap = StorageBootstrap(engine, mock.MagicMock(), closers=[close])
        await bootstrap.process_shutdown(None, None)

        assert order == ["close", "dispose"], "expected closers first"
