"""Falcon ASGI middleware for database sessions and storage bootstrap.

``SQLAlchemySessionManager`` gives every request a fresh ``AsyncSession`` via
``req.context.session`` and commits, rolls back and closes it in
``process_response``. ``StorageBootstrap`` hooks the ASGI lifespan to create
tables, collapse duplicate pull requests and install the natural-key index
before traffic arrives, and to release shared resources on shutdown.

Usage
-----
Register the middleware when creating the Falcon app::

    session_mw = SQLAlchemySessionManager(session_factory)
    bootstrap = StorageBootstrap(engine, resolver)
    app = falcon.asgi.App(middleware=[bootstrap, session_mw])

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from tallyman.logging import get_logger, log_error, log_info
from tallyman.store.storage import ensure_pull_request_key_index, init_storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from tallyman.webhooks.cleanup import DuplicatePullRequestResolver

__all__ = ["SQLAlchemySessionManager", "StorageBootstrap"]

logger = get_logger(__name__)


class SQLAlchemySessionManager:
    """Falcon middleware providing request-scoped async SQLAlchemy sessions.

    On response, the session is committed on success (2xx/3xx) or rolled
    back on error (4xx/5xx), and always closed to return the connection to
    the pool.

    Parameters
    ----------
    session_factory
        Async session factory bound to the application's database engine.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Initialize the middleware with a session factory."""
        self._session_factory = session_factory

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Attach a fresh ``AsyncSession`` to ``req.context.session``.

        The session is created with a bare ``session_factory()`` call because
        it must stay open until :meth:`process_response`.
        """
        req.context.session = self._session_factory()

    def _should_commit(self, resp: Response, *, req_succeeded: bool) -> bool:
        """Return whether the response indicates a committable outcome."""
        status = str(resp.status)
        return req_succeeded and not status.startswith(("4", "5"))

    async def _finalize_session(
        self,
        session: AsyncSession,
        resp: Response,
        *,
        req_succeeded: bool,
    ) -> None:
        """Commit or rollback *session* and close it."""
        try:
            if session.is_active:
                if self._should_commit(resp, req_succeeded=req_succeeded):
                    await session.commit()
                else:
                    await session.rollback()
        except SQLAlchemyError:
            log_error(
                logger,
                "Session cleanup failed during process_response",
                exc_info=True,
            )
            if session.is_active:
                await session.rollback()
            raise
        finally:
            await session.close()

    async def process_response(
        self,
        req: Request,
        resp: Response,
        _resource: object,
        req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature requires positional bool
    ) -> None:
        """Commit on success, rollback on error, close always."""
        session: AsyncSession | None = getattr(req.context, "session", None)
        if session is None:
            return

        await self._finalize_session(session, resp, req_succeeded=req_succeeded)


class StorageBootstrap:
    """ASGI lifespan middleware preparing storage for webhook ingestion.

    Parameters
    ----------
    engine
        Engine whose schema is created on startup and disposed on shutdown.
    resolver
        Duplicate resolver run before the unique index is created.
    enforce_uniqueness
        When ``False`` tables are created but duplicates are left alone and
        no unique index is installed.
    closers
        Extra async callables awaited on shutdown, such as a notification
        sink's ``aclose``.

    """

    def __init__(
        self,
        engine: AsyncEngine,
        resolver: DuplicatePullRequestResolver,
        *,
        enforce_uniqueness: bool = True,
        closers: cabc.Sequence[cabc.Callable[[], cabc.Awaitable[None]]] = (),
    ) -> None:
        """Store the engine, resolver and shutdown hooks."""
        self._engine = engine
        self._resolver = resolver
        self._enforce_uniqueness = enforce_uniqueness
        self._closers = tuple(closers)

    async def process_startup(self, _scope: object, _event: object) -> None:
        """Create tables and, when enforced, the natural-key index."""
        await init_storage(self._engine)
        if not self._enforce_uniqueness:
            log_info(logger, "Pull request uniqueness not enforced; index skipped")
            return
        deleted = await self._resolver.cleanup()
        await ensure_pull_request_key_index(self._engine)
        log_info(
            logger,
            "Pull request natural-key index ensured (duplicates removed: %d)",
            deleted,
        )

    async def process_shutdown(self, _scope: object, _event: object) -> None:
        """Release shared resources."""
        for close in self._closers:
            await close()
        await self._engine.dispose()
