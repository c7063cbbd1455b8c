"""Read-only statistics resources under ``/webhooks/github``.

One resource serves every statistics route through Falcon's suffixed
responders, so routes share the window parsing and serialization below.

Usage
-----
Register the routes on the Falcon app::

    resource = StatisticsResource(dependencies)
    app.add_route("/webhooks/github/open-prs", resource, suffix="open_prs")
    app.add_route("/webhooks/github/users/{login}", resource, suffix="user")

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import msgspec

from tallyman.api.errors import InvalidInputError, UserNotFoundError
from tallyman.common.time import Clock, utcnow
from tallyman.stats.service import StatisticsService
from tallyman.stats.window import (
    DEFAULT_WINDOW_DAYS,
    InvalidWindowError,
    ReportingWindow,
    parse_bound,
    resolve_window,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession

__all__ = ["StatisticsResource", "StatisticsResourceDependencies"]

START_PARAM = "startDate"
END_PARAM = "endDate"

# (suffix, path below /webhooks/github)
STATISTICS_ROUTES: tuple[tuple[str, str], ...] = (
    ("pull_requests", "pull-requests"),
    ("statistics", "statistics"),
    ("repository_stats", "repository-stats"),
    ("open_prs", "open-prs"),
    ("closed_prs", "closed-prs"),
    ("commits", "commits"),
    ("commit_statistics", "commit-statistics"),
    ("self_merged_prs", "self-merged-prs"),
    ("users", "users"),
    ("user", "users/{login}"),
)


@dc.dataclass(frozen=True, slots=True)
class StatisticsResourceDependencies:
    """Dependencies for ``StatisticsResource``.

    Attributes
    ----------
    stats_factory
        Builds a statistics service around the request-scoped session.
    window_days
        Window length used when ``startDate`` is omitted.
    clock
        Source of "now" for open-ended windows.

    """

    stats_factory: cabc.Callable[[AsyncSession], StatisticsService] = (
        StatisticsService
    )
    window_days: int = DEFAULT_WINDOW_DAYS
    clock: Clock = utcnow


def _to_media(result: object) -> typ.Any:  # noqa: ANN401
    return msgspec.to_builtins(result)


class StatisticsResource:
    """Serve the aggregate read endpoints."""

    def __init__(self, dependencies: StatisticsResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._stats_factory = dependencies.stats_factory
        self._window_days = dependencies.window_days
        self._clock = dependencies.clock

    def _stats(self, req: Request) -> StatisticsService:
        return self._stats_factory(req.context.session)

    def _window(self, req: Request) -> ReportingWindow:
        """Resolve ``startDate``/``endDate`` through the shared window policy.

        Raises
        ------
        InvalidInputError
            If either bound is malformed or start falls after end.

        """
        try:
            start = parse_bound(START_PARAM, req.get_param(START_PARAM))
        except InvalidWindowError as exc:
            raise InvalidInputError(str(exc), field=START_PARAM) from exc
        try:
            end = parse_bound(END_PARAM, req.get_param(END_PARAM))
        except InvalidWindowError as exc:
            raise InvalidInputError(str(exc), field=END_PARAM) from exc
        try:
            return resolve_window(
                start, end, now=self._clock(), default_days=self._window_days
            )
        except InvalidWindowError as exc:
            raise InvalidInputError(str(exc)) from exc

    async def on_get_pull_requests(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/pull-requests."""
        resp.media = _to_media(await self._stats(req).all_pull_requests())
        resp.status = falcon.HTTP_200

    async def on_get_statistics(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/statistics."""
        resp.media = _to_media(await self._stats(req).pull_request_statistics())
        resp.status = falcon.HTTP_200

    async def on_get_repository_stats(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/repository-stats."""
        resp.media = _to_media(await self._stats(req).repository_statistics())
        resp.status = falcon.HTTP_200

    async def on_get_open_prs(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/open-prs."""
        window = self._window(req)
        resp.media = _to_media(await self._stats(req).open_pull_requests(window))
        resp.status = falcon.HTTP_200

    async def on_get_closed_prs(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/closed-prs."""
        window = self._window(req)
        resp.media = _to_media(await self._stats(req).closed_pull_requests(window))
        resp.status = falcon.HTTP_200

    async def on_get_commits(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/commits."""
        window = self._window(req)
        resp.media = _to_media(await self._stats(req).commits_in_window(window))
        resp.status = falcon.HTTP_200

    async def on_get_commit_statistics(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/commit-statistics."""
        resp.media = _to_media(await self._stats(req).commit_statistics())
        resp.status = falcon.HTTP_200

    async def on_get_self_merged_prs(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/self-merged-prs."""
        window = self._window(req)
        resp.media = _to_media(
            await self._stats(req).self_merged_pull_requests(window)
        )
        resp.status = falcon.HTTP_200

    async def on_get_users(self, req: Request, resp: Response) -> None:
        """Handle GET /webhooks/github/users."""
        window = self._window(req)
        resp.media = _to_media(await self._stats(req).users_activity(window))
        resp.status = falcon.HTTP_200

    async def on_get_user(self, req: Request, resp: Response, *, login: str) -> None:
        """Handle GET /webhooks/github/users/{login}.

        Raises
        ------
        UserNotFoundError
            If no stored user has ``login``.

        """
        window = self._window(req)
        detail = await self._stats(req).user_detail(login, window)
        if detail is None:
            raise UserNotFoundError(login)
        resp.media = _to_media(detail)
        resp.status = falcon.HTTP_200
