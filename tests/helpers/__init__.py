"""Shared test utilities."""

from __future__ import annotations

import asyncio
import typing as typ

from tallyman.webhooks.observability import IngestionEventLogger

T = typ.TypeVar("T")


def run_async(coro_func: typ.Callable[[], typ.Coroutine[typ.Any, typ.Any, T]]) -> T:
    """Execute an async callable within the test context."""
    return asyncio.run(coro_func())


class RecordingEventLogger(IngestionEventLogger):
    """Ingestion event logger that records calls instead of logging."""

    def __init__(self) -> None:
        """Replace every ``log_*`` method with a recorder."""
        self.events: list[tuple[str, dict[str, typ.Any]]] = []
        for name in dir(IngestionEventLogger):
            if name.startswith("log_"):
                setattr(self, name, self._recorder(name))

    def _recorder(self, name: str) -> typ.Callable[..., None]:
        def record(*args: object, **kwargs: object) -> None:
            self.events.append((name, {"args": args, **kwargs} if args else kwargs))

        return record

    def names(self) -> list[str]:
        """Return recorded method names in call order."""
        return [name for name, _ in self.events]

    def calls(self, name: str) -> list[dict[str, typ.Any]]:
        """Return the keyword arguments of every call to ``name``."""
        return [kwargs for recorded, kwargs in self.events if recorded == name]
