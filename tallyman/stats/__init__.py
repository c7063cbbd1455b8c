"""Read-side statistics and the shared reporting-window policy."""

from __future__ import annotations

from .service import StatisticsService
from .window import (
    DEFAULT_WINDOW_DAYS,
    InvalidWindowError,
    ReportingWindow,
    parse_bound,
    resolve_window,
)

__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "InvalidWindowError",
    "ReportingWindow",
    "StatisticsService",
    "parse_bound",
    "resolve_window",
]
