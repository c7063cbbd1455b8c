"""The single time-window policy shared by every windowed statistic.

Usage
-----
>>> import datetime as dt
>>> now = dt.datetime(2024, 3, 8, tzinfo=dt.UTC)
>>> resolve_window(None, None, now=now, default_days=7).start.isoformat()
'2024-03-01T00:00:00+00:00'

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

from tallyman.common.time import parse_iso_datetime

DEFAULT_WINDOW_DAYS = 7


class InvalidWindowError(ValueError):
    """Raised when window bounds are malformed or out of order."""

    @classmethod
    def malformed(cls, name: str, raw: str) -> InvalidWindowError:
        """Return an error for a bound that is not an ISO-8601 datetime."""
        return cls(f"{name} must be an ISO-8601 date or datetime, got: {raw!r}")

    @classmethod
    def inverted(cls, start: dt.datetime, end: dt.datetime) -> InvalidWindowError:
        """Return an error for a start bound after the end bound."""
        return cls(
            "window start must not be after window end, got "
            f"start={start.isoformat()}, end={end.isoformat()}"
        )


@dc.dataclass(frozen=True, slots=True)
class ReportingWindow:
    """Time window for a statistics query.

    Attributes
    ----------
    start
        Start of the window (inclusive).
    end
        End of the window (inclusive).

    """

    start: dt.datetime
    end: dt.datetime

    def contains(self, moment: dt.datetime) -> bool:
        """Return whether ``moment`` falls inside the window."""
        return self.start <= moment <= self.end


def parse_bound(name: str, raw: str | None) -> dt.datetime | None:
    """Parse an optional query-string bound.

    Bare dates (``2024-03-01``) are read as midnight UTC; datetimes must carry
    an offset.

    Raises
    ------
    InvalidWindowError
        If ``raw`` is present but unparsable.

    """
    if raw is None or not raw.strip():
        return None
    text = raw.strip()
    try:
        if len(text) == len("YYYY-MM-DD"):
            return dt.datetime.combine(
                dt.date.fromisoformat(text), dt.time(), tzinfo=dt.UTC
            )
        return parse_iso_datetime(text)
    except ValueError as exc:
        raise InvalidWindowError.malformed(name, raw) from exc


def resolve_window(
    start: dt.datetime | None,
    end: dt.datetime | None,
    *,
    now: dt.datetime,
    default_days: int = DEFAULT_WINDOW_DAYS,
) -> ReportingWindow:
    """Turn optional bounds into a concrete inclusive window.

    A missing ``end`` becomes ``now``; a missing ``start`` becomes
    ``default_days`` before the resolved end.

    Raises
    ------
    InvalidWindowError
        If ``start`` is after the resolved end.

    """
    resolved_end = end or now
    resolved_start = start or resolved_end - dt.timedelta(days=default_days)
    if resolved_start > resolved_end:
        raise InvalidWindowError.inverted(resolved_start, resolved_end)
    return ReportingWindow(start=resolved_start, end=resolved_end)
