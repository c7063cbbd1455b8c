"""Unit tests for statistics window resolution."""

from __future__ import annotations

import datetime as dt

import pytest

from tallyman.stats.window import (
    InvalidWindowError,
    ReportingWindow,
    parse_bound,
    resolve_window,
)

NOW = dt.datetime(2024, 3, 8, 12, tzinfo=dt.UTC)


class TestParseBound:
    """Tests for query-string bound parsing."""

    def test_bare_date_is_midnight_utc(self) -> None:
        """``YYYY-MM-DD`` is read as the start of that day in UTC."""
        assert parse_bound("startDate", "2024-03-01") == dt.datetime(
            2024, 3, 1, tzinfo=dt.UTC
        ), "Expected midnight UTC"

    def test_datetime_with_zulu(self) -> None:
        """Full datetimes with ``Z`` parse as UTC."""
        assert parse_bound("endDate", "2024-03-01T10:30:00Z") == dt.datetime(
            2024, 3, 1, 10, 30, tzinfo=dt.UTC
        ), "Expected the exact instant"

    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_absent(self, raw: str | None) -> None:
        """Missing bounds parse to None."""
        assert parse_bound("startDate", raw) is None, "Expected None"

    @pytest.mark.parametrize("raw", ["last week", "2024-13-01", "2024-03-01T10:00"])
    def test_malformed(self, raw: str) -> None:
        """Unparsable and naive values raise InvalidWindowError."""
        with pytest.raises(InvalidWindowError, match="startDate"):
            parse_bound("startDate", raw)


class TestResolveWindow:
    """Tests for defaulting and validating window bounds."""

    def test_defaults_to_trailing_days(self) -> None:
        """No bounds means the trailing ``default_days`` ending now."""
        window = resolve_window(None, None, now=NOW, default_days=7)

        assert window == ReportingWindow(
            start=NOW - dt.timedelta(days=7), end=NOW
        ), "Expected a trailing seven-day window"

    def test_start_defaults_relative_to_end(self) -> None:
        """A missing start is measured back from the supplied end."""
        end = dt.datetime(2024, 2, 1, tzinfo=dt.UTC)

        window = resolve_window(None, end, now=NOW, default_days=3)

        assert window.start == dt.datetime(2024, 1, 29, tzinfo=dt.UTC), (
            "Expected three days before the end"
        )

    def test_explicit_bounds_kept(self) -> None:
        """Explicit bounds are used as given."""
        start = dt.datetime(2024, 1, 1, tzinfo=dt.UTC)

        window = resolve_window(start, NOW, now=NOW)

        assert (window.start, window.end) == (start, NOW), "Expected both bounds"

    def test_inverted_bounds(self) -> None:
        """A start after the end is rejected."""
        with pytest.raises(InvalidWindowError, match="must not be after"):
            resolve_window(NOW, NOW - dt.timedelta(seconds=1), now=NOW)

    def test_contains_is_inclusive(self) -> None:
        """Both window edges are inside the window."""
        window = resolve_window(None, None, now=NOW, default_days=1)

        assert window.contains(window.start), "Expected start to be included"
        assert window.contains(window.end), "Expected end to be included"
        assert not window.contains(NOW + dt.timedelta(seconds=1)), (
            "Expected later moments to be excluded"
        )
