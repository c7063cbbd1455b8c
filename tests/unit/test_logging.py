"""Unit tests for the femtologging helpers in ``tallyman.logging``.

Run with:
    pytest tests/unit/test_logging.py
"""

from __future__ import annotations

import pytest

from tallyman.logging import (
    LogLevel,
    configure_logging,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
    normalize_log_level,
)
from tests.helpers.femtologging_capture import capture_femto_logs


class _ListLogger:
    """Stand-in logger keeping ``(level, message, exc_info)`` tuples."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, str, object | None]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        assert stack_info is False, "stack traces are never requested"
        self.entries.append((level, message, exc_info))
        return message


class TestLevels:
    """Level parsing for ``TALLYMAN_LOG_LEVEL``."""

    @pytest.mark.parametrize("member", list(LogLevel))
    def test_every_member_is_accepted(self, member: LogLevel) -> None:
        """All enum members normalise to themselves."""
        assert normalize_log_level(member.lower()) == (member.value, False), (
            f"Expected {member} to be accepted"
        )

    @pytest.mark.parametrize("raw", [None, "", "   ", "verbose", "info!"])
    def test_unknown_levels_fall_back(self, raw: str | None) -> None:
        """Unknown or blank levels become INFO and are flagged."""
        assert normalize_log_level(raw) == ("INFO", True), (
            f"Expected {raw!r} to fall back to INFO"
        )

    def test_configure_logging_installs_root(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The normalised level is handed to femtologging's basicConfig."""
        seen: list[dict[str, object]] = []
        monkeypatch.setattr(
            "tallyman.logging.basicConfig", lambda **kwargs: seen.append(kwargs)
        )

        assert configure_logging(" error ", force=True) == ("ERROR", False), (
            "Expected the parsed level"
        )
        assert seen == [{"level": "ERROR", "force": True}], (
            "Expected a single basicConfig call"
        )


class TestEmitHelpers:
    """Percent-style interpolation before messages reach femtologging."""

    @pytest.mark.parametrize(
        ("helper", "level"),
        [
            (log_debug, "DEBUG"),
            (log_info, "INFO"),
            (log_warning, "WARNING"),
            (log_error, "ERROR"),
        ],
    )
    def test_helper_levels(self, helper: object, level: str) -> None:
        """Each helper emits at its own level with arguments applied."""
        logger = _ListLogger()

        helper(logger, "repo=%s number=%d", "octo/reef", 7)  # type: ignore[operator]

        assert logger.entries == [(level, "repo=octo/reef number=7", None)], (
            f"Expected one {level} entry"
        )

    def test_template_without_args_is_literal(self) -> None:
        """Templates are not interpolated when no arguments are given."""
        logger = _ListLogger()

        log_info(logger, "100% of deliveries applied")

        assert logger.entries[0][1] == "100% of deliveries applied", (
            "Expected the template verbatim"
        )

    def test_exc_info_is_forwarded(self) -> None:
        """Exceptions are passed through for femtologging to render."""
        logger = _ListLogger()
        error = RuntimeError("sink down")

        log_error(logger, "notify failed", exc_info=error)

        assert logger.entries[0][2] is error, "Expected the exception forwarded"

    def test_real_logger_receives_message(self) -> None:
        """Messages reach handlers attached to a femtologging logger."""
        with capture_femto_logs("tallyman.tests.logging") as capture:
            log_warning(
                get_logger("tallyman.tests.logging"), "stale opened #%d", 7
            )
            capture.wait_for_count(1)

        assert capture.messages_at("WARNING") == ["stale opened #7"], (
            "Expected the formatted warning"
        )
