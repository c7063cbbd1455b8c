"""Environment-driven configuration for the Tallyman service.

Usage
-----
Create a configuration with defaults:

>>> config = TallymanConfig()
>>> config.stats_window_days
7

Or load from environment variables:

>>> import os
>>> os.environ["TALLYMAN_STATS_WINDOW_DAYS"] = "14"
>>> TallymanConfig.from_env().stats_window_days
14

"""

from __future__ import annotations

import dataclasses as dc
import os

from tallyman.stats.window import DEFAULT_WINDOW_DAYS

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dc.dataclass(frozen=True, slots=True)
class TallymanConfig:
    """Configuration for ingestion, statistics and notifications.

    Attributes
    ----------
    database_url
        SQLAlchemy async database URL. When ``None`` only the health
        endpoints are served.
    stats_window_days
        Days covered by a statistics window when ``startDate`` is omitted.
    discord_webhook_url
        Discord webhook receiving pull request notifications. When ``None``
        notifications are discarded.
    notify_timeout_s
        HTTP timeout for notification delivery.
    enforce_pr_uniqueness
        Whether startup collapses duplicate pull requests and then creates
        the unique natural-key index.
    cors_origins
        Origins allowed by the CORS middleware; empty disables CORS.

    """

    database_url: str | None = None
    stats_window_days: int = DEFAULT_WINDOW_DAYS
    discord_webhook_url: str | None = None
    notify_timeout_s: float = 10.0
    enforce_pr_uniqueness: bool = True
    cors_origins: tuple[str, ...] = ()

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_positive_float(env_var: str, default: float) -> float:
        """Read a positive float env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            msg = f"{env_var} must be a number, got: {raw!r}"
            raise ValueError(msg) from exc
        if value <= 0:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_bool(env_var: str, *, default: bool) -> bool:
        """Read a boolean env var such as ``true``/``0``/``off``."""
        raw = os.environ.get(env_var, "").strip().lower()
        if not raw:
            return default
        if raw in _TRUE_VALUES:
            return True
        if raw in _FALSE_VALUES:
            return False
        msg = f"{env_var} must be a boolean, got: {raw!r}"
        raise ValueError(msg)

    @staticmethod
    def _optional(env_var: str) -> str | None:
        raw = os.environ.get(env_var, "").strip()
        return raw or None

    @classmethod
    def from_env(cls) -> TallymanConfig:
        """Create configuration from ``TALLYMAN_*`` environment variables.

        Reads ``TALLYMAN_DATABASE_URL``, ``TALLYMAN_STATS_WINDOW_DAYS``,
        ``TALLYMAN_DISCORD_WEBHOOK_URL``, ``TALLYMAN_NOTIFY_TIMEOUT_S``,
        ``TALLYMAN_ENFORCE_PR_UNIQUENESS`` and ``TALLYMAN_CORS_ORIGINS``
        (comma separated).

        Raises
        ------
        ValueError
            If a numeric or boolean variable cannot be parsed.

        """
        origins = tuple(
            origin.strip()
            for origin in os.environ.get("TALLYMAN_CORS_ORIGINS", "").split(",")
            if origin.strip()
        )
        return cls(
            database_url=cls._optional("TALLYMAN_DATABASE_URL"),
            stats_window_days=cls._parse_positive_int(
                "TALLYMAN_STATS_WINDOW_DAYS", DEFAULT_WINDOW_DAYS
            ),
            discord_webhook_url=cls._optional("TALLYMAN_DISCORD_WEBHOOK_URL"),
            notify_timeout_s=cls._parse_positive_float(
                "TALLYMAN_NOTIFY_TIMEOUT_S", 10.0
            ),
            enforce_pr_uniqueness=cls._parse_bool(
                "TALLYMAN_ENFORCE_PR_UNIQUENESS", default=True
            ),
            cors_origins=origins,
        )
