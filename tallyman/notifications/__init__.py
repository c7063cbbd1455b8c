"""Best-effort pull request notifications."""

from __future__ import annotations

from .discord import DiscordConfig, DiscordNotificationSink, build_discord_message
from .errors import NotificationDeliveryError
from .sink import (
    AccountSummary,
    NotificationKind,
    NotificationSink,
    NullNotificationSink,
    PullRequestNotification,
)

__all__ = [
    "AccountSummary",
    "DiscordConfig",
    "DiscordNotificationSink",
    "NotificationDeliveryError",
    "NotificationKind",
    "NotificationSink",
    "NullNotificationSink",
    "PullRequestNotification",
    "build_discord_message",
]
