"""NotificationSink protocol for announcing pull request lifecycle events.

Sinks are best effort. Ingestion awaits them after its transaction commits,
logs any exception they raise, and never retries or propagates it.

Usage
-----
>>> from tallyman.notifications.sink import NotificationSink, NullNotificationSink
>>> isinstance(NullNotificationSink(), NotificationSink)
True

"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ


class NotificationKind(enum.StrEnum):
    """Which lifecycle channel a notification belongs to."""

    OPENED = "opened"
    CLOSED = "closed"


@dc.dataclass(frozen=True, slots=True)
class AccountSummary:
    """Display fields for the account shown in a notification."""

    login: str | None = None
    html_url: str | None = None
    avatar_url: str | None = None


@dc.dataclass(frozen=True, slots=True)
class PullRequestNotification:
    """Everything a sink needs to announce one pull request event.

    Attributes
    ----------
    kind
        ``opened`` or ``closed``. Closed notifications are sent whether or
        not the pull request was merged.
    repository_full_name
        ``owner/name`` of the repository.
    repository_name
        Short repository name used in headlines.
    number
        Pull request number.
    title
        Pull request title.
    html_url
        Link to the pull request on GitHub.
    author
        The account that opened the pull request.
    merged
        Whether the pull request was merged (closed notifications only).
    merged_by
        The merging account, when known.

    """

    kind: NotificationKind
    repository_full_name: str
    repository_name: str
    number: int
    title: str
    html_url: str | None
    author: AccountSummary
    merged: bool = False
    merged_by: AccountSummary | None = None


@typ.runtime_checkable
class NotificationSink(typ.Protocol):
    """Port for delivering pull request notifications."""

    async def notify(self, notification: PullRequestNotification) -> None:
        """Deliver ``notification``; may raise on failure."""
        ...


class NullNotificationSink:
    """Sink used when no notification channel is configured."""

    async def notify(self, notification: PullRequestNotification) -> None:
        """Discard the notification."""
        del notification
