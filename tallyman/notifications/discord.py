"""Discord webhook adapter for :class:`NotificationSink`."""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx

from .errors import NotificationDeliveryError
from .sink import NotificationKind

if typ.TYPE_CHECKING:
    from .sink import AccountSummary, PullRequestNotification

_HTTP_ERROR_STATUS_THRESHOLD = 300
OPENED_COLOR = 16761622
CLOSED_COLOR = 6697980
# Discord rejects embed fields whose value is empty.
UNKNOWN_LOGIN = "unknown"


@dataclasses.dataclass(frozen=True, slots=True)
class DiscordConfig:
    """Configuration for posting notifications to a Discord webhook."""

    webhook_url: str
    timeout_s: float = 10.0


def _author_block(account: AccountSummary | None) -> dict[str, str | None]:
    if account is None:
        return {"name": None, "url": None, "icon_url": None}
    return {
        "name": account.login,
        "url": account.html_url,
        "icon_url": account.avatar_url,
    }


def build_discord_message(notification: PullRequestNotification) -> dict[str, typ.Any]:
    """Render ``notification`` as a Discord webhook execute body."""
    repo = notification.repository_name.upper()
    title = f"PR #{notification.number}: {notification.title}"
    opener = notification.author.login or UNKNOWN_LOGIN

    if notification.kind is NotificationKind.OPENED:
        return {
            "username": "PR!",
            "avatar_url": notification.author.avatar_url,
            "content": f"\N{PUBLIC ADDRESS LOUDSPEAKER} **{repo}** has new PR!",
            "embeds": [
                {
                    "author": _author_block(notification.author),
                    "title": title,
                    "url": notification.html_url,
                    "color": OPENED_COLOR,
                    "fields": [{"name": "Open by", "value": opener, "inline": True}],
                }
            ],
        }

    closer = notification.merged_by
    verb = "merged" if notification.merged else "closed"
    embed: dict[str, typ.Any] = {
        "author": _author_block(closer or notification.author),
        "title": title,
        "url": notification.html_url,
        "color": CLOSED_COLOR,
        "fields": [{"name": "Open by", "value": opener, "inline": True}],
    }
    if closer is not None:
        closer_login = closer.login or UNKNOWN_LOGIN
        embed["description"] = f"[{closer_login}]({closer.html_url}) merged this PR"
        embed["fields"].append(
            {"name": "Closed by", "value": closer_login, "inline": True}
        )
    return {
        "username": "MERGED!" if notification.merged else "CLOSED!",
        "avatar_url": notification.author.avatar_url,
        "content": f"\N{PUBLIC ADDRESS LOUDSPEAKER} PR **{repo}** has {verb}!",
        "embeds": [embed],
    }


class DiscordNotificationSink:
    """Post pull request notifications to a Discord channel webhook."""

    def __init__(
        self,
        config: DiscordConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the sink with the webhook configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def notify(self, notification: PullRequestNotification) -> None:
        """Post ``notification`` or raise :class:`NotificationDeliveryError`."""
        try:
            response = await self._client.post(
                self._config.webhook_url, json=build_discord_message(notification)
            )
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError.transport_error(exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise NotificationDeliveryError.http_error(response.status_code)
