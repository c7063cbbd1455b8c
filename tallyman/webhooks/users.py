"""Find-or-create resolution of GitHub accounts to stored users."""

from __future__ import annotations

import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tallyman.store.storage import User
from tallyman.webhooks.errors import WebhookPayloadError

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tallyman.webhooks.payloads import AccountRef


class UserRegistry:
    """Resolve account references to :class:`User` rows.

    Existing users are returned untouched: profile fields keep the values
    captured when the account was first seen.
    """

    async def resolve(
        self, session: AsyncSession, account: AccountRef, *, field: str = "user"
    ) -> User:
        """Return the user for ``account``, inserting one on first sight.

        Raises
        ------
        WebhookPayloadError
            If ``account`` carries no GitHub id.

        """
        if account.id is None:
            raise WebhookPayloadError.missing_account(field)

        existing = await self._find(session, account.id)
        if existing is not None:
            return existing

        user = _build_user(account, account.id)
        try:
            async with session.begin_nested():
                session.add(user)
                await session.flush()
        except IntegrityError:
            # Another delivery inserted the same account between lookup and
            # flush; the unique github_id guarantees one row exists now.
            winner = await self._find(session, account.id)
            if winner is None:
                raise
            return winner
        return user

    @staticmethod
    async def _find(session: AsyncSession, github_id: int) -> User | None:
        return await session.scalar(select(User).where(User.github_id == github_id))


def _build_user(account: AccountRef, github_id: int) -> User:
    return User(
        github_id=github_id,
        login=account.login or account.username or "",
        node_id=account.node_id,
        avatar_url=account.avatar_url,
        gravatar_id=account.gravatar_id,
        url=account.url,
        html_url=account.html_url,
        followers_url=account.followers_url,
        following_url=account.following_url,
        gists_url=account.gists_url,
        starred_url=account.starred_url,
        subscriptions_url=account.subscriptions_url,
        organizations_url=account.organizations_url,
        repos_url=account.repos_url,
        events_url=account.events_url,
        received_events_url=account.received_events_url,
        type=account.type,
        site_admin=account.site_admin,
    )
