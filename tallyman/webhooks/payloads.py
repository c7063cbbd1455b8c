"""Typed views over GitHub push and pull request webhook bodies.

Only the fields Tallyman stores are declared; everything else in a delivery
is ignored. Nearly every field is optional because GitHub omits or nulls
them freely across event variants.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec

from tallyman.common.time import parse_iso_datetime
from tallyman.webhooks.errors import WebhookPayloadError

EventT = typ.TypeVar("EventT", bound=msgspec.Struct)


class AccountRef(msgspec.Struct, frozen=True):
    """A GitHub account as embedded in webhook payloads.

    Push commit authors use ``name``/``email``/``username`` and normally have
    no ``id``; every other account reference carries one.
    """

    id: int | None = None
    login: str | None = None
    node_id: str | None = None
    avatar_url: str | None = None
    gravatar_id: str | None = None
    url: str | None = None
    html_url: str | None = None
    followers_url: str | None = None
    following_url: str | None = None
    gists_url: str | None = None
    starred_url: str | None = None
    subscriptions_url: str | None = None
    organizations_url: str | None = None
    repos_url: str | None = None
    events_url: str | None = None
    received_events_url: str | None = None
    type: str | None = None
    site_admin: bool | None = None
    name: str | None = None
    email: str | None = None
    username: str | None = None


class RepositoryRef(msgspec.Struct, frozen=True):
    """Repository block shared by push and pull request deliveries."""

    full_name: str
    id: int | None = None
    node_id: str | None = None
    name: str | None = None
    private: bool | None = None
    url: str | None = None
    html_url: str | None = None

    def snapshot(self) -> dict[str, typ.Any]:
        """Return the denormalised repository fields stored on records."""
        return {
            "id": self.id,
            "node_id": self.node_id,
            "name": self.name,
            "full_name": self.full_name,
            "private": self.private,
        }


class GitRef(msgspec.Struct, frozen=True):
    """``head`` or ``base`` of a pull request."""

    label: str | None = None
    ref: str | None = None
    sha: str | None = None
    repo: RepositoryRef | None = None

    def snapshot(self) -> dict[str, str | None]:
        """Return the label/ref/sha triple stored on pull requests."""
        return {"label": self.label, "ref": self.ref, "sha": self.sha}


class LabelRef(msgspec.Struct, frozen=True):
    """Pull request label; only the name is kept."""

    name: str | None = None


class PullRequestBody(msgspec.Struct, frozen=True):
    """The ``pull_request`` object of a pull request delivery."""

    number: int
    node_id: str | None = None
    title: str | None = None
    state: str | None = None
    locked: bool | None = None
    user: AccountRef | None = None
    merged_by: AccountRef | None = None
    body: str | None = None
    url: str | None = None
    html_url: str | None = None
    diff_url: str | None = None
    patch_url: str | None = None
    issue_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None
    merged_at: str | None = None
    merge_commit_sha: str | None = None
    merged: bool | None = None
    mergeable: bool | None = None
    rebaseable: bool | None = None
    mergeable_state: str | None = None
    head: GitRef = msgspec.field(default_factory=GitRef)
    base: GitRef = msgspec.field(default_factory=GitRef)
    labels: list[LabelRef] | None = None
    commits: int | None = None
    additions: int | None = None
    deletions: int | None = None


class PullRequestEvent(msgspec.Struct, frozen=True):
    """A ``pull_request`` webhook delivery."""

    pull_request: PullRequestBody
    repository: RepositoryRef
    action: str | None = None
    after: str | None = None
    before: str | None = None
    sender: AccountRef | None = None


class PushCommit(msgspec.Struct, frozen=True):
    """One entry of a push delivery's ``commits`` array."""

    id: str
    node_id: str | None = None
    message: str | None = None
    url: str | None = None
    timestamp: str | None = None
    author: AccountRef | None = None
    added: list[str] = msgspec.field(default_factory=list)
    removed: list[str] = msgspec.field(default_factory=list)
    modified: list[str] = msgspec.field(default_factory=list)


class PushEvent(msgspec.Struct, frozen=True):
    """A ``push`` webhook delivery."""

    ref: str
    repository: RepositoryRef
    commits: list[PushCommit] = msgspec.field(default_factory=list)
    sender: AccountRef | None = None

    @property
    def branch(self) -> str:
        """Return the branch name without the ``refs/heads/`` prefix."""
        return self.ref.removeprefix("refs/heads/")


def _require(payload: dict[str, typ.Any], field: str, event: str) -> None:
    if payload.get(field) is None:
        raise WebhookPayloadError.missing_field(field, event)


def _convert(
    payload: dict[str, typ.Any], model: type[EventT]
) -> EventT:
    try:
        return msgspec.convert(payload, type=model)
    except msgspec.ValidationError as exc:
        raise WebhookPayloadError.invalid_payload(str(exc)) from exc


def decode_pull_request_event(payload: dict[str, typ.Any]) -> PullRequestEvent:
    """Decode a pull request delivery, failing fast on missing sub-objects."""
    _require(payload, "pull_request", "pull_request")
    _require(payload, "repository", "pull_request")
    return _convert(payload, PullRequestEvent)


def decode_push_event(payload: dict[str, typ.Any]) -> PushEvent:
    """Decode a push delivery."""
    _require(payload, "repository", "push")
    _require(payload, "ref", "push")
    return _convert(payload, PushEvent)


def parse_timestamp(value: str | None, field: str) -> dt.datetime | None:
    """Parse an optional GitHub timestamp into an aware UTC datetime."""
    if value is None or not value.strip():
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError as exc:
        raise WebhookPayloadError.invalid_timestamp(field) from exc
