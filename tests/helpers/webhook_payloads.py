"""Builders for GitHub webhook bodies used across tests.

>>> from tests.helpers.webhook_payloads import pull_request_payload
>>> pull_request_payload("opened", number=7)["pull_request"]["number"]
7

"""

from __future__ import annotations

import typing as typ

REPO = "octo/reef"


def account(github_id: int, login: str | None = None) -> dict[str, typ.Any]:
    """Return a GitHub account object."""
    login = login or f"user{github_id}"
    return {
        "id": github_id,
        "login": login,
        "node_id": f"U_{github_id}",
        "avatar_url": f"https://avatars.example.com/u/{github_id}",
        "html_url": f"https://github.com/{login}",
        "type": "User",
        "site_admin": False,
    }


def repository(full_name: str = REPO) -> dict[str, typ.Any]:
    """Return a repository object."""
    owner, _, name = full_name.partition("/")
    return {
        "id": sum(map(ord, full_name)),
        "node_id": f"R_{name}",
        "name": name,
        "full_name": full_name,
        "private": False,
        "url": f"https://api.github.com/repos/{full_name}",
        "html_url": f"https://github.com/{full_name}",
        "owner": {"login": owner},
    }


def pull_request_payload(  # noqa: PLR0913
    action: str,
    *,
    number: int = 7,
    repo: str = REPO,
    author_id: int = 1,
    state: str | None = None,
    merged: bool = False,
    merged_by_id: int | None = None,
    commits: int | None = None,
    additions: int | None = None,
    deletions: int | None = None,
    head_sha: str = "abc",
    after: str | None = None,
    created_at: str = "2024-03-01T10:00:00Z",
    updated_at: str = "2024-03-01T10:00:00Z",
    closed_at: str | None = None,
    title: str = "Add tallies",
) -> dict[str, typ.Any]:
    """Return a ``pull_request`` webhook body."""
    if state is None:
        state = "closed" if action == "closed" else "open"
    pr: dict[str, typ.Any] = {
        "number": number,
        "node_id": f"PR_{number}",
        "title": title,
        "state": state,
        "locked": False,
        "user": account(author_id),
        "body": "Tally every commit.",
        "url": f"https://api.github.com/repos/{repo}/pulls/{number}",
        "html_url": f"https://github.com/{repo}/pull/{number}",
        "created_at": created_at,
        "updated_at": updated_at,
        "closed_at": closed_at,
        "merged_at": closed_at if merged else None,
        "merged": merged,
        "merged_by": account(merged_by_id) if merged_by_id is not None else None,
        "head": {
            "label": "octo:feature",
            "ref": "feature",
            "sha": head_sha,
            "repo": repository(repo),
        },
        "base": {"label": "octo:main", "ref": "main", "sha": "base0"},
        "labels": [{"name": "enhancement"}],
    }
    if commits is not None:
        pr["commits"] = commits
    if additions is not None:
        pr["additions"] = additions
    if deletions is not None:
        pr["deletions"] = deletions

    payload: dict[str, typ.Any] = {
        "action": action,
        "number": number,
        "pull_request": pr,
        "repository": repository(repo),
        "sender": account(author_id),
    }
    if after is not None:
        payload["after"] = after
    return payload


def push_commit(
    sha: str,
    *,
    author_id: int | None = None,
    added: tuple[str, ...] = (),
    removed: tuple[str, ...] = (),
    modified: tuple[str, ...] = (),
    timestamp: str = "2024-03-01T09:00:00Z",
) -> dict[str, typ.Any]:
    """Return one entry of a push ``commits`` array."""
    author: dict[str, typ.Any] = {
        "name": "Marina",
        "email": "marina@example.com",
        "username": "marina",
    }
    if author_id is not None:
        author["id"] = author_id
    return {
        "id": sha,
        "node_id": f"C_{sha}",
        "message": f"commit {sha}",
        "url": f"https://github.com/{REPO}/commit/{sha}",
        "timestamp": timestamp,
        "author": author,
        "added": list(added),
        "removed": list(removed),
        "modified": list(modified),
    }


def push_payload(
    commits: list[dict[str, typ.Any]],
    *,
    repo: str = REPO,
    ref: str = "refs/heads/main",
    sender_id: int | None = 5,
) -> dict[str, typ.Any]:
    """Return a ``push`` webhook body."""
    payload: dict[str, typ.Any] = {
        "ref": ref,
        "repository": repository(repo),
        "commits": commits,
    }
    if sender_id is not None:
        payload["sender"] = account(sender_id)
    return payload
