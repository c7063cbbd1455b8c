"""Persistence models for webhook-derived users, commits and pull requests."""

from __future__ import annotations

from .errors import TimezoneAwareRequiredError
from .storage import (
    PULL_REQUEST_KEY_INDEX,
    Base,
    Commit,
    CommitOrigin,
    PullRequest,
    PullRequestState,
    User,
    UTCDateTime,
    build_engine,
    ensure_pull_request_key_index,
    init_storage,
)

__all__ = [
    "PULL_REQUEST_KEY_INDEX",
    "Base",
    "Commit",
    "CommitOrigin",
    "PullRequest",
    "PullRequestState",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "User",
    "build_engine",
    "ensure_pull_request_key_index",
    "init_storage",
]
