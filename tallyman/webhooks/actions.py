"""Pull request actions and the transition table applied to stored records.

Every ``(action, stored state)`` pair maps to exactly one :class:`Transition`,
including the pairs Tallyman deliberately leaves alone (``reopened``, a
repeated ``opened``), so gaps are explicit entries rather than fallthrough.
"""

from __future__ import annotations

import enum

from tallyman.store.storage import PullRequestState


class PullRequestAction(enum.StrEnum):
    """Webhook ``action`` values the reconciler distinguishes."""

    OPENED = "opened"
    CLOSED = "closed"
    SYNCHRONIZE = "synchronize"
    REOPENED = "reopened"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> PullRequestAction:
        """Map a raw ``action`` string, folding everything else to UNKNOWN."""
        if raw is None:
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class StoredState(enum.StrEnum):
    """State of the canonical record for a natural key."""

    ABSENT = "absent"
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def of(cls, state: str | None) -> StoredState:
        """Classify a stored ``state`` column; ``None`` means no record."""
        if state is None:
            return cls.ABSENT
        if state == PullRequestState.CLOSED:
            return cls.CLOSED
        return cls.OPEN


class Transition(enum.StrEnum):
    """What the reconciler does for one event."""

    CREATE_OPEN = "create_open"
    CREATE_CLOSED = "create_closed"
    CLOSE = "close"
    CREATE_FROM_SNAPSHOT = "create_from_snapshot"
    REFRESH_SNAPSHOT = "refresh_snapshot"
    IGNORE_DUPLICATE_OPENED = "ignore_duplicate_opened"
    IGNORE_STALE_OPENED = "ignore_stale_opened"
    IGNORE_UNHANDLED = "ignore_unhandled"

    @property
    def writes(self) -> bool:
        """Return whether the transition writes the pull request row."""
        return self in _WRITING_TRANSITIONS


_WRITING_TRANSITIONS = frozenset(
    {
        Transition.CREATE_OPEN,
        Transition.CREATE_CLOSED,
        Transition.CLOSE,
        Transition.CREATE_FROM_SNAPSHOT,
        Transition.REFRESH_SNAPSHOT,
    }
)

_TRANSITIONS: dict[tuple[PullRequestAction, StoredState], Transition] = {
    (PullRequestAction.OPENED, StoredState.ABSENT): Transition.CREATE_OPEN,
    (PullRequestAction.OPENED, StoredState.OPEN): Transition.IGNORE_DUPLICATE_OPENED,
    (PullRequestAction.OPENED, StoredState.CLOSED): Transition.IGNORE_STALE_OPENED,
    (PullRequestAction.CLOSED, StoredState.ABSENT): Transition.CREATE_CLOSED,
    (PullRequestAction.CLOSED, StoredState.OPEN): Transition.CLOSE,
    (PullRequestAction.CLOSED, StoredState.CLOSED): Transition.CLOSE,
    (
        PullRequestAction.SYNCHRONIZE,
        StoredState.ABSENT,
    ): Transition.CREATE_FROM_SNAPSHOT,
    (PullRequestAction.SYNCHRONIZE, StoredState.OPEN): Transition.REFRESH_SNAPSHOT,
    (PullRequestAction.SYNCHRONIZE, StoredState.CLOSED): Transition.REFRESH_SNAPSHOT,
    # TODO(reopened): move closed records back to open once the read side
    # can tell a reopened PR apart from one that was never closed.
    (PullRequestAction.REOPENED, StoredState.ABSENT): Transition.IGNORE_UNHANDLED,
    (PullRequestAction.REOPENED, StoredState.OPEN): Transition.IGNORE_UNHANDLED,
    (PullRequestAction.REOPENED, StoredState.CLOSED): Transition.IGNORE_UNHANDLED,
}


def plan_transition(action: PullRequestAction, state: StoredState) -> Transition:
    """Return the transition for ``action`` against a record in ``state``."""
    return _TRANSITIONS.get((action, state), Transition.IGNORE_UNHANDLED)


def transition_table() -> dict[tuple[PullRequestAction, StoredState], Transition]:
    """Return a copy of the explicit transition table."""
    return dict(_TRANSITIONS)
