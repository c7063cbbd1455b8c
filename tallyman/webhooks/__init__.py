"""GitHub webhook ingestion: decoding, reconciliation and cleanup."""

from __future__ import annotations

from .actions import PullRequestAction, StoredState, Transition, plan_transition
from .cleanup import DuplicatePullRequestResolver
from .commits import CommitRecorder
from .errors import WebhookPayloadError, WebhookRejectReason
from .observability import IngestionEventLogger, IngestionEventType
from .reconciler import PullRequestReconciler, ReconcileResult
from .service import (
    EventKind,
    IngestionOutcome,
    IngestionStatus,
    WebhookIngestionService,
    classify_event,
)
from .users import UserRegistry

__all__ = [
    "CommitRecorder",
    "DuplicatePullRequestResolver",
    "EventKind",
    "IngestionEventLogger",
    "IngestionEventType",
    "IngestionOutcome",
    "IngestionStatus",
    "PullRequestAction",
    "PullRequestReconciler",
    "ReconcileResult",
    "StoredState",
    "Transition",
    "UserRegistry",
    "WebhookIngestionService",
    "WebhookPayloadError",
    "WebhookRejectReason",
    "classify_event",
    "plan_transition",
]
