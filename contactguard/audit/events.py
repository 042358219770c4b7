"""Event type constants for the append-only moderation audit trail."""
from __future__ import annotations

EVENT_AUTO_SUSPENSION = "auto_suspend_company"
EVENT_MANUAL_SUSPENSION = "manual_suspend_company"
EVENT_REVIEW_UPHELD = "review_upheld"
EVENT_REVIEW_DISMISSED = "review_dismissed"
EVENT_CONVERSATION_UNBLOCKED = "conversation_unblocked"

VALID_EVENT_TYPES: frozenset[str] = frozenset({
    EVENT_AUTO_SUSPENSION,
    EVENT_MANUAL_SUSPENSION,
    EVENT_REVIEW_UPHELD,
    EVENT_REVIEW_DISMISSED,
    EVENT_CONVERSATION_UNBLOCKED,
})

SUSPENSION_EVENT_TYPES: frozenset[str] = frozenset({
    EVENT_AUTO_SUSPENSION,
    EVENT_MANUAL_SUSPENSION,
})
