"""Moderation review queue manager.

Reviewers resolve pending contact-sharing items:
- upheld: the block stands
- dismissed: false positive; the conversation is unblocked

Manual suspensions are also issued here and audited with
``automatic=False`` so they can be told apart from pipeline suspensions.
"""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from contactguard.audit.audit_log import record_event
from contactguard.audit.events import (
    EVENT_CONVERSATION_UNBLOCKED,
    EVENT_MANUAL_SUSPENSION,
    EVENT_REVIEW_DISMISSED,
    EVENT_REVIEW_UPHELD,
)
from contactguard.db.models import Company, Conversation, ModerationQueueItem
from contactguard.notification.notifier import SUSPENDED_STATUS

_VALID_DECISIONS = frozenset({"upheld", "dismissed"})

_DECISION_EVENT_MAP: dict[str, str] = {
    "upheld": EVENT_REVIEW_UPHELD,
    "dismissed": EVENT_REVIEW_DISMISSED,
}


class ReviewQueueManager:
    """Query and resolve moderation queue items within the caller's session."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    # -- query --------------------------------------------------------------

    def get_queue(self, status: str = "pending") -> list[ModerationQueueItem]:
        """Return items with *status*, oldest first."""
        stmt = (
            select(ModerationQueueItem)
            .where(ModerationQueueItem.status == status)
            .order_by(ModerationQueueItem.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    # -- resolve ------------------------------------------------------------

    def resolve_item(
        self,
        item_id: str,
        reviewer_id: str,
        decision: str,
        rationale: str,
    ) -> ModerationQueueItem:
        """Resolve *item_id* and write an audit event; dismissal unblocks the conversation."""
        if decision not in _VALID_DECISIONS:
            raise ValueError(
                f"Invalid decision {decision!r}; "
                f"must be one of {sorted(_VALID_DECISIONS)}"
            )
        if not rationale or not rationale.strip():
            raise ValueError("rationale must be non-empty")

        iid = UUID(item_id) if isinstance(item_id, str) else item_id
        item = self.db.get(ModerationQueueItem, iid)
        if item is None:
            raise KeyError(f"ModerationQueueItem {item_id} not found")
        if item.status != "pending":
            raise ValueError(
                f"Cannot resolve item in status {item.status!r}; must be pending"
            )

        item.status = "resolved"
        item.resolution = decision
        item.reviewed_by = reviewer_id
        item.reviewed_at = datetime.now(timezone.utc)
        self.db.flush()

        record_event(
            self.db,
            event_type=_DECISION_EVENT_MAP[decision],
            actor=reviewer_id,
            target_type="moderation_item",
            target_id=str(item.id),
            decision=decision,
            rationale=rationale,
        )

        if decision == "dismissed" and item.conversation_id:
            self._unblock_conversation(item.conversation_id, reviewer_id, rationale)

        return item

    def _unblock_conversation(self, conversation_id: str, actor: str, rationale: str) -> None:
        conv = self.db.get(Conversation, conversation_id)
        if conv is None or not conv.blocked:
            return
        conv.blocked = False
        conv.blocked_reason = None
        conv.blocked_at = None
        conv.flagged_for_review = False
        self.db.flush()
        record_event(
            self.db,
            event_type=EVENT_CONVERSATION_UNBLOCKED,
            actor=actor,
            target_type="conversation",
            target_id=conversation_id,
            rationale=rationale,
        )

    # -- manual suspension --------------------------------------------------

    def suspend_account_manually(self, company_id: str, actor: str, reason: str) -> Company:
        """Suspend *company_id* on a reviewer's authority; a no-op if already suspended."""
        if not reason or not reason.strip():
            raise ValueError("reason must be non-empty")

        company = self.db.get(Company, company_id)
        if company is None:
            raise KeyError(f"Company {company_id} not found")
        if company.subscription_status == SUSPENDED_STATUS:
            return company

        company.subscription_status = SUSPENDED_STATUS
        company.suspended_at = datetime.now(timezone.utc)
        company.suspension_reason = reason
        self.db.flush()

        record_event(
            self.db,
            event_type=EVENT_MANUAL_SUSPENSION,
            actor=actor,
            target_type="company",
            target_id=company_id,
            rationale=reason,
            details={"automatic": False, "account_id": company.account_id},
        )
        return company
