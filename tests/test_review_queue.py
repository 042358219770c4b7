"""Tests for contactguard/review/queue_manager.py."""
from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from contactguard.audit.audit_log import get_target_history
from contactguard.audit.events import (
    EVENT_CONVERSATION_UNBLOCKED,
    EVENT_MANUAL_SUSPENSION,
    EVENT_REVIEW_DISMISSED,
    EVENT_REVIEW_UPHELD,
)
from contactguard.collaborators.interfaces import ReviewItem
from contactguard.db.models import AuditEvent, Company, Conversation, ModerationQueueItem
from contactguard.review.queue_manager import ReviewQueueManager
from contactguard.storage.sql import SqlStorage


@pytest.fixture()
def pending_item(seeded) -> str:
    storage = SqlStorage(seeded)
    storage.block_conversation("conv-1", "Contact sharing detected: phone number")
    storage.enqueue_review(
        ReviewItem(
            type="contact_sharing",
            priority="urgent",
            title="URGENT: Acme Builders attempting contact bypass",
            description="...",
            payload={"message_id": "msg-1", "conversation_id": "conv-1"},
        )
    )
    with seeded() as db:
        return str(db.execute(select(ModerationQueueItem.id)).scalar_one())


# ===========================================================================
# Queue
# ===========================================================================

class TestGetQueue:
    def test_pending_items(self, seeded, pending_item):
        with seeded() as db:
            items = ReviewQueueManager(db).get_queue()
            assert [str(i.id) for i in items] == [pending_item]

    def test_status_filter(self, seeded, pending_item):
        with seeded() as db:
            assert ReviewQueueManager(db).get_queue("resolved") == []


# ===========================================================================
# Resolve
# ===========================================================================

class TestResolveItem:
    def test_upheld_keeps_block(self, seeded, pending_item):
        with seeded.begin() as db:
            item = ReviewQueueManager(db).resolve_item(pending_item, "reviewer-1", "upheld", "Phone number shared")
            assert item.status == "resolved"
            assert item.resolution == "upheld"
            assert item.reviewed_by == "reviewer-1"

        with seeded() as db:
            assert db.get(Conversation, "conv-1").blocked is True
            history = get_target_history(db, pending_item)
            assert [e.event_type for e in history] == [EVENT_REVIEW_UPHELD]
            assert history[0].rationale == "Phone number shared"

    def test_dismissed_unblocks_conversation(self, seeded, pending_item):
        with seeded.begin() as db:
            ReviewQueueManager(db).resolve_item(pending_item, "reviewer-1", "dismissed", "False positive")

        with seeded() as db:
            conv = db.get(Conversation, "conv-1")
            assert conv.blocked is False
            assert conv.blocked_reason is None
            events = db.execute(select(AuditEvent.event_type)).scalars().all()
            assert sorted(events) == sorted([EVENT_REVIEW_DISMISSED, EVENT_CONVERSATION_UNBLOCKED])

    def test_invalid_decision(self, seeded, pending_item):
        with seeded() as db:
            with pytest.raises(ValueError, match="Invalid decision"):
                ReviewQueueManager(db).resolve_item(pending_item, "reviewer-1", "maybe", "hmm")

    def test_rationale_required(self, seeded, pending_item):
        with seeded() as db:
            with pytest.raises(ValueError, match="rationale"):
                ReviewQueueManager(db).resolve_item(pending_item, "reviewer-1", "upheld", "  ")

    def test_unknown_item(self, seeded):
        with seeded() as db:
            with pytest.raises(KeyError):
                ReviewQueueManager(db).resolve_item(str(uuid.uuid4()), "reviewer-1", "upheld", "ok")

    def test_cannot_resolve_twice(self, seeded, pending_item):
        with seeded.begin() as db:
            ReviewQueueManager(db).resolve_item(pending_item, "reviewer-1", "upheld", "ok")
        with seeded() as db:
            with pytest.raises(ValueError, match="Cannot resolve"):
                ReviewQueueManager(db).resolve_item(pending_item, "reviewer-2", "dismissed", "changed my mind")


# ===========================================================================
# Manual suspension
# ===========================================================================

class TestManualSuspension:
    def test_suspend_is_audited_as_manual(self, seeded):
        with seeded.begin() as db:
            company = ReviewQueueManager(db).suspend_account_manually("co-1", "reviewer-1", "Repeated bypass attempts")
            assert company.subscription_status == "suspended"

        with seeded() as db:
            event = db.execute(select(AuditEvent)).scalars().one()
            assert event.event_type == EVENT_MANUAL_SUSPENSION
            assert event.details == {"automatic": False, "account_id": "user-co-1"}
            assert event.target_id == "co-1"

    def test_already_suspended_is_noop(self, seeded):
        with seeded.begin() as db:
            ReviewQueueManager(db).suspend_account_manually("co-1", "reviewer-1", "first")
        with seeded.begin() as db:
            ReviewQueueManager(db).suspend_account_manually("co-1", "reviewer-1", "second")
        with seeded() as db:
            assert db.get(Company, "co-1").suspension_reason == "first"
            assert len(db.execute(select(AuditEvent)).scalars().all()) == 1

    def test_unknown_company(self, seeded):
        with seeded() as db:
            with pytest.raises(KeyError):
                ReviewQueueManager(db).suspend_account_manually("co-x", "reviewer-1", "reason")

    def test_reason_required(self, seeded):
        with seeded() as db:
            with pytest.raises(ValueError, match="reason"):
                ReviewQueueManager(db).suspend_account_manually("co-1", "reviewer-1", "")
