"""Tests for contactguard/storage/sql.py."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from contactguard.collaborators.interfaces import AuditEntry, EscalationRecord, ReviewItem
from contactguard.core.errors import ConversationNotFoundError
from contactguard.db.models import (
    AuditEvent,
    Conversation,
    Message,
    ModerationFlag,
    ModerationQueueItem,
)
from contactguard.detection.patterns import RiskCategory
from contactguard.storage.sql import BLOCKED_MESSAGE_PLACEHOLDER, SqlStorage


@pytest.fixture()
def storage(seeded) -> SqlStorage:
    return SqlStorage(seeded)


def _record(message_id="msg-1", category=RiskCategory.EMAIL_ADDRESS, confidence=0.9, detected_at=None):
    return EscalationRecord(
        message_id=message_id,
        conversation_id="conv-1",
        sender_id="user-co-1",
        company_id="co-1",
        candidate_id="cand-1",
        category=category,
        categories=(category,),
        confidence=confidence,
        masked_fragments=("****@*******.***",),
        detected_at=detected_at or datetime.now(timezone.utc),
    )


def _review(message_id="msg-1") -> ReviewItem:
    return ReviewItem(
        type="contact_sharing",
        priority="urgent",
        title="URGENT: Acme Builders attempting contact bypass",
        description="...",
        payload={"message_id": message_id, "conversation_id": "conv-1"},
    )


# ===========================================================================
# Conversation
# ===========================================================================

class TestConversation:
    def test_context(self, storage):
        ctx = storage.get_conversation_context("conv-1")
        assert ctx.company_name == "Acme Builders"
        assert ctx.company_account_id == "user-co-1"
        assert ctx.candidate_account_id == "user-cand-1"
        assert ctx.job_title == "Electrician Apprentice"
        assert ctx.participants == ("user-co-1", "user-cand-1")
        assert ctx.blocked is False

    def test_context_not_found(self, storage):
        with pytest.raises(ConversationNotFoundError):
            storage.get_conversation_context("nope")

    def test_block_is_idempotent(self, storage, seeded):
        storage.block_conversation("conv-1", "first reason")
        with seeded() as db:
            conv = db.get(Conversation, "conv-1")
            first = (conv.blocked, conv.blocked_reason, conv.blocked_at)

        storage.block_conversation("conv-1", "second reason")
        with seeded() as db:
            conv = db.get(Conversation, "conv-1")
            assert (conv.blocked, conv.blocked_reason, conv.blocked_at) == first
        assert first[0] is True
        assert first[1] == "first reason"

    def test_block_missing_conversation(self, storage):
        with pytest.raises(ConversationNotFoundError):
            storage.block_conversation("nope", "reason")


# ===========================================================================
# Flags and escalation records
# ===========================================================================

class TestFlags:
    def test_flag_creates_placeholder_message(self, storage, seeded):
        storage.flag_message("msg-1", "conv-1", "user-co-1", 0.9, [{"category": "email_address"}])
        with seeded() as db:
            message = db.get(Message, "msg-1")
            assert message.content == BLOCKED_MESSAGE_PLACEHOLDER
            assert message.flagged_by_ai and message.blocked_by_ai and message.contains_contact_info
            assert message.ai_findings == [{"category": "email_address"}]

    def test_flag_is_upsert(self, storage, seeded):
        storage.flag_message("msg-1", "conv-1", "user-co-1", 0.85, [])
        storage.flag_message("msg-1", "conv-1", "user-co-1", 0.95, [])
        with seeded() as db:
            messages = db.execute(select(Message)).scalars().all()
            assert len(messages) == 1
            assert messages[0].ai_confidence_score == pytest.approx(0.95)

    def test_record_escalation_upsert_by_message_and_category(self, storage, seeded):
        storage.record_escalation(_record(confidence=0.9))
        storage.record_escalation(_record(confidence=0.95))
        storage.record_escalation(_record(category=RiskCategory.EXTERNAL_PLATFORM, confidence=0.85))
        with seeded() as db:
            flags = db.execute(select(ModerationFlag).order_by(ModerationFlag.flag_type)).scalars().all()
            assert [f.flag_type for f in flags] == ["email_address", "external_platform"]
            assert flags[0].confidence_score == pytest.approx(0.95)
            assert flags[0].detected_content == ["****@*******.***"]
            assert flags[0].action_taken == "blocked"


# ===========================================================================
# Review queue / audit
# ===========================================================================

class TestReviewQueue:
    def test_enqueue(self, storage, seeded):
        storage.enqueue_review(_review())
        with seeded() as db:
            item = db.execute(select(ModerationQueueItem)).scalars().one()
            assert item.status == "pending"
            assert item.message_id == "msg-1"
            assert item.conversation_id == "conv-1"

    def test_pending_duplicate_not_added(self, storage):
        storage.enqueue_review(_review())
        storage.enqueue_review(_review())
        storage.enqueue_review(_review("msg-2"))
        assert storage.count_pending_reviews() == 2

    def test_record_audit_event(self, storage, seeded):
        storage.record_audit_event(
            AuditEntry(
                action="auto_suspend_company",
                target_type="company",
                target_id="co-1",
                details={"automatic": True},
            )
        )
        with seeded() as db:
            event = db.execute(select(AuditEvent)).scalars().one()
            assert event.actor == "system"
            assert event.immutable is True

    def test_invalid_audit_event_rejected(self, storage):
        with pytest.raises(ValueError):
            storage.record_audit_event(
                AuditEntry(action="auto_suspend_company", target_type="company", target_id="co-1")
            )


# ===========================================================================
# Counts
# ===========================================================================

class TestCounts:
    def test_empty(self, storage):
        assert storage.count_flags_today() == 0
        assert storage.count_pending_reviews() == 0
        assert storage.count_blocked_conversations() == 0
        assert storage.count_total_flags() == 0
        assert storage.count_companies_flagged() == 0

    def test_flags_today_excludes_older_flags(self, storage):
        storage.record_escalation(_record("msg-old", detected_at=datetime.now(timezone.utc) - timedelta(days=2)))
        storage.record_escalation(_record("msg-new"))
        assert storage.count_flags_today() == 1
        assert storage.count_total_flags() == 2

    def test_companies_flagged_is_distinct(self, storage):
        storage.record_escalation(_record("msg-1"))
        storage.record_escalation(_record("msg-2"))
        assert storage.count_companies_flagged() == 1

    def test_blocked_conversations(self, storage):
        storage.block_conversation("conv-1", "reason")
        assert storage.count_blocked_conversations() == 1
