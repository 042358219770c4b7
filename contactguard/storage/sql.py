"""SQLAlchemy-backed storage collaborator.

Every operation runs in its own short transaction opened from the session
factory, so a failure in a later escalation step never rolls back an
earlier one.  Writes are idempotent:

- blocking a blocked conversation changes nothing (reason and timestamp kept)
- flagging a message is an upsert keyed by message id
- escalation records are upserts keyed by (message id, category)
- a pending review item for the same message is not duplicated

Safety: only masked fragments reach these tables; the admin review payload
is the single place raw evidence may be stored.
"""
from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from contactguard.audit.audit_log import record_event
from contactguard.collaborators.interfaces import (
    AuditEntry,
    ConversationContext,
    EscalationRecord,
    ReviewItem,
)
from contactguard.core.errors import ConversationNotFoundError
from contactguard.db.models import (
    Conversation,
    Message,
    ModerationFlag,
    ModerationQueueItem,
)

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE_PLACEHOLDER = "[MESSAGE BLOCKED - Contains contact information]"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlStorage:
    """Storage collaborator over the moderation tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    # -- conversation ---------------------------------------------------------

    def get_conversation_context(self, conversation_id: str) -> ConversationContext:
        with self.session_factory() as db:
            conv = db.get(Conversation, conversation_id)
            if conv is None:
                raise ConversationNotFoundError(conversation_id)
            company = conv.company
            candidate = conv.candidate
            return ConversationContext(
                conversation_id=conv.id,
                company_id=conv.company_id,
                company_account_id=company.account_id if company else None,
                candidate_id=conv.candidate_id,
                candidate_account_id=candidate.account_id if candidate else None,
                company_name=company.name if company else None,
                candidate_name=candidate.name if candidate else None,
                job_title=conv.job.title if conv.job else None,
                blocked=conv.blocked,
            )

    def block_conversation(self, conversation_id: str, reason: str) -> None:
        with self.session_factory.begin() as db:
            conv = db.get(Conversation, conversation_id)
            if conv is None:
                raise ConversationNotFoundError(conversation_id)
            if conv.blocked:
                logger.debug("Conversation %s already blocked", conversation_id)
                return
            conv.blocked = True
            conv.blocked_reason = reason
            conv.blocked_at = _utcnow()
            conv.flagged_for_review = True
        logger.info("Conversation %s blocked", conversation_id)

    # -- message / flags ------------------------------------------------------

    def flag_message(
        self,
        message_id: str,
        conversation_id: str,
        sender_id: str,
        confidence: float,
        masked_findings: list[dict[str, Any]],
    ) -> None:
        with self.session_factory.begin() as db:
            message = db.get(Message, message_id)
            if message is None:
                message = Message(
                    id=message_id,
                    conversation_id=conversation_id,
                    sender_id=sender_id,
                    content=BLOCKED_MESSAGE_PLACEHOLDER,
                )
                db.add(message)
            message.flagged_by_ai = True
            message.blocked_by_ai = True
            message.contains_contact_info = True
            message.ai_confidence_score = confidence
            message.ai_findings = masked_findings

    def record_escalation(self, record: EscalationRecord) -> None:
        try:
            with self.session_factory.begin() as db:
                existing = db.execute(
                    select(ModerationFlag).where(
                        ModerationFlag.message_id == record.message_id,
                        ModerationFlag.flag_type == record.category.value,
                    )
                ).scalar_one_or_none()
                if existing is not None:
                    existing.confidence_score = record.confidence
                    existing.detected_content = list(record.masked_fragments)
                    existing.categories = [c.value for c in record.categories]
                    return
                db.add(
                    ModerationFlag(
                        message_id=record.message_id,
                        conversation_id=record.conversation_id,
                        sender_id=record.sender_id,
                        company_id=record.company_id,
                        candidate_id=record.candidate_id,
                        flag_type=record.category.value,
                        categories=[c.value for c in record.categories],
                        confidence_score=record.confidence,
                        detected_content=list(record.masked_fragments),
                        action_taken="blocked",
                        created_at=record.detected_at,
                    )
                )
        except IntegrityError:
            # A concurrent retry inserted the same (message, category) first.
            logger.debug(
                "Escalation record already present: message_id=%s flag_type=%s",
                record.message_id,
                record.category.value,
            )

    # -- review queue / audit ---------------------------------------------------

    def enqueue_review(self, item: ReviewItem) -> None:
        message_id = item.payload.get("message_id")
        with self.session_factory.begin() as db:
            if message_id is not None:
                existing = db.execute(
                    select(ModerationQueueItem.id).where(
                        ModerationQueueItem.type == item.type,
                        ModerationQueueItem.message_id == message_id,
                        ModerationQueueItem.status == "pending",
                    )
                ).first()
                if existing is not None:
                    logger.debug("Review item already pending for message %s", message_id)
                    return
            db.add(
                ModerationQueueItem(
                    type=item.type,
                    priority=item.priority,
                    title=item.title,
                    description=item.description,
                    data=item.payload,
                    message_id=message_id,
                    conversation_id=item.payload.get("conversation_id"),
                    status="pending",
                )
            )

    def record_audit_event(self, entry: AuditEntry) -> None:
        with self.session_factory.begin() as db:
            record_event(
                db,
                event_type=entry.action,
                actor=entry.actor,
                target_type=entry.target_type,
                target_id=entry.target_id,
                details=entry.details,
            )

    # -- stats ----------------------------------------------------------------

    def _scalar_count(self, stmt) -> int:
        with self.session_factory() as db:
            return int(db.execute(stmt).scalar_one() or 0)

    def count_flags_today(self) -> int:
        midnight = datetime.combine(_utcnow().date(), time.min, tzinfo=timezone.utc)
        return self._scalar_count(
            select(func.count(ModerationFlag.id)).where(ModerationFlag.created_at >= midnight)
        )

    def count_pending_reviews(self) -> int:
        return self._scalar_count(
            select(func.count(ModerationQueueItem.id)).where(ModerationQueueItem.status == "pending")
        )

    def count_blocked_conversations(self) -> int:
        return self._scalar_count(
            select(func.count(Conversation.id)).where(Conversation.blocked.is_(True))
        )

    def count_total_flags(self) -> int:
        return self._scalar_count(select(func.count(ModerationFlag.id)))

    def count_companies_flagged(self) -> int:
        return self._scalar_count(
            select(func.count(func.distinct(ModerationFlag.company_id))).where(
                ModerationFlag.company_id.is_not(None)
            )
        )
