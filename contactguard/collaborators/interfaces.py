"""Contracts the pipeline needs from the storage and notification subsystems.

The pipeline computes assessments and requests side effects; it owns no
conversation, message or account records.  Everything durable is reached
through these two protocols, so any stack that satisfies them can host the
pipeline (``contactguard.storage.sql`` and ``contactguard.notification``
provide the SQLAlchemy-backed implementations).

Idempotence requirements
------------------------
block_conversation         : blocking a blocked conversation is a no-op
flag_message               : upsert keyed by message id
record_escalation          : upsert keyed by (message id, category)
request_account_suspension : suspending a suspended account is a no-op

These make concurrent escalations for the same conversation or account
safe without locks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from contactguard.detection.patterns import RiskCategory


@dataclass(frozen=True)
class ConversationContext:
    conversation_id: str
    company_id: str | None = None
    company_account_id: str | None = None
    candidate_id: str | None = None
    candidate_account_id: str | None = None
    company_name: str | None = None
    candidate_name: str | None = None
    job_title: str | None = None
    blocked: bool = False

    @property
    def participants(self) -> tuple[str, ...]:
        return tuple(p for p in (self.company_account_id, self.candidate_account_id) if p)


@dataclass(frozen=True)
class EscalationRecord:
    """Durable audit artifact: one per category of a blocked message."""

    message_id: str
    conversation_id: str
    sender_id: str
    company_id: str | None
    candidate_id: str | None
    category: RiskCategory
    categories: tuple[RiskCategory, ...]
    confidence: float
    masked_fragments: tuple[str, ...]
    detected_at: datetime


@dataclass(frozen=True)
class ReviewItem:
    type: str
    priority: str
    title: str
    description: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OperatorNotification:
    title: str
    body: str
    severity: str
    link_ref: str


@dataclass(frozen=True)
class AuditEntry:
    action: str
    target_type: str
    target_id: str
    actor: str = "system"
    details: dict[str, Any] = field(default_factory=dict)


class StorageCollaborator(Protocol):
    def get_conversation_context(self, conversation_id: str) -> ConversationContext:
        """Raise ``ConversationNotFoundError`` when the conversation does not exist."""
        ...

    def block_conversation(self, conversation_id: str, reason: str) -> None: ...

    def flag_message(
        self,
        message_id: str,
        conversation_id: str,
        sender_id: str,
        confidence: float,
        masked_findings: list[dict[str, Any]],
    ) -> None: ...

    def record_escalation(self, record: EscalationRecord) -> None: ...

    def enqueue_review(self, item: ReviewItem) -> None: ...

    def record_audit_event(self, entry: AuditEntry) -> None: ...

    def count_flags_today(self) -> int: ...

    def count_pending_reviews(self) -> int: ...

    def count_blocked_conversations(self) -> int: ...

    def count_total_flags(self) -> int: ...

    def count_companies_flagged(self) -> int: ...


class NotificationCollaborator(Protocol):
    def notify_operators(self, notification: OperatorNotification) -> None: ...

    def request_account_suspension(self, account_id: str, reason: str) -> None: ...
