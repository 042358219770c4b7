"""Escalation orchestrator: the ordered side effects of a block decision.

Steps
-----
1. get_conversation_context   fatal on failure; nothing has been written yet
2. block_conversation         reason = summarised category list
   flag_message               max confidence + masked findings
3. record_escalation:<cat>    one durable record per finding category
4. enqueue_review             priority is always "urgent"
5. notify_operators
6. suspend_account            only when overall confidence >= suspend threshold
   audit_suspension           automatic=True, distinguishes from manual suspensions

Steps 2-6 are independently fallible.  A failure is logged with the step
name and ids needed to replay it by hand, recorded as a failed
``StepOutcome``, and the remaining steps still run.  Nothing is ever
unwound: a conversation that was blocked stays blocked even if every later
step fails.  Every step is idempotent at the collaborator, so a whole
escalation can be retried safely.

Safety: the raw matches on ``Finding.evidence`` are read exactly once, for
the admin review payload, and only when ``include_evidence`` is set.  They
are never logged.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from contactguard.audit.events import EVENT_AUTO_SUSPENSION
from contactguard.collaborators.interfaces import (
    AuditEntry,
    ConversationContext,
    EscalationRecord,
    NotificationCollaborator,
    OperatorNotification,
    ReviewItem,
    StorageCollaborator,
)
from contactguard.core.errors import ConversationNotFoundError, EscalationAbortedError
from contactguard.detection.patterns import RiskCategory
from contactguard.detection.types import RiskAssessment

logger = logging.getLogger(__name__)

REVIEW_TYPE_CONTACT_SHARING = "contact_sharing"
REVIEW_PRIORITY_URGENT = "urgent"

_CATEGORY_LABELS: dict[RiskCategory, str] = {
    RiskCategory.PHONE_NUMBER: "phone number",
    RiskCategory.EMAIL_ADDRESS: "email address",
    RiskCategory.EXTERNAL_PLATFORM: "external platform contact",
    RiskCategory.MEETING_REQUEST: "off-platform meeting request",
    RiskCategory.URGENT_CONTEXT: "urgent anti-platform wording",
}

StepStatus = Literal["ok", "failed", "skipped"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def summarize_categories(categories: list[RiskCategory]) -> str:
    """Human-readable reason string, e.g. ``"Contact sharing detected: phone number, email address"``."""
    labels = ", ".join(_CATEGORY_LABELS[c] for c in categories)
    return f"Contact sharing detected: {labels}"


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepOutcome:
    name: str
    status: StepStatus
    error: str | None = None


@dataclass(frozen=True)
class EscalationOutcome:
    """Accumulated step results; never raised, always returned."""

    message_id: str
    conversation_id: str
    steps: tuple[StepOutcome, ...]
    suspension_requested: bool

    @property
    def failed_steps(self) -> list[str]:
        return [s.name for s in self.steps if s.status == "failed"]

    @property
    def succeeded(self) -> bool:
        return not self.failed_steps

    @property
    def partial(self) -> bool:
        return bool(self.failed_steps) and any(s.status == "ok" for s in self.steps)

    def step(self, name: str) -> StepOutcome | None:
        return next((s for s in self.steps if s.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "conversation_id": self.conversation_id,
            "succeeded": self.succeeded,
            "partial": self.partial,
            "suspension_requested": self.suspension_requested,
            "steps": [
                {"name": s.name, "status": s.status, "error": s.error} for s in self.steps
            ],
        }


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class EscalationOrchestrator:
    """Run the escalation steps for one blocked message.

    Holds no per-message state, so concurrent escalations for different
    messages need no coordination.
    """

    def __init__(
        self,
        storage: StorageCollaborator,
        notifier: NotificationCollaborator,
        suspend_threshold: float = 0.9,
        include_evidence: bool = True,
        admin_link_base: str = "/admin/moderation/conversation",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.storage = storage
        self.notifier = notifier
        self.suspend_threshold = suspend_threshold
        self.include_evidence = include_evidence
        self.admin_link_base = admin_link_base.rstrip("/")
        self.clock = clock

    def escalate(
        self,
        assessment: RiskAssessment,
        message_id: str,
        conversation_id: str,
        sender_id: str,
    ) -> EscalationOutcome:
        """Run steps 1-6 for a blocked message and return the accumulated outcome.

        Raises
        ------
        ValueError
            *assessment* is not a block decision.
        ConversationNotFoundError
            The conversation no longer exists; nothing was written.
        EscalationAbortedError
            The conversation lookup failed for any other reason.
        """
        if not assessment.should_block:
            raise ValueError("escalate() requires an assessment with should_block=True")

        context = self._load_context(conversation_id)
        now = self.clock()
        categories = assessment.categories
        steps: list[StepOutcome] = []

        def run(name: str, action: Callable[[], None]) -> StepOutcome:
            try:
                action()
            except Exception as exc:
                logger.error(
                    "Escalation step failed: step=%s message_id=%s conversation_id=%s error=%s: %s",
                    name,
                    message_id,
                    conversation_id,
                    type(exc).__name__,
                    exc,
                )
                outcome = StepOutcome(name=name, status="failed", error=f"{type(exc).__name__}: {exc}")
            else:
                outcome = StepOutcome(name=name, status="ok")
            steps.append(outcome)
            return outcome

        # -- 2. block + flag -------------------------------------------------
        run(
            "block_conversation",
            lambda: self.storage.block_conversation(conversation_id, summarize_categories(categories)),
        )
        run(
            "flag_message",
            lambda: self.storage.flag_message(
                message_id,
                conversation_id,
                sender_id,
                assessment.overall_confidence,
                [f.to_dict() for f in assessment.findings],
            ),
        )

        # -- 3. per-category records -------------------------------------------
        for record in self._build_records(assessment, message_id, conversation_id, sender_id, context, now):
            run(f"record_escalation:{record.category.value}", lambda r=record: self.storage.record_escalation(r))

        # -- 4. review queue ---------------------------------------------------
        suspend = assessment.overall_confidence >= self.suspend_threshold
        run(
            "enqueue_review",
            lambda: self.storage.enqueue_review(
                self._build_review_item(assessment, message_id, conversation_id, sender_id, context, now)
            ),
        )

        # -- 5. operator notification -----------------------------------------
        run(
            "notify_operators",
            lambda: self.notifier.notify_operators(
                self._build_notification(assessment, conversation_id, context, suspend)
            ),
        )

        # -- 6. auto-suspension ------------------------------------------------
        suspension_requested = False
        if suspend:
            account_id = self._employer_account_to_suspend(context, sender_id)
            if account_id is None:
                logger.info(
                    "Auto-suspension skipped: sender is not the employer participant "
                    "(message_id=%s conversation_id=%s)",
                    message_id,
                    conversation_id,
                )
                steps.append(StepOutcome(name="suspend_account", status="skipped"))
            else:
                reason = summarize_categories(categories)
                suspended = run(
                    "suspend_account",
                    lambda: self.notifier.request_account_suspension(account_id, reason),
                )
                suspension_requested = suspended.status == "ok"
                if suspension_requested:
                    run(
                        "audit_suspension",
                        lambda: self.storage.record_audit_event(
                            AuditEntry(
                                action=EVENT_AUTO_SUSPENSION,
                                target_type="company",
                                target_id=context.company_id or account_id,
                                details={
                                    "reason": reason,
                                    "automatic": True,
                                    "account_id": account_id,
                                    "message_id": message_id,
                                    "conversation_id": conversation_id,
                                    "flags": [c.value for c in categories],
                                    "confidence": assessment.overall_confidence,
                                    "timestamp": now.isoformat(),
                                },
                            )
                        ),
                    )

        outcome = EscalationOutcome(
            message_id=message_id,
            conversation_id=conversation_id,
            steps=tuple(steps),
            suspension_requested=suspension_requested,
        )
        if outcome.succeeded:
            logger.info(
                "Escalation complete: message_id=%s conversation_id=%s steps=%d suspended=%s",
                message_id,
                conversation_id,
                len(steps),
                suspension_requested,
            )
        else:
            logger.warning(
                "Escalation degraded: message_id=%s conversation_id=%s failed=%s",
                message_id,
                conversation_id,
                ",".join(outcome.failed_steps),
            )
        return outcome

    # -- helpers -----------------------------------------------------------

    def _load_context(self, conversation_id: str) -> ConversationContext:
        try:
            return self.storage.get_conversation_context(conversation_id)
        except ConversationNotFoundError:
            logger.warning("Escalation aborted: conversation %s not found", conversation_id)
            raise
        except Exception as exc:
            logger.error(
                "Escalation aborted: context lookup failed for conversation %s (%s)",
                conversation_id,
                type(exc).__name__,
            )
            raise EscalationAbortedError(
                conversation_id, f"Context lookup failed for conversation {conversation_id}: {exc}"
            ) from exc

    @staticmethod
    def _employer_account_to_suspend(context: ConversationContext, sender_id: str) -> str | None:
        if context.company_account_id and str(context.company_account_id) == str(sender_id):
            return context.company_account_id
        return None

    @staticmethod
    def _build_records(
        assessment: RiskAssessment,
        message_id: str,
        conversation_id: str,
        sender_id: str,
        context: ConversationContext,
        now: datetime,
    ) -> list[EscalationRecord]:
        categories = tuple(assessment.categories)
        records = []
        for category in categories:
            in_category = [f for f in assessment.findings if f.category == category]
            records.append(
                EscalationRecord(
                    message_id=message_id,
                    conversation_id=conversation_id,
                    sender_id=sender_id,
                    company_id=context.company_id,
                    candidate_id=context.candidate_id,
                    category=category,
                    categories=categories,
                    confidence=max(f.confidence for f in in_category),
                    masked_fragments=tuple(frag for f in in_category for frag in f.matched_fragments),
                    detected_at=now,
                )
            )
        return records

    def _build_review_item(
        self,
        assessment: RiskAssessment,
        message_id: str,
        conversation_id: str,
        sender_id: str,
        context: ConversationContext,
        now: datetime,
    ) -> ReviewItem:
        company = context.company_name or "Unknown"
        candidate = context.candidate_name or "Unknown"
        job = context.job_title or "Unknown Position"
        flag_types = [c.value for c in assessment.categories]

        payload: dict[str, Any] = {
            "message_id": message_id,
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "company_id": context.company_id,
            "candidate_id": context.candidate_id,
            "company_name": context.company_name,
            "candidate_name": context.candidate_name,
            "job_title": context.job_title,
            "flag_types": flag_types,
            "confidence": assessment.overall_confidence,
            "risk_level": assessment.risk_level.value,
            "findings": [f.to_dict() for f in assessment.findings],
            "timestamp": now.isoformat(),
        }
        if self.include_evidence:
            payload["detected_content"] = [f.evidence[0] for f in assessment.findings if f.evidence]

        return ReviewItem(
            type=REVIEW_TYPE_CONTACT_SHARING,
            priority=REVIEW_PRIORITY_URGENT,
            title=f"URGENT: {context.company_name or 'Company'} attempting contact bypass",
            description=(
                f'Company "{company}" attempted to share contact information with candidate '
                f'"{candidate}" for position "{job}". Conversation blocked automatically. '
                f"Detected: {', '.join(flag_types)}. Immediate review required."
            ),
            payload=payload,
        )

    def _build_notification(
        self,
        assessment: RiskAssessment,
        conversation_id: str,
        context: ConversationContext,
        suspend: bool,
    ) -> OperatorNotification:
        company = context.company_name or "Unknown company"
        candidate = context.candidate_name or "candidate"
        job = f' for "{context.job_title}"' if context.job_title else ""
        body = (
            f'Company "{company}" was blocked for sharing contact information with '
            f'"{candidate}"{job} (confidence {assessment.overall_confidence:.2f}).'
        )
        if suspend:
            body += " Account suspension requested pending review."
        return OperatorNotification(
            title=f"{'CRITICAL' if suspend else 'HIGH'}: Contact sharing blocked: {company} / {candidate}",
            body=body,
            severity="critical" if suspend else "high",
            link_ref=f"{self.admin_link_base}/{conversation_id}",
        )
