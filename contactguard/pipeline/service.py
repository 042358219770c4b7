"""Message ingestion entry point for the content risk pipeline.

    body ──► Detector ──┐
         └─► ContextAnalyzer ─┴─► RiskScorer ──► (block?) ──► EscalationOrchestrator

Detection and scoring are pure; only escalation performs I/O.  The caller
receives an ``InspectionDecision``: when ``allowed`` is False it must not
store the message as sent content and must show ``rejection_message`` to
the sender.  That holds even when escalation itself failed; the sender
is still told no.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from contactguard.collaborators.interfaces import NotificationCollaborator, StorageCollaborator
from contactguard.core.errors import EscalationError
from contactguard.core.settings import Settings, get_settings
from contactguard.detection.context import ContextAnalyzer
from contactguard.detection.detector import Detector
from contactguard.detection.patterns import PatternLibrary
from contactguard.detection.scorer import RiskScorer
from contactguard.detection.types import RiskAssessment
from contactguard.escalation.orchestrator import EscalationOrchestrator, EscalationOutcome

logger = logging.getLogger(__name__)

# Shown to the sender: must never name the matched rule or category.
REJECTION_MESSAGE = (
    "Your message was not sent. To protect everyone on the platform, sharing phone "
    "numbers, email addresses or other contact details, or arranging contact outside "
    "the platform, is not allowed. This conversation has been referred for review."
)


@dataclass(frozen=True)
class InspectionDecision:
    allowed: bool
    assessment: RiskAssessment
    message_id: str
    rejection_message: str | None = None
    escalation: EscalationOutcome | None = None
    escalation_error: str | None = None

    def to_admin_dict(self) -> dict[str, Any]:
        """Full decision for operator and debug views; never send this to the sender."""
        return {
            "allowed": self.allowed,
            "message_id": self.message_id,
            "assessment": self.assessment.to_dict(),
            "escalation": self.escalation.to_dict() if self.escalation else None,
            "escalation_error": self.escalation_error,
        }


@dataclass(frozen=True)
class DetectionStages:
    """The side-effect-free half of the pipeline; built once per process and shared."""

    detector: Detector
    context_analyzer: ContextAnalyzer
    scorer: RiskScorer

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DetectionStages:
        settings = settings or get_settings()
        library = PatternLibrary.default(settings.category_weights)
        return cls(
            detector=Detector(library, multiplicity_bonus=settings.multiplicity_bonus),
            context_analyzer=ContextAnalyzer(library),
            scorer=RiskScorer(block_threshold=settings.block_threshold),
        )


class ContentRiskPipeline:
    """Per-message inspection service; holds only immutable collaborators."""

    def __init__(
        self,
        detector: Detector,
        context_analyzer: ContextAnalyzer,
        scorer: RiskScorer,
        orchestrator: EscalationOrchestrator,
    ) -> None:
        self.detector = detector
        self.context_analyzer = context_analyzer
        self.scorer = scorer
        self.orchestrator = orchestrator

    @classmethod
    def from_settings(
        cls,
        storage: StorageCollaborator,
        notifier: NotificationCollaborator,
        settings: Settings | None = None,
        stages: DetectionStages | None = None,
    ) -> ContentRiskPipeline:
        """Wire *storage* and *notifier* to detection stages built from *settings* unless given."""
        settings = settings or get_settings()
        stages = stages or DetectionStages.from_settings(settings)
        return cls(
            detector=stages.detector,
            context_analyzer=stages.context_analyzer,
            scorer=stages.scorer,
            orchestrator=EscalationOrchestrator(
                storage,
                notifier,
                suspend_threshold=settings.suspend_threshold,
                include_evidence=settings.include_evidence_in_review,
                admin_link_base=settings.admin_link_base,
            ),
        )

    def analyze(self, body: str | None) -> RiskAssessment:
        """Score *body* without any side effects."""
        findings = self.detector.detect(body) + self.context_analyzer.analyze_context(body)
        return self.scorer.score(findings)

    def inspect_message(
        self,
        body: str | None,
        sender_id: str,
        conversation_id: str,
        message_id: str | None = None,
    ) -> InspectionDecision:
        message_id = message_id or str(uuid4())
        assessment = self.analyze(body)

        logger.info(
            "Message inspected: message_id=%s conversation_id=%s confidence=%.2f risk=%s block=%s findings=%d",
            message_id,
            conversation_id,
            assessment.overall_confidence,
            assessment.risk_level.value,
            assessment.should_block,
            len(assessment.findings),
        )

        if not assessment.should_block:
            return InspectionDecision(allowed=True, assessment=assessment, message_id=message_id)

        escalation: EscalationOutcome | None = None
        escalation_error: str | None = None
        try:
            escalation = self.orchestrator.escalate(assessment, message_id, conversation_id, sender_id)
        except EscalationError as exc:
            escalation_error = str(exc)
            logger.error(
                "Escalation not performed for message_id=%s conversation_id=%s: %s",
                message_id,
                conversation_id,
                type(exc).__name__,
            )

        return InspectionDecision(
            allowed=False,
            assessment=assessment,
            message_id=message_id,
            rejection_message=REJECTION_MESSAGE,
            escalation=escalation,
            escalation_error=escalation_error,
        )
