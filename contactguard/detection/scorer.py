"""Risk Scorer: fold findings into one RiskAssessment.

Overall confidence is the maximum finding confidence, never a sum.

Risk level bands
----------------
critical  overall >= 0.9 or 3+ findings
high      overall >= 0.8 or 2+ findings
medium    overall >= 0.6 or 1+ finding
low       otherwise
"""
from __future__ import annotations

from collections.abc import Iterable

from contactguard.detection.types import Finding, RiskAssessment, RiskLevel

_LEVEL_BANDS: tuple[tuple[RiskLevel, float, int], ...] = (
    (RiskLevel.CRITICAL, 0.9, 3),
    (RiskLevel.HIGH, 0.8, 2),
    (RiskLevel.MEDIUM, 0.6, 1),
)


def risk_level_for(overall_confidence: float, finding_count: int) -> RiskLevel:
    for level, min_confidence, min_findings in _LEVEL_BANDS:
        if overall_confidence >= min_confidence or finding_count >= min_findings:
            return level
    return RiskLevel.LOW


class RiskScorer:
    """Pure and deterministic: identical findings always give identical output."""

    def __init__(self, block_threshold: float = 0.8) -> None:
        if not 0.0 <= block_threshold <= 1.0:
            raise ValueError(f"block_threshold must be in [0, 1], got {block_threshold}")
        self.block_threshold = block_threshold

    def score(self, findings: Iterable[Finding]) -> RiskAssessment:
        ordered = tuple(findings)
        overall = max((f.confidence for f in ordered), default=0.0)
        return RiskAssessment(
            findings=ordered,
            overall_confidence=overall,
            risk_level=risk_level_for(overall, len(ordered)),
            should_block=overall >= self.block_threshold,
        )
