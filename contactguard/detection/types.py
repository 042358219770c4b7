"""Value objects produced by the detection and scoring stages.

Field contract
--------------
Finding.category          : closed ``RiskCategory`` enum
Finding.matched_fragments : masked matches, never empty
Finding.confidence        : [0, 1]
Finding.pattern_name      : the rule that fired, for audit trails
Finding.evidence          : raw matches; excluded from repr, equality and
                            ``to_dict``.  Read only when building the single
                            admin-facing review payload.

RiskAssessment is built once per message and never mutated.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum

from contactguard.detection.patterns import RiskCategory

DIGIT_PLACEHOLDER = "#"
LETTER_PLACEHOLDER = "*"

_DIGIT_RE = re.compile(r"\d")
_LETTER_RE = re.compile(r"[^\W\d_]")


def mask_fragment(text: str) -> str:
    """Irreversibly mask *text*: digits become ``#`` and letters become ``*``."""
    return _LETTER_RE.sub(LETTER_PLACEHOLDER, _DIGIT_RE.sub(DIGIT_PLACEHOLDER, text))


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Finding:
    category: RiskCategory
    matched_fragments: tuple[str, ...]
    confidence: float
    pattern_name: str
    evidence: tuple[str, ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.matched_fragments:
            raise ValueError("matched_fragments must not be empty")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.category.value,
            "pattern": self.pattern_name,
            "confidence": self.confidence,
            "matched_fragments": list(self.matched_fragments),
        }


@dataclass(frozen=True)
class RiskAssessment:
    findings: tuple[Finding, ...]
    overall_confidence: float
    risk_level: RiskLevel
    should_block: bool

    @property
    def categories(self) -> list[RiskCategory]:
        """Distinct finding categories, in first-seen order."""
        return list(dict.fromkeys(f.category for f in self.findings))

    def to_dict(self, include_findings: bool = True) -> dict[str, object]:
        data: dict[str, object] = {
            "overall_confidence": self.overall_confidence,
            "risk_level": self.risk_level.value,
            "should_block": self.should_block,
            "categories": [c.value for c in self.categories],
        }
        if include_findings:
            data["findings"] = [f.to_dict() for f in self.findings]
        return data
