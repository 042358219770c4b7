"""Detector: run the contact rules of the pattern library against one message.

Emits one Finding per rule that fires (not one per raw match).  Confidence
starts at the category base weight and gains ``multiplicity_bonus`` for
every extra match of the same rule, capped at 1.0.

Safety rule: raw message text and raw matches are never logged; only rule
names, categories, match counts and scores.
"""
from __future__ import annotations

import logging

from contactguard.detection.patterns import (
    CONTACT_CATEGORIES,
    PatternDefinition,
    PatternLibrary,
    RiskCategory,
)
from contactguard.detection.types import Finding, mask_fragment

logger = logging.getLogger(__name__)

_MAX_CONFIDENCE: float = 1.0


def match_rule(
    rule: PatternDefinition,
    text: str,
    base: float,
    multiplicity_bonus: float,
) -> Finding | None:
    """Apply one rule to *text*; return a Finding or ``None`` when it does not fire."""
    raw_matches = [m.group(0) for m in rule.compiled.finditer(text) if m.group(0)]
    if not raw_matches:
        return None

    confidence = round(min(_MAX_CONFIDENCE, base + multiplicity_bonus * (len(raw_matches) - 1)), 4)

    # SAFETY: never log raw matches, only rule, category, count and score
    logger.debug(
        "Rule fired: pattern=%s category=%s matches=%d confidence=%.3f",
        rule.name,
        rule.category.value,
        len(raw_matches),
        confidence,
    )

    return Finding(
        category=rule.category,
        matched_fragments=tuple(mask_fragment(m) for m in raw_matches),
        confidence=confidence,
        pattern_name=rule.name,
        evidence=tuple(raw_matches),
    )


class Detector:
    """Find contact-information leakage in a message body.

    Holds only the immutable library and scoring constants, so one instance
    may be shared across threads and requests.
    """

    def __init__(
        self,
        library: PatternLibrary | None = None,
        multiplicity_bonus: float = 0.05,
        categories: tuple[RiskCategory, ...] = CONTACT_CATEGORIES,
    ) -> None:
        self.library = library or PatternLibrary.default()
        self.multiplicity_bonus = multiplicity_bonus
        self._rules = self.library.for_categories(categories)

    def detect(self, text: str | None) -> list[Finding]:
        """Return findings for *text* in category order; empty for blank input."""
        if not text or not text.strip():
            return []

        findings: list[Finding] = []
        for rule in self._rules:
            finding = match_rule(
                rule,
                text,
                self.library.base_confidence(rule.category),
                self.multiplicity_bonus,
            )
            if finding is not None:
                findings.append(finding)
        return findings
