"""Context Analyzer: secondary pass for soft urgency and anti-platform signals.

These signals raise suspicion without being conclusive: the category weight
(0.60) sits below the block threshold, and repeated matches earn no
multiplicity bonus.  Findings are appended after the Detector's, never in
place of them.
"""
from __future__ import annotations

from contactguard.detection.detector import match_rule
from contactguard.detection.patterns import CONTEXT_CATEGORIES, PatternLibrary
from contactguard.detection.types import Finding


class ContextAnalyzer:
    """Stateless; share one instance freely."""

    def __init__(self, library: PatternLibrary | None = None) -> None:
        self.library = library or PatternLibrary.default()
        self._rules = self.library.for_categories(CONTEXT_CATEGORIES)

    def analyze_context(self, text: str | None) -> list[Finding]:
        if not text or not text.strip():
            return []

        findings: list[Finding] = []
        for rule in self._rules:
            finding = match_rule(rule, text, self.library.base_confidence(rule.category), 0.0)
            if finding is not None:
                findings.append(finding)
        return findings
