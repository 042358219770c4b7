"""Tests for contactguard/detection/patterns.py."""
from __future__ import annotations

import pytest

from contactguard.detection.patterns import (
    CATEGORY_BASE_CONFIDENCE,
    CONTACT_CATEGORIES,
    DEFAULT_PATTERNS,
    PatternDefinition,
    PatternLibrary,
    RiskCategory,
)


class TestRuleTable:
    def test_every_category_has_rules(self):
        categories = {p.category for p in DEFAULT_PATTERNS}
        assert categories == set(RiskCategory)

    def test_rule_names_are_unique(self):
        names = [p.name for p in DEFAULT_PATTERNS]
        assert len(names) == len(set(names))

    def test_base_weights(self):
        assert CATEGORY_BASE_CONFIDENCE[RiskCategory.PHONE_NUMBER] == 0.95
        assert CATEGORY_BASE_CONFIDENCE[RiskCategory.EMAIL_ADDRESS] == 0.90
        assert CATEGORY_BASE_CONFIDENCE[RiskCategory.EXTERNAL_PLATFORM] == 0.85
        assert CATEGORY_BASE_CONFIDENCE[RiskCategory.MEETING_REQUEST] == 0.70
        assert CATEGORY_BASE_CONFIDENCE[RiskCategory.URGENT_CONTEXT] == 0.60

    def test_urgent_context_is_not_a_contact_category(self):
        assert RiskCategory.URGENT_CONTEXT not in CONTACT_CATEGORIES

    def test_patterns_compile_case_insensitive(self):
        rule = PatternDefinition(name="x", category=RiskCategory.EXTERNAL_PLATFORM, regex=r"whatsapp")
        assert rule.compiled.search("WhatsApp me")

    def test_pattern_definition_is_frozen(self):
        rule = DEFAULT_PATTERNS[0]
        with pytest.raises(AttributeError):
            rule.regex = "changed"  # type: ignore[misc]


class TestPatternLibrary:
    def test_default_uses_base_weights(self):
        lib = PatternLibrary.default()
        assert lib.base_confidence(RiskCategory.EMAIL_ADDRESS) == 0.90

    def test_weight_override(self):
        lib = PatternLibrary.default({"meeting_request": 0.5})
        assert lib.base_confidence(RiskCategory.MEETING_REQUEST) == 0.5
        assert lib.base_confidence(RiskCategory.PHONE_NUMBER) == 0.95

    def test_unknown_category_override_raises(self):
        with pytest.raises(ValueError, match="Unknown category"):
            PatternLibrary.default({"carrier_pigeon": 0.5})

    def test_out_of_range_weight_raises(self):
        with pytest.raises(ValueError, match="must be in"):
            PatternLibrary.default({"phone_number": 1.5})

    def test_missing_weight_raises(self):
        with pytest.raises(ValueError, match="No base confidence"):
            PatternLibrary(patterns=DEFAULT_PATTERNS, weights={RiskCategory.PHONE_NUMBER: 0.95})

    def test_weights_are_read_only(self):
        lib = PatternLibrary.default()
        with pytest.raises(TypeError):
            lib.weights[RiskCategory.PHONE_NUMBER] = 0.1  # type: ignore[index]

    def test_for_categories_orders_by_category(self):
        lib = PatternLibrary.default()
        rules = lib.for_categories([RiskCategory.MEETING_REQUEST, RiskCategory.PHONE_NUMBER])
        cats = [r.category for r in rules]
        first_phone = cats.index(RiskCategory.PHONE_NUMBER)
        assert all(c == RiskCategory.MEETING_REQUEST for c in cats[:first_phone])
        assert all(c == RiskCategory.PHONE_NUMBER for c in cats[first_phone:])

    def test_new_rule_extends_without_code_change(self):
        extra = PatternDefinition(
            name="platform_skype",
            category=RiskCategory.EXTERNAL_PLATFORM,
            regex=r"\bskype\b",
        )
        lib = PatternLibrary(patterns=DEFAULT_PATTERNS + (extra,), weights=CATEGORY_BASE_CONFIDENCE)
        assert extra in lib.for_categories([RiskCategory.EXTERNAL_PLATFORM])
