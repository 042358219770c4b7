"""Pattern library: declarative rules for off-platform contact detection.

Each rule is a ``PatternDefinition`` row carrying a name, the category it
belongs to, and a regular expression.  Confidence is a property of the
category, not the rule, so every rule in a category fires with the same
base weight.  Adding a rule means adding a row here; the Detector and the
Context Analyzer iterate the table and never name individual rules.

Category weights
----------------
phone_number       0.95  a usable number is near-certain leakage
email_address      0.90
external_platform  0.85  named apps and "contact me directly" phrasing
meeting_request    0.70  suspicious, never blocks on its own
urgent_context     0.60  soft signal, secondary pass only

Matching is case-insensitive.  Rules are applied with ``finditer`` so
matches within one rule never overlap; matches across rules may.
"""
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType


class RiskCategory(StrEnum):
    PHONE_NUMBER = "phone_number"
    EMAIL_ADDRESS = "email_address"
    EXTERNAL_PLATFORM = "external_platform"
    MEETING_REQUEST = "meeting_request"
    URGENT_CONTEXT = "urgent_context"


CONTACT_CATEGORIES: tuple[RiskCategory, ...] = (
    RiskCategory.PHONE_NUMBER,
    RiskCategory.EMAIL_ADDRESS,
    RiskCategory.EXTERNAL_PLATFORM,
    RiskCategory.MEETING_REQUEST,
)

CONTEXT_CATEGORIES: tuple[RiskCategory, ...] = (RiskCategory.URGENT_CONTEXT,)

CATEGORY_BASE_CONFIDENCE: Mapping[RiskCategory, float] = MappingProxyType({
    RiskCategory.PHONE_NUMBER: 0.95,
    RiskCategory.EMAIL_ADDRESS: 0.90,
    RiskCategory.EXTERNAL_PLATFORM: 0.85,
    RiskCategory.MEETING_REQUEST: 0.70,
    RiskCategory.URGENT_CONTEXT: 0.60,
})


# ---------------------------------------------------------------------------
# Pattern definition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PatternDefinition:
    """A single detection rule.

    Attributes
    ----------
    name:      Identifier recorded on every Finding the rule produces.
    category:  The ``RiskCategory`` the rule contributes to.
    regex:     Regular expression, compiled with ``re.IGNORECASE``.
    """
    name: str
    category: RiskCategory
    regex: str
    compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "compiled", re.compile(self.regex, re.IGNORECASE))


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

DEFAULT_PATTERNS: tuple[PatternDefinition, ...] = (

    # =====================================================================
    # PHONE NUMBERS
    # =====================================================================

    PatternDefinition(
        name="phone_uk_mobile_international",
        category=RiskCategory.PHONE_NUMBER,
        regex=r"\+44\s?7\d{3}[\s\-.]?\d{3}[\s\-.]?\d{3}",
    ),
    PatternDefinition(
        name="phone_international",
        category=RiskCategory.PHONE_NUMBER,
        regex=r"\+\d{1,3}[\s\-]?\d{3,4}[\s\-]?\d{3,4}[\s\-]?\d{3,4}",
    ),
    PatternDefinition(
        name="phone_uk_mobile_national",
        category=RiskCategory.PHONE_NUMBER,
        regex=r"\b07\d{3}[\s\-.]?\d{3}[\s\-.]?\d{3}\b",
    ),
    PatternDefinition(
        name="phone_bare_digits",
        category=RiskCategory.PHONE_NUMBER,
        regex=r"\b\d{11}\b",
    ),
    PatternDefinition(
        name="phone_call_me_at",
        category=RiskCategory.PHONE_NUMBER,
        regex=r"\b(?:call|text|ring|whatsapp)\s*me\s*(?:at|on)\s*\+?\d[\d\s\-]{4,}\d",
    ),
    PatternDefinition(
        name="phone_labelled",
        category=RiskCategory.PHONE_NUMBER,
        regex=r"\b(?:phone|mobile|tel)\s*(?:number)?\s*[:\-]\s*\+?[\d\s\-()]{8,}\d",
    ),

    # =====================================================================
    # EMAIL ADDRESSES
    # =====================================================================

    # Left-anchored with bounded parts: a long token with no "@" must scan in linear time.
    PatternDefinition(
        name="email_address",
        category=RiskCategory.EMAIL_ADDRESS,
        regex=r"(?<![a-z0-9._%+\-])[a-z0-9._%+\-]{1,64}@[a-z0-9.\-]{1,255}\.[a-z]{2,}",
    ),
    PatternDefinition(
        name="email_me_at",
        category=RiskCategory.EMAIL_ADDRESS,
        regex=r"\be-?mail\s*me\s*at\s*\S+",
    ),
    PatternDefinition(
        name="email_labelled",
        category=RiskCategory.EMAIL_ADDRESS,
        regex=r"\be-?mail\s*[:\-]\s*\S+",
    ),
    PatternDefinition(
        name="email_send_cv_to",
        category=RiskCategory.EMAIL_ADDRESS,
        regex=r"\bsend\s*(?:your\s*|the\s*)?(?:cv|resume)\s*to\s*\S+",
    ),
    PatternDefinition(
        name="email_my_email_is",
        category=RiskCategory.EMAIL_ADDRESS,
        regex=r"\bmy\s*(?:personal\s*)?e-?mail\s*(?:address\s*)?is\s*\S+@\S+",
    ),

    # =====================================================================
    # EXTERNAL PLATFORMS / OFF-PLATFORM CONTACT
    # =====================================================================

    PatternDefinition(
        name="platform_messaging_app",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:whatsapp|what'?s\s*app|telegram|signal|discord|snapchat|wechat|viber)\b",
    ),
    PatternDefinition(
        name="platform_social_network",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:instagram|facebook|linkedin|twitter|tiktok)\b",
    ),
    PatternDefinition(
        name="platform_contact_directly",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:contact\s*me\s*directly|directly\s*contact)\b",
    ),
    PatternDefinition(
        name="platform_give_me_your_details",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\bgive\s*me\s*your\s*(?:phone\s*)?(?:number|email|e-mail)\b",
    ),
    PatternDefinition(
        name="platform_send_me_your_cv",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\bsend\s*me\s*your\s*(?:cv|resume)\b",
    ),
    PatternDefinition(
        name="platform_outside_platform",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:outside\s*(?:of\s*)?this\s*platform|off\s*(?:the\s*)?platform)\b",
    ),
    PatternDefinition(
        name="platform_add_me_on",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\badd\s*me\s*on\b",
    ),
    PatternDefinition(
        name="platform_personal_contact",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:my\s*number\s*is|reach\s*me\s*at|personal\s*contact|message\s*me)\b",
    ),
    PatternDefinition(
        name="platform_find_me_on",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:(?:follow|find)\s*me\s*on|my\s*profile\s*on)\b",
    ),
    PatternDefinition(
        name="platform_profile_url",
        category=RiskCategory.EXTERNAL_PLATFORM,
        regex=r"\b(?:facebook|instagram|linkedin|twitter|tiktok)\.com\b",
    ),

    # =====================================================================
    # MEETING REQUESTS
    # =====================================================================

    PatternDefinition(
        name="meeting_in_person",
        category=RiskCategory.MEETING_REQUEST,
        regex=r"\bmeet\s*(?:up\s*)?in\s*person\b",
    ),
    PatternDefinition(
        name="meeting_our_office",
        category=RiskCategory.MEETING_REQUEST,
        regex=r"\bcome\s*(?:in\s*)?to\s*our\s*office\b",
    ),
    PatternDefinition(
        name="meeting_informal_chat",
        category=RiskCategory.MEETING_REQUEST,
        regex=r"\binformal\s*chat\b",
    ),
    PatternDefinition(
        name="meeting_coffee",
        category=RiskCategory.MEETING_REQUEST,
        regex=r"\b(?:coffee\s*meeting|meet\s*(?:up\s*)?(?:for|over)\s*(?:a\s*)?coffee)\b",
    ),
    PatternDefinition(
        name="meeting_face_to_face",
        category=RiskCategory.MEETING_REQUEST,
        regex=r"\bface\s*to\s*face\b",
    ),

    # =====================================================================
    # URGENT CONTEXT (secondary pass)
    # =====================================================================

    PatternDefinition(
        name="urgent_wording",
        category=RiskCategory.URGENT_CONTEXT,
        regex=r"\b(?:urgent|urgently|asap|immediately)\b",
    ),
    PatternDefinition(
        name="urgent_call_me_now",
        category=RiskCategory.URGENT_CONTEXT,
        regex=r"\b(?:call|text)\s*me\s*now\b",
    ),
    PatternDefinition(
        name="urgent_avoid_platform",
        category=RiskCategory.URGENT_CONTEXT,
        regex=r"\b(?:don'?t|do\s*not)\s*use\s*this\s*(?:platform|site|app)\b",
    ),
    PatternDefinition(
        name="urgent_bypass_system",
        category=RiskCategory.URGENT_CONTEXT,
        regex=r"\bbypass\s*the\s*(?:system|platform)\b",
    ),
)


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PatternLibrary:
    """Immutable rule table plus per-category base weights.

    One instance is shared by every Detector and Context Analyzer in the
    process; nothing in it changes after construction.
    """

    patterns: tuple[PatternDefinition, ...]
    weights: Mapping[RiskCategory, float]

    def __post_init__(self) -> None:
        missing = {p.category for p in self.patterns} - set(self.weights)
        if missing:
            raise ValueError(f"No base confidence for categories: {sorted(missing)}")
        for category, weight in self.weights.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"Base confidence for {category} must be in [0, 1], got {weight}")
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))

    @classmethod
    def default(cls, weights: Mapping[str, float] | None = None) -> PatternLibrary:
        """Return the built-in rule table, applying any configured weight overrides."""
        merged = dict(CATEGORY_BASE_CONFIDENCE)
        for key, value in (weights or {}).items():
            try:
                category = RiskCategory(key)
            except ValueError:
                raise ValueError(
                    f"Unknown category {key!r}; must be one of {sorted(c.value for c in RiskCategory)}"
                ) from None
            merged[category] = float(value)
        return cls(patterns=DEFAULT_PATTERNS, weights=merged)

    def base_confidence(self, category: RiskCategory) -> float:
        return self.weights[category]

    def for_categories(self, categories: Iterable[RiskCategory]) -> list[PatternDefinition]:
        """Return rules for *categories*, grouped in the order the categories are given."""
        return [p for category in categories for p in self.patterns if p.category == category]
