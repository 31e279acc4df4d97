"""
Keyword Segment Classifier

Classifies keywords by intent. Priority: Brand -> Money -> Education -> Other.

Page type and ranking URL are weak hints only: a GBP page type nudges
money confidence up, a Blog page type nudges education confidence up.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence


class KeywordSegment:
    BRAND = "brand"
    MONEY = "money"
    EDUCATION = "education"
    OTHER = "other"


DEFAULT_MONEY_TERMS = [
    "lesson", "lessons", "class", "classes", "course", "courses",
    "training", "workshop", "workshops", "mentoring", "mentor",
    "1-2-1", "1:1", "private", "hire", "service", "services",
    "booking", "book", "price", "cost", "voucher", "gift",
]

DEFAULT_LOCAL_MODIFIERS = ["near me"]

DEFAULT_EDUCATION_TERMS = [
    "how to", "what is", "guide", "tutorial", "tips", "settings",
    "meaning", "vs", "difference", "examples", "best way to",
]

# UK postcode-like tokens, e.g. "CV1", "B1 1AA"
POSTCODE_RE = re.compile(r"\b([A-Z]{1,2}\d{1,2}\s?\d?[A-Z]{0,2})\b", re.IGNORECASE)


@dataclass
class KeywordRules:
    """Term lists driving keyword classification."""
    brand_terms: List[str] = field(default_factory=list)
    money_terms: List[str] = field(default_factory=lambda: list(DEFAULT_MONEY_TERMS))
    local_modifiers: List[str] = field(default_factory=lambda: list(DEFAULT_LOCAL_MODIFIERS))
    education_terms: List[str] = field(default_factory=lambda: list(DEFAULT_EDUCATION_TERMS))
    topic_terms: List[str] = field(default_factory=list)


@dataclass
class KeywordClassification:
    segment: str
    confidence: float
    reason: str

    def to_dict(self):
        return {"segment": self.segment, "confidence": self.confidence, "reason": self.reason}


def _first_term(keyword: str, terms: Sequence[str]) -> Optional[str]:
    for term in terms:
        if term and term.lower() in keyword:
            return term
    return None


def classify_keyword_segment(
    keyword: Optional[str],
    page_type: Optional[str] = None,
    ranking_url: Optional[str] = None,
    rules: Optional[KeywordRules] = None,
) -> KeywordClassification:
    """
    Classify a keyword into brand, money, education or other.

    Args:
        keyword: Search keyword
        page_type: Optional page type hint ("GBP", "Blog", ...)
        ranking_url: Optional ranking URL (unused beyond future hints)
        rules: Term lists (defaults when omitted)

    Returns:
        KeywordClassification with segment, confidence and reason
    """
    if not keyword or not isinstance(keyword, str):
        return KeywordClassification(KeywordSegment.OTHER, 0, "Invalid or missing keyword")

    rules = rules or KeywordRules()
    normalized = keyword.strip().lower()

    brand_term = _first_term(normalized, rules.brand_terms)
    if brand_term:
        return KeywordClassification(KeywordSegment.BRAND, 0.95, f"brand: contains '{brand_term}'")

    money_term = _first_term(normalized, rules.money_terms)
    local_term = _first_term(normalized, rules.local_modifiers)
    has_postcode = bool(POSTCODE_RE.search(normalized))

    if money_term or local_term or has_postcode:
        if money_term:
            reason = f"money: contains '{money_term}'"
        elif local_term:
            reason = f"money: contains local modifier '{local_term}'"
        else:
            reason = "money: contains postcode pattern"

        confidence = 0.85
        if page_type == "GBP":
            confidence = 0.9
            reason += " + GBP page type"
        return KeywordClassification(KeywordSegment.MONEY, confidence, reason)

    education_term = _first_term(normalized, rules.education_terms)
    topic_term = _first_term(normalized, rules.topic_terms)

    if education_term or topic_term:
        if education_term:
            reason = f"education: contains '{education_term}'"
        else:
            reason = f"education: contains technique/topic '{topic_term}'"

        confidence = 0.8
        if page_type == "Blog":
            confidence = 0.85
            reason += " + Blog page type"
        return KeywordClassification(KeywordSegment.EDUCATION, confidence, reason)

    return KeywordClassification(KeywordSegment.OTHER, 0.5, "other: no matching intent signals")
