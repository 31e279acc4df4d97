"""AI summary likelihood: how likely the site is to be surfaced in AI answers."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

RAG_GREEN = 70
RAG_AMBER = 50

REASON_SNIPPET = "Improve FAQ/HowTo/Article blocks and schema to raise snippet readiness."
REASON_VISIBILITY = "Improve average position and top-10 impression share."
REASON_BRAND = "Strengthen branded search and entity signals."


@dataclass
class AISummary:
    score: int
    label: str
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "label": self.label, "reasons": list(self.reasons)}


def compute_ai_summary(
    snippet_readiness: float,
    visibility: float,
    brand: float,
) -> Optional[AISummary]:
    """
    Weighted composite 0.5 snippet + 0.3 visibility + 0.2 brand.

    Returns None when both snippet readiness and brand are 0 (nothing
    to base the estimate on).
    """
    snippet_readiness = snippet_readiness or 0
    visibility = visibility or 0
    brand = brand or 0

    if snippet_readiness == 0 and brand == 0:
        return None

    composite = 0.5 * snippet_readiness + 0.3 * visibility + 0.2 * brand
    if composite < RAG_AMBER:
        label = "Low"
    elif composite < RAG_GREEN:
        label = "Medium"
    else:
        label = "High"

    reasons = []
    if snippet_readiness < RAG_GREEN:
        reasons.append(REASON_SNIPPET)
    if visibility < RAG_GREEN:
        reasons.append(REASON_VISIBILITY)
    if brand < RAG_GREEN:
        reasons.append(REASON_BRAND)

    return AISummary(score=int(composite + 0.5), label=label, reasons=reasons)
