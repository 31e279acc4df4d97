"""
Scoring for the AI/GEO audit.

- domain_strength: 0-100 domain strength score, bands and caps
- ai_summary: AI summary likelihood from snippet readiness, visibility and brand
"""

from .ai_summary import AISummary, compute_ai_summary
from .domain_strength import (
    DomainMetrics,
    DomainStrengthScore,
    ScoreCaps,
    caps_from_history,
    compute_domain_strength_score,
    get_authority_priority,
    is_no_data_error,
    score_band,
)

__all__ = [
    "AISummary",
    "compute_ai_summary",
    "DomainMetrics",
    "DomainStrengthScore",
    "ScoreCaps",
    "caps_from_history",
    "compute_domain_strength_score",
    "get_authority_priority",
    "is_no_data_error",
    "score_band",
]
