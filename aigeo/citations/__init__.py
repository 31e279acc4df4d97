"""
AI Overview citation attribution.

Matches citations stored on keyword rows against a target page and
summarizes the references of live AI Overview results.
"""

from .matching import (
    CitingKeyword,
    CitingResult,
    citation_matches,
    citation_url,
    extract_combined_rows,
    find_keywords_citing_url,
    parse_ranking_ai_data,
    pick_audit_with_rows,
    summarize_ai_references,
)

__all__ = [
    "CitingKeyword",
    "CitingResult",
    "citation_matches",
    "citation_url",
    "extract_combined_rows",
    "find_keywords_citing_url",
    "parse_ranking_ai_data",
    "pick_audit_with_rows",
    "summarize_ai_references",
]
