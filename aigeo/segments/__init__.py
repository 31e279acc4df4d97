"""
Segment classification.

- keywords: brand / money / education / other intent
- pages: education / money / support / system site pages
- portfolio: portfolio segments inferred from keyword best URLs
"""

from .keywords import (
    KeywordClassification,
    KeywordRules,
    KeywordSegment,
    classify_keyword_segment,
)
from .pages import PageRules, PageSegment, classify_page_segment
from .portfolio import (
    PORTFOLIO_SCOPES,
    PORTFOLIO_SEGMENTS,
    SegmentMarkers,
    aggregate_ai_metrics,
    group_keywords_by_segment,
    infer_segment_from_best_url,
)

__all__ = [
    "KeywordClassification",
    "KeywordRules",
    "KeywordSegment",
    "classify_keyword_segment",
    "PageRules",
    "PageSegment",
    "classify_page_segment",
    "PORTFOLIO_SCOPES",
    "PORTFOLIO_SEGMENTS",
    "SegmentMarkers",
    "aggregate_ai_metrics",
    "group_keywords_by_segment",
    "infer_segment_from_best_url",
]
