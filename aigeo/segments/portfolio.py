"""
Portfolio Segment Grouping

Keyword rankings are keyword-driven, so page-level portfolio segments are
inferred from each keyword's best ranking URL:

    site        every keyword
    money       keywords whose declared segment is "money"
    academy     best_url contains the academy marker
    blog        best_url contains the blog marker
    event/product/landing   page_type of the keyword row
    landing     money keywords with no better page-level match
    all_tracked best_url is the target of an open optimisation task
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from aigeo.utils.urls import normalize_tracked_url

PORTFOLIO_SEGMENTS = (
    "site",
    "money",
    "academy",
    "landing",
    "event",
    "product",
    "blog",
    "all_tracked",
)

PAGE_TYPE_SEGMENTS = ("event", "product", "landing")

PORTFOLIO_SCOPES = ("all_pages", "active_cycles_only")


@dataclass
class SegmentMarkers:
    """Path markers on best_url identifying single-section segments."""
    academy: str = "/academy"
    blog: str = "/blog/"


def infer_segment_from_best_url(
    best_url: Optional[str],
    row: Dict[str, Any],
    markers: Optional[SegmentMarkers] = None,
) -> Optional[str]:
    markers = markers or SegmentMarkers()
    url = normalize_tracked_url(best_url)
    if not url:
        return None
    if markers.academy and markers.academy.lower() in url:
        return "academy"
    if markers.blog and markers.blog.lower() in url:
        return "blog"

    page_type = str(row.get("page_type") or "").lower()
    if page_type in PAGE_TYPE_SEGMENTS:
        return page_type

    if str(row.get("segment") or "").lower() == "money":
        return "landing"
    return None


def group_keywords_by_segment(
    keywords: Iterable[Dict[str, Any]],
    tracked_urls: Optional[Set[str]] = None,
    markers: Optional[SegmentMarkers] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Bucket keyword rows into portfolio segments.

    Args:
        keywords: keyword_rankings rows
        tracked_urls: normalize_tracked_url keys of tracked task URLs
        markers: Academy/blog path markers

    Returns:
        Dict of segment name -> keyword rows (every segment present)
    """
    tracked_urls = tracked_urls or set()
    groups: Dict[str, List[Dict[str, Any]]] = {segment: [] for segment in PORTFOLIO_SEGMENTS}

    for row in keywords:
        groups["site"].append(row)

        if str(row.get("segment") or "").lower() == "money":
            groups["money"].append(row)

        inferred = infer_segment_from_best_url(row.get("best_url"), row, markers)
        if inferred in groups:
            groups[inferred].append(row)

        best_url = normalize_tracked_url(row.get("best_url"))
        if best_url and best_url in tracked_urls:
            groups["all_tracked"].append(row)

    return groups


def aggregate_ai_metrics(keywords: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Sum the domain's AI citations and count keywords with an AI Overview."""
    citations = 0
    overview_count = 0
    for row in keywords:
        try:
            citations += int(row.get("ai_domain_citations_count") or 0)
        except (TypeError, ValueError):
            pass
        if row.get("has_ai_overview") is True or row.get("ai_overview_present_any") is True:
            overview_count += 1
    return {"ai_citations_28d": citations, "ai_overview_present_count": overview_count}
