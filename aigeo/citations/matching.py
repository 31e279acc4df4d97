"""
AI Overview Citation Matching

Attributes AI Overview citations stored on keyword rows to a target page.

A citation matches a target when, after normalize_url, the paths are
equal or the target's path segments are a leading prefix of the cited
path's segments. Matching is segment-wise: "blog/post" matches
"blog/post/amp" but never "blog/posting".
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from aigeo.utils.urls import normalize_url, path_parts

logger = logging.getLogger(__name__)

# Field names a citation object may carry its URL under, in lookup order
CITATION_URL_FIELDS = (
    "url",
    "URL",
    "link",
    "href",
    "page",
    "pageUrl",
    "target",
    "targetUrl",
    "best_url",
    "bestUrl",
)

# Keyword row keys holding the tracked domain's citations
CITATION_LIST_FIELDS = ("ai_domain_citations", "ai_citations")


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class CitingKeyword:
    """A keyword whose AI Overview cites the target page."""
    keyword: str
    has_ai_overview: bool
    best_url: str
    best_rank_group: Optional[int]
    search_volume: Optional[int]
    best_rank: Optional[int]
    citation_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "has_ai_overview": self.has_ai_overview,
            "best_url": self.best_url,
            "best_rank_group": self.best_rank_group,
            "search_volume": self.search_volume,
            "best_rank": self.best_rank,
            "citation_count": self.citation_count,
        }


@dataclass
class CitingResult:
    """Keywords citing a target URL within one audit."""
    target_url: str
    target_url_normalized: str
    keywords: List[CitingKeyword] = field(default_factory=list)

    @property
    def count(self) -> int:
        """Total matching citations across all keywords."""
        return sum(k.citation_count for k in self.keywords)

    @property
    def unique_keywords(self) -> int:
        return len(self.keywords)


# =============================================================================
# MATCHING
# =============================================================================

def citation_url(citation: Any) -> Optional[str]:
    """Extract the cited URL from a string or dict citation."""
    if isinstance(citation, str):
        return citation or None
    if isinstance(citation, dict):
        for key in CITATION_URL_FIELDS:
            value = citation.get(key)
            if value:
                return str(value)
    return None


def citation_matches(target_normalized: str, cited_url: str) -> bool:
    """
    Check whether a cited URL points at the target page.

    Args:
        target_normalized: Target already passed through normalize_url
        cited_url: Raw cited URL

    Returns:
        True on exact path match or segment-prefix match
    """
    cited_normalized = normalize_url(cited_url)
    if cited_normalized == target_normalized:
        return True

    target_parts = path_parts(target_normalized)
    cited_parts = path_parts(cited_normalized)
    if not target_parts or len(cited_parts) < len(target_parts):
        return False

    return cited_parts[: len(target_parts)] == target_parts


def row_citations(row: Dict[str, Any]) -> List[Any]:
    for key in CITATION_LIST_FIELDS:
        citations = row.get(key)
        if isinstance(citations, list) and citations:
            return citations
    return []


def _first_present(row: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return None


def find_keywords_citing_url(rows: List[Dict[str, Any]], target_url: str) -> CitingResult:
    """
    Find keyword rows whose AI citations point at target_url.

    Args:
        rows: Keyword rows (ranking_ai_data.combinedRows)
        target_url: Page to attribute citations to

    Returns:
        CitingResult with one entry per citing keyword
    """
    target_normalized = normalize_url(target_url)
    result = CitingResult(target_url=target_url, target_url_normalized=target_normalized)

    for row in rows or []:
        if not isinstance(row, dict):
            continue

        matched = 0
        for citation in row_citations(row):
            cited = citation_url(citation)
            if cited and citation_matches(target_normalized, cited):
                matched += 1

        if matched == 0:
            continue

        rank_group = _first_present(row, "best_rank_group", "bestRankGroup")
        result.keywords.append(CitingKeyword(
            keyword=row.get("keyword") or "",
            has_ai_overview=row.get("has_ai_overview") is True or row.get("hasAiOverview") is True,
            best_url=_first_present(row, "best_url", "bestUrl") or "",
            best_rank_group=rank_group,
            search_volume=_first_present(row, "search_volume", "monthly_search_volume", "volume"),
            best_rank=rank_group,
            citation_count=matched,
        ))

    return result


# =============================================================================
# RANKING DATA HELPERS
# =============================================================================

def parse_ranking_ai_data(value: Any) -> Optional[Dict[str, Any]]:
    """ranking_ai_data may be stored as a JSON string or an object."""
    if not value:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            logger.warning(f"Failed to parse ranking_ai_data: {e}")
            return None
    return value if isinstance(value, dict) else None


def extract_combined_rows(ranking_ai_data: Any) -> List[Dict[str, Any]]:
    parsed = parse_ranking_ai_data(ranking_ai_data)
    rows = parsed.get("combinedRows") if parsed else None
    return rows if isinstance(rows, list) else []


def pick_audit_with_rows(records: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First audit (newest first) whose ranking data has keyword rows."""
    for record in records or []:
        if extract_combined_rows(record.get("ranking_ai_data")):
            return record
    return None


# =============================================================================
# AI OVERVIEW REFERENCES
# =============================================================================

def _reference_domain(reference: Dict[str, Any]) -> Optional[str]:
    if reference.get("domain"):
        return reference["domain"]
    try:
        return urlparse(reference["url"]).hostname
    except ValueError:
        return None


def summarize_ai_references(ai_overview: Optional[Dict[str, Any]], domain: str) -> Dict[str, Any]:
    """
    Collect and deduplicate the references of an AI Overview item.

    Uses ai_overview.references, falling back to the links of its
    elements. References are deduplicated by URL; those whose domain
    (or URL when no domain is known) contains `domain` are the tracked
    domain's citations.

    Returns:
        Dict with citations, domain_citations and their counts
    """
    raw_refs: List[Dict[str, Any]] = []
    if ai_overview and isinstance(ai_overview.get("references"), list):
        raw_refs = list(ai_overview["references"])

    if not raw_refs and ai_overview and isinstance(ai_overview.get("items"), list):
        for element in ai_overview["items"]:
            for link in element.get("links") or []:
                raw_refs.append({
                    "source": link.get("title"),
                    "domain": link.get("domain"),
                    "url": link.get("url"),
                    "title": link.get("title"),
                })

    by_url: Dict[str, Dict[str, Any]] = {}
    for ref in raw_refs:
        if not isinstance(ref, dict) or not ref.get("url"):
            continue
        url = ref["url"]
        if url not in by_url:
            by_url[url] = {
                "source": ref.get("source"),
                "title": ref.get("title"),
                "url": url,
                "domain": _reference_domain(ref),
            }

    citations = list(by_url.values())
    needle = (domain or "").lower()
    domain_citations = [
        c for c in citations
        if needle and needle in (c["domain"] or c["url"]).lower()
    ]

    return {
        "has_ai_overview": ai_overview is not None,
        "total_citations": len(citations),
        "domain_citations_count": len(domain_citations),
        "domain_citations": domain_citations,
        "citations": citations,
    }
