"""
SERP Collection

Google organic and AI mode SERPs for tracked keywords:
- Best organic rank of the tracked domain per keyword
- SERP feature flags (AI Overview, local pack, featured snippet, PAA)
- AI Overview references citing the tracked domain
"""

import logging
from typing import Any, Dict, List, Optional

from aigeo.citations.matching import summarize_ai_references
from aigeo.collector.client import task_items

logger = logging.getLogger(__name__)

ORGANIC_ENDPOINT = "serp/google/organic/live/advanced"
AI_MODE_ENDPOINT = "serp/google/ai_mode/live/advanced"

FEATURED_SNIPPET_TYPES = ("featured_snippet", "answer_box")


def _rank_of(item: Dict[str, Any]) -> float:
    if item.get("rank_group") is not None:
        return item["rank_group"]
    if item.get("rank_absolute") is not None:
        return item["rank_absolute"]
    return float("inf")


def _is_domain_item(item: Dict[str, Any], domain: str) -> bool:
    needle = domain.lower()
    return (
        needle in str(item.get("domain") or "").lower()
        or needle in str(item.get("url") or "").lower()
    )


def parse_organic_items(items: List[Dict[str, Any]], keyword: str, domain: str) -> Dict[str, Any]:
    """
    Summarize one keyword's SERP items for the tracked domain.

    Args:
        items: Flattened SERP items
        keyword: Keyword searched
        domain: Tracked domain (matched against item domain or URL)

    Returns:
        Dict with best rank/url/title, AI Overview flag and SERP features
    """
    organic = [i for i in items if "organic" in str(i.get("type") or "").lower()]
    own = [i for i in organic if domain and _is_domain_item(i, domain)]

    best = min(own, key=_rank_of) if own else None
    types = {i.get("type") for i in items}

    return {
        "keyword": keyword,
        "best_rank_group": best.get("rank_group") if best else None,
        "best_rank_absolute": best.get("rank_absolute") if best else None,
        "best_url": best.get("url") if best else None,
        "best_title": best.get("title") if best else None,
        "has_ai_overview": "ai_overview_element" in types,
        "serp_features": {
            "local_pack": "local_pack" in types,
            "featured_snippet": any(t in types for t in FEATURED_SNIPPET_TYPES),
            "people_also_ask": "people_also_ask" in types,
        },
    }


async def fetch_organic_rankings(
    client,
    keywords: List[str],
    domain: str,
    location_name: str,
    language_code: str,
    depth: int = 50,
) -> Dict[str, Any]:
    """
    Fetch organic SERPs for keywords and rank the tracked domain.

    Args:
        client: DataForSEOClient instance
        keywords: Keywords to look up (one task each)
        domain: Tracked domain
        location_name: e.g. "United Kingdom"
        language_code: e.g. "en"
        depth: Number of results per SERP

    Returns:
        Dict with summary and per_keyword lists
    """
    tasks = [
        {
            "keyword": keyword,
            "location_name": location_name,
            "language_code": language_code,
            "device": "desktop",
            "os": "windows",
            "depth": depth,
        }
        for keyword in keywords
    ]

    response = await client.post(ORGANIC_ENDPOINT, tasks)

    per_keyword = []
    for index, task in enumerate(response.get("tasks") or []):
        keyword = (task.get("data") or {}).get("keyword")
        if not keyword:
            keyword = keywords[index] if index < len(keywords) else "unknown"
        per_keyword.append(parse_organic_items(task_items(task), keyword, domain))

    logger.info(f"Organic SERP: {len(per_keyword)} keywords processed for {domain}")

    return {
        "summary": {
            "total_keywords": len(per_keyword),
            "keywords_with_rank": sum(1 for k in per_keyword if k["best_rank_group"] is not None),
        },
        "per_keyword": per_keyword,
    }


def find_ai_overview(items: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for item in items:
        if item.get("type") == "ai_overview":
            return item
    return None


async def fetch_ai_mode_citations(
    client,
    keyword: str,
    domain: str,
    location_name: str,
    language_name: str,
) -> Dict[str, Any]:
    """
    Fetch the AI mode SERP for a keyword and extract cited references.

    Returns:
        Dict with query, has_ai_overview, citation counts, the tracked
        domain's citations and a sample of all citations
    """
    response = await client.post(AI_MODE_ENDPOINT, [{
        "keyword": keyword,
        "language_name": language_name,
        "location_name": location_name,
        "device": "desktop",
        "os": "windows",
    }])

    tasks = response.get("tasks") or []
    items = task_items(tasks[0]) if tasks else []
    summary = summarize_ai_references(find_ai_overview(items), domain)

    return {
        "query": keyword,
        "has_ai_overview": summary["has_ai_overview"],
        "total_citations": summary["total_citations"],
        "domain_citations_count": summary["domain_citations_count"],
        "domain_citations": summary["domain_citations"],
        "sample_citations": summary["citations"][:10],
    }
