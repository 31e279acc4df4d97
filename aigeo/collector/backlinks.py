"""Backlink summary (DataForSEO Backlinks API), rank on a 0-100 scale."""

import logging
from typing import Any, Dict, Optional

from aigeo.collector.client import DataForSEOError, safe_get_result

logger = logging.getLogger(__name__)

BACKLINK_SUMMARY_ENDPOINT = "backlinks/summary/live"


async def fetch_backlink_summary(client, domain: str) -> Optional[Dict[str, Any]]:
    """
    Fetch domain-level backlink summary.

    Returns None when the domain is empty or the call fails.
    """
    target = str(domain or "").strip()
    if not target:
        return None

    try:
        response = await client.post(BACKLINK_SUMMARY_ENDPOINT, [{
            "target": target,
            "backlinks_status_type": "live",
            "include_subdomains": True,
            "exclude_internal_backlinks": True,
            "include_indirect_links": True,
            "rank_scale": "one_hundred",
            "internal_list_limit": 10,
        }])
    except DataForSEOError as e:
        logger.error(f"Backlink summary failed for {target}: {e}")
        return None

    items = safe_get_result(response)
    summary = items[0] if items else safe_get_result(response, get_items=False)
    if not summary:
        return None

    return {
        "domain": target,
        "rank": summary.get("rank"),
        "backlinks": summary.get("backlinks"),
        "referringDomains": summary.get("referring_domains"),
        "backlinksSpamScore": summary.get("backlinks_spam_score"),
        "crawledPages": summary.get("crawled_pages"),
    }
