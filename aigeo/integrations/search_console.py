"""
Google Search Console

searchAnalytics/query wrappers:
- Site totals and daily timeseries
- Top queries
- Page-filtered totals (tagged with the page segment)
- searchAppearance breakdown as SERP feature summaries
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

from aigeo.integrations.google import GoogleAPIError, GoogleClient
from aigeo.segments.pages import PageRules, classify_page_segment
from aigeo.utils.urls import normalize_property_url

logger = logging.getLogger(__name__)

WEBMASTERS_BASE = "https://www.googleapis.com/webmasters/v3"
TOP_QUERIES_LIMIT = 10
APPEARANCE_ROW_LIMIT = 100

APPEARANCE_MAP = {
    "WEB_RESULTS": "web_results",
    "RICH_RESULTS": "rich_result",
    "FEATURED_SNIPPET": "featured_snippet",
    "IMAGE_RESULTS": "image_results",
    "VIDEO_RESULTS": "video_results",
    "NEWS_RESULTS": "news_results",
    "DISCOVER": "discover",
    "GOOGLE_NEWS": "google_news",
}

APPEARANCE_LABELS = {
    "web_results": "Web Results",
    "rich_result": "Rich Result",
    "featured_snippet": "Featured Snippet",
    "image_results": "Image Results",
    "video_results": "Video Results",
    "news_results": "News Results",
    "discover": "Discover",
    "google_news": "Google News",
    "ai_overview": "AI Overview",
    "local_pack": "Local Pack",
}


def search_analytics_url(site_url: str) -> str:
    return f"{WEBMASTERS_BASE}/sites/{quote(site_url, safe='')}/searchAnalytics/query"


async def search_analytics_query(google: GoogleClient, site_url: str, body: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Run one searchAnalytics query and return its rows ([] when none)."""
    data = await google.post(search_analytics_url(site_url), body)
    return data.get("rows") or []


# =============================================================================
# SITE TOTALS
# =============================================================================

def summarize_date_rows(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Totals over date-dimension rows.

    Position is the mean of the daily positions; CTR is a percentage.
    """
    clicks = sum(r.get("clicks") or 0 for r in rows)
    impressions = sum(r.get("impressions") or 0 for r in rows)
    positions = [r.get("position") or 0 for r in rows]

    return {
        "totalClicks": clicks,
        "totalImpressions": impressions,
        "averagePosition": sum(positions) / len(positions) if positions else 0,
        "ctr": clicks / impressions * 100 if impressions > 0 else 0,
    }


def timeseries_points(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "date": (r.get("keys") or [None])[0],
            "clicks": r.get("clicks") or 0,
            "impressions": r.get("impressions") or 0,
            "ctr": (r.get("ctr") or 0) * 100,
            "position": r.get("position") or 0,
        }
        for r in rows
    ]


def query_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "query": (r.get("keys") or [""])[0],
            "clicks": r.get("clicks") or 0,
            "impressions": r.get("impressions") or 0,
            "position": r.get("position") or 0,
            "ctr": r.get("ctr") or 0,
        }
        for r in rows
    ]


async def fetch_search_console(
    google: GoogleClient,
    property_url: str,
    start_date: str,
    end_date: str,
) -> Dict[str, Any]:
    """
    Site totals by date plus the top queries.

    Returns:
        Dict with totalClicks, totalImpressions, averagePosition, ctr,
        timeseries, topQueries and dateRange
    """
    site_url = normalize_property_url(property_url)

    date_rows = await search_analytics_query(google, site_url, {
        "startDate": start_date,
        "endDate": end_date,
        "dimensions": ["date"],
    })
    top_rows = await search_analytics_query(google, site_url, {
        "startDate": start_date,
        "endDate": end_date,
        "dimensions": ["query"],
        "rowLimit": TOP_QUERIES_LIMIT,
    })

    result = summarize_date_rows(date_rows)
    result["timeseries"] = timeseries_points(date_rows)
    result["topQueries"] = query_rows(top_rows)
    result["dateRange"] = {"startDate": start_date, "endDate": end_date}

    logger.info(f"GSC {site_url}: {result['totalClicks']} clicks over {len(date_rows)} days")
    return result


# =============================================================================
# PAGE TOTALS
# =============================================================================

def page_filter_url(site_url: str, page_url: str) -> str:
    """
    Absolute, query-free page URL for the GSC page filter.

    Relative paths are resolved against the property URL.
    """
    clean = str(page_url or "").strip().split("?")[0].split("#")[0]
    if not clean.startswith(("http://", "https://")):
        clean = site_url.rstrip("/") + "/" + clean.lstrip("/")

    parsed = urlparse(clean)
    path = parsed.path.lower()
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return f"{parsed.scheme}://{parsed.netloc.lower()}{path or '/'}"


async def fetch_page_totals(
    google: GoogleClient,
    property_url: str,
    page_url: str,
    start_date: str,
    end_date: str,
    rules: Optional[PageRules] = None,
) -> Dict[str, Any]:
    """Clicks/impressions/CTR %/position for one page, zeros when GSC has no row."""
    site_url = normalize_property_url(property_url)
    page = page_filter_url(site_url, page_url)

    rows = await search_analytics_query(google, site_url, {
        "startDate": start_date,
        "endDate": end_date,
        "dimensions": ["page"],
        "dimensionFilterGroups": [{
            "filters": [{"dimension": "page", "expression": page, "operator": "equals"}],
        }],
        "rowLimit": 1,
    })

    result = {"page": page, "clicks": 0, "impressions": 0, "ctr": 0, "position": 0}
    if rows:
        row = rows[0]
        result = {
            "page": (row.get("keys") or [page])[0] or page,
            "clicks": row.get("clicks") or 0,
            "impressions": row.get("impressions") or 0,
            "ctr": (row.get("ctr") or 0) * 100,
            "position": row.get("position") or 0,
        }
    result["segment"] = classify_page_segment(result["page"], rules=rules)
    return result


# =============================================================================
# SERP FEATURES
# =============================================================================

def appearance_key(raw: str) -> str:
    if raw in APPEARANCE_MAP:
        return APPEARANCE_MAP[raw]
    return "_".join(str(raw).lower().split())


def appearance_label(key: str) -> str:
    return APPEARANCE_LABELS.get(key) or " ".join(w[:1].upper() + w[1:] for w in key.split("_"))


def summarize_appearances(rows: List[Dict[str, Any]], total_impressions: float) -> List[Dict[str, Any]]:
    """Map searchAppearance rows to keyed features sorted by impressions."""
    appearances = []
    for row in rows:
        key = appearance_key((row.get("keys") or ["unknown"])[0])
        impressions = row.get("impressions") or 0
        share = impressions / total_impressions * 100 if total_impressions > 0 else 0
        appearances.append({
            "key": key,
            "label": appearance_label(key),
            "impressions": impressions,
            "clicks": row.get("clicks") or 0,
            "ctr": round((row.get("ctr") or 0) * 100, 2),
            "shareOfTotalImpressions": round(share, 2),
        })

    appearances.sort(key=lambda a: a["impressions"], reverse=True)
    return appearances


async def fetch_serp_features(
    google: GoogleClient,
    property_url: str,
    start_date: str,
    end_date: str,
) -> Dict[str, Any]:
    """
    Overview totals plus the searchAppearance breakdown.

    A failing appearance query leaves the breakdown empty; a failing
    overview query raises.
    """
    site_url = normalize_property_url(property_url)

    overview = await search_analytics_query(google, site_url, {"startDate": start_date, "endDate": end_date})
    overview_row = overview[0] if overview else {}
    total_impressions = overview_row.get("impressions") or 0
    total_clicks = overview_row.get("clicks") or 0

    try:
        rows = await search_analytics_query(google, site_url, {
            "startDate": start_date,
            "endDate": end_date,
            "dimensions": ["searchAppearance"],
            "rowLimit": APPEARANCE_ROW_LIMIT,
        })
    except GoogleAPIError as e:
        logger.warning(f"searchAppearance query failed for {site_url}: {e}")
        rows = []

    return {
        "totalImpressions": total_impressions,
        "totalClicks": total_clicks,
        "appearances": summarize_appearances(rows, total_impressions),
    }
