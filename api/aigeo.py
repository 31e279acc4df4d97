"""
API Endpoints for live AI/GEO signals

Handles:
1. Organic SERP ranks and AI Overview presence (DataForSEO)
2. AI mode citations (DataForSEO)
3. Backlink summary (DataForSEO)
4. GSC page totals and SERP feature breakdown
5. Business Profile local signals
"""

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query

from aigeo.collector import (
    DataForSEOClient,
    DataForSEOError,
    fetch_ai_mode_citations,
    fetch_backlink_summary,
    fetch_organic_rankings,
)
from aigeo.integrations import (
    GoogleAPIError,
    GoogleClient,
    fetch_local_signals,
    fetch_page_totals,
    fetch_serp_features,
)
from aigeo.segments import PageRules
from aigeo.utils.config import Settings, get_settings, split_csv
from aigeo.utils.responses import error_response, ok_response
from aigeo.utils.urls import normalize_domain

from api.dependencies import get_dataforseo, get_optional_google, get_page_rules, gsc_date_range, require_google

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/aigeo",
    tags=["AI/GEO"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def tracked_domain(settings: Settings, override: Optional[str] = None) -> str:
    domain = normalize_domain(override) or normalize_domain(settings.AI_GEO_DOMAIN)
    if not domain:
        raise HTTPException(
            status_code=500,
            detail="Tracked domain not configured. Set AI_GEO_DOMAIN or pass domain.",
        )
    return domain


def dataforseo_failure(e: DataForSEOError, source: str):
    logger.error(f"{source}: DataForSEO request failed: {e}")
    return error_response(
        "DataForSEO request failed",
        status_code=502,
        details=str(e),
        source=source,
        httpStatus=e.status_code,
    )


def google_failure(e: GoogleAPIError, source: str):
    logger.error(f"{source}: Google API request failed: {e}")
    return error_response(
        f"Google API error: {e}",
        status_code=e.status_code or 502,
        details=e.response if isinstance(e.response, (dict, list, str)) else None,
        source=source,
    )


# =============================================================================
# DATAFORSEO
# =============================================================================

@router.get("/serp-rank")
async def serp_rank(
    keyword: Optional[str] = Query(None),
    keywords: Optional[str] = Query(None, description="Comma-separated keywords"),
    domain: Optional[str] = Query(None),
    client: DataForSEOClient = Depends(get_dataforseo),
    settings: Settings = Depends(get_settings),
):
    """Best rank of the tracked domain per keyword, with AI Overview presence."""
    if keyword and keyword.strip():
        keyword_list = [keyword.strip()]
    else:
        keyword_list = split_csv(keywords)
    if not keyword_list:
        raise HTTPException(status_code=400, detail="keyword or keywords is required")

    target = tracked_domain(settings, domain)
    try:
        result = await fetch_organic_rankings(
            client,
            keyword_list,
            target,
            location_name=settings.SERP_LOCATION_NAME,
            language_code=settings.SERP_LANGUAGE_CODE,
            depth=settings.SERP_DEPTH,
        )
    except DataForSEOError as e:
        return dataforseo_failure(e, "serp-rank")

    return ok_response(result, source="serp-rank", params={"keywords": keyword_list, "domain": target})


@router.get("/ai-mode-serp")
async def ai_mode_serp(
    keyword: Optional[str] = Query(None),
    domain: Optional[str] = Query(None),
    client: DataForSEOClient = Depends(get_dataforseo),
    settings: Settings = Depends(get_settings),
):
    """References cited by the AI mode answer, split out for the tracked domain."""
    if not keyword or not keyword.strip():
        raise HTTPException(status_code=400, detail="keyword is required")

    target = tracked_domain(settings, domain)
    try:
        result = await fetch_ai_mode_citations(
            client,
            keyword.strip(),
            target,
            location_name=settings.SERP_LOCATION_NAME,
            language_name=settings.SERP_LANGUAGE_NAME,
        )
    except DataForSEOError as e:
        return dataforseo_failure(e, "ai-mode-serp")

    return ok_response(result, source="ai-mode-serp", params={"keyword": keyword.strip(), "domain": target})


@router.get("/backlink-metrics")
async def backlink_metrics(
    domain: Optional[str] = Query(None),
    client: DataForSEOClient = Depends(get_dataforseo),
    settings: Settings = Depends(get_settings),
):
    target = tracked_domain(settings, domain)
    summary = await fetch_backlink_summary(client, target)
    if summary is None:
        return error_response(
            "Backlink summary unavailable",
            status_code=502,
            source="backlink-metrics",
            params={"domain": target},
        )
    return ok_response(summary, source="backlink-metrics", params={"domain": target})


# =============================================================================
# SEARCH CONSOLE
# =============================================================================

@router.get("/gsc-page-totals")
async def gsc_page_totals(
    property: Optional[str] = Query(None),
    pageUrl: Optional[str] = Query(None),
    dates: Tuple[str, str] = Depends(gsc_date_range),
    google: Optional[GoogleClient] = Depends(get_optional_google),
    rules: PageRules = Depends(get_page_rules),
):
    """Clicks, impressions, CTR % and position for a single page."""
    if not property:
        raise HTTPException(status_code=400, detail="Missing required parameter: property")
    if not pageUrl:
        raise HTTPException(status_code=400, detail="Missing required parameter: pageUrl")
    google = require_google(google)

    start, end = dates
    try:
        result = await fetch_page_totals(google, property, pageUrl, start, end, rules=rules)
    except GoogleAPIError as e:
        return google_failure(e, "gsc-page-totals")

    return ok_response(
        result,
        source="gsc-page-totals",
        params={"property": property, "pageUrl": result["page"], "startDate": start, "endDate": end},
    )


@router.get("/serp-features")
async def serp_features(
    property: Optional[str] = Query(None),
    dates: Tuple[str, str] = Depends(gsc_date_range),
    google: Optional[GoogleClient] = Depends(get_optional_google),
):
    """Search appearance breakdown with each feature's share of impressions."""
    if not property:
        raise HTTPException(status_code=400, detail="Missing required parameter: property")
    google = require_google(google)

    start, end = dates
    try:
        result = await fetch_serp_features(google, property, start, end)
    except GoogleAPIError as e:
        return google_failure(e, "serp-features")

    return ok_response(
        result,
        source="serp-features",
        params={"property": property, "startDate": start, "endDate": end},
    )


# =============================================================================
# BUSINESS PROFILE
# =============================================================================

@router.get("/local-signals")
async def local_signals(
    property: Optional[str] = Query(None),
    google: Optional[GoogleClient] = Depends(get_optional_google),
):
    if not property:
        raise HTTPException(status_code=400, detail="Missing required parameter: property")
    google = require_google(google)

    try:
        result = await fetch_local_signals(google, property)
    except GoogleAPIError as e:
        return google_failure(e, "local-signals")

    return ok_response(result, source="local-signals", params={"property": property})
