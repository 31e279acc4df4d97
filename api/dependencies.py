"""
Shared FastAPI dependencies.

Each external client is created per request and closed afterwards.
Missing credentials are reported as a 500 for the request that needs
them; the app itself starts without any credentials.
"""

import logging
from typing import AsyncIterator, Optional, Tuple

from fastapi import Depends, HTTPException, Query

from aigeo.collector import DataForSEOClient, RetryConfig
from aigeo.database import SupabaseClient
from aigeo.integrations import GoogleClient
from aigeo.segments import KeywordRules, PageRules, SegmentMarkers
from aigeo.utils.config import Settings, get_settings
from aigeo.utils.dates import parse_date_range

logger = logging.getLogger(__name__)


async def get_supabase(settings: Settings = Depends(get_settings)) -> AsyncIterator[SupabaseClient]:
    """Supabase client; 500 when not configured."""
    if not settings.has_supabase:
        raise HTTPException(
            status_code=500,
            detail="Supabase not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.",
        )
    client = await SupabaseClient.connect(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=float(settings.API_TIMEOUT),
    )
    try:
        yield client
    finally:
        await client.close()


async def get_optional_supabase(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[Optional[SupabaseClient]]:
    """Supabase client, or None for handlers that degrade without a store."""
    if not settings.has_supabase:
        yield None
        return
    client = await SupabaseClient.connect(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=float(settings.API_TIMEOUT),
    )
    try:
        yield client
    finally:
        await client.close()


async def get_dataforseo(settings: Settings = Depends(get_settings)) -> AsyncIterator[DataForSEOClient]:
    if not settings.has_dataforseo:
        raise HTTPException(
            status_code=500,
            detail="DataForSEO not configured. Set DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD.",
        )
    client = DataForSEOClient(
        login=settings.DATAFORSEO_LOGIN,
        password=settings.DATAFORSEO_PASSWORD,
        retry_config=RetryConfig(max_retries=settings.DATAFORSEO_MAX_RETRIES),
        timeout=float(settings.API_TIMEOUT),
    )
    try:
        yield client
    finally:
        await client.close()


async def get_optional_google(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[Optional[GoogleClient]]:
    """Google client, or None so handlers can validate parameters before requiring OAuth."""
    if not settings.has_google_oauth:
        yield None
        return
    client = GoogleClient(
        settings.GOOGLE_CLIENT_ID,
        settings.GOOGLE_CLIENT_SECRET,
        settings.GOOGLE_REFRESH_TOKEN,
        timeout=float(settings.API_TIMEOUT),
    )
    try:
        yield client
    finally:
        await client.close()


def require_google(google: Optional[GoogleClient]) -> GoogleClient:
    if google is None:
        raise HTTPException(
            status_code=500,
            detail=(
                "OAuth2 credentials not configured. Please set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET, and GOOGLE_REFRESH_TOKEN."
            ),
        )
    return google


def get_keyword_rules(settings: Settings = Depends(get_settings)) -> KeywordRules:
    return KeywordRules(brand_terms=settings.brand_terms)


def get_page_rules() -> PageRules:
    return PageRules()


def get_segment_markers(settings: Settings = Depends(get_settings)) -> SegmentMarkers:
    return SegmentMarkers(
        academy=settings.ACADEMY_PATH_MARKER,
        blog=settings.BLOG_PATH_MARKER,
    )


def gsc_date_range(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
) -> Tuple[str, str]:
    """(start, end) for GSC queries: last 28 days by default, end moved back for reporting delay."""
    try:
        return parse_date_range(startDate, endDate, account_for_gsc_delay=True)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date; expected YYYY-MM-DD")
