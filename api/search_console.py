"""
API Endpoint for Search Console site totals

GET with query parameters or POST with a JSON body; both return the
daily timeseries, totals and top queries for one property.
"""

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from aigeo.integrations import GoogleAPIError, GoogleClient, fetch_search_console
from aigeo.utils.dates import parse_date_range
from aigeo.utils.responses import error_response, ok_response

from api.dependencies import get_optional_google, gsc_date_range, require_google

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Search Console"],
)


class SearchConsoleRequest(BaseModel):
    """Request body for POST fetch-search-console."""
    propertyUrl: Optional[str] = None
    property: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None


async def _fetch(google: Optional[GoogleClient], property_url: Optional[str], start: str, end: str):
    if not property_url:
        raise HTTPException(status_code=400, detail="Missing required parameter: property")
    google = require_google(google)

    try:
        result = await fetch_search_console(google, property_url, start, end)
    except GoogleAPIError as e:
        logger.error(f"Search Console fetch failed for {property_url}: {e}")
        return error_response(
            f"Google Search Console API error: {e}",
            status_code=e.status_code or 502,
            source="fetch-search-console",
        )

    return ok_response(
        result,
        source="fetch-search-console",
        params={"property": property_url, "startDate": start, "endDate": end},
    )


@router.get("/fetch-search-console")
async def fetch_search_console_get(
    property: Optional[str] = Query(None),
    propertyUrl: Optional[str] = Query(None),
    dates: Tuple[str, str] = Depends(gsc_date_range),
    google: Optional[GoogleClient] = Depends(get_optional_google),
):
    start, end = dates
    return await _fetch(google, property or propertyUrl, start, end)


@router.post("/fetch-search-console")
async def fetch_search_console_post(
    request: SearchConsoleRequest,
    google: Optional[GoogleClient] = Depends(get_optional_google),
):
    try:
        start, end = parse_date_range(request.startDate, request.endDate, account_for_gsc_delay=True)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date; expected YYYY-MM-DD")
    return await _fetch(google, request.propertyUrl or request.property, start, end)
