"""
API Endpoints for portfolio segment metrics (28-day window)

Handles:
1. Save calibrated segment metrics for a run
2. Read segment metrics
3. Backfill AI citation / AI Overview counts from keyword rankings
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from aigeo.auth import require_admin
from aigeo.database import SupabaseClient, SupabaseError
from aigeo.database.portfolio import (
    backfill_ai_portfolio_segments,
    get_segment_metrics,
    save_segment_metrics,
)
from aigeo.segments import SegmentMarkers
from aigeo.utils.config import Settings, get_settings
from aigeo.utils.responses import ok_response, upstream_error
from aigeo.utils.urls import audit_date_key

from api.dependencies import get_segment_markers, get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/supabase",
    tags=["Portfolio"],
)

MISSING_TABLE_MESSAGE = "Table not found - migration may not be applied yet"


class SaveSegmentMetricsRequest(BaseModel):
    siteUrl: Optional[str] = None
    runId: Optional[str] = None
    dateStart: Optional[str] = None
    dateEnd: Optional[str] = None
    scope: Optional[str] = None
    rows: Optional[Any] = None


class BackfillRequest(BaseModel):
    auditDate: Optional[str] = None
    siteUrl: Optional[str] = None


@router.post("/save-portfolio-segment-metrics")
async def save_portfolio_segment_metrics(
    request: SaveSegmentMetricsRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    """Calibrate against the GSC site totals and upsert per (run_id, site_url, segment, scope)."""
    if not all([request.siteUrl, request.runId, request.dateStart, request.dateEnd, request.scope]):
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: siteUrl, runId, dateStart, dateEnd, scope",
        )
    if not isinstance(request.rows, list) or not request.rows:
        raise HTTPException(status_code=400, detail="rows array is required and must not be empty")

    try:
        inserted = await save_segment_metrics(
            db,
            request.siteUrl,
            request.runId,
            request.dateStart,
            request.dateEnd,
            request.scope,
            request.rows,
        )
    except SupabaseError as e:
        if e.is_missing_table:
            logger.warning(f"Portfolio metrics table missing, nothing saved: {e}")
            return ok_response(
                {"inserted": 0},
                message=f"{MISSING_TABLE_MESSAGE}. Segment metrics not saved.",
                warning=True,
            )
        return upstream_error("Failed to save portfolio segment metrics", e)

    return ok_response(
        {"inserted": inserted, "runId": request.runId, "siteUrl": request.siteUrl, "scope": request.scope},
        message=f"Upserted {inserted} portfolio segment metrics",
    )


@router.get("/get-portfolio-segment-metrics")
async def get_portfolio_segment_metrics(
    siteUrl: Optional[str] = Query(None),
    scope: Optional[str] = Query(None),
    segment: Optional[str] = Query(None),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    order: str = Query("desc"),
    db: SupabaseClient = Depends(get_supabase),
):
    if not siteUrl:
        raise HTTPException(status_code=400, detail="Missing required field: siteUrl")

    try:
        metrics = await get_segment_metrics(db, siteUrl, scope, segment, from_, to, limit, order)
    except SupabaseError as e:
        if e.is_missing_table:
            return ok_response({"metrics": [], "count": 0}, message=MISSING_TABLE_MESSAGE)
        return upstream_error("Failed to fetch portfolio segment metrics", e)

    return ok_response({"metrics": metrics, "count": len(metrics)})


@router.post("/backfill-ai-portfolio-segments", dependencies=[Depends(require_admin)])
async def backfill_ai_segments(
    request: BackfillRequest,
    db: SupabaseClient = Depends(get_supabase),
    markers: SegmentMarkers = Depends(get_segment_markers),
    settings: Settings = Depends(get_settings),
):
    """Copy AI metrics of one audit (or every audit) onto existing portfolio rows."""
    site_url = request.siteUrl or settings.DEFAULT_SITE_URL
    if not site_url:
        raise HTTPException(status_code=400, detail="Missing required field: siteUrl")

    audit_date = audit_date_key(request.auditDate) or None
    try:
        result = await backfill_ai_portfolio_segments(db, site_url, audit_date, markers)
    except SupabaseError as e:
        return upstream_error("AI portfolio backfill failed", e)

    return ok_response(result)
