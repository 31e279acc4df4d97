"""
API Endpoints for audit storage (Supabase)

Handles:
1. Save / load / history / delete of audit_results
2. Keywords whose AI Overview cites a page
3. keyword_rankings batches
4. gsc_timeseries cache
5. Shared audit links
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from aigeo.auth import require_admin
from aigeo.citations import extract_combined_rows, find_keywords_citing_url, pick_audit_with_rows
from aigeo.database import SupabaseClient, SupabaseError
from aigeo.database.audits import (
    AuditRejected,
    assess_partial,
    build_audit_record,
    delete_audit_result,
    find_latest_audit_date,
    find_ranking_audits,
    get_audit_history,
    load_latest_audit,
    save_audit_record,
)
from aigeo.database.gsc import get_timeseries, save_timeseries
from aigeo.database.keywords import get_keyword_rankings, replace_keyword_rankings, save_keyword_rows
from aigeo.database.shares import create_share, get_share
from aigeo.segments import KeywordRules
from aigeo.utils.config import Settings, get_settings
from aigeo.utils.responses import ok_response, upstream_error
from aigeo.utils.urls import audit_date_key, normalize_property_url

from api.dependencies import get_keyword_rules, get_optional_supabase, get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/supabase",
    tags=["Audits"],
)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class SaveAuditRequest(BaseModel):
    """Audit save payload; sections are stored as sent."""
    propertyUrl: Optional[str] = None
    auditDate: Optional[str] = None
    schemaAudit: Optional[Dict[str, Any]] = None
    scores: Optional[Dict[str, Any]] = None
    searchData: Optional[Dict[str, Any]] = None
    snippetReadiness: Optional[Any] = None
    localSignals: Optional[Dict[str, Any]] = None
    moneyPagesSummary: Optional[Any] = None
    moneySegmentMetrics: Optional[Any] = None
    moneyPagePriorityData: Optional[Any] = None
    rankingAiData: Optional[Any] = None

    class Config:
        extra = "allow"


class DeleteAuditRequest(BaseModel):
    propertyUrl: Optional[str] = None
    auditDate: Optional[str] = None


class KeywordBatchRequest(BaseModel):
    keywordRows: Optional[Any] = None
    auditDate: Optional[str] = None
    propertyUrl: Optional[str] = None


class GscTimeseriesRequest(BaseModel):
    propertyUrl: Optional[str] = None
    timeseries: Optional[Any] = None


class CreateShareRequest(BaseModel):
    auditData: Optional[Any] = None


def _flag(value: Optional[str]) -> bool:
    return str(value or "").lower() in ("1", "true", "yes")


# =============================================================================
# AUDIT RESULTS
# =============================================================================

@router.post("/save-audit")
async def save_audit(
    request: SaveAuditRequest,
    db: SupabaseClient = Depends(get_supabase),
    rules: KeywordRules = Depends(get_keyword_rules),
):
    """
    Upsert one audit and replace its keyword rows.

    Keyword rows failing to save do not fail the request.
    """
    if not request.propertyUrl or not request.auditDate:
        raise HTTPException(status_code=400, detail="Missing required fields: propertyUrl, auditDate")

    try:
        record = assess_partial(build_audit_record(request.model_dump()))
    except AuditRejected as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        stored, updated = await save_audit_record(db, record)
    except SupabaseError as e:
        logger.error(f"Failed to save audit {record['property_url']} {record['audit_date']}: {e}")
        return upstream_error("Failed to save audit to Supabase", e)

    keyword_rows_saved = 0
    combined_rows = extract_combined_rows(request.rankingAiData)
    if combined_rows:
        try:
            keyword_rows_saved = await replace_keyword_rankings(
                db, record["audit_date"], record["property_url"], combined_rows, rules
            )
        except Exception as e:
            logger.error(f"Failed to save keyword rows for {record['audit_date']}: {e}", exc_info=True)

    return ok_response(
        stored,
        message="Audit results saved successfully",
        updated=updated,
        isPartial=record.get("is_partial", False),
        keywordRowsSaved=keyword_rows_saved,
    )


@router.get("/get-latest-audit")
async def get_latest_audit(
    propertyUrl: Optional[str] = Query(None),
    minimal: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
):
    if not propertyUrl:
        raise HTTPException(status_code=400, detail="Missing required parameter: propertyUrl")

    try:
        audit = await load_latest_audit(db, propertyUrl, minimal=_flag(minimal))
    except SupabaseError as e:
        return upstream_error("Failed to fetch audit from Supabase", e)

    if audit is None:
        return ok_response(None, message="No audit found for this property")
    return ok_response(audit, meta={"auditDate": audit.get("auditDate"), "minimal": _flag(minimal) or None})


@router.get("/get-audit-history")
async def audit_history(
    propertyUrl: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
):
    if not propertyUrl:
        raise HTTPException(status_code=400, detail="Missing required parameter: propertyUrl")

    try:
        history = await get_audit_history(db, propertyUrl, startDate, endDate)
    except SupabaseError as e:
        return upstream_error("Failed to fetch audit history from Supabase", e)

    return ok_response(history, count=len(history))


@router.post("/delete-audit-result", dependencies=[Depends(require_admin)])
async def delete_audit(
    request: DeleteAuditRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    if not request.propertyUrl or not request.auditDate:
        raise HTTPException(status_code=400, detail="Missing required fields: propertyUrl, auditDate")

    property_url = normalize_property_url(request.propertyUrl)
    audit_date = audit_date_key(request.auditDate)

    try:
        deleted = await delete_audit_result(db, property_url, audit_date)
    except SupabaseError as e:
        return upstream_error("Failed to delete audit result", e)

    return ok_response({"deletedCount": len(deleted), "deleted": deleted})


@router.get("/query-keywords-citing-url")
async def query_keywords_citing_url(
    request: Request,
    targetUrl: Optional[str] = Query(None),
    propertyUrl: Optional[str] = Query(None),
    auditDate: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
):
    """Keywords whose AI Overview citations point at targetUrl, with citation counts."""
    params = request.query_params
    target_url = targetUrl or params.get("target_url")
    property_url = propertyUrl or params.get("property_url")
    audit_date = auditDate or params.get("audit_date")

    if not target_url or not property_url:
        raise HTTPException(status_code=400, detail="propertyUrl and targetUrl are required")

    try:
        records = await find_ranking_audits(db, property_url, audit_date)
    except SupabaseError as e:
        return upstream_error("Failed to fetch audit from Supabase", e)

    if audit_date:
        record = records[0] if records else None
        if record is None:
            raise HTTPException(status_code=404, detail="No audit found for property URL and audit date")
    else:
        record = pick_audit_with_rows(records) or (records[0] if records else None)
        if record is None:
            try:
                latest_date = await find_latest_audit_date(db, property_url)
            except SupabaseError as e:
                return upstream_error("Failed to fetch audit from Supabase", e)
            if not latest_date:
                raise HTTPException(status_code=404, detail="No audit found for property URL")
            record = {"audit_date": latest_date, "ranking_ai_data": None}

    result = find_keywords_citing_url(extract_combined_rows(record.get("ranking_ai_data")), target_url)

    return ok_response(
        [k.to_dict() for k in result.keywords],
        count=result.count,
        unique_keywords=result.unique_keywords,
        target_url=result.target_url,
        target_url_normalized=result.target_url_normalized,
        audit_date=record.get("audit_date") or audit_date,
    )


# =============================================================================
# KEYWORD RANKINGS
# =============================================================================

@router.post("/save-keyword-batch")
async def save_keyword_batch(
    request: KeywordBatchRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    rows = request.keywordRows
    if not isinstance(rows, list) or not rows:
        raise HTTPException(status_code=400, detail="keywordRows must be a non-empty array")
    if not request.auditDate or not request.propertyUrl:
        raise HTTPException(status_code=400, detail="Missing required fields: auditDate, propertyUrl")

    batch: List[Dict[str, Any]] = [
        {
            **row,
            "audit_date": row.get("audit_date") or request.auditDate,
            "property_url": row.get("property_url") or request.propertyUrl,
        }
        for row in rows
        if isinstance(row, dict)
    ]

    try:
        saved = await save_keyword_rows(db, batch)
    except SupabaseError as e:
        logger.error(f"Keyword batch failed ({len(batch)} rows): {e}")
        return upstream_error("Failed to save keyword batch to Supabase", e)

    return ok_response(
        {"saved": saved, "attempted": len(rows)},
        message="Keyword batch saved successfully",
    )


@router.get("/get-keyword-rankings")
async def keyword_rankings(
    auditDate: Optional[str] = Query(None),
    propertyUrl: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
):
    if not auditDate or not propertyUrl:
        raise HTTPException(status_code=400, detail="Missing required parameters: auditDate, propertyUrl")

    try:
        rows = await get_keyword_rankings(db, audit_date_key(auditDate), propertyUrl)
    except SupabaseError as e:
        return upstream_error("Failed to fetch keyword rankings from Supabase", e)

    return ok_response(rows, count=len(rows))


# =============================================================================
# GSC TIMESERIES
# =============================================================================

@router.post("/save-gsc-timeseries")
async def save_gsc_timeseries(
    request: GscTimeseriesRequest,
    db: Optional[SupabaseClient] = Depends(get_optional_supabase),
):
    if not request.propertyUrl or not isinstance(request.timeseries, list):
        raise HTTPException(status_code=400, detail="Missing required fields: propertyUrl, timeseries (array)")

    if db is None:
        return ok_response(
            {"saved": 0},
            status="skipped",
            message="Supabase not configured. GSC timeseries not cached.",
        )

    result = await save_timeseries(db, request.propertyUrl, request.timeseries)
    return ok_response(
        {"saved": result.saved, "errors": result.errors},
        message=f"Saved {result.saved} GSC timeseries records",
        meta={"propertyUrl": request.propertyUrl, "recordsCount": len(request.timeseries)},
    )


@router.get("/get-gsc-timeseries")
async def gsc_timeseries(
    propertyUrl: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    db: Optional[SupabaseClient] = Depends(get_optional_supabase),
):
    if not propertyUrl or not startDate or not endDate:
        raise HTTPException(status_code=400, detail="Missing required parameters: propertyUrl, startDate, endDate")

    if db is None:
        return ok_response([], status="skipped", message="Supabase not configured.")

    try:
        rows = await get_timeseries(db, propertyUrl, startDate, endDate)
    except SupabaseError as e:
        return upstream_error("Failed to fetch GSC timeseries from Supabase", e, data=[])

    return ok_response(
        rows,
        message=f"Fetched {len(rows)} stored GSC timeseries records",
        meta={"propertyUrl": propertyUrl, "startDate": startDate, "endDate": endDate, "count": len(rows)},
    )


# =============================================================================
# SHARED AUDITS
# =============================================================================

@router.post("/create-shared-audit", dependencies=[Depends(require_admin)])
async def create_shared_audit(
    request: CreateShareRequest,
    http_request: Request,
    db: SupabaseClient = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
):
    if request.auditData is None:
        raise HTTPException(status_code=400, detail="Missing required field: auditData")

    try:
        share = await create_share(db, request.auditData, ttl_days=settings.SHARE_TTL_DAYS)
    except SupabaseError as e:
        return upstream_error("Failed to create shared audit", e)

    origin = http_request.headers.get("origin") or str(http_request.base_url).rstrip("/")
    return ok_response(
        {
            "shareId": share["share_id"],
            "shareUrl": f"{origin}/audit-dashboard.html?share={share['share_id']}",
            "expiresAt": share.get("expires_at"),
        }
    )


@router.get("/get-shared-audit")
async def get_shared_audit(
    shareId: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
):
    if not shareId:
        raise HTTPException(status_code=400, detail="Missing required parameter: shareId")

    try:
        share = await get_share(db, shareId)
    except SupabaseError as e:
        return upstream_error("Failed to fetch shared audit", e)

    if share is None:
        raise HTTPException(status_code=404, detail="Shared audit not found")

    return ok_response(
        share.get("audit_data"),
        shareId=share.get("share_id"),
        createdAt=share.get("created_at"),
        expiresAt=share.get("expires_at"),
    )
