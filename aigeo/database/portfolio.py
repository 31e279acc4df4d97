"""
Portfolio Segment Metrics Repository

portfolio_segment_metrics_28d holds one row per (run_id, site_url,
segment, scope): 28-day GSC totals per portfolio segment, calibrated to
the site's GSC overview totals, plus keyword-driven AI metrics.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from aigeo.database.gsc import GSC_TIMESERIES_TABLE
from aigeo.database.keywords import KEYWORD_TABLE, get_keyword_audit_dates
from aigeo.database.optimisation import CLOSED_TASK_STATUSES, TASKS_TABLE
from aigeo.database.supabase import SupabaseClient, SupabaseError
from aigeo.segments.portfolio import (
    PORTFOLIO_SCOPES,
    SegmentMarkers,
    aggregate_ai_metrics,
    group_keywords_by_segment,
)
from aigeo.utils.coerce import ensure_int, ensure_number
from aigeo.utils.dates import parse_iso_date
from aigeo.utils.urls import normalize_tracked_url

logger = logging.getLogger(__name__)

PORTFOLIO_TABLE = "portfolio_segment_metrics_28d"
PORTFOLIO_CONFLICT = "run_id,site_url,segment,scope"
BATCH_SIZE = 500


# =============================================================================
# CALIBRATION AND ROWS
# =============================================================================

def calibration_scales(
    timeseries_rows: List[Dict[str, Any]],
    rows: List[Dict[str, Any]],
) -> Tuple[float, float]:
    """
    Scale factors bringing segment totals in line with the GSC overview.

    Page-level GSC rows undercount the overview (anonymised queries), so
    the money row's raw clicks/impressions are scaled to the overview sum
    over the same window. Returns (clicks_scale, impressions_scale).
    """
    points = [r for r in timeseries_rows if isinstance(r, dict)]
    overview_clicks = sum(ensure_number(r.get("clicks")) or 0 for r in points)
    overview_impressions = sum(ensure_number(r.get("impressions")) or 0 for r in points)

    money = next((r for r in rows if isinstance(r, dict) and r.get("segment") == "money"), None)
    raw_clicks = (ensure_number(money.get("clicks_28d")) or 0) if money else 0
    raw_impressions = (ensure_number(money.get("impressions_28d")) or 0) if money else 0

    scale_clicks = overview_clicks / raw_clicks if overview_clicks > 0 and raw_clicks > 0 else 1.0
    scale_impressions = (
        overview_impressions / raw_impressions if overview_impressions > 0 and raw_impressions > 0 else 1.0
    )
    return scale_clicks, scale_impressions


def build_segment_metric_rows(
    rows: List[Dict[str, Any]],
    run_id: str,
    site_url: str,
    date_start: str,
    date_end: str,
    scope: str,
    scales: Tuple[float, float] = (1.0, 1.0),
) -> List[Dict[str, Any]]:
    """Store rows with calibrated clicks/impressions and a 0-1 CTR ratio; non-object rows are dropped."""
    scale_clicks, scale_impressions = scales
    out = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        clicks = (ensure_number(row.get("clicks_28d")) or 0) * scale_clicks
        impressions = (ensure_number(row.get("impressions_28d")) or 0) * scale_impressions
        out.append({
            "run_id": run_id,
            "site_url": site_url,
            "segment": row.get("segment"),
            "scope": scope,
            "date_start": date_start,
            "date_end": date_end,
            "pages_count": ensure_int(row.get("pages_count")) or 0,
            "clicks_28d": clicks,
            "impressions_28d": impressions,
            "ctr_28d": clicks / impressions if impressions > 0 else 0,
            "position_28d": ensure_number(row.get("position_28d")),
            "ai_citations_28d": ensure_int(row.get("ai_citations_28d")) or 0,
            "ai_overview_present_count": ensure_int(row.get("ai_overview_present_count")) or 0,
        })
    return out


async def load_calibration_scales(
    db: SupabaseClient,
    site_url: str,
    date_start: str,
    date_end: str,
    rows: List[Dict[str, Any]],
) -> Tuple[float, float]:
    """Calibration from cached gsc_timeseries; (1, 1) when unavailable."""
    try:
        timeseries = await db.execute(
            db.table(GSC_TIMESERIES_TABLE)
            .select("clicks,impressions")
            .eq("property_url", site_url)
            .gte("date", str(date_start)[:10])
            .lte("date", str(date_end)[:10])
        )
    except SupabaseError as e:
        logger.warning(f"gsc_timeseries unavailable, skipping calibration: {e}")
        return 1.0, 1.0

    if not timeseries:
        return 1.0, 1.0
    scales = calibration_scales(timeseries, rows)
    logger.info(f"Calibration scales: clicks={scales[0]:.4f}, impressions={scales[1]:.4f}")
    return scales


# =============================================================================
# PERSISTENCE
# =============================================================================

async def save_segment_metrics(
    db: SupabaseClient,
    site_url: str,
    run_id: str,
    date_start: str,
    date_end: str,
    scope: str,
    rows: List[Dict[str, Any]],
) -> int:
    """
    Calibrate and upsert segment metric rows in chunks of BATCH_SIZE.

    Raises:
        SupabaseError: Upsert failed (check is_missing_table)
    """
    scales = await load_calibration_scales(db, site_url, date_start, date_end, rows)
    store_rows = build_segment_metric_rows(rows, run_id, site_url, date_start, date_end, scope, scales)

    total = 0
    for i in range(0, len(store_rows), BATCH_SIZE):
        batch = store_rows[i:i + BATCH_SIZE]
        await db.execute(db.table(PORTFOLIO_TABLE).upsert(batch, on_conflict=PORTFOLIO_CONFLICT))
        total += len(batch)
        logger.info(f"Batch {i // BATCH_SIZE + 1}: upserted {len(batch)} rows (runId={run_id})")

    logger.info(f"Upserted {total} portfolio segment metrics for {site_url} runId={run_id} scope={scope}")
    return total


async def get_segment_metrics(
    db: SupabaseClient,
    site_url: str,
    scope: Optional[str] = None,
    segment: Optional[str] = None,
    created_from: Optional[str] = None,
    created_to: Optional[str] = None,
    limit: Optional[int] = None,
    order: str = "desc",
) -> List[Dict[str, Any]]:
    query = db.table(PORTFOLIO_TABLE).select("*").eq("site_url", site_url)
    if scope:
        query = query.eq("scope", scope)
    if segment:
        query = query.eq("segment", segment)
    if created_from:
        query = query.gte("created_at", created_from)
    if created_to:
        query = query.lte("created_at", created_to)

    query = query.order("created_at", desc=order != "asc")
    if limit and limit > 0:
        query = query.limit(limit)
    return await db.execute(query)


# =============================================================================
# AI METRICS BACKFILL
# =============================================================================

async def _run_exists(db: SupabaseClient, run_id: str, site_url: str) -> bool:
    rows = await db.execute(
        db.table(PORTFOLIO_TABLE)
        .select("run_id")
        .eq("run_id", run_id)
        .eq("site_url", site_url)
        .limit(1)
    )
    return bool(rows)


async def find_matching_run_id(db: SupabaseClient, audit_date: str, site_url: str) -> Optional[str]:
    """
    Run id of the metrics run an audit belongs to.

    Monthly (YYYY-MM) runs are preferred, then daily (YYYY-MM-DD); with
    neither stored the monthly id is returned. None for unparseable dates.
    """
    try:
        day = parse_iso_date(str(audit_date)[:10])
    except ValueError:
        return None

    monthly = day.strftime("%Y-%m")
    if await _run_exists(db, monthly, site_url):
        return monthly

    daily = day.strftime("%Y-%m-%d")
    if await _run_exists(db, daily, site_url):
        return daily
    return monthly


async def get_tracked_urls(db: SupabaseClient) -> Set[str]:
    """Target URLs of open optimisation tasks, as normalize_tracked_url keys."""
    tasks = await db.execute(
        db.table(TASKS_TABLE)
        .select("target_url")
        .not_.in_("status", CLOSED_TASK_STATUSES)
        .not_.is_("target_url", "null")
    )
    return {normalize_tracked_url(t["target_url"]) for t in tasks if t.get("target_url")}


async def backfill_audit_ai_metrics(
    db: SupabaseClient,
    audit_date: str,
    site_url: str,
    markers: Optional[SegmentMarkers] = None,
) -> Optional[Dict[str, Any]]:
    """
    Copy keyword-driven AI metrics of one audit onto existing segment rows.

    Only rows that already exist are updated; None when the audit date
    cannot be mapped to a run id.
    """
    run_id = await find_matching_run_id(db, audit_date, site_url)
    if not run_id:
        logger.warning(f"Skipping invalid audit_date: {audit_date}")
        return None

    try:
        keywords = await db.execute(
            db.table(KEYWORD_TABLE).select("*").eq("audit_date", audit_date).eq("property_url", site_url)
        )
    except SupabaseError as e:
        logger.error(f"Failed to fetch keywords for {audit_date}: {e}")
        return {"auditDate": audit_date, "runId": run_id, "success": False, "error": str(e)}

    if not keywords:
        return {
            "auditDate": audit_date,
            "runId": run_id,
            "success": True,
            "keywordsProcessed": 0,
            "updates": [],
            "reason": "No keywords found",
        }

    groups = group_keywords_by_segment(keywords, await get_tracked_urls(db), markers)

    updates = []
    for segment, rows in groups.items():
        if not rows:
            continue
        metrics = aggregate_ai_metrics(rows)

        for scope in PORTFOLIO_SCOPES:
            query = (
                db.table(PORTFOLIO_TABLE)
                .update(metrics)
                .eq("run_id", run_id)
                .eq("site_url", site_url)
                .eq("segment", segment)
                .eq("scope", scope)
            )
            try:
                updated = await db.execute(query)
            except SupabaseError as e:
                logger.error(f"Failed to update {segment} ({scope}) for {run_id}: {e}")
                updates.append({"segment": segment, "scope": scope, "success": False, "error": str(e)})
                continue
            if not updated:
                continue
            updates.append({
                "segment": segment,
                "scope": scope,
                "success": True,
                "citations": metrics["ai_citations_28d"],
                "overviewCount": metrics["ai_overview_present_count"],
            })

    return {
        "auditDate": audit_date,
        "runId": run_id,
        "success": True,
        "keywordsProcessed": len(keywords),
        "updates": updates,
    }


async def backfill_ai_portfolio_segments(
    db: SupabaseClient,
    site_url: str,
    audit_date: Optional[str] = None,
    markers: Optional[SegmentMarkers] = None,
) -> Dict[str, Any]:
    """Backfill one audit, or every audit date in keyword_rankings (newest first)."""
    audit_dates = [audit_date] if audit_date else await get_keyword_audit_dates(db)

    results = []
    total_updated = 0
    for current in audit_dates:
        result = await backfill_audit_ai_metrics(db, current, site_url, markers)
        if result is None:
            continue
        total_updated += sum(1 for u in result.get("updates", []) if u.get("success"))
        results.append(result)

    logger.info(f"AI backfill: {total_updated} segment rows updated across {len(results)} audits")
    return {"totalUpdated": total_updated, "auditsProcessed": len(results), "results": results}
