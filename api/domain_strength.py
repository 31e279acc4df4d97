"""
API Endpoints for Domain Strength

Handles:
1. Snapshot: score domains from DataForSEO Labs and store the day's rows
2. History: last year of snapshots with domain labels
3. Ranking & AI summary: latest score of the tracked domain
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from aigeo.collector import DataForSEOClient, fetch_domain_rank_overview_batch
from aigeo.database import SupabaseClient, SupabaseError
from aigeo.database.snapshots import (
    DEFAULT_ENGINE,
    fetch_score_caps,
    get_history,
    get_latest_snapshot,
    replace_snapshots,
    snapshot_row,
)
from aigeo.scoring import (
    DomainStrengthScore,
    compute_domain_strength_score,
    get_authority_priority,
    is_no_data_error,
)
from aigeo.scoring.domain_strength import WEAKEST_BAND
from aigeo.utils.coerce import ensure_number
from aigeo.utils.config import Settings, get_settings
from aigeo.utils.dates import format_date, today_utc
from aigeo.utils.responses import error_response, ok_response, upstream_error
from aigeo.utils.urls import normalize_domain, normalize_domain_list

from api.dependencies import get_dataforseo, get_optional_supabase, get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Domain Strength"],
)

TEST_MODE_DOMAINS = 3
LABS_SOURCE = "dataforseo_labs.domain_rank_overview"
SNAPSHOT_SOURCE = "domain-strength.snapshot"
HISTORY_SOURCE = "domain_strength_snapshots"


class SnapshotRequest(BaseModel):
    """mode "test" scores up to three domains and writes nothing."""
    mode: Optional[str] = "run"
    domains: Optional[Any] = None


def _failed_result(domain: str, error: str) -> Dict[str, Any]:
    return {"domain": domain, "score": None, "band": None, "V": None, "B": None, "Q": None, "raw": None, "error": error}


# =============================================================================
# SNAPSHOT
# =============================================================================

@router.post("/api/domain-strength/snapshot")
async def snapshot(
    request: SnapshotRequest,
    client: DataForSEOClient = Depends(get_dataforseo),
    db: Optional[SupabaseClient] = Depends(get_optional_supabase),
    settings: Settings = Depends(get_settings),
):
    """
    Score domains and (in run mode) replace today's snapshot rows.

    Domains Labs has no data for score 0 / "Very weak"; domains whose
    request failed are reported with null fields and are not stored.
    """
    mode = "test" if request.mode == "test" else "run"
    domains = normalize_domain_list(request.domains if isinstance(request.domains, (list, str)) else None)
    if not domains:
        raise HTTPException(status_code=400, detail="Missing required field: domains (array)")

    if mode == "run" and db is None:
        raise HTTPException(
            status_code=500,
            detail="Supabase not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.",
        )

    snapshot_date = format_date(today_utc())
    engine = DEFAULT_ENGINE
    run_domains = domains[:TEST_MODE_DOMAINS] if mode == "test" else domains

    caps = await fetch_score_caps(db)
    labs = await fetch_domain_rank_overview_batch(
        client,
        run_domains,
        location_code=settings.LABS_LOCATION_CODE,
        include_raw=mode == "test",
    )
    if not labs.ok:
        return error_response(
            labs.error or "Labs request failed",
            status_code=200,
            snapshot_date=snapshot_date,
            engine=engine,
            domains_processed=len(run_domains),
            mode=mode,
            meta={"source": LABS_SOURCE},
        )

    by_domain = labs.by_domain()
    results: List[Dict[str, Any]] = []
    rows: List[Dict[str, Any]] = []

    for domain in run_domains:
        labs_result = by_domain.get(domain)
        if labs_result is None or not labs_result.ok or labs_result.metrics is None:
            error = (labs_result.error if labs_result else None) or "No data"
            if not is_no_data_error(error):
                results.append(_failed_result(domain, error))
                continue

            zero = DomainStrengthScore(score=0, band=WEAKEST_BAND, V=0, B=0, Q=0)
            results.append({"domain": domain, **zero.to_dict(), "raw": None, "error": error})
            rows.append(snapshot_row(domain, snapshot_date, zero, None, engine))
            continue

        metrics = labs_result.metrics
        scored = compute_domain_strength_score(metrics, caps)
        raw = {
            "etv": ensure_number(metrics.etv) or 0,
            "keywordsTotal": ensure_number(metrics.keywords_total) or 0,
            "top3": ensure_number(metrics.top3) or 0,
            "top10": ensure_number(metrics.top10) or 0,
        }
        results.append({"domain": domain, **scored.to_dict(), "raw": raw})
        rows.append(snapshot_row(domain, snapshot_date, scored, metrics, engine))

    inserted = 0
    if mode == "run":
        try:
            inserted = await replace_snapshots(db, snapshot_date, rows, engine)
        except SupabaseError as e:
            logger.error(f"Snapshot write failed for {snapshot_date}: {e}")
            return upstream_error(
                "Failed to write snapshots to Supabase",
                e,
                snapshot_date=snapshot_date,
                engine=engine,
                domains_processed=len(run_domains),
                mode=mode,
            )

    logger.info(f"Domain strength {mode}: {len(results)} domains scored, {inserted} rows stored")
    return ok_response(
        {
            "snapshot_date": snapshot_date,
            "engine": engine,
            "mode": mode,
            "caps": caps.to_dict(),
            "domains_processed": len(run_domains),
            "inserted": inserted,
            "results": results,
        },
        meta={"source": SNAPSHOT_SOURCE},
    )


# =============================================================================
# HISTORY
# =============================================================================

@router.get("/api/domain-strength/history")
async def history(
    domains: Optional[str] = Query(None, description="Comma-separated domains"),
    db: SupabaseClient = Depends(get_supabase),
):
    try:
        rows = await get_history(db, normalize_domain_list(domains) or None)
    except SupabaseError as e:
        return upstream_error("Failed to fetch domain strength history", e)

    return ok_response(rows, count=len(rows), meta={"source": HISTORY_SOURCE})


# =============================================================================
# RANKING & AI SUMMARY
# =============================================================================

@router.get("/api/ranking-ai/summary")
async def ranking_ai_summary(
    db: Optional[SupabaseClient] = Depends(get_optional_supabase),
    settings: Settings = Depends(get_settings),
):
    """Latest domain strength of the tracked domain; nulls when the store is unavailable."""
    empty = {"score": None, "band": None, "snapshotDate": None}
    domain = normalize_domain(settings.AI_GEO_DOMAIN)

    if db is None:
        return ok_response(
            {"domain": domain, "domainStrength": empty, "authorityPriority": None},
            meta={"missingSupabase": True},
        )
    if not domain:
        return ok_response(
            {"domain": None, "domainStrength": empty, "authorityPriority": None},
            meta={"missingDomain": True},
        )

    try:
        row = await get_latest_snapshot(db, domain)
    except SupabaseError as e:
        logger.warning(f"Ranking summary unavailable for {domain}: {e}")
        return ok_response(
            {"domain": domain, "domainStrength": empty, "authorityPriority": None},
            meta={"httpStatus": e.status_code, "error": True},
        )

    score = ensure_number(row.get("score")) if row else None
    strength = {
        "score": score,
        "band": row.get("band") if row and isinstance(row.get("band"), str) else None,
        "snapshotDate": str(row["snapshot_date"]) if row and row.get("snapshot_date") else None,
    }
    return ok_response(
        {"domain": domain, "domainStrength": strength, "authorityPriority": get_authority_priority(score)},
        meta={"source": HISTORY_SOURCE},
    )
