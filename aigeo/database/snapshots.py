"""
Domain Strength Snapshots Repository

domain_strength_snapshots: one row per (domain, engine, snapshot_date)
with the 0-100 score, its band, components and raw Labs inputs.
domain_strength_domains: optional label/type metadata per domain.
"""

import logging
from typing import Any, Dict, List, Optional

from postgrest.types import ReturnMethod

from aigeo.database.supabase import SupabaseClient, SupabaseError
from aigeo.scoring.domain_strength import DomainMetrics, DomainStrengthScore, ScoreCaps, caps_from_history
from aigeo.utils.dates import days_ago

logger = logging.getLogger(__name__)

SNAPSHOT_TABLE = "domain_strength_snapshots"
DOMAINS_TABLE = "domain_strength_domains"
DEFAULT_ENGINE = "google"
HISTORY_DAYS = 365
HISTORY_LIMIT = 5000
METADATA_CHUNK = 100
UNMAPPED = "unmapped"

HISTORY_FIELDS = (
    "domain,engine,snapshot_date,score,band,vis_component,breadth_component,quality_component,"
    "organic_etv_raw,organic_keywords_total_raw,top3_keywords_raw,top10_keywords_raw"
)


def snapshot_row(
    domain: str,
    snapshot_date: str,
    score: DomainStrengthScore,
    metrics: Optional[DomainMetrics],
    engine: str = DEFAULT_ENGINE,
) -> Dict[str, Any]:
    """Store row for a scored domain; no metrics means a no-data zero score."""
    row = {
        "domain": domain,
        "engine": engine,
        "snapshot_date": snapshot_date,
        "score": score.score,
        "band": score.band,
        "vis_component": score.V,
        "breadth_component": score.B,
        "quality_component": score.Q,
        "organic_etv_raw": 0,
        "organic_keywords_total_raw": 0,
        "top3_keywords_raw": None,
        "top10_keywords_raw": None,
    }
    if metrics is not None:
        row.update({
            "organic_etv_raw": int((metrics.etv or 0) + 0.5),
            "organic_keywords_total_raw": int((metrics.keywords_total or 0) + 0.5),
            "top3_keywords_raw": metrics.top3 or None,
            "top10_keywords_raw": metrics.top10 or None,
        })
    return row


async def fetch_score_caps(db: Optional[SupabaseClient]) -> ScoreCaps:
    """Normalisation caps from the last year of raw inputs; defaults when the store is unavailable."""
    if db is None:
        return ScoreCaps()
    try:
        rows = await db.execute(
            db.table(SNAPSHOT_TABLE)
            .select("organic_etv_raw,organic_keywords_total_raw")
            .gte("snapshot_date", days_ago(HISTORY_DAYS))
            .limit(HISTORY_LIMIT)
        )
    except SupabaseError as e:
        logger.warning(f"Could not load caps history, using defaults: {e}")
        return ScoreCaps()
    return caps_from_history(rows)


async def replace_snapshots(
    db: SupabaseClient,
    snapshot_date: str,
    rows: List[Dict[str, Any]],
    engine: str = DEFAULT_ENGINE,
) -> int:
    """Delete the day's rows for these domains, then insert the new ones."""
    if not rows:
        return 0
    domains = [row["domain"] for row in rows]
    await db.execute(
        db.table(SNAPSHOT_TABLE)
        .delete()
        .eq("snapshot_date", snapshot_date)
        .eq("engine", engine)
        .in_("domain", domains)
    )
    await db.execute(db.table(SNAPSHOT_TABLE).insert(rows, returning=ReturnMethod.minimal))
    logger.info(f"Stored {len(rows)} domain strength snapshots for {snapshot_date}")
    return len(rows)


async def fetch_domain_metadata(db: SupabaseClient, domains: List[str]) -> Dict[str, Dict[str, Any]]:
    """label/domain_type per domain; missing metadata is simply absent."""
    meta: Dict[str, Dict[str, Any]] = {}
    for i in range(0, len(domains), METADATA_CHUNK):
        chunk = domains[i:i + METADATA_CHUNK]
        try:
            rows = await db.execute(
                db.table(DOMAINS_TABLE).select("domain,label,domain_type,segment").in_("domain", chunk)
            )
        except SupabaseError as e:
            logger.warning(f"Domain metadata unavailable: {e}")
            return meta
        for row in rows:
            if row.get("domain"):
                domain_type = row.get("domain_type") or row.get("segment") or UNMAPPED
                meta[row["domain"]] = {"label": row.get("label") or None, "domain_type": domain_type}
    return meta


async def get_history(db: SupabaseClient, domains: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """Last year of snapshots ascending, enriched with label/domain_type/segment."""
    query = db.table(SNAPSHOT_TABLE).select(HISTORY_FIELDS).gte("snapshot_date", days_ago(HISTORY_DAYS))
    if domains:
        query = query.in_("domain", domains)

    rows = await db.execute(query.order("snapshot_date").limit(HISTORY_LIMIT))

    unique = list(dict.fromkeys(r["domain"] for r in rows if r.get("domain")))
    meta = await fetch_domain_metadata(db, unique) if unique else {}

    enriched = []
    for row in rows:
        info = meta.get(row.get("domain")) or {"label": None, "domain_type": UNMAPPED}
        enriched.append({
            **row,
            "label": info["label"],
            "domain_type": info["domain_type"],
            "segment": info["domain_type"],
        })
    return enriched


async def get_latest_snapshot(
    db: SupabaseClient,
    domain: str,
    engine: str = DEFAULT_ENGINE,
) -> Optional[Dict[str, Any]]:
    rows = await db.execute(
        db.table(SNAPSHOT_TABLE)
        .select("snapshot_date,score,band")
        .eq("domain", domain)
        .eq("engine", engine)
        .order("snapshot_date", desc=True)
        .limit(1)
    )
    return rows[0] if rows else None
