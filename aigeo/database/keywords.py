"""
Keyword Rankings Repository

keyword_rankings holds one row per (audit_date, property_url, keyword):
best organic rank, AI Overview presence and the tracked domain's AI
citations, plus SERP feature coverage and segment classification.
"""

import logging
from typing import Any, Dict, List, Optional

from aigeo.database.supabase import SupabaseClient
from aigeo.segments.keywords import KeywordRules, classify_keyword_segment
from aigeo.utils.coerce import clean_str, ensure_dict, ensure_int, ensure_list, ensure_number
from aigeo.utils.dates import utc_now_iso
from aigeo.utils.urls import property_url_candidates

logger = logging.getLogger(__name__)

KEYWORD_TABLE = "keyword_rankings"
KEYWORD_CONFLICT = "audit_date,property_url,keyword"

MAX_RESTORED_ROWS = 2000
MAX_RESTORED_CITATIONS = 10
MAX_COMPETITORS = 20
ESSENTIAL_SERP_FEATURES = ("ai_overview", "local_pack", "people_also_ask", "featured_snippet")


# =============================================================================
# ROW MAPPING
# =============================================================================

def _citations(row: Dict[str, Any]) -> Optional[List[Any]]:
    for key in ("ai_domain_citations", "ai_citations"):
        if row.get(key):
            value = row[key]
            return value if isinstance(value, list) else []
    return None


def _feature(row: Dict[str, Any], flag: str, feature: str) -> bool:
    if row.get(flag) is True:
        return True
    features = row.get("serp_features")
    return isinstance(features, dict) and features.get(feature) is True


def map_keyword_row(
    row: Dict[str, Any],
    audit_date: str,
    property_url: str,
    rules: Optional[KeywordRules] = None,
) -> Dict[str, Any]:
    """
    Map a dashboard keyword row (combinedRows entry) to a keyword_rankings row.

    The segment is classified from the keyword when the row carries none.
    """
    keyword = str(row.get("keyword") or "").strip()
    page_type = clean_str(row.get("pageType") or row.get("page_type"))

    segment = clean_str(row.get("segment"))
    if not segment:
        segment = classify_keyword_segment(
            keyword, page_type=page_type, ranking_url=row.get("best_url"), rules=rules
        ).segment

    citations_count = row.get("ai_domain_citations_count")
    if citations_count is None:
        citations_count = row.get("ai_citations_count")

    competitor_counts = row.get("competitor_counts")
    serp_features = row.get("serp_features")
    opportunity = row.get("opportunityScore")
    if opportunity is None:
        opportunity = row.get("opportunity_score")

    return {
        "audit_date": str(audit_date).strip(),
        "property_url": str(property_url).strip(),
        "keyword": keyword,
        "best_rank_group": ensure_int(row.get("best_rank_group")),
        "best_rank_absolute": ensure_int(row.get("best_rank_absolute")),
        "best_url": clean_str(row.get("best_url")),
        "best_title": clean_str(row.get("best_title")),
        "search_volume": ensure_int(row.get("search_volume")),
        "has_ai_overview": row.get("has_ai_overview") is True,
        "ai_total_citations": ensure_int(row.get("ai_total_citations")),
        "ai_domain_citations_count": ensure_int(citations_count),
        "ai_domain_citations": _citations(row),
        "competitor_counts": (competitor_counts if isinstance(competitor_counts, dict) else {}) if competitor_counts else None,
        "serp_features": (serp_features if isinstance(serp_features, dict) else {}) if serp_features else None,
        "ai_overview_present_any": row.get("ai_overview_present_any") is True or row.get("has_ai_overview") is True,
        "local_pack_present_any": _feature(row, "local_pack_present_any", "local_pack"),
        "paa_present_any": _feature(row, "paa_present_any", "people_also_ask"),
        "featured_snippet_present_any": _feature(row, "featured_snippet_present_any", "featured_snippet"),
        "segment": segment,
        "page_type": page_type,
        "demand_share": ensure_number(row.get("demand_share")),
        "opportunity_score": ensure_int(opportunity),
        "updated_at": utc_now_iso(),
    }


def restore_keyword_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """keyword_rankings row back to the dashboard's combinedRows shape."""
    citations = ensure_list(row.get("ai_domain_citations"))[:MAX_RESTORED_CITATIONS]

    competitors = ensure_dict(row.get("competitor_counts"))
    if len(competitors) > MAX_COMPETITORS:
        top = sorted(competitors.items(), key=lambda kv: kv[1] or 0, reverse=True)[:MAX_COMPETITORS]
        competitors = dict(top)

    features = ensure_dict(row.get("serp_features"))
    if len(features) > 10:
        features = {k: features[k] for k in ESSENTIAL_SERP_FEATURES if k in features}

    return {
        "keyword": row.get("keyword"),
        "best_rank_group": row.get("best_rank_group"),
        "best_rank_absolute": row.get("best_rank_absolute"),
        "best_url": row.get("best_url"),
        "best_title": row.get("best_title"),
        "search_volume": row.get("search_volume"),
        "has_ai_overview": bool(row.get("has_ai_overview")),
        "ai_total_citations": row.get("ai_total_citations") or 0,
        "ai_domain_citations_count": row.get("ai_domain_citations_count") or 0,
        "ai_domain_citations": citations,
        "competitor_counts": competitors,
        "serp_features": features,
        "ai_overview_present_any": row.get("ai_overview_present_any") is True,
        "local_pack_present_any": row.get("local_pack_present_any") is True,
        "paa_present_any": row.get("paa_present_any") is True,
        "featured_snippet_present_any": row.get("featured_snippet_present_any") is True,
        "segment": row.get("segment"),
        "pageType": row.get("page_type"),
        "demand_share": row.get("demand_share"),
        "opportunityScore": row.get("opportunity_score"),
    }


def summarize_keyword_rows(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Ranking summary over restored combinedRows."""
    ranked = [r for r in rows if (r.get("best_rank_group") or 0) > 0]
    with_volume = [r for r in rows if (r.get("search_volume") or 0) > 0]

    weighted_total = 0.0
    volume_total = 0
    for r in with_volume:
        rank = r.get("best_rank_group")
        if rank and rank > 0:
            weighted_total += rank * r["search_volume"]
            volume_total += r["search_volume"]

    return {
        "total_keywords": len(rows),
        "keywords_with_rank": len(ranked),
        "top10": sum(1 for r in ranked if r["best_rank_group"] <= 10),
        "top3": sum(1 for r in ranked if r["best_rank_group"] <= 3),
        "keywords_with_ai_overview": sum(1 for r in rows if r.get("has_ai_overview") is True),
        "keywords_with_ai_citations": sum(1 for r in rows if (r.get("ai_domain_citations_count") or 0) > 0),
        "avg_position_unweighted": (
            sum(r["best_rank_group"] for r in ranked) / len(ranked) if ranked else None
        ),
        "avg_position_volume_weighted": weighted_total / volume_total if volume_total else None,
        "keywords_used_for_avg": len(ranked),
        "keywords_with_volume": len(with_volume),
    }


# =============================================================================
# PERSISTENCE
# =============================================================================

async def save_keyword_rows(db: SupabaseClient, rows: List[Dict[str, Any]]) -> int:
    """Merge-duplicates upsert on (audit_date, property_url, keyword). Returns rows saved."""
    if not rows:
        return 0
    saved = await db.execute(db.table(KEYWORD_TABLE).upsert(rows, on_conflict=KEYWORD_CONFLICT))
    if len(saved) != len(rows):
        logger.warning(f"Attempted to save {len(rows)} keyword rows but {len(saved)} were stored")
    return len(saved)


async def replace_keyword_rankings(
    db: SupabaseClient,
    audit_date: str,
    property_url: str,
    combined_rows: List[Any],
    rules: Optional[KeywordRules] = None,
) -> int:
    """
    Replace every keyword row of one audit.

    Existing rows for (audit_date, property_url) are deleted first so
    keywords dropped from the audit do not linger. Entries that are not
    objects or carry no keyword are skipped.
    """
    rows = [
        map_keyword_row(row, audit_date, property_url, rules)
        for row in combined_rows
        if isinstance(row, dict) and str(row.get("keyword") or "").strip()
    ]
    skipped = len(combined_rows) - len(rows)
    if skipped:
        logger.warning(f"Skipped {skipped} combinedRows entries without a keyword")

    await db.execute(
        db.table(KEYWORD_TABLE)
        .delete()
        .eq("audit_date", audit_date)
        .eq("property_url", property_url.strip())
    )
    saved = await save_keyword_rows(db, rows)
    logger.info(f"Saved {saved} keyword rows for {property_url} on {audit_date}")
    return saved


async def get_keyword_rankings(
    db: SupabaseClient,
    audit_date: str,
    property_url: str,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """All keyword rows of one audit ordered by keyword, matching property URL variants."""
    query = (
        db.table(KEYWORD_TABLE)
        .select("*")
        .eq("audit_date", audit_date)
        .in_("property_url", property_url_candidates(property_url))
        .order("keyword")
    )
    if limit:
        query = query.limit(limit)
    return await db.execute(query)


async def get_keyword_audit_dates(db: SupabaseClient, property_url: Optional[str] = None) -> List[str]:
    """Distinct audit dates present in keyword_rankings, newest first."""
    query = db.table(KEYWORD_TABLE).select("audit_date")
    if property_url:
        query = query.in_("property_url", property_url_candidates(property_url))
    rows = await db.execute(query.order("audit_date", desc=True))

    dates: List[str] = []
    for row in rows:
        value = row.get("audit_date")
        if value and value not in dates:
            dates.append(value)
    return dates
