"""
Audit Results Repository

Maps the dashboard's save payload to an audit_results row, guards
against empty ("null") audits, and restores stored rows back into the
payload shape the dashboard consumes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from aigeo.database.keywords import (
    MAX_RESTORED_ROWS,
    get_keyword_rankings,
    restore_keyword_row,
    summarize_keyword_rows,
)
from aigeo.database.supabase import SupabaseClient, SupabaseError
from aigeo.scoring.ai_summary import compute_ai_summary
from aigeo.utils.coerce import ensure_json, ensure_list, ensure_number
from aigeo.utils.dates import utc_now_iso
from aigeo.utils.urls import property_url_candidates

logger = logging.getLogger(__name__)

AUDIT_TABLE = "audit_results"

FOUNDATION_TYPES = ["Organization", "Person", "WebSite", "BreadcrumbList"]
PILLAR_SCORE_FIELDS = (
    "visibility_score",
    "authority_score",
    "content_schema_score",
    "local_entity_score",
    "service_area_score",
)
HEAVY_PAYLOAD_FIELDS = ("schema_pages_detail", "query_pages", "gsc_timeseries", "top_queries")

MAX_SAVED_QUERY_PAGES = 2000
MAX_RESTORED_QUERY_PAGES = 1000
MAX_RESTORED_TOP_QUERIES = 200
MAX_RESTORED_SCHEMA_PAGES = 200
MAX_RESTORED_TIMESERIES = 90


class AuditRejected(ValueError):
    """Save payload carried no scores and no audit data."""


# =============================================================================
# SAVE PAYLOAD -> ROW
# =============================================================================

def _schema_page(page: Any) -> Dict[str, Any]:
    if not isinstance(page, dict):
        return {
            "url": page if isinstance(page, str) else "",
            "title": None,
            "metaDescription": None,
            "hasSchema": False,
            "hasInheritedSchema": False,
            "schemaTypes": [],
            "error": None,
            "errorType": None,
        }

    types = page.get("schemaTypes")
    if not isinstance(types, list):
        types = [types] if types else []

    return {
        "url": page.get("url") or "",
        "title": page.get("title") or None,
        "metaDescription": page.get("metaDescription") or None,
        "hasSchema": page.get("hasSchema") is True,
        "hasInheritedSchema": page.get("hasInheritedSchema") is True,
        "schemaTypes": types,
        "error": page.get("error") or None,
        "errorType": page.get("errorType") or None,
    }


def schema_pages_detail(schema_data: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    """Per-page schema detail from `pages`, falling back to a `pagesWithSchema` list."""
    for key in ("pages", "pagesWithSchema"):
        pages = schema_data.get(key)
        if isinstance(pages, list) and pages:
            detail = [p for p in (_schema_page(page) for page in pages) if p["url"]]
            return detail
    logger.warning("schema_pages_detail missing; schema coverage unavailable in scorecard")
    return None


def query_pages(search_data: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    """GSC query+page rows, capped at MAX_SAVED_QUERY_PAGES."""
    rows = search_data.get("queryPages")
    if not isinstance(rows, list) or not rows:
        return None

    mapped = []
    for item in rows:
        if not isinstance(item, dict):
            continue
        entry = {
            "query": item.get("query") or "",
            "page": item.get("page") or item.get("url") or "",
            "clicks": item.get("clicks") or 0,
            "impressions": item.get("impressions") or 0,
            "ctr": item.get("ctr") or 0,
            "position": item.get("position") or item.get("avg_position") or None,
        }
        if entry["query"] or entry["page"]:
            mapped.append(entry)

    if len(mapped) > MAX_SAVED_QUERY_PAGES:
        logger.warning(f"query_pages has {len(mapped)} items, truncating to {MAX_SAVED_QUERY_PAGES}")
        mapped = mapped[:MAX_SAVED_QUERY_PAGES]
    return mapped


def _non_empty_list(value: Any) -> Optional[list]:
    return value if isinstance(value, list) and value else None


def _snippet_score(snippet_readiness: Any) -> Any:
    if isinstance(snippet_readiness, dict):
        return snippet_readiness.get("overallScore") or None
    return snippet_readiness


def _nullable_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def build_audit_record(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build an audit_results row from a save payload.

    Args:
        payload: Dict with propertyUrl, auditDate and optional schemaAudit,
            scores, searchData, snippetReadiness, localSignals,
            moneyPagesSummary, moneySegmentMetrics, moneyPagePriorityData,
            rankingAiData

    Returns:
        Row dict; is_partial/partial_reason are set by assess_partial
    """
    schema_data = (payload.get("schemaAudit") or {}).get("data") or {}
    scores = payload.get("scores") or {}
    search = payload.get("searchData") or {}
    local = (payload.get("localSignals") or {}).get("data") or {}
    money_summary = payload.get("moneyPagesSummary")
    snippet_readiness = payload.get("snippetReadiness")

    schema_types = schema_data.get("schemaTypes") or []
    missing_types = schema_data.get("missingTypes") or []
    missing_pages = schema_data.get("missingSchemaPages")

    authority = scores.get("authority")
    authority_value = authority.get("score") if isinstance(authority, dict) else authority
    brand_overlay = scores.get("brandOverlay") if isinstance(scores.get("brandOverlay"), dict) else {}
    components = scores.get("authorityComponents") or {}

    summary = None
    if snippet_readiness and scores:
        summary = compute_ai_summary(
            ensure_number(_snippet_score(snippet_readiness)) or 0,
            ensure_number(scores.get("visibility")) or 0,
            ensure_number(brand_overlay.get("score")) or 0,
        )

    behaviour_score = None
    if isinstance(money_summary, dict) and isinstance(money_summary.get("behaviourScore"), (int, float)):
        behaviour_score = money_summary["behaviourScore"]

    return {
        "property_url": str(payload.get("propertyUrl") or "").strip(),
        "audit_date": str(payload.get("auditDate") or "").strip(),

        # Schema audit
        "schema_total_pages": ensure_number(schema_data.get("totalPages")) or 0,
        "schema_pages_with_schema": ensure_number(schema_data.get("pagesWithSchema")) or 0,
        "schema_coverage": ensure_number(schema_data.get("coverage")) or 0,
        "schema_types": [
            t if isinstance(t, str) else (t or {}).get("type")
            for t in schema_types
            if (t if isinstance(t, str) else (t or {}).get("type"))
        ] if isinstance(schema_types, list) else [],
        "schema_foundation": {t: t not in missing_types for t in FOUNDATION_TYPES},
        "schema_rich_eligible": ensure_json(schema_data.get("richEligible")) or {},
        "schema_missing_pages": [
            p if isinstance(p, str) else (p or {}).get("url")
            for p in missing_pages
            if (p if isinstance(p, str) else (p or {}).get("url"))
        ] if isinstance(missing_pages, list) else [],
        "schema_pages_detail": schema_pages_detail(schema_data),

        # Search Console
        "query_pages": query_pages(search),
        "top_queries": _non_empty_list(search.get("topQueries")),
        "gsc_timeseries": _non_empty_list(search.get("timeseries")),
        "date_range": ensure_number(search.get("dateRange")) or None,

        # Pillar scores
        "visibility_score": ensure_number(scores.get("visibility")),
        "authority_score": ensure_number(authority_value),
        "local_entity_score": ensure_number(scores.get("localEntity")),
        "service_area_score": ensure_number(scores.get("serviceArea")),
        "content_schema_score": ensure_number(scores.get("contentSchema")),
        "snippet_readiness": ensure_number(_snippet_score(snippet_readiness)),

        # Brand and AI summary
        "brand_overlay": ensure_json(scores.get("brandOverlay")),
        "brand_score": ensure_number(brand_overlay.get("score")),
        "ai_summary": summary.to_dict() if summary else None,
        "ai_summary_score": summary.score if summary else None,

        # Money pages
        "money_pages_metrics": ensure_json(scores.get("moneyPagesMetrics")),
        "money_pages_summary": ensure_json(money_summary),
        "money_pages_behaviour_score": behaviour_score,
        "money_segment_metrics": ensure_json(payload.get("moneySegmentMetrics")),
        "money_page_priority_data": ensure_json(payload.get("moneyPagePriorityData")),
        "ranking_ai_data": ensure_json(payload.get("rankingAiData")),

        # Authority components
        "authority_behaviour_score": ensure_number(components.get("behaviour")),
        "authority_ranking_score": ensure_number(components.get("ranking")),
        "authority_backlink_score": ensure_number(components.get("backlinks")),
        "authority_review_score": ensure_number(components.get("reviews")),
        "authority_by_segment": ensure_json(authority.get("bySegment")) if isinstance(authority, dict) else None,

        "gsc_clicks": ensure_number(search.get("totalClicks")),
        "gsc_impressions": ensure_number(search.get("totalImpressions")),
        "gsc_avg_position": ensure_number(search.get("averagePosition")),
        "gsc_ctr": ensure_number(search.get("ctr")),

        # Local signals
        "local_business_schema_pages": ensure_number(local.get("localBusinessSchemaPages")),
        "nap_consistency_score": ensure_number(local.get("napConsistencyScore")),
        "knowledge_panel_detected": _nullable_bool(local.get("knowledgePanelDetected")),
        "service_areas": local.get("serviceAreas") if isinstance(local.get("serviceAreas"), list) else None,

        "is_partial": False,
        "partial_reason": None,
        "updated_at": utc_now_iso(),
    }


def assess_partial(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reject empty audits and flag partial ones.

    Raises:
        AuditRejected: No pillar score and no heavy payload
    """
    has_pillar = any(record.get(f) is not None for f in PILLAR_SCORE_FIELDS)
    has_payload = any(record.get(f) is not None for f in HEAVY_PAYLOAD_FIELDS)

    if not has_pillar and not has_payload:
        raise AuditRejected("Rejected audit save: payload contained no scores or audit data")

    reasons = []
    if record.get("schema_pages_detail") is None:
        reasons.append("schema_pages_detail missing")
    if record.get("gsc_timeseries") is None:
        reasons.append("gsc_timeseries missing")
    if record.get("query_pages") is None:
        reasons.append("query_pages missing")
    if not has_pillar:
        reasons.append("pillar scores missing")

    if reasons:
        record["is_partial"] = True
        record["partial_reason"] = "; ".join(reasons)
        logger.warning(f"Marking audit as partial: {record['partial_reason']}")

    return record


# =============================================================================
# PERSISTENCE
# =============================================================================

async def save_audit_record(db: SupabaseClient, record: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], bool]:
    """
    Update the (property_url, audit_date) row, inserting when none exists.

    Returns:
        (stored rows, True if an existing row was updated)
    """
    try:
        updated = await db.execute(
            db.table(AUDIT_TABLE)
            .update(record)
            .eq("property_url", record["property_url"])
            .eq("audit_date", record["audit_date"])
        )
        if updated:
            logger.info(f"Updated audit {record['property_url']} {record['audit_date']}")
            return updated, True
    except SupabaseError as e:
        if e.status_code not in (400, 404):
            raise
        logger.info(f"Update failed with {e.status_code}, inserting instead")

    inserted = await db.execute(db.table(AUDIT_TABLE).insert(record))
    logger.info(f"Inserted audit {record['property_url']} {record['audit_date']}")
    return inserted, False


async def get_latest_audit_record(db: SupabaseClient, property_url: str) -> Optional[Dict[str, Any]]:
    rows = await db.execute(
        db.table(AUDIT_TABLE)
        .select("*")
        .eq("property_url", property_url)
        .order("audit_date", desc=True)
        .limit(1)
    )
    return rows[0] if rows else None


def _timestamp_ms(record: Dict[str, Any]) -> Optional[int]:
    value = record.get("updated_at")
    if value:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)
    if record.get("audit_date"):
        try:
            day = datetime.strptime(str(record["audit_date"])[:10], "%Y-%m-%d")
        except ValueError:
            return None
        return int(day.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return None


def minimal_audit_payload(record: Dict[str, Any]) -> Dict[str, Any]:
    """Timestamp and the five pillar scores only."""
    return {
        "timestamp": _timestamp_ms(record),
        "auditDate": record.get("audit_date"),
        "scores": {
            "visibility": record.get("visibility_score"),
            "contentSchema": record.get("content_schema_score"),
            "authority": record.get("authority_score"),
            "localEntity": record.get("local_entity_score"),
            "serviceArea": record.get("service_area_score"),
        },
        "_minimal": True,
    }


def _has_schema_audit(record: Dict[str, Any]) -> bool:
    detail = record.get("schema_pages_detail")
    return (
        (record.get("schema_total_pages") or 0) > 0
        or record.get("schema_coverage") is not None
        or record.get("content_schema_score") is not None
        or (detail is not None and detail not in ("[]", ""))
    )


def restore_ranking_ai_data(record: Dict[str, Any], keyword_rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Rebuild rankingAiData from keyword_rankings, falling back to the stored blob."""
    if keyword_rows:
        combined = [restore_keyword_row(row) for row in keyword_rows[:MAX_RESTORED_ROWS]]
        return {"combinedRows": combined, "summary": summarize_keyword_rows(combined)}

    stored = ensure_json(record.get("ranking_ai_data"))
    if isinstance(stored, dict) and isinstance(stored.get("combinedRows"), list):
        if len(stored["combinedRows"]) > MAX_RESTORED_ROWS:
            stored = {**stored, "combinedRows": stored["combinedRows"][:MAX_RESTORED_ROWS]}
    return stored


def restore_audit_payload(record: Dict[str, Any], keyword_rows: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """audit_results row (plus its keyword rows) back to the dashboard payload."""
    by_segment = ensure_json(record.get("authority_by_segment"))
    authority_score = record.get("authority_score") or None
    authority = {"score": authority_score, "bySegment": by_segment} if by_segment else authority_score

    clicks = record.get("gsc_clicks") or 0
    impressions = record.get("gsc_impressions") or 0
    ctr = record.get("gsc_ctr") or 0
    position = record.get("gsc_avg_position") or None

    timeseries = ensure_json(record.get("gsc_timeseries"))
    query_rows = ensure_json(record.get("query_pages"))
    top_queries = ensure_json(record.get("top_queries"))

    schema_audit = None
    if _has_schema_audit(record):
        pages = ensure_json(record.get("schema_pages_detail"))
        coverage = record.get("schema_coverage")
        if coverage is None:
            coverage = record.get("content_schema_score") or 0
        schema_audit = {
            "status": "ok",
            "data": {
                "coverage": coverage,
                "totalPages": record.get("schema_total_pages") or 0,
                "pagesWithSchema": record.get("schema_pages_with_schema") or 0,
                "schemaTypes": ensure_list(record.get("schema_types")),
                "richEligible": ensure_json(record.get("schema_rich_eligible")) or {},
                "missingSchemaPages": ensure_list(record.get("schema_missing_pages")),
                "pages": pages[:MAX_RESTORED_SCHEMA_PAGES] if isinstance(pages, list) else None,
            },
        }

    local_signals = None
    if record.get("local_entity_score") is not None or record.get("service_area_score") is not None:
        local_signals = {
            "data": {
                "localEntityScore": record.get("local_entity_score"),
                "serviceAreaScore": record.get("service_area_score"),
                "napConsistencyScore": record.get("nap_consistency_score"),
                "knowledgePanelDetected": record.get("knowledge_panel_detected"),
                "serviceAreas": record.get("service_areas") or [],
                "localBusinessSchemaPages": record.get("local_business_schema_pages") or 0,
            }
        }

    return {
        "scores": {
            "visibility": record.get("visibility_score") or None,
            "contentSchema": record.get("content_schema_score") or None,
            "authority": authority,
            "localEntity": record.get("local_entity_score") or None,
            "serviceArea": record.get("service_area_score") or None,
            "brandOverlay": ensure_json(record.get("brand_overlay")),
            "moneyPagesMetrics": ensure_json(record.get("money_pages_metrics")),
            "authorityComponents": {
                "behaviour": record.get("authority_behaviour_score") or None,
                "ranking": record.get("authority_ranking_score") or None,
                "backlinks": record.get("authority_backlink_score") or None,
                "reviews": record.get("authority_review_score") or None,
            },
        },
        "searchData": {
            "totalClicks": clicks,
            "totalImpressions": impressions,
            "averagePosition": position,
            "ctr": ctr,
            "overview": {
                "clicks": clicks,
                "impressions": impressions,
                "ctr": ctr,
                "position": position,
                "siteTotalImpressions": impressions,
                "siteTotalClicks": clicks,
            },
            "timeseries": timeseries[-MAX_RESTORED_TIMESERIES:] if isinstance(timeseries, list) else None,
            "queryPages": query_rows[:MAX_RESTORED_QUERY_PAGES] if isinstance(query_rows, list) else None,
            "topQueries": top_queries[:MAX_RESTORED_TOP_QUERIES] if isinstance(top_queries, list) else None,
            "dateRange": record.get("date_range") or None,
            "propertyUrl": record.get("property_url"),
        },
        "snippetReadiness": record.get("snippet_readiness") or 0,
        "schemaAudit": schema_audit,
        "localSignals": local_signals,
        "aiSummary": ensure_json(record.get("ai_summary")),
        "timestamp": _timestamp_ms(record),
        "auditDate": record.get("audit_date"),
        "isPartial": record.get("is_partial") is True,
        "partialReason": record.get("partial_reason"),
        "moneyPagesSummary": ensure_json(record.get("money_pages_summary")),
        "moneyPagePriorityData": ensure_json(record.get("money_page_priority_data")),
        "moneySegmentMetrics": ensure_json(record.get("money_segment_metrics")),
        "rankingAiData": restore_ranking_ai_data(record, keyword_rows or []),
    }


async def load_latest_audit(db: SupabaseClient, property_url: str, minimal: bool = False) -> Optional[Dict[str, Any]]:
    """
    Newest audit for a property as a dashboard payload.

    Keyword rows are read from keyword_rankings; a failure there falls
    back to the ranking_ai_data blob stored on the audit row.
    """
    record = await get_latest_audit_record(db, property_url)
    if not record:
        return None
    if minimal:
        return minimal_audit_payload(record)

    keyword_rows: List[Dict[str, Any]] = []
    try:
        keyword_rows = await get_keyword_rankings(db, record["audit_date"], property_url, limit=MAX_RESTORED_ROWS)
    except SupabaseError as e:
        logger.warning(f"Keyword rankings unavailable, using stored ranking_ai_data: {e}")

    return restore_audit_payload(record, keyword_rows)


def history_entry(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "date": record.get("audit_date"),
        "contentSchemaScore": record.get("content_schema_score"),
        "schemaCoverage": record.get("schema_coverage"),
        "schemaTotalPages": record.get("schema_total_pages"),
        "schemaPagesWithSchema": record.get("schema_pages_with_schema"),
        "schemaTypes": record.get("schema_types"),
        "foundationSchemas": record.get("schema_foundation"),
        "richEligible": record.get("schema_rich_eligible"),
    }


async def get_audit_history(
    db: SupabaseClient,
    property_url: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = db.table(AUDIT_TABLE).select("*").eq("property_url", property_url)
    if start_date:
        query = query.gte("audit_date", start_date)
    if end_date:
        query = query.lte("audit_date", end_date)

    rows = await db.execute(query.order("audit_date"))
    return [history_entry(row) for row in rows]


async def delete_audit_result(db: SupabaseClient, property_url: str, audit_date: str) -> List[Dict[str, Any]]:
    """Delete one audit row; returns the deleted rows."""
    deleted = await db.execute(
        db.table(AUDIT_TABLE)
        .delete()
        .eq("property_url", property_url)
        .eq("audit_date", audit_date)
    )
    logger.info(f"Deleted {len(deleted)} audit rows for {property_url} on {audit_date}")
    return deleted


async def find_ranking_audits(
    db: SupabaseClient,
    property_url: str,
    audit_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Audits carrying ranking_ai_data, newest first.

    With a date only that audit is returned; otherwise the latest five.
    """
    query = (
        db.table(AUDIT_TABLE)
        .select("audit_date,ranking_ai_data")
        .in_("property_url", property_url_candidates(property_url))
    )
    if audit_date:
        query = query.eq("audit_date", audit_date)
    else:
        query = query.not_.is_("ranking_ai_data", "null")

    return await db.execute(query.order("audit_date", desc=True).limit(1 if audit_date else 5))


async def find_latest_audit_date(db: SupabaseClient, property_url: str) -> Optional[str]:
    """Date of the newest audit of any kind for the property variants."""
    rows = await db.execute(
        db.table(AUDIT_TABLE)
        .select("audit_date")
        .in_("property_url", property_url_candidates(property_url))
        .order("audit_date", desc=True)
        .limit(1)
    )
    return rows[0].get("audit_date") if rows else None
