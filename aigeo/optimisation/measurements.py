"""
Task measurements from the latest audit.

Keyword tasks are measured from the keyword's combinedRows entry and its
GSC query totals; URL-only tasks from the money page metrics and the AI
citations pointing at the page.
"""

from typing import Any, Dict, List, Optional

from aigeo.citations.matching import citation_url
from aigeo.utils.coerce import ensure_dict, ensure_json, ensure_list, ensure_number
from aigeo.utils.dates import utc_now_iso
from aigeo.utils.urls import normalize_url


def normalize_keyword(value: Any) -> str:
    return str(value or "").strip().lower()


def _find_by_keyword(rows: List[Any], keyword: str, *keys: str) -> Optional[Dict[str, Any]]:
    target = normalize_keyword(keyword)
    for row in rows:
        if not isinstance(row, dict):
            continue
        if any(normalize_keyword(row.get(key)) == target for key in keys if row.get(key)):
            return row
    return None


def _find_money_page(money_pages_metrics: Any, url: str) -> Optional[Dict[str, Any]]:
    rows = ensure_dict(money_pages_metrics).get("rows")
    if not isinstance(rows, list) or not url:
        return None
    target = normalize_url(url)
    for row in rows:
        if not isinstance(row, dict):
            continue
        row_url = row.get("url") or row.get("page_url") or row.get("page") or ""
        if normalize_url(row_url) == target:
            return row
    return None


def _first(row: Optional[Dict[str, Any]], *keys: str) -> Any:
    if not row:
        return None
    for key in keys:
        if row.get(key) is not None:
            return row[key]
    return None


def ai_metrics_for_page(page_url: Optional[str], rows: List[Any]) -> Dict[str, Any]:
    """AI Overview presence across the rows and citations of the page."""
    if not page_url:
        return {"ai_overview": False, "ai_citations": 0}

    target = normalize_url(page_url)
    has_overview = False
    citations = 0
    for row in rows:
        if not isinstance(row, dict):
            continue
        if row.get("has_ai_overview") or row.get("ai_overview_present_any"):
            has_overview = True
        for citation in ensure_list(row.get("ai_alan_citations") or row.get("ai_alan_citations_array")):
            cited = citation_url(citation)
            if cited and normalize_url(cited) == target:
                citations += 1
    return {"ai_overview": has_overview, "ai_citations": citations}


def keyword_metrics(keyword: str, combined_rows: List[Any], query_totals: List[Any]) -> Dict[str, Any]:
    row = _find_by_keyword(combined_rows, keyword, "keyword")
    totals = _find_by_keyword(query_totals, keyword, "query", "keyword")

    ctr = ensure_number(_first(totals, "ctr"))
    citations = _first(row, "ai_alan_citations_count")
    if citations is None and row and isinstance(row.get("ai_alan_citations"), list):
        citations = len(row["ai_alan_citations"])

    return {
        "gsc_clicks_28d": _first(totals, "clicks"),
        "gsc_impressions_28d": _first(totals, "impressions"),
        "gsc_ctr_28d": ctr / 100 if ctr is not None else None,
        "current_rank": _first(row, "best_rank_group", "best_rank_absolute"),
        "opportunity_score": _first(row, "opportunity_score"),
        "ai_overview": bool(row and (row.get("has_ai_overview") or row.get("ai_overview_present_any"))),
        "ai_citations": citations,
        "ai_citations_total": _first(row, "ai_total_citations"),
        "classic_ranking_url": _first(row, "best_url"),
        "page_type": _first(row, "page_type", "pageType"),
        "segment": _first(row, "segment"),
        "captured_at": utc_now_iso(),
    }


def url_metrics(url: str, combined_rows: List[Any], money_pages_metrics: Any) -> Dict[str, Any]:
    row = _find_money_page(money_pages_metrics, url)
    ctr = ensure_number(_first(row, "ctr", "ctr_28d"))
    if ctr is not None and ctr > 1:
        ctr = ctr / 100

    return {
        "gsc_clicks_28d": _first(row, "clicks", "clicks_28d"),
        "gsc_impressions_28d": _first(row, "impressions", "impressions_28d"),
        "gsc_ctr_28d": ctr,
        "current_rank": _first(row, "avgPosition", "position"),
        **ai_metrics_for_page(url, combined_rows),
        "captured_at": utc_now_iso(),
    }


def audit_measurement_sources(record: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Query totals, combinedRows and money page metrics of a stored audit row."""
    record = record or {}
    ranking = ensure_dict(record.get("ranking_ai_data"))
    combined_rows = ranking.get("combinedRows")
    if not isinstance(combined_rows, list):
        combined_rows = ranking.get("combined_rows")

    money_pages = ensure_json(record.get("money_pages_metrics"))

    return {
        "query_totals": ensure_list(record.get("top_queries")),
        "combined_rows": combined_rows if isinstance(combined_rows, list) else [],
        "money_pages_metrics": money_pages or None,
    }


def task_metrics(task: Dict[str, Any], sources: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Measurement for one task; None when it has neither keyword nor URL."""
    keyword = str(task.get("keyword_text") or "").strip()
    if keyword:
        return keyword_metrics(keyword, sources["combined_rows"], sources["query_totals"])

    url = task.get("target_url_clean") or task.get("target_url")
    if not url:
        return None
    return url_metrics(url, sources["combined_rows"], sources["money_pages_metrics"])
