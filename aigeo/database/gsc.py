"""GSC timeseries cache: daily site totals per property (historical days never change)."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from postgrest.types import ReturnMethod

from aigeo.database.supabase import SupabaseClient, SupabaseError
from aigeo.utils.coerce import ensure_number
from aigeo.utils.dates import utc_now_iso

logger = logging.getLogger(__name__)

GSC_TIMESERIES_TABLE = "gsc_timeseries"
GSC_TIMESERIES_CONFLICT = "property_url,date"


@dataclass
class TimeseriesSaveResult:
    saved: int
    errors: int = 0
    fallback: bool = False


def build_timeseries_records(property_url: str, timeseries: List[Any]) -> List[Dict[str, Any]]:
    """Store rows for the daily points; entries that are not objects are dropped."""
    now = utc_now_iso()
    return [
        {
            "property_url": property_url,
            "date": point.get("date"),
            "clicks": point.get("clicks") or 0,
            "impressions": point.get("impressions") or 0,
            "ctr": ensure_number(point.get("ctr")) or 0,
            "position": ensure_number(point.get("position")) or 0,
            "updated_at": now,
        }
        for point in timeseries
        if isinstance(point, dict)
    ]


async def save_timeseries(
    db: SupabaseClient,
    property_url: str,
    timeseries: List[Any],
) -> TimeseriesSaveResult:
    """
    Bulk upsert daily points; on failure retry one record at a time.

    A 409 on a single record means the day is already stored and counts
    as saved.
    """
    records = build_timeseries_records(property_url, timeseries)
    if not records:
        return TimeseriesSaveResult(saved=0)

    try:
        stored = await db.execute(db.table(GSC_TIMESERIES_TABLE).upsert(records, on_conflict=GSC_TIMESERIES_CONFLICT))
        return TimeseriesSaveResult(saved=len(stored) or len(records))
    except SupabaseError as e:
        logger.warning(f"Bulk timeseries upsert failed, trying individual upserts: {e}")

    saved = 0
    errors = 0
    for record in records:
        try:
            await db.execute(
                db.table(GSC_TIMESERIES_TABLE).upsert(
                    record,
                    on_conflict=GSC_TIMESERIES_CONFLICT,
                    returning=ReturnMethod.minimal,
                )
            )
            saved += 1
        except SupabaseError as e:
            if e.status_code == 409:
                saved += 1
                continue
            logger.warning(f"Failed to save timeseries record for {record['date']}: {e}")
            errors += 1

    return TimeseriesSaveResult(saved=saved, errors=errors, fallback=True)


async def get_timeseries(
    db: SupabaseClient,
    property_url: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = db.table(GSC_TIMESERIES_TABLE).select("*").eq("property_url", property_url)
    if start_date:
        query = query.gte("date", start_date)
    if end_date:
        query = query.lte("date", end_date)
    return await db.execute(query.order("date"))
