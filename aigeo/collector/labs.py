"""
DataForSEO Labs: domain rank overview

One batched request for many domains; each domain gets its own
ok/error result so a single failing target does not sink the batch.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from aigeo.collector.client import DataForSEOError, task_ok
from aigeo.scoring.domain_strength import DomainMetrics
from aigeo.utils.urls import normalize_domain, normalize_domain_list

logger = logging.getLogger(__name__)

DOMAIN_RANK_OVERVIEW_ENDPOINT = "dataforseo_labs/google/domain_rank_overview/live"


@dataclass
class LabsDomainResult:
    """Labs metrics (or the error) for one domain."""
    domain: str
    ok: bool
    error: Optional[str] = None
    metrics: Optional[DomainMetrics] = None


@dataclass
class LabsBatchResult:
    ok: bool
    error: Optional[str] = None
    results: Optional[List[LabsDomainResult]] = None
    raw: Optional[Dict[str, Any]] = None

    def by_domain(self) -> Dict[str, LabsDomainResult]:
        return {r.domain: r for r in self.results or []}


def build_task(domain: str, location_code: int) -> Dict[str, Any]:
    return {
        "target": domain,
        "se_type": "google",
        "location_code": location_code,
        "offset": 0,
        "limit": 100,
        "ignore_synonyms": False,
    }


def parse_task(task: Dict[str, Any]) -> Optional[LabsDomainResult]:
    """Parse one task of a domain_rank_overview response."""
    domain = normalize_domain((task.get("data") or {}).get("target"))
    if not domain:
        return None

    if task.get("status_code") and not task_ok(task):
        message = task.get("status_message") or f"Task failed (status_code {task.get('status_code')})"
        return LabsDomainResult(domain=domain, ok=False, error=message)

    result = (task.get("result") or [None])[0] or {}
    item = (result.get("items") or [None])[0] or {}
    organic = (item.get("metrics") or {}).get("organic")
    if not organic:
        return LabsDomainResult(domain=domain, ok=False, error="No organic metrics returned")

    top3 = (organic.get("pos_1") or 0) + (organic.get("pos_2_3") or 0)
    top10 = top3 + (organic.get("pos_4_10") or 0)

    return LabsDomainResult(
        domain=domain,
        ok=True,
        metrics=DomainMetrics(
            etv=organic.get("etv") or 0,
            keywords_total=organic.get("count") or 0,
            top3=top3,
            top10=top10,
        ),
    )


async def fetch_domain_rank_overview_batch(
    client,
    domains: List[str],
    location_code: int = 2826,
    include_raw: bool = False,
) -> LabsBatchResult:
    """
    Fetch organic metrics for many domains in one request.

    Args:
        client: DataForSEOClient instance
        domains: Domains or URLs (normalized and deduplicated)
        location_code: DataForSEO location code (2826 = United Kingdom)
        include_raw: Keep the raw response (test mode)

    Returns:
        LabsBatchResult; ok=False only when the request as a whole failed
    """
    unique = normalize_domain_list(domains)
    if not unique:
        return LabsBatchResult(ok=False, error="No domains provided", results=[])

    try:
        response = await client.post(
            DOMAIN_RANK_OVERVIEW_ENDPOINT,
            [build_task(domain, location_code) for domain in unique],
        )
    except DataForSEOError as e:
        logger.error(f"Labs domain_rank_overview failed: {e}")
        return LabsBatchResult(
            ok=False,
            error=str(e),
            results=[],
            raw=e.response if include_raw else None,
        )

    results = []
    for task in response.get("tasks") or []:
        parsed = parse_task(task)
        if parsed:
            results.append(parsed)

    logger.info(f"Labs: {sum(1 for r in results if r.ok)}/{len(unique)} domains with metrics")
    return LabsBatchResult(ok=True, results=results, raw=response if include_raw else None)
