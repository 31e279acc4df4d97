"""
AI/GEO Audit - DataForSEO Collection Package

- client: async DataForSEO client
- serp: organic rankings, SERP features and AI mode citations
- labs: domain rank overview for domain strength
- backlinks: backlink summary
"""

from .backlinks import fetch_backlink_summary
from .client import DataForSEOClient, DataForSEOError, RetryConfig, safe_get_result
from .labs import LabsBatchResult, LabsDomainResult, fetch_domain_rank_overview_batch
from .serp import fetch_ai_mode_citations, fetch_organic_rankings, parse_organic_items

__all__ = [
    # Client
    "DataForSEOClient",
    "DataForSEOError",
    "RetryConfig",
    "safe_get_result",

    # Collectors
    "fetch_backlink_summary",
    "fetch_domain_rank_overview_batch",
    "fetch_organic_rankings",
    "fetch_ai_mode_citations",
    "parse_organic_items",
    "LabsBatchResult",
    "LabsDomainResult",
]
