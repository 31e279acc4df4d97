"""
Google API Integrations

- google: OAuth2 refresh-token client
- search_console: Search Console totals, pages, SERP features
- business_profile: Business Profile local signals
"""

from .business_profile import fetch_local_signals, nap_consistency_score
from .google import GoogleAPIError, GoogleClient, GoogleNotConfigured
from .search_console import (
    fetch_page_totals,
    fetch_search_console,
    fetch_serp_features,
    search_analytics_query,
)

__all__ = [
    "GoogleAPIError",
    "GoogleClient",
    "GoogleNotConfigured",
    "fetch_local_signals",
    "nap_consistency_score",
    "fetch_page_totals",
    "fetch_search_console",
    "fetch_serp_features",
    "search_analytics_query",
]
