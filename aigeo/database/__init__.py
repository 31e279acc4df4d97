"""
AI/GEO Audit - Data Store

Supabase client and table repositories:
- audits: audit_results save/restore/history
- keywords: keyword_rankings
- portfolio: portfolio_segment_metrics_28d and AI backfill
- gsc: gsc_timeseries cache
- snapshots: domain strength snapshots
- shares: shared audit links
- optimisation: optimisation tasks and their measurements
"""

from .supabase import SupabaseClient, SupabaseError, SupabaseNotConfigured

__all__ = [
    "SupabaseClient",
    "SupabaseError",
    "SupabaseNotConfigured",
]
