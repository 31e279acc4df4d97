"""Utility modules for the AI/GEO Audit API."""

from .config import Settings, get_settings, split_csv
from .dates import days_ago, parse_date_range, utc_now_iso
from .responses import error_response, ok_response, upstream_error
from .urls import (
    audit_date_key,
    normalize_domain,
    normalize_domain_list,
    normalize_property_url,
    normalize_tracked_url,
    normalize_url,
    path_parts,
    property_url_candidates,
)

__all__ = [
    "Settings",
    "get_settings",
    "split_csv",
    # Dates
    "days_ago",
    "parse_date_range",
    "utc_now_iso",
    # Envelope
    "ok_response",
    "error_response",
    "upstream_error",
    # URL normalization
    "audit_date_key",
    "normalize_domain",
    "normalize_domain_list",
    "normalize_property_url",
    "normalize_tracked_url",
    "normalize_url",
    "path_parts",
    "property_url_candidates",
]
