"""
URL and Domain Normalization

Shared helpers that turn the many shapes of URLs seen across GSC,
DataForSEO and stored audit rows into comparable keys:

- normalize_url: bare path used for AI Overview citation matching
- normalize_property_url / property_url_candidates: GSC property keys
- normalize_domain / normalize_domain_list: bare hostnames
- normalize_tracked_url: matching key for tracked optimisation URLs
"""

import re
from typing import Iterable, List, Optional, Union
from urllib.parse import urlparse

PROTOCOL_RE = re.compile(r"^https?://")
WWW_RE = re.compile(r"^www\.")


def normalize_url(url: Optional[str]) -> str:
    """
    Reduce a URL or path to its bare path for comparison.

    Protocol, www., query string, fragment and the host segment are
    removed, as are leading and trailing slashes.

    Examples:
        "https://www.Example.com/Blog/Post/?utm=1" -> "blog/post"
        "/blog/post/" -> "blog/post"
        "https://example.com/" -> ""

    Args:
        url: Absolute URL, host-qualified path or relative path

    Returns:
        Normalized path, or "" for empty input and site roots
    """
    if not url:
        return ""

    normalized = str(url).lower().strip()
    normalized = PROTOCOL_RE.sub("", normalized)
    normalized = WWW_RE.sub("", normalized)
    normalized = normalized.split("?")[0].split("#")[0]

    if "/" in normalized:
        # First segment is the host (empty for "/path")
        path = normalized.split("/", 1)[1]
    else:
        path = normalized

    return path.strip("/")


def path_parts(normalized_path: str) -> List[str]:
    """Split a normalized path into its non-empty segments."""
    return [part for part in normalized_path.split("/") if part]


def normalize_property_url(property_url: str) -> str:
    """
    Normalize a property URL for the GSC API.

    Trailing slash removed; https:// added when no protocol is present.
    """
    site_url = str(property_url or "").strip()
    if site_url.endswith("/"):
        site_url = site_url[:-1]
    if not PROTOCOL_RE.match(site_url):
        site_url = f"https://{site_url}"
    return site_url


def property_url_candidates(property_url: Optional[str]) -> List[str]:
    """
    Build the property URL variants an audit may have been stored under.

    Returns the trimmed input, its protocol-qualified form and the
    www/non-www twin of that form, deduplicated in order.
    """
    trimmed = str(property_url or "").strip()
    if trimmed.endswith("/"):
        trimmed = trimmed[:-1]
    if not trimmed:
        return []

    with_protocol = trimmed if PROTOCOL_RE.match(trimmed) else f"https://{trimmed}"
    if "://www." in with_protocol:
        twin = with_protocol.replace("://www.", "://", 1)
    else:
        twin = with_protocol.replace("://", "://www.", 1)

    candidates: List[str] = []
    for candidate in (trimmed, with_protocol, twin):
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


def normalize_domain(value: Optional[str]) -> Optional[str]:
    """
    Normalize a domain or URL to a bare hostname.

    Examples:
        "https://www.example.com/page" -> "example.com"
        "www.example.com/page" -> "example.com"
        "" -> None
    """
    raw = str(value or "").strip()
    if not raw:
        return None

    if "://" in raw:
        hostname = urlparse(raw).hostname
        if hostname:
            raw = hostname

    domain = WWW_RE.sub("", raw).split("/")[0]
    return domain or None


def normalize_domain_list(values: Union[str, Iterable[str], None]) -> List[str]:
    """Normalize and deduplicate domains, keeping first-seen order."""
    if values is None:
        return []
    if isinstance(values, str):
        values = values.split(",")

    domains: List[str] = []
    seen = set()
    for value in values:
        domain = normalize_domain(value)
        if not domain or domain in seen:
            continue
        seen.add(domain)
        domains.append(domain)
    return domains


def normalize_tracked_url(url: Optional[str]) -> str:
    """Lowercase, drop query string and trailing slash."""
    if not url:
        return ""
    normalized = str(url).strip().lower().split("?")[0]
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def audit_date_key(value: Optional[str]) -> str:
    """Reduce an ISO date or timestamp to YYYY-MM-DD."""
    return str(value or "").split("T")[0].strip()
