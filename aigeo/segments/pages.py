"""
Page Segment Classifier

Classifies site URLs into education, money, support and system pages.

Rule order:
0. Manual override
1. Education: blog prefixes and hand-picked learning pages
2. Gallery/portfolio pages are system pages, even with purchase options
3. Money: exact commercial paths, then commercial keywords in the path
4. Support: exact paths (home, about, contact, ...)
5. Everything else is system
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set
from urllib.parse import urlparse


class PageSegment:
    EDUCATION = "education"
    MONEY = "money"
    SUPPORT = "support"
    SYSTEM = "system"


OVERRIDES = {
    "education": PageSegment.EDUCATION,
    "educational": PageSegment.EDUCATION,
    "money": PageSegment.MONEY,
    "commercial": PageSegment.MONEY,
    "support": PageSegment.SUPPORT,
    "system": PageSegment.SYSTEM,
}

DEFAULT_MONEY_KEYWORDS = [
    "workshop", "workshops", "lesson", "lessons", "course", "courses",
    "course-finder", "class", "classes", "training", "tuition",
    "mentoring", "academy", "gift-voucher", "gift-vouchers",
    "session-vouchers", "services", "shop", "1-2-1", "hire",
    "prints", "special-offers", "pricing", "book",
]


@dataclass
class PageRules:
    """Path rules driving page classification."""
    education_prefixes: List[str] = field(default_factory=lambda: ["/blog/"])
    education_exact: Set[str] = field(default_factory=lambda: {"/blog"})
    gallery_markers: List[str] = field(default_factory=lambda: ["fine-art-prints", "gallery-prints"])
    money_exact: Set[str] = field(default_factory=set)
    money_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_MONEY_KEYWORDS))
    support_exact: Set[str] = field(default_factory=lambda: {
        "/", "/about", "/about-us", "/contact", "/contact-us",
        "/testimonials", "/reviews", "/site-map", "/newsletter",
    })


def normalise_path(raw_url_or_path: str) -> str:
    """Lowercased path without trailing slash; "/" for the root or bad input."""
    raw = str(raw_url_or_path or "").strip()
    if not raw.startswith("http"):
        raw = "https://site.invalid/" + raw.lstrip("/")
    try:
        path = urlparse(raw).path
    except ValueError:
        return "/"
    path = (path or "/").lower()
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def is_gallery_page(path: str, rules: PageRules) -> bool:
    return any(marker in path for marker in rules.gallery_markers)


def classify_page_segment(
    raw_url_or_path: str,
    title: Optional[str] = None,
    kind_override: Optional[str] = None,
    rules: Optional[PageRules] = None,
) -> str:
    """
    Classify a URL or path.

    Args:
        raw_url_or_path: Full URL or path
        title: Optional page title (reserved, unused by the rules)
        kind_override: Manual override ("education", "commercial", ...)
        rules: Path rules (defaults when omitted)

    Returns:
        One of PageSegment values
    """
    rules = rules or PageRules()
    path = normalise_path(raw_url_or_path)

    if kind_override:
        override = OVERRIDES.get(kind_override.lower().strip())
        if override:
            return override

    if any(path.startswith(prefix) for prefix in rules.education_prefixes):
        return PageSegment.EDUCATION
    if path in rules.education_exact:
        return PageSegment.EDUCATION

    if is_gallery_page(path, rules):
        return PageSegment.SYSTEM

    if path in rules.money_exact:
        return PageSegment.MONEY
    if any(keyword in path for keyword in rules.money_keywords):
        return PageSegment.MONEY

    if path in rules.support_exact:
        return PageSegment.SUPPORT

    return PageSegment.SYSTEM
