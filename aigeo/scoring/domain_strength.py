"""
Domain Strength Scoring

Scores a domain 0-100 from DataForSEO Labs organic metrics:

    V (visibility) = log-normalized estimated traffic value   weight 0.5
    Q (quality)    = sqrt(share of keywords in the top 10)    weight 0.3
    B (breadth)    = log-normalized ranking keyword count     weight 0.2

Log normalization is relative to caps derived from the last year of
snapshots, so scores are comparable within one portfolio of domains.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

DEFAULT_ETV_CAP = 1_000_000
DEFAULT_KW_CAP = 100_000
MIN_ETV_CAP = 10_000
MIN_KW_CAP = 1_000
CAP_HEADROOM = 1.2

BANDS = (
    (80, "Very strong"),
    (60, "Strong"),
    (40, "Moderate"),
    (20, "Weak"),
)
WEAKEST_BAND = "Very weak"

NO_DATA_MARKERS = ("no organic metrics", "no organic metric", "no results")


@dataclass
class DomainMetrics:
    """Raw organic metrics for one domain."""
    etv: float = 0.0
    keywords_total: float = 0.0
    top3: float = 0.0
    top10: float = 0.0


@dataclass
class ScoreCaps:
    """Normalization caps for visibility and breadth."""
    etv_cap: float = DEFAULT_ETV_CAP
    kw_cap: float = DEFAULT_KW_CAP

    def to_dict(self) -> Dict[str, float]:
        return {"etvCap": self.etv_cap, "kwCap": self.kw_cap}


@dataclass
class DomainStrengthScore:
    score: float
    band: str
    V: float
    B: float
    Q: float

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "band": self.band, "V": self.V, "B": self.B, "Q": self.Q}


def _num(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def safe_log(x: float) -> float:
    return math.log(x + 1)


def log_norm(x: float, cap: float) -> float:
    """ln(x+1) / ln(cap+1), clamped to [0, 1]. Zero when cap <= 0."""
    if cap <= 0:
        return 0.0
    return min(1.0, safe_log(max(0.0, x)) / safe_log(max(1.0, cap)))


def score_band(score: float) -> str:
    for threshold, band in BANDS:
        if score >= threshold:
            return band
    return WEAKEST_BAND


def compute_domain_strength_score(
    metrics: DomainMetrics,
    caps: Optional[ScoreCaps] = None,
) -> DomainStrengthScore:
    """
    Compute the 0-100 domain strength score.

    Args:
        metrics: Raw organic metrics
        caps: Normalization caps (defaults when omitted)

    Returns:
        DomainStrengthScore with score rounded to 2 decimals and components
    """
    caps = caps or ScoreCaps()

    etv = _num(metrics.etv)
    keywords_total = _num(metrics.keywords_total)
    top10 = _num(metrics.top10)

    visibility = log_norm(etv, _num(caps.etv_cap))
    breadth = log_norm(keywords_total, _num(caps.kw_cap))
    quality = 0.0
    if keywords_total > 0 and top10 > 0:
        quality = math.sqrt(min(1.0, top10 / keywords_total))

    raw = 0.5 * visibility + 0.3 * quality + 0.2 * breadth
    score = round(raw * 100, 2)

    return DomainStrengthScore(
        score=score,
        band=score_band(score),
        V=visibility,
        B=breadth,
        Q=quality,
    )


def get_authority_priority(score: Optional[float]) -> Optional[str]:
    """Map a domain strength score to an authority-building priority."""
    if score is None:
        return None
    if score < 40:
        return "high"
    if score < 60:
        return "medium"
    return "low"


def caps_from_history(rows: Iterable[Dict[str, Any]]) -> ScoreCaps:
    """
    Derive caps from stored snapshots with 20% headroom.

    Falls back to the default caps when there is no history.
    """
    rows = list(rows or [])
    if not rows:
        return ScoreCaps()

    max_etv = max(_num(r.get("organic_etv_raw")) for r in rows)
    max_kw = max(_num(r.get("organic_keywords_total_raw")) for r in rows)

    return ScoreCaps(
        etv_cap=max(MIN_ETV_CAP, round(max_etv * CAP_HEADROOM)),
        kw_cap=max(MIN_KW_CAP, round(max_kw * CAP_HEADROOM)),
    )


def is_no_data_error(message: Optional[str]) -> bool:
    """True for errors meaning the domain has no organic data."""
    text = str(message or "").lower()
    return text == "no data" or any(marker in text for marker in NO_DATA_MARKERS)
