"""
Goal Progress

Progress of a task towards its KPI target, with display labels:

    compute_goal_progress("clicks_28d", baseline=100, latest=130,
                          target_value=50, target_type="delta")
    -> deltaLabel "+30", targetLabel "+50",
       progressLabel "+30/+50 (+20 remaining)", progressRatio 0.6

CTR is stored as a 0-1 ratio and shown as a percentage, its deltas in
percentage points.
"""

import math
from typing import Any, Callable, Dict, Optional

from aigeo.optimisation.objectives import (
    BOOLEAN_TRUE_BETTER,
    HIGHER_BETTER,
    KPIS,
    LOWER_BETTER,
    improvement_delta,
)

EMPTY_LABEL = "n/a"


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _signed(text: str, value: float) -> str:
    return f"+{text}" if value >= 0 else text


def _count(value: float) -> str:
    return f"{_round(value):,}"


def _thousands(value: float) -> str:
    if abs(value) >= 1000:
        return f"{value / 1000:.1f}k"
    return _count(value)


def _percent(value: float) -> str:
    return f"{value * 100:.2f}%"


def _points(value: float) -> str:
    return _signed(f"{value * 100:.2f}pp", value)


def _plain(value: float) -> str:
    return str(_round(value))


def _on_off(value: Any) -> str:
    if value is True:
        return "On"
    if value is False:
        return "Off"
    return EMPTY_LABEL


def _boolean_delta(delta: float) -> str:
    if delta > 0:
        return "+1"
    if delta < 0:
        return "-1"
    return "0"


class KPIDisplay:
    """Value / delta / target formatters for one KPI."""

    def __init__(
        self,
        value: Callable[[Any], str],
        delta: Callable[[Any], str],
        absolute_target: Optional[Callable[[Any], str]] = None,
        delta_target: Optional[Callable[[Any], str]] = None,
    ):
        self._value = value
        self._delta = delta
        self._absolute_target = absolute_target or value
        self._delta_target = delta_target or delta

    def value(self, value: Any) -> str:
        return EMPTY_LABEL if value is None else self._value(value)

    def delta(self, delta: Any) -> str:
        return EMPTY_LABEL if delta is None else self._delta(delta)

    def target(self, target: Any, target_type: str) -> str:
        if target is None:
            return EMPTY_LABEL
        if target_type == "absolute":
            return self._absolute_target(target)
        return self._delta_target(target)


DISPLAY: Dict[str, KPIDisplay] = {
    "clicks_28d": KPIDisplay(_count, lambda d: _signed(_count(d), d)),
    "impressions_28d": KPIDisplay(_thousands, lambda d: _signed(_thousands(d), d)),
    "ctr_28d": KPIDisplay(_percent, _points),
    "current_rank": KPIDisplay(_plain, lambda d: _signed(_plain(d), d)),
    "opportunity_score": KPIDisplay(_plain, lambda d: _signed(_plain(d), d)),
    "ai_overview": KPIDisplay(_on_off, _boolean_delta, _on_off, _on_off),
    "ai_citations": KPIDisplay(_plain, lambda d: _signed(_plain(d), d)),
}


def _empty_progress(baseline: Any, latest: Any) -> Dict[str, Any]:
    return {
        "baselineValue": baseline,
        "latestValue": latest,
        "deltaValue": None,
        "targetAbsValue": None,
        "remainingToTarget": None,
        "progressRatio": 0,
        "isMet": False,
        "baselineLabel": EMPTY_LABEL,
        "latestLabel": EMPTY_LABEL,
        "deltaLabel": EMPTY_LABEL,
        "targetLabel": EMPTY_LABEL,
        "progressLabel": EMPTY_LABEL,
    }


def _clamp(ratio: float) -> float:
    return min(1.0, max(0.0, ratio))


def compute_goal_progress(
    kpi_name: str,
    baseline: Any,
    latest: Any,
    target_value: Any,
    target_type: str = "delta",
) -> Dict[str, Any]:
    """
    Progress towards a KPI target with display labels.

    Args:
        kpi_name: One of VALID_KPIS
        baseline: Baseline KPI value (None before the first measurement)
        latest: Latest KPI value
        target_value: Target delta or absolute target
        target_type: "delta" or "absolute"

    Returns:
        Values (delta, absolute target, remaining, 0-1 ratio, met flag)
        and their labels; unknown KPIs give empty labels
    """
    kpi = KPIS.get(kpi_name)
    display = DISPLAY.get(kpi_name)
    if kpi is None or display is None:
        return _empty_progress(baseline, latest)

    delta = improvement_delta(kpi.direction, baseline, latest)

    target_abs = None
    if target_type == "delta":
        if baseline is not None and target_value is not None and kpi.direction != BOOLEAN_TRUE_BETTER:
            target_abs = target_value if kpi_name == "ctr_28d" and baseline == 0 else baseline + target_value
    else:
        target_abs = target_value

    is_met = False
    if target_type == "delta":
        is_met = delta is not None and target_value is not None and delta >= target_value
    elif latest is not None and target_value is not None:
        if kpi.direction == HIGHER_BETTER:
            is_met = latest >= target_value
        elif kpi.direction == LOWER_BETTER:
            is_met = latest <= target_value
        else:
            is_met = latest is True

    remaining = None
    if not is_met and latest is not None and target_value is not None:
        if target_type == "delta":
            if delta is not None:
                remaining = max(0, target_value - delta)
        elif kpi.direction == HIGHER_BETTER:
            remaining = max(0, target_value - latest)
        elif kpi.direction == LOWER_BETTER:
            remaining = max(0, latest - target_value)

    ratio = 0.0
    if target_type == "delta":
        if target_value and delta is not None:
            ratio = _clamp(delta / target_value)
    elif baseline is not None and latest is not None and target_value is not None:
        if kpi.direction == HIGHER_BETTER and target_value - baseline > 0:
            ratio = _clamp((latest - baseline) / (target_value - baseline))
        elif kpi.direction == LOWER_BETTER and baseline - target_value > 0:
            ratio = _clamp((baseline - latest) / (baseline - target_value))

    baseline_label = display.value(baseline)
    latest_label = display.value(latest)
    delta_label = display.delta(delta)
    target_label = display.target(target_value, target_type)

    progress_label = EMPTY_LABEL
    if baseline is not None and latest is not None and target_value is not None:
        if target_type == "delta":
            head = f"{delta_label}/{target_label}"
            remaining_label = display.delta(remaining)
        else:
            head = f"{latest_label}/{target_label}"
            remaining_label = display.value(remaining)
        if remaining:
            progress_label = f"{head} ({remaining_label} remaining)"
        elif is_met:
            progress_label = f"{head} (Met)"
        else:
            progress_label = head

    return {
        "baselineValue": baseline,
        "latestValue": latest,
        "deltaValue": delta,
        "targetAbsValue": target_abs,
        "remainingToTarget": remaining,
        "progressRatio": ratio,
        "isMet": is_met,
        "baselineLabel": baseline_label,
        "latestLabel": latest_label,
        "deltaLabel": delta_label,
        "targetLabel": target_label,
        "progressLabel": progress_label,
    }
