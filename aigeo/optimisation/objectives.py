"""
Optimisation Objectives

An objective is a KPI target attached to an optimisation task:

    {"title": "Lift clicks", "kpi": "clicks_28d", "target": 50,
     "target_type": "delta", "due_at": "2026-03-01T00:00:00Z"}

delta targets compare the improvement between the baseline and the
latest measurement; absolute targets compare the latest value alone.
Rank improves downwards, ai_overview is a boolean KPI.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

HIGHER_BETTER = "higher_better"
LOWER_BETTER = "lower_better"
BOOLEAN_TRUE_BETTER = "boolean_true_better"

TARGET_TYPES = ("delta", "absolute")

STATUS_MET = "met"
STATUS_ON_TRACK = "on_track"
STATUS_OVERDUE = "overdue"
STATUS_NOT_SET = "not_set"


def _first(metrics: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = metrics.get(key)
        if value is not None:
            return value
    return default


@dataclass(frozen=True)
class KPI:
    direction: str
    default_target_type: str
    extract: Callable[[Dict[str, Any]], Any]


KPIS: Dict[str, KPI] = {
    "clicks_28d": KPI(HIGHER_BETTER, "delta", lambda m: _first(m, "clicks_28d", "gsc_clicks_28d")),
    "impressions_28d": KPI(HIGHER_BETTER, "delta", lambda m: _first(m, "impressions_28d", "gsc_impressions_28d")),
    "ctr_28d": KPI(HIGHER_BETTER, "delta", lambda m: _first(m, "ctr_28d", "gsc_ctr_28d")),
    "current_rank": KPI(LOWER_BETTER, "absolute", lambda m: _first(m, "current_rank", "rank")),
    "opportunity_score": KPI(HIGHER_BETTER, "delta", lambda m: _first(m, "opportunity_score")),
    "ai_overview": KPI(BOOLEAN_TRUE_BETTER, "absolute", lambda m: _first(m, "ai_overview", default=False)),
    "ai_citations": KPI(HIGHER_BETTER, "delta", lambda m: _first(m, "ai_citations")),
}

VALID_KPIS = tuple(KPIS)


@dataclass
class Objective:
    title: str
    kpi: str
    target: Any
    target_type: str = "delta"
    due_at: Optional[str] = None
    plan: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "kpi": self.kpi,
            "target": self.target,
            "target_type": self.target_type,
            "due_at": self.due_at,
            "plan": self.plan,
        }


@dataclass
class ObjectiveValidation:
    ok: bool
    errors: List[str] = field(default_factory=list)
    objective: Optional[Objective] = None


@dataclass
class ObjectiveEvaluation:
    status: str
    progress: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "progress": self.progress}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_timestamp(value: str) -> datetime:
    """ISO timestamp as an aware datetime (naive input is taken as UTC)."""
    parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def validate_objective(obj: Any) -> ObjectiveValidation:
    """Check an objective payload and normalise it (target_type defaults per KPI)."""
    if not isinstance(obj, dict):
        return ObjectiveValidation(ok=False, errors=["Objective must be an object"])

    errors: List[str] = []
    title = obj.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("title is required and must be a non-empty string")

    kpi_name = obj.get("kpi")
    kpi = KPIS.get(kpi_name) if isinstance(kpi_name, str) else None
    if not kpi_name or not isinstance(kpi_name, str):
        errors.append("kpi is required and must be a string")
    elif kpi is None:
        errors.append(f"kpi must be one of: {', '.join(VALID_KPIS)}")

    target = obj.get("target")
    if target is None:
        errors.append("target is required")
    elif kpi is not None:
        if kpi.direction == BOOLEAN_TRUE_BETTER:
            if not isinstance(target, bool):
                errors.append("target must be a boolean for ai_overview KPI")
        elif not _is_number(target):
            errors.append("target must be a number")

    target_type = obj.get("target_type") or (kpi.default_target_type if kpi else "delta")
    if target_type not in TARGET_TYPES:
        errors.append('target_type must be "delta" or "absolute"')

    due_at = obj.get("due_at")
    if due_at is not None:
        if not isinstance(due_at, str):
            errors.append("due_at must be an ISO date string or null")
        else:
            try:
                due_at = parse_timestamp(due_at).astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
            except ValueError:
                errors.append("due_at must be a valid ISO date string")

    if errors:
        return ObjectiveValidation(ok=False, errors=errors)

    plan = obj.get("plan")
    return ObjectiveValidation(
        ok=True,
        objective=Objective(
            title=title.strip(),
            kpi=kpi_name,
            target=bool(target) if kpi.direction == BOOLEAN_TRUE_BETTER else float(target),
            target_type=target_type,
            due_at=due_at or None,
            plan=str(plan) if plan is not None else None,
        ),
    )


def extract_kpi_value(kpi_name: str, metrics: Optional[Dict[str, Any]]) -> Any:
    kpi = KPIS.get(kpi_name)
    if kpi is None or not isinstance(metrics, dict):
        return None
    return kpi.extract(metrics)


def improvement_delta(direction: str, baseline: Any, latest: Any) -> Optional[float]:
    """Signed change in the improving direction (rank 5 -> 3 is +2)."""
    if baseline is None or latest is None:
        return None
    if direction == BOOLEAN_TRUE_BETTER:
        return (1 if latest else 0) - (1 if baseline else 0)
    if direction == LOWER_BETTER:
        return baseline - latest
    return latest - baseline


def evaluate_objective(
    objective: Any,
    baseline_metrics: Optional[Dict[str, Any]],
    latest_metrics: Optional[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> ObjectiveEvaluation:
    """
    Status of an objective against its baseline and latest measurements.

    Returns:
        met, overdue (past due_at and not met), on_track, or not_set for
        an invalid objective (progress is None then)
    """
    validation = validate_objective(objective)
    if not validation.ok:
        return ObjectiveEvaluation(status=STATUS_NOT_SET)

    obj = validation.objective
    kpi = KPIS[obj.kpi]
    baseline = extract_kpi_value(obj.kpi, baseline_metrics) if baseline_metrics else None
    latest = extract_kpi_value(obj.kpi, latest_metrics) if latest_metrics else None

    delta = improvement_delta(kpi.direction, baseline, latest)
    if delta is None and latest is not None:
        # No baseline yet
        delta = 0

    met = False
    if obj.target_type == "delta":
        if delta is not None:
            met = latest is True if kpi.direction == BOOLEAN_TRUE_BETTER else delta >= obj.target
    elif latest is not None:
        if kpi.direction == HIGHER_BETTER:
            met = latest >= obj.target
        elif kpi.direction == LOWER_BETTER:
            met = latest <= obj.target
        else:
            met = latest is True

    if met:
        status = STATUS_MET
    elif obj.due_at and (now or datetime.now(timezone.utc)) > parse_timestamp(obj.due_at):
        status = STATUS_OVERDUE
    else:
        status = STATUS_ON_TRACK

    remaining = None
    if not met and latest is not None:
        if obj.target_type == "delta" and delta is not None:
            remaining = max(0, obj.target - delta)
        elif obj.target_type == "absolute" and kpi.direction == HIGHER_BETTER:
            remaining = max(0, obj.target - latest)
        elif obj.target_type == "absolute" and kpi.direction == LOWER_BETTER:
            remaining = max(0, latest - obj.target)

    return ObjectiveEvaluation(
        status=status,
        progress={
            "baseline_value": baseline,
            "latest_value": latest,
            "delta": delta,
            "target": obj.target,
            "target_type": obj.target_type,
            "remaining_to_target": remaining,
        },
    )


def task_objective(task: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Objective payload from a stored task row; None when no KPI is set."""
    kpi = task.get("objective_kpi")
    if not kpi:
        return None
    target = task.get("objective_target_delta")
    if kpi in KPIS and KPIS[kpi].direction == BOOLEAN_TRUE_BETTER:
        target = bool(target) if target is not None else True
    return {
        "title": task.get("objective_title") or task.get("keyword_text") or kpi,
        "kpi": kpi,
        "target": target,
        "target_type": task.get("objective_target_type") or None,
        "due_at": task.get("objective_due_at"),
        "plan": task.get("objective_plan"),
    }
