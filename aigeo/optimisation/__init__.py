"""
Optimisation tasks.

- objectives: KPI objectives, validation and status evaluation
- progress: goal progress values and display labels
- measurements: task measurements taken from the latest audit
"""

from .measurements import audit_measurement_sources, keyword_metrics, task_metrics, url_metrics
from .objectives import (
    KPIS,
    VALID_KPIS,
    Objective,
    ObjectiveEvaluation,
    ObjectiveValidation,
    evaluate_objective,
    extract_kpi_value,
    task_objective,
    validate_objective,
)
from .progress import compute_goal_progress

__all__ = [
    "audit_measurement_sources",
    "keyword_metrics",
    "task_metrics",
    "url_metrics",
    "KPIS",
    "VALID_KPIS",
    "Objective",
    "ObjectiveEvaluation",
    "ObjectiveValidation",
    "evaluate_objective",
    "extract_kpi_value",
    "task_objective",
    "validate_objective",
    "compute_goal_progress",
]
