"""
API Endpoints for optimisation tasks

Handles:
1. Task create / list / read / update / delete
2. Objectives, events and measurements
3. Objective state and goal progress
4. Bulk status lookup and bulk measurement from the latest audit
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from aigeo.auth import require_admin
from aigeo.database import SupabaseClient, SupabaseError
from aigeo.database.optimisation import (
    ObjectiveRejected,
    add_event,
    create_task,
    delete_task,
    get_task,
    get_task_progress,
    get_task_statuses,
    list_tasks,
    measure_all_tasks,
    update_objective,
    update_task,
)
from aigeo.utils.config import Settings, get_settings
from aigeo.utils.responses import ok_response, upstream_error

from api.dependencies import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/optimisation",
    tags=["Optimisation"],
    dependencies=[Depends(require_admin)],
)


class CreateTaskRequest(BaseModel):
    keyword_text: Optional[str] = None
    target_url: Optional[str] = None
    task_type: Optional[str] = None
    status: Optional[str] = None
    title: Optional[str] = None
    notes: Optional[str] = None
    baselineMetrics: Optional[Dict[str, Any]] = None
    objective_title: Optional[str] = None
    objective_kpi: Optional[str] = None
    objective_target_delta: Optional[float] = None
    objective_target_type: Optional[str] = None
    objective_due_at: Optional[str] = None
    objective_plan: Optional[str] = None
    cycle_started_at: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    keyword_text: Optional[str] = None
    target_url: Optional[str] = None
    task_type: Optional[str] = None
    status: Optional[str] = None
    title: Optional[str] = None
    notes: Optional[str] = None
    is_test_task: Optional[bool] = None


class MeasurementRequest(BaseModel):
    metrics: Optional[Any] = None
    note: Optional[str] = None


class EventRequest(BaseModel):
    event_type: Optional[str] = None
    note: Optional[str] = None


class StatusRequest(BaseModel):
    keyword_keys: Optional[Any] = None
    url_keys: Optional[Any] = None


class BulkUpdateRequest(BaseModel):
    propertyUrl: Optional[str] = None


async def _require_task(db: SupabaseClient, task_id: str) -> Dict[str, Any]:
    task = await get_task(db, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


# =============================================================================
# TASKS
# =============================================================================

@router.get("/tasks")
async def get_tasks(
    status: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
):
    """All tasks with their objective state, newest first."""
    try:
        tasks = await list_tasks(db, status)
    except SupabaseError as e:
        return upstream_error("Failed to fetch optimisation tasks", e)
    return ok_response(tasks, count=len(tasks))


@router.post("/task")
async def create_optimisation_task(
    request: CreateTaskRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    if not request.keyword_text or not request.target_url:
        raise HTTPException(status_code=400, detail="keyword_text and target_url required")

    fields = request.model_dump(exclude={"baselineMetrics"})
    try:
        task, cycle = await create_task(db, fields, request.baselineMetrics)
    except SupabaseError as e:
        logger.error(f"Failed to create optimisation task: {e}")
        return upstream_error("Failed to create optimisation task", e)

    return ok_response({"task": task, "cycle": cycle}, status_code=201)


@router.get("/task/{task_id}")
async def get_optimisation_task(task_id: str, db: SupabaseClient = Depends(get_supabase)):
    try:
        task = await _require_task(db, task_id)
    except SupabaseError as e:
        return upstream_error("Failed to fetch optimisation task", e)
    return ok_response({"task": task})


@router.patch("/task/{task_id}")
async def update_optimisation_task(
    task_id: str,
    request: UpdateTaskRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    """Update task fields; status changes are logged as events."""
    try:
        task = await update_task(db, task_id, request.model_dump(exclude_none=True))
    except SupabaseError as e:
        return upstream_error("Failed to update optimisation task", e)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return ok_response({"task": task})


@router.delete("/task/{task_id}")
async def delete_optimisation_task(task_id: str, db: SupabaseClient = Depends(get_supabase)):
    try:
        deleted = await delete_task(db, task_id)
    except SupabaseError as e:
        return upstream_error("Failed to delete optimisation task", e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Task not found")
    return ok_response(None, message="Task deleted successfully")


# =============================================================================
# OBJECTIVES, EVENTS, MEASUREMENTS
# =============================================================================

@router.patch("/task/{task_id}/objective")
async def set_task_objective(
    task_id: str,
    objective: Dict[str, Any],
    db: SupabaseClient = Depends(get_supabase),
):
    """Validate and store the task's KPI objective."""
    try:
        task = await update_objective(db, task_id, objective)
    except ObjectiveRejected as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SupabaseError as e:
        return upstream_error("Failed to update objective", e)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return ok_response({"task": task})


@router.post("/task/{task_id}/event")
async def add_task_event(
    task_id: str,
    request: EventRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    if not request.event_type:
        raise HTTPException(status_code=400, detail="event_type required")
    try:
        task = await _require_task(db, task_id)
        event = await add_event(db, task, request.event_type, note=request.note)
    except SupabaseError as e:
        return upstream_error("Failed to add task event", e)
    return ok_response({"event": event})


@router.post("/task/{task_id}/measurement")
async def add_task_measurement(
    task_id: str,
    request: MeasurementRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    if not isinstance(request.metrics, dict):
        raise HTTPException(status_code=400, detail="metrics object required")
    try:
        task = await _require_task(db, task_id)
        event = await add_event(db, task, "measurement", note=request.note, metrics=request.metrics)
    except SupabaseError as e:
        return upstream_error("Failed to record measurement", e)
    return ok_response({"event": event}, status_code=201)


@router.get("/task/{task_id}/progress")
async def task_progress(task_id: str, db: SupabaseClient = Depends(get_supabase)):
    """Objective state, baseline/latest values and goal progress labels."""
    try:
        result = await get_task_progress(db, task_id)
    except SupabaseError as e:
        return upstream_error("Failed to fetch task progress", e)
    if result is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return ok_response(result)


# =============================================================================
# BULK
# =============================================================================

@router.post("/status")
async def task_statuses(
    request: StatusRequest,
    db: SupabaseClient = Depends(get_supabase),
):
    """Tasks for a set of keyword keys (and URL keys), with objective state."""
    if not isinstance(request.keyword_keys, list) or not request.keyword_keys:
        raise HTTPException(status_code=400, detail="keyword_keys array required")
    if not isinstance(request.url_keys, list):
        raise HTTPException(status_code=400, detail="url_keys array required")

    keyword_keys: List[str] = [str(k) for k in request.keyword_keys]
    url_keys: List[str] = [str(k) for k in request.url_keys]
    try:
        statuses = await get_task_statuses(db, keyword_keys, url_keys)
    except SupabaseError as e:
        return upstream_error("Failed to fetch task statuses", e)
    return ok_response(statuses, count=len(statuses))


@router.post("/bulk-update")
async def bulk_update(
    request: BulkUpdateRequest,
    propertyUrl: Optional[str] = Query(None),
    db: SupabaseClient = Depends(get_supabase),
    settings: Settings = Depends(get_settings),
):
    """Record a measurement for every open task from the property's latest audit."""
    property_url = propertyUrl or request.propertyUrl or settings.DEFAULT_SITE_URL
    if not property_url:
        raise HTTPException(status_code=400, detail="propertyUrl is required")

    try:
        counts = await measure_all_tasks(db, property_url)
    except SupabaseError as e:
        return upstream_error("Bulk task update failed", e)
    return ok_response(counts, message="Bulk task update completed")
