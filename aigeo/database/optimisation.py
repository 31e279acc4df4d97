"""
Optimisation Tasks Repository

optimisation_tasks: one row per tracked keyword/URL task with its
objective (objective_kpi, objective_target_delta, objective_due_at, ...).
optimisation_task_cycles: numbered work cycles of a task; the task
points at its active one.
optimisation_task_events: created / status_changed / note / measurement
events; measurement events carry a metrics snapshot, the earliest one
(or the created event's) is the task's baseline.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from aigeo.database.audits import get_latest_audit_record
from aigeo.database.supabase import SupabaseClient, SupabaseError
from aigeo.optimisation import (
    audit_measurement_sources,
    compute_goal_progress,
    evaluate_objective,
    task_metrics,
    task_objective,
    validate_objective,
)
from aigeo.utils.coerce import ensure_int, ensure_number
from aigeo.utils.dates import utc_now_iso

logger = logging.getLogger(__name__)

TASKS_TABLE = "optimisation_tasks"
CYCLES_TABLE = "optimisation_task_cycles"
EVENTS_TABLE = "optimisation_task_events"

CLOSED_TASK_STATUSES = ["done", "cancelled", "deleted"]
DELETED_STATUS = "deleted"
DEFAULT_STATUS = "planned"
DEFAULT_TASK_TYPE = "on_page"
SYSTEM_USER_ID = "00000000-0000-0000-0000-000000000000"
MEASUREMENT_COOLDOWN = timedelta(minutes=5)
MEASURED_TASK_FIELDS = (
    "id,keyword_text,target_url,target_url_clean,active_cycle_id,cycle_active,status,owner_user_id,is_test_task"
)

TASK_UPDATE_FIELDS = (
    "keyword_text",
    "target_url",
    "task_type",
    "status",
    "title",
    "notes",
    "is_test_task",
)


class ObjectiveRejected(ValueError):
    """Objective payload failed validation."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


# =============================================================================
# ROWS
# =============================================================================

def build_task_row(fields: Dict[str, Any], owner_user_id: str = SYSTEM_USER_ID) -> Dict[str, Any]:
    """optimisation_tasks row for a new task; a cycle starts when an objective is given."""
    has_objective = bool(fields.get("objective_title") or fields.get("objective_kpi"))
    target_delta = ensure_number(fields.get("objective_target_delta"))
    return {
        "keyword_text": fields.get("keyword_text"),
        "target_url": fields.get("target_url"),
        "task_type": fields.get("task_type") or DEFAULT_TASK_TYPE,
        "status": fields.get("status") or DEFAULT_STATUS,
        "title": fields.get("title") or None,
        "notes": fields.get("notes") or None,
        "owner_user_id": owner_user_id,
        "objective_title": fields.get("objective_title") or None,
        "objective_kpi": fields.get("objective_kpi") or None,
        "objective_target_delta": target_delta,
        "objective_target_type": fields.get("objective_target_type") or None,
        "objective_due_at": fields.get("objective_due_at") or None,
        "objective_plan": fields.get("objective_plan") or None,
        "cycle_started_at": fields.get("cycle_started_at") or (utc_now_iso() if has_objective else None),
    }


def task_measurements(events: List[Dict[str, Any]]) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """
    (baseline, latest) metrics from a task's events in creation order.

    The baseline is the created event's snapshot or the first baseline
    measurement, otherwise the first measurement; latest is the last
    measurement.
    """
    with_metrics = [e for e in events if isinstance(e, dict) and isinstance(e.get("metrics"), dict)]
    measurements = [e for e in with_metrics if e.get("event_type") == "measurement"]

    baseline_event = next(
        (e for e in with_metrics if e.get("event_type") == "created" or e.get("is_baseline")),
        measurements[0] if measurements else None,
    )
    latest_event = measurements[-1] if measurements else None
    return (
        baseline_event["metrics"] if baseline_event else None,
        latest_event["metrics"] if latest_event else None,
    )


def objective_state(
    task: Dict[str, Any],
    events: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Objective status and progress of a task given its events."""
    objective = task_objective(task)
    if objective is None:
        return {"objective_state": "not_set", "objective_progress": None}
    baseline, latest = task_measurements(events)
    evaluation = evaluate_objective(objective, baseline, latest, now=now)
    return {"objective_state": evaluation.status, "objective_progress": evaluation.progress}


# =============================================================================
# READS
# =============================================================================

async def get_task(db: SupabaseClient, task_id: str) -> Optional[Dict[str, Any]]:
    rows = await db.execute(db.table(TASKS_TABLE).select("*").eq("id", task_id).limit(1))
    return rows[0] if rows else None


async def get_task_events(db: SupabaseClient, task_ids: List[Any]) -> Dict[Any, List[Dict[str, Any]]]:
    """Events per task id, oldest first."""
    if not task_ids:
        return {}
    rows = await db.execute(
        db.table(EVENTS_TABLE).select("*").in_("task_id", task_ids).order("created_at")
    )
    events: Dict[Any, List[Dict[str, Any]]] = {task_id: [] for task_id in task_ids}
    for row in rows:
        events.setdefault(row.get("task_id"), []).append(row)
    return events


async def _with_objective_state(db: SupabaseClient, tasks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    task_ids = [t["id"] for t in tasks if t.get("id") is not None]
    try:
        events = await get_task_events(db, task_ids)
    except SupabaseError as e:
        logger.error(f"Task events unavailable, objective state not evaluated: {e}")
        return [{**task, "objective_state": "not_set", "objective_progress": None} for task in tasks]
    return [{**task, **objective_state(task, events.get(task.get("id"), []))} for task in tasks]


async def list_tasks(db: SupabaseClient, status: Optional[str] = None) -> List[Dict[str, Any]]:
    """Tasks newest first (deleted ones excluded) with their objective state."""
    query = db.table(TASKS_TABLE).select("*")
    query = query.eq("status", status) if status else query.neq("status", DELETED_STATUS)
    tasks = await db.execute(query.order("created_at", desc=True))
    return await _with_objective_state(db, tasks)


async def get_task_statuses(
    db: SupabaseClient,
    keyword_keys: List[str],
    url_keys: List[str],
) -> List[Dict[str, Any]]:
    """Tasks tracking any of the keywords (narrowed to url_keys when given)."""
    query = (
        db.table(TASKS_TABLE)
        .select("*")
        .in_("keyword_key", keyword_keys)
        .neq("status", DELETED_STATUS)
    )
    if url_keys:
        query = query.in_("target_url_clean", url_keys)
    tasks = await db.execute(query)
    return await _with_objective_state(db, tasks)


async def get_task_progress(db: SupabaseClient, task_id: str) -> Optional[Dict[str, Any]]:
    """Task, objective evaluation and goal progress; None when the task does not exist."""
    task = await get_task(db, task_id)
    if task is None:
        return None

    task_key = task.get("id", task_id)
    events = (await get_task_events(db, [task_key])).get(task_key, [])
    baseline, latest = task_measurements(events)
    objective = task_objective(task)
    evaluation = evaluate_objective(objective, baseline, latest)

    goal = None
    validation = validate_objective(objective)
    if validation.ok:
        obj = validation.objective
        goal = compute_goal_progress(
            obj.kpi,
            evaluation.progress["baseline_value"],
            evaluation.progress["latest_value"],
            obj.target,
            obj.target_type,
        )

    return {
        "task": task,
        "progress": {
            "task_id": task_id,
            "objective_state": evaluation.status,
            "objective": objective,
            "evaluation": evaluation.progress,
            "goal": goal,
            "baseline_metrics": baseline,
            "latest_metrics": latest,
            "due_at": task.get("objective_due_at"),
        },
    }


# =============================================================================
# WRITES
# =============================================================================

async def create_task(
    db: SupabaseClient,
    fields: Dict[str, Any],
    baseline_metrics: Optional[Dict[str, Any]] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Insert a task with cycle 1 and a created event.

    The created event carries the baseline metrics snapshot when given.

    Returns:
        (task, cycle)
    """
    row = build_task_row(fields)
    created = await db.execute(db.table(TASKS_TABLE).insert(row))
    task = created[0] if created else row

    cycle_rows = await db.execute(
        db.table(CYCLES_TABLE).insert({
            "task_id": task.get("id"),
            "cycle_no": 1,
            "status": row["status"],
            "objective_title": row["objective_title"],
            "primary_kpi": row["objective_kpi"],
            "target_value": row["objective_target_delta"],
            "plan": row["objective_plan"],
            "start_date": utc_now_iso(),
        })
    )
    cycle = cycle_rows[0] if cycle_rows else {}

    if cycle.get("id") is not None:
        try:
            await db.execute(
                db.table(TASKS_TABLE).update({"active_cycle_id": cycle["id"]}).eq("id", task.get("id"))
            )
            task = {**task, "active_cycle_id": cycle["id"]}
        except SupabaseError as e:
            logger.error(f"Failed to set active cycle of task {task.get('id')}: {e}")

    event = {
        "task_id": task.get("id"),
        "event_type": "created",
        "note": "Created from Ranking & AI module",
        "owner_user_id": row["owner_user_id"],
        "cycle_id": cycle.get("id"),
        "cycle_number": 1,
        "source": "ranking_ai",
    }
    if isinstance(baseline_metrics, dict):
        event["metrics"] = {**baseline_metrics, "captured_at": baseline_metrics.get("captured_at") or utc_now_iso()}
    try:
        await db.execute(db.table(EVENTS_TABLE).insert(event))
    except SupabaseError as e:
        logger.error(f"Failed to record created event for task {task.get('id')}: {e}")

    logger.info(f"Created optimisation task {task.get('id')} for {row['keyword_text'] or row['target_url']}")
    return task, cycle


async def _cycle_number(db: SupabaseClient, task: Dict[str, Any]) -> int:
    cycle_no = ensure_int(task.get("cycle_active")) or 1
    if task.get("active_cycle_id") is None:
        return cycle_no
    rows = await db.execute(
        db.table(CYCLES_TABLE).select("cycle_no").eq("id", task["active_cycle_id"]).limit(1)
    )
    if not rows:
        return cycle_no
    return ensure_int(rows[0].get("cycle_no")) or cycle_no


async def add_event(
    db: SupabaseClient,
    task: Dict[str, Any],
    event_type: str,
    note: Optional[str] = None,
    metrics: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Insert an event on the task's active cycle; returns the stored event."""
    event = {
        "task_id": task["id"],
        "event_type": event_type,
        "note": note or None,
        "cycle_id": task.get("active_cycle_id"),
        "cycle_number": await _cycle_number(db, task),
        "owner_user_id": task.get("owner_user_id") or SYSTEM_USER_ID,
    }
    if metrics is not None:
        event["metrics"] = {**metrics, "captured_at": metrics.get("captured_at") or utc_now_iso()}
    rows = await db.execute(db.table(EVENTS_TABLE).insert(event))
    return rows[0] if rows else event


async def update_task(db: SupabaseClient, task_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Update task fields; a status change is recorded as an event.

    Returns:
        The updated task, or None when it does not exist
    """
    current = await get_task(db, task_id)
    if current is None:
        return None

    values = {key: value for key, value in updates.items() if key in TASK_UPDATE_FIELDS}
    if not values:
        return current

    rows = await db.execute(db.table(TASKS_TABLE).update(values).eq("id", task_id))
    task = rows[0] if rows else {**current, **values}

    new_status = values.get("status")
    if new_status and new_status != current.get("status"):
        try:
            await add_event(db, task, "status_changed", note=f"Status: {current.get('status')} -> {new_status}")
        except SupabaseError as e:
            logger.error(f"Failed to record status change of task {task_id}: {e}")
    return task


async def update_objective(db: SupabaseClient, task_id: str, objective: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Validate and store a task objective, mirroring it onto the active cycle.

    Raises:
        ObjectiveRejected: Objective failed validation
    """
    validation = validate_objective(objective)
    if not validation.ok:
        raise ObjectiveRejected(validation.errors)

    current = await get_task(db, task_id)
    if current is None:
        return None

    obj = validation.objective
    values = {
        "objective_title": obj.title,
        "objective_kpi": obj.kpi,
        "objective_target_delta": obj.target if not isinstance(obj.target, bool) else (1 if obj.target else 0),
        "objective_target_type": obj.target_type,
        "objective_due_at": obj.due_at,
        "objective_plan": obj.plan,
    }
    if not current.get("cycle_started_at"):
        values["cycle_started_at"] = utc_now_iso()

    rows = await db.execute(db.table(TASKS_TABLE).update(values).eq("id", task_id))
    task = rows[0] if rows else {**current, **values}

    if current.get("active_cycle_id") is not None:
        try:
            await db.execute(
                db.table(CYCLES_TABLE)
                .update({
                    "objective_title": obj.title,
                    "primary_kpi": obj.kpi,
                    "target_value": values["objective_target_delta"],
                    "plan": obj.plan,
                    "updated_at": utc_now_iso(),
                })
                .eq("id", current["active_cycle_id"])
            )
        except SupabaseError as e:
            logger.error(f"Failed to update active cycle of task {task_id}: {e}")

    try:
        await add_event(db, task, "note", note="Objective updated")
    except SupabaseError as e:
        logger.error(f"Failed to record objective update of task {task_id}: {e}")
    return task


async def delete_task(db: SupabaseClient, task_id: str) -> bool:
    """Hard-delete a task with its events and cycles; False when it does not exist."""
    if await get_task(db, task_id) is None:
        return False
    await db.execute(db.table(EVENTS_TABLE).delete().eq("task_id", task_id))
    await db.execute(db.table(CYCLES_TABLE).delete().eq("task_id", task_id))
    await db.execute(db.table(TASKS_TABLE).delete().eq("id", task_id))
    logger.info(f"Deleted optimisation task {task_id}")
    return True


# =============================================================================
# BULK MEASUREMENT
# =============================================================================

async def _measured_recently(db: SupabaseClient, task_id: Any, now: datetime) -> bool:
    rows = await db.execute(
        db.table(EVENTS_TABLE)
        .select("id")
        .eq("task_id", task_id)
        .eq("event_type", "measurement")
        .gte("created_at", (now - MEASUREMENT_COOLDOWN).isoformat())
        .limit(1)
    )
    return bool(rows)


async def measure_all_tasks(db: SupabaseClient, property_url: str) -> Dict[str, int]:
    """
    Record a measurement for every open task from the latest audit.

    Test tasks, tasks measured within the cooldown and tasks with
    neither keyword nor URL are skipped.
    """
    sources = audit_measurement_sources(await get_latest_audit_record(db, property_url))
    tasks = await db.execute(
        db.table(TASKS_TABLE)
        .select(MEASURED_TASK_FIELDS)
        .neq("status", DELETED_STATUS)
    )

    now = datetime.now(timezone.utc)
    counts = {"updated": 0, "skipped": 0, "failed": 0}
    for task in tasks:
        if task.get("is_test_task") or await _measured_recently(db, task["id"], now):
            counts["skipped"] += 1
            continue
        metrics = task_metrics(task, sources)
        if metrics is None:
            counts["skipped"] += 1
            continue
        try:
            await add_event(db, task, "measurement", note="Latest measurement captured", metrics=metrics)
        except SupabaseError as e:
            logger.error(f"Failed to record measurement for task {task['id']}: {e}")
            counts["failed"] += 1
            continue
        counts["updated"] += 1

    logger.info(f"Bulk task measurement for {property_url}: {counts}")
    return counts
