"""Daily rollover and tier scoring.

Every function here takes the snapshot it works on and returns a new one;
nothing reads a clock or touches storage. Callers own the snapshot and must
sequence calls themselves.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta

from lifehelper.models import (
    REASON_DAILY_RESET,
    REASON_MANUAL_ADJUSTMENT,
    SNAPSHOT_VERSION,
    Catalog,
    CompletionTier,
    Daily,
    HistoryEntry,
    Monthly,
    PointsRecord,
    Snapshot,
    Task,
    TaskState,
    Weekly,
)

logger = logging.getLogger(__name__)

DEFAULT_ROLLOVER_HOUR = 6
DEFAULT_STARTING_POINTS = 1000


def effective_day(instant: datetime, rollover_hour: int = DEFAULT_ROLLOVER_HOUR) -> date:
    """Calendar day an instant counts towards; before ``rollover_hour`` it is still yesterday."""
    if not 0 <= rollover_hour <= 23:
        raise ValueError(f"rollover hour must be within 0..23, got {rollover_hour}")
    return (instant - timedelta(hours=rollover_hour)).date()


def day_of_week(day: date) -> int:
    # 0 = Sunday
    return (day.weekday() + 1) % 7


def is_due(task: Task, today: date) -> bool:
    rec = task.recurrence
    if isinstance(rec, Daily):
        return True
    if isinstance(rec, Weekly):
        return day_of_week(today) in rec.days_of_week
    if isinstance(rec, Monthly):
        return today.day in rec.days_of_month
    raise TypeError(f"unknown recurrence for task {task.id}: {rec!r}")


def points_for(task: Task, tier: CompletionTier) -> int:
    if tier is CompletionTier.UNSELECTED:
        return 0
    if tier not in task.points.offered:
        logger.warning("Task %s does not offer tier %r; scoring it as 0", task.id, tier.value)
        return 0
    return task.points.offered[tier]


def _tier_of(snapshot: Snapshot, task_id: str) -> CompletionTier:
    state = snapshot.tasks.get(task_id)
    return state.completion_tier if state else CompletionTier.UNSELECTED


def daily_delta(snapshot: Snapshot, catalog: Catalog, today: date) -> int:
    """Points the given day is worth; a due task nobody touched counts as not done."""
    total = 0
    for task in catalog.tasks:
        if not is_due(task, today):
            continue
        tier = _tier_of(snapshot, task.id)
        if tier is CompletionTier.UNSELECTED:
            tier = CompletionTier.NONE
        total += points_for(task, tier)
    return total


def new_snapshot(catalog: Catalog, today: date, starting_points: int = DEFAULT_STARTING_POINTS) -> Snapshot:
    return Snapshot(
        version=SNAPSHOT_VERSION,
        total_points=starting_points,
        tasks={task.id: TaskState() for task in catalog.tasks},
        last_rollover_day=today,
        points_history=(),
    )


def reconcile(snapshot: Snapshot, catalog: Catalog) -> Snapshot:
    """Add a fresh state for catalog tasks the snapshot has never seen.

    States for ids no longer in the catalog are kept untouched.
    """
    missing = [task.id for task in catalog.tasks if task.id not in snapshot.tasks]
    if not missing:
        return snapshot
    tasks = dict(snapshot.tasks)
    for task_id in missing:
        tasks[task_id] = TaskState()
    return replace(snapshot, tasks=tasks)


def rewind(snapshot: Snapshot, today: date) -> Snapshot:
    """Pull a ``last_rollover_day`` that lies after ``today`` back to ``today``.

    This happens when the clock moves backwards, for example when a simulated
    testing clock is switched off. Totals, tiers and history are kept.
    """
    if snapshot.last_rollover_day <= today:
        return snapshot
    return replace(snapshot, last_rollover_day=today)


def is_rollover_due(snapshot: Snapshot, now: datetime, rollover_hour: int = DEFAULT_ROLLOVER_HOUR) -> bool:
    return effective_day(now, rollover_hour) > snapshot.last_rollover_day


def rollover(snapshot: Snapshot, catalog: Catalog) -> Snapshot:
    """Close out ``last_rollover_day`` and open the following day.

    Does not check :func:`is_rollover_due`; callers do.
    """
    closing = snapshot.last_rollover_day
    total = snapshot.total_points + daily_delta(snapshot, catalog, closing)
    tasks = {
        task_id: replace(state, completion_tier=CompletionTier.UNSELECTED)
        for task_id, state in snapshot.tasks.items()
    }
    return replace(
        snapshot,
        total_points=total,
        tasks=tasks,
        last_rollover_day=closing + timedelta(days=1),
        points_history=snapshot.points_history + (PointsRecord(closing, total, REASON_DAILY_RESET),),
    )


def catch_up(
    snapshot: Snapshot,
    catalog: Catalog,
    now: datetime,
    rollover_hour: int = DEFAULT_ROLLOVER_HOUR,
) -> tuple[Snapshot, int]:
    """Roll over once per elapsed day until the snapshot reaches ``now``."""
    days = 0
    while is_rollover_due(snapshot, now, rollover_hour):
        snapshot = rollover(snapshot, catalog)
        days += 1
    return snapshot, days


def apply_tier_selection(
    snapshot: Snapshot,
    catalog: Catalog,
    task_id: str,
    tier: CompletionTier,
    today: date,
) -> Snapshot:
    if task_id not in catalog:
        return snapshot
    state = snapshot.tasks.get(task_id, TaskState())
    history = [entry for entry in state.history if entry.day != today]
    history.append(HistoryEntry(today, tier))
    history.sort(key=lambda entry: entry.day)
    tasks = dict(snapshot.tasks)
    tasks[task_id] = TaskState(completion_tier=tier, history=tuple(history))
    return replace(snapshot, tasks=tasks)


def apply_manual_adjustment(snapshot: Snapshot, delta: int, today: date) -> Snapshot:
    total = snapshot.total_points + delta
    return replace(
        snapshot,
        total_points=total,
        points_history=snapshot.points_history + (PointsRecord(today, total, REASON_MANUAL_ADJUSTMENT),),
    )
