"""JSON document shape shared by the local and remote snapshot stores.

Day-valued fields are written as ``YYYY-MM-DD`` so a document read in a
different time zone lands on the same day it was written on.
"""

from __future__ import annotations

import json
from datetime import date, datetime, tzinfo

from lifehelper.models import (
    SNAPSHOT_VERSION,
    CompletionTier,
    HistoryEntry,
    PointsRecord,
    Snapshot,
    TaskState,
)


class SnapshotFormatError(ValueError):
    pass


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int(value, field: str) -> int:
    if not _is_int(value):
        raise SnapshotFormatError(f"{field} must be an integer, got {value!r}")
    return value


def snapshot_to_dict(snapshot: Snapshot) -> dict:
    return {
        "version": snapshot.version,
        "totalPoints": snapshot.total_points,
        "lastRolloverDay": snapshot.last_rollover_day.isoformat(),
        "tasks": {
            task_id: {
                "completionTier": state.completion_tier.value,
                "history": [{"date": e.day.isoformat(), "tier": e.tier.value} for e in state.history],
            }
            for task_id, state in snapshot.tasks.items()
        },
        "pointsHistory": [
            {"day": r.day.isoformat(), "totalPoints": r.total_points, "reason": r.reason}
            for r in snapshot.points_history
        ],
    }


def _history(entries: list[tuple[date, CompletionTier]]) -> tuple[HistoryEntry, ...]:
    # one entry per day, later entries win
    by_day = {}
    for day, tier in entries:
        by_day[day] = tier
    return tuple(HistoryEntry(day, by_day[day]) for day in sorted(by_day))


def _from_v1(payload: dict) -> Snapshot:
    tasks = {}
    for task_id, raw in payload.get("tasks", {}).items():
        tasks[str(task_id)] = TaskState(
            completion_tier=CompletionTier(raw.get("completionTier", CompletionTier.UNSELECTED.value)),
            history=_history(
                [(date.fromisoformat(e["date"]), CompletionTier(e["tier"])) for e in raw.get("history", [])]
            ),
        )
    return Snapshot(
        version=SNAPSHOT_VERSION,
        total_points=_int(payload["totalPoints"], "totalPoints"),
        tasks=tasks,
        last_rollover_day=date.fromisoformat(payload["lastRolloverDay"]),
        points_history=tuple(
            PointsRecord(
                date.fromisoformat(r["day"]),
                _int(r["totalPoints"], "pointsHistory.totalPoints"),
                str(r["reason"]),
            )
            for r in payload.get("pointsHistory", [])
        ),
    )


def _legacy_day(raw: str, zone: tzinfo | None = None) -> date:
    # Old documents stored the user's local midnight as a UTC ISO timestamp.
    stamp = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone(zone)
    return stamp.date()


def _from_legacy(payload: dict, zone: tzinfo | None = None) -> Snapshot:
    tasks = {}
    for todo in payload.get("todos", []):
        tasks[str(todo["id"])] = TaskState(
            completion_tier=CompletionTier(todo.get("completionTier", CompletionTier.UNSELECTED.value)),
            history=_history(
                [(_legacy_day(e["date"], zone), CompletionTier(e["tier"])) for e in todo.get("history", [])]
            ),
        )
    return Snapshot(
        version=SNAPSHOT_VERSION,
        total_points=_int(payload["hp"], "hp"),
        tasks=tasks,
        last_rollover_day=_legacy_day(payload["lastResetDate"], zone),
        points_history=(),
    )


def snapshot_from_dict(payload: dict, zone: tzinfo | None = None) -> Snapshot:
    """Decode a stored document.

    ``zone`` is the user's day zone, used only to place the timestamps of
    unversioned documents on a calendar day. ``None`` means system local time.
    """
    if not isinstance(payload, dict):
        raise SnapshotFormatError("snapshot document must be an object")
    version = payload.get("version")
    try:
        if version is None and "hp" in payload:
            return _from_legacy(payload, zone)
        if _is_int(version) and version == SNAPSHOT_VERSION:
            return _from_v1(payload)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SnapshotFormatError(f"malformed snapshot document: {exc}") from exc
    raise SnapshotFormatError(f"unsupported snapshot version: {version!r}")


def dumps(snapshot: Snapshot) -> str:
    return json.dumps(snapshot_to_dict(snapshot))


def loads(raw: str, zone: tzinfo | None = None) -> Snapshot:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SnapshotFormatError(f"snapshot is not valid JSON: {exc}") from exc
    return snapshot_from_dict(payload, zone)
