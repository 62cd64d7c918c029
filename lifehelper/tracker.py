from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Callable

from lifehelper import db, engine
from lifehelper.content import load_catalog
from lifehelper.models import Catalog, CompletionTier, Snapshot, Task, TaskState
from lifehelper.remote import RemoteSnapshotStore
from lifehelper.sync import DataSync

logger = logging.getLogger(__name__)


def format_hp(points: int) -> str:
    # HP is kept in cents
    sign = "-" if points < 0 else ""
    return f"{sign}${abs(points) / 100:.2f}"


def format_delta(points: int) -> str:
    if points > 0:
        return "+" + format_hp(points)
    return format_hp(points)


class Tracker:
    def __init__(
        self,
        sync: DataSync,
        catalog: Catalog,
        rollover_hour: int = engine.DEFAULT_ROLLOVER_HOUR,
        starting_points: int = engine.DEFAULT_STARTING_POINTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.sync = sync
        self.catalog = catalog
        self.rollover_hour = rollover_hour
        self.starting_points = starting_points
        self.clock = clock or db.get_app_now
        # Serialises load, engine call and save; request handlers run on a threadpool.
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls) -> Tracker:
        settings = db.get_settings()
        remote = None
        if settings["remote_url"] and settings["user_id"]:
            remote = RemoteSnapshotStore(settings["remote_url"], settings["user_id"], db.day_zone())
        return cls(
            DataSync(db.LocalSnapshotStore(), remote),
            load_catalog(settings["catalog_path"] or None),
            rollover_hour=settings["rollover_hour"],
            starting_points=settings["starting_points"],
        )

    def today(self, now: datetime | None = None) -> date:
        return engine.effective_day(now or self.clock(), self.rollover_hour)

    def _refresh(self, now: datetime) -> tuple[Snapshot, int, int]:
        snapshot = self.sync.snapshot
        # Without a remote store other processes (the scheduler) may have written since.
        if snapshot is None or self.sync.remote is None:
            snapshot = self.sync.load()
        created = snapshot is None
        today = self.today(now)
        if snapshot is None:
            snapshot = engine.new_snapshot(self.catalog, today, self.starting_points)
            logger.info("Created a new snapshot starting at %s HP", format_hp(snapshot.total_points))
        reconciled = engine.rewind(engine.reconcile(snapshot, self.catalog), today)
        if reconciled.last_rollover_day != snapshot.last_rollover_day:
            logger.info("Last reset day %s is ahead of the clock, rewound to %s", snapshot.last_rollover_day, today)
        result, days = engine.catch_up(reconciled, self.catalog, now, self.rollover_hour)
        delta = result.total_points - reconciled.total_points
        if days:
            logger.info("Rolled over %d day(s) through %s (%s)", days, result.last_rollover_day, format_delta(delta))
        if created or days or reconciled is not snapshot:
            self.sync.save(result)
        return result, days, delta

    def current(self, now: datetime | None = None) -> Snapshot:
        with self._lock:
            snapshot, _, _ = self._refresh(now or self.clock())
            return snapshot

    def run_rollover_tick(self, now: datetime | None = None) -> dict:
        now = now or self.clock()
        with self._lock:
            snapshot, days, delta = self._refresh(now)
        return {
            "today": self.today(now).isoformat(),
            "rollovers": days,
            "delta": delta,
            "total_points": snapshot.total_points,
        }

    def select_tier(self, task_id: str, tier: CompletionTier, now: datetime | None = None) -> Snapshot:
        now = now or self.clock()
        with self._lock:
            snapshot, _, _ = self._refresh(now)
            updated = engine.apply_tier_selection(snapshot, self.catalog, task_id, tier, self.today(now))
            if updated is not snapshot:
                self.sync.save(updated)
            return updated

    def adjust_points(self, delta: int, now: datetime | None = None) -> Snapshot:
        now = now or self.clock()
        with self._lock:
            snapshot, _, _ = self._refresh(now)
            updated = engine.apply_manual_adjustment(snapshot, delta, self.today(now))
            self.sync.save(updated)
            return updated

    def replace_snapshot(self, snapshot: Snapshot) -> None:
        """Store an imported snapshot as the current one."""
        with self._lock:
            self.sync.save(snapshot)

    def projected_delta(self, snapshot: Snapshot, now: datetime | None = None) -> int:
        return engine.daily_delta(snapshot, self.catalog, self.today(now))

    def unaddressed_tasks(self, snapshot: Snapshot, now: datetime | None = None) -> list[Task]:
        today = self.today(now)
        return [
            task
            for task in self.catalog.tasks
            if engine.is_due(task, today)
            and snapshot.tasks.get(task.id, TaskState()).completion_tier is CompletionTier.UNSELECTED
        ]

    def due_tasks(self, now: datetime | None = None) -> list[Task]:
        today = self.today(now)
        return [task for task in self.catalog.tasks if engine.is_due(task, today)]

    def reset_storage(self) -> None:
        with self._lock:
            self.sync.clear()
