from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Union


class CompletionTier(str, Enum):
    UNSELECTED = "unselected"
    NONE = "none"
    MINIMUM = "minimum"
    FULL = "full"
    BONUS = "bonus"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def symbol(self) -> str:
        return {"unselected": "", "none": "○", "minimum": "−", "full": "✓", "bonus": "+"}[self.value]


# Display order of the tiers a task can offer.
SCORED_TIERS = (CompletionTier.NONE, CompletionTier.MINIMUM, CompletionTier.FULL, CompletionTier.BONUS)
REQUIRED_TIERS = (CompletionTier.NONE, CompletionTier.FULL)

SNAPSHOT_VERSION = 1

REASON_DAILY_RESET = "daily reset"
REASON_MANUAL_ADJUSTMENT = "manual adjustment"


@dataclass(frozen=True)
class PointValues:
    """Signed HP delta per offered tier.

    A tier missing from ``offered`` is not offered by the task at all, which
    is different from a tier worth zero points.
    """

    offered: dict[CompletionTier, int]

    def __post_init__(self) -> None:
        missing = [t.value for t in REQUIRED_TIERS if t not in self.offered]
        if missing:
            raise ValueError(f"point values missing required tiers: {', '.join(missing)}")
        if CompletionTier.UNSELECTED in self.offered:
            raise ValueError("'unselected' cannot carry a point value")

    @classmethod
    def build(cls, none: int, full: int, minimum: int | None = None, bonus: int | None = None) -> PointValues:
        offered = {CompletionTier.NONE: none, CompletionTier.FULL: full}
        if minimum is not None:
            offered[CompletionTier.MINIMUM] = minimum
        if bonus is not None:
            offered[CompletionTier.BONUS] = bonus
        return cls(offered)

    def offers(self, tier: CompletionTier) -> bool:
        return tier in self.offered

    def tiers(self) -> list[CompletionTier]:
        return [t for t in SCORED_TIERS if t in self.offered]


@dataclass(frozen=True)
class Daily:
    pass


@dataclass(frozen=True)
class Weekly:
    # 0 = Sunday ... 6 = Saturday
    days_of_week: frozenset[int]

    def __post_init__(self) -> None:
        if not self.days_of_week or any(not 0 <= d <= 6 for d in self.days_of_week):
            raise ValueError(f"weekly recurrence needs days in 0..6, got {sorted(self.days_of_week)}")


@dataclass(frozen=True)
class Monthly:
    days_of_month: frozenset[int]

    def __post_init__(self) -> None:
        if not self.days_of_month or any(not 1 <= d <= 31 for d in self.days_of_month):
            raise ValueError(f"monthly recurrence needs days in 1..31, got {sorted(self.days_of_month)}")


Recurrence = Union[Daily, Weekly, Monthly]


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    points: PointValues
    recurrence: Recurrence = Daily()
    description: str = ""
    section: str = ""


@dataclass(frozen=True)
class Section:
    name: str
    order: int = 0


@dataclass
class Catalog:
    tasks: list[Task] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_id = {}
        for task in self.tasks:
            if task.id in self._by_id:
                raise ValueError(f"duplicate task id: {task.id}")
            self._by_id[task.id] = task

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._by_id

    def get(self, task_id: str) -> Task | None:
        return self._by_id.get(task_id)

    def ordered_sections(self) -> list[Section]:
        return sorted(self.sections, key=lambda s: s.order)

    def tasks_in(self, section_name: str) -> list[Task]:
        return [t for t in self.tasks if t.section == section_name]


@dataclass(frozen=True)
class HistoryEntry:
    day: date
    tier: CompletionTier


@dataclass(frozen=True)
class TaskState:
    completion_tier: CompletionTier = CompletionTier.UNSELECTED
    history: tuple[HistoryEntry, ...] = ()


@dataclass(frozen=True)
class PointsRecord:
    day: date
    total_points: int
    reason: str


@dataclass(frozen=True)
class Snapshot:
    version: int
    total_points: int
    tasks: dict[str, TaskState]
    last_rollover_day: date
    points_history: tuple[PointsRecord, ...] = ()
