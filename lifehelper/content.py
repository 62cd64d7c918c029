from __future__ import annotations

import json
import logging
from pathlib import Path

from lifehelper.models import Catalog, Daily, Monthly, PointValues, Recurrence, Section, Task, Weekly

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent / "catalog"
DEFAULT_CATALOG = BASE_DIR / "tasks.json"


class CatalogError(ValueError):
    pass


def _load_json(path: Path, fallback):
    if not path.exists():
        return fallback
    return json.loads(path.read_text(encoding="utf-8-sig"))


def _optional_int(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    if value is None:
        return None
    return int(value)


def _parse_points(raw: dict) -> PointValues:
    # "hpValues" is the key older catalogs used
    values = raw.get("pointValues", raw.get("hpValues"))
    if not isinstance(values, dict):
        raise CatalogError("missing pointValues")
    return PointValues.build(
        none=int(values["none"]),
        full=int(values["full"]),
        minimum=_optional_int(values, "minimum"),
        bonus=_optional_int(values, "bonus"),
    )


def _parse_recurrence(raw: dict | None) -> Recurrence:
    raw = raw or {"type": "daily"}
    kind = raw.get("type", "daily")
    if kind == "daily":
        return Daily()
    if kind == "weekly":
        days = raw.get("daysOfWeek")
        if days is None and raw.get("dayOfWeek") is not None:
            days = [raw["dayOfWeek"]]
        return Weekly(frozenset(int(d) for d in days or []))
    if kind == "monthly":
        return Monthly(frozenset(int(d) for d in raw.get("daysOfMonth") or []))
    raise CatalogError(f"unknown recurrence type: {kind!r}")


def parse_task(raw: dict) -> Task:
    task_id = raw.get("id")
    if not task_id:
        raise CatalogError("task without an id")
    try:
        return Task(
            id=str(task_id),
            name=raw.get("name") or str(task_id),
            description=raw.get("description") or "",
            section=raw.get("section") or "",
            points=_parse_points(raw),
            recurrence=_parse_recurrence(raw.get("recurrence")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"invalid task {task_id!r}: {exc}") from exc


def parse_catalog(raw: dict) -> Catalog:
    if not isinstance(raw, dict):
        raise CatalogError("catalog must be a JSON object")
    tasks = [parse_task(t) for t in raw.get("tasks", [])]
    sections = [
        Section(name=s["name"], order=int(s.get("order", i)))
        for i, s in enumerate(raw.get("sections", []))
    ]
    known = {s.name for s in sections}
    # Tasks in undeclared sections still need somewhere to render.
    for task in tasks:
        if task.section not in known:
            sections.append(Section(name=task.section, order=len(sections)))
            known.add(task.section)
    try:
        return Catalog(tasks=tasks, sections=sections)
    except ValueError as exc:
        raise CatalogError(str(exc)) from exc


def load_catalog(path: Path | str | None = None) -> Catalog:
    catalog_path = Path(path) if path else DEFAULT_CATALOG
    try:
        raw = _load_json(catalog_path, None)
    except json.JSONDecodeError as exc:
        raise CatalogError(f"{catalog_path} is not valid JSON: {exc}") from exc
    if raw is None:
        logger.warning("Task catalog %s not found; starting with no tasks", catalog_path)
        return Catalog()
    return parse_catalog(raw)
