from __future__ import annotations

import json
import threading
from pathlib import Path

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from lifehelper import codec
from lifehelper.content import CatalogError, load_catalog
from lifehelper.db import day_zone, get_settings, init_db, testing_advance_day, update_settings
from lifehelper.engine import is_due, points_for
from lifehelper.models import CompletionTier, Snapshot, TaskState
from lifehelper.tracker import Tracker, format_delta, format_hp

APP_DIR = Path(__file__).resolve().parent

app = FastAPI(title="Life Helper")
app.mount("/static", StaticFiles(directory=APP_DIR / "static"), name="static")
templates = Jinja2Templates(directory=APP_DIR / "templates")
templates.env.filters["hp"] = format_hp
templates.env.filters["hp_delta"] = format_delta

_tracker: Tracker | None = None
_watch: threading.Event | None = None
_tracker_lock = threading.Lock()


def get_tracker() -> Tracker:
    global _tracker, _watch
    with _tracker_lock:
        if _tracker is None:
            _tracker = Tracker.from_settings()
            _watch = _tracker.sync.watch()
        return _tracker


def reset_tracker() -> None:
    global _tracker, _watch
    with _tracker_lock:
        if _watch is not None:
            _watch.set()
        _tracker = None
        _watch = None


@app.on_event("startup")
def startup() -> None:
    init_db()


def _sections(tracker: Tracker, snapshot: Snapshot) -> list[dict]:
    today = tracker.today()
    out = []
    for section in tracker.catalog.ordered_sections():
        rows = []
        for task in tracker.catalog.tasks_in(section.name):
            state = snapshot.tasks.get(task.id, TaskState())
            rows.append(
                {
                    "task": task,
                    "tier": state.completion_tier,
                    "due": is_due(task, today),
                    "tiers": [(tier, points_for(task, tier)) for tier in task.points.tiers()],
                }
            )
        if rows:
            out.append({"name": section.name, "tasks": rows})
    return out


def today_context() -> dict:
    tracker = get_tracker()
    snapshot = tracker.current()
    return {
        "today": tracker.today().isoformat(),
        "snapshot": snapshot,
        "sections": _sections(tracker, snapshot),
        "today_change": tracker.projected_delta(snapshot),
        "status": tracker.sync.status(),
        "error": tracker.sync.error,
        "settings": get_settings(),
        "page": "today",
    }


@app.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "today.html", today_context())


@app.get("/history", response_class=HTMLResponse)
def history(request: Request) -> HTMLResponse:
    tracker = get_tracker()
    snapshot = tracker.current()
    return templates.TemplateResponse(
        request,
        "history.html",
        {
            "page": "history",
            "today": tracker.today().isoformat(),
            "snapshot": snapshot,
            "records": list(reversed(snapshot.points_history)),
            "status": tracker.sync.status(),
        },
    )


@app.post("/tasks/{task_id}/tier")
def select_tier(task_id: str, tier: str = Form(...)) -> RedirectResponse:
    try:
        chosen = CompletionTier(tier)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown tier: {tier}")
    get_tracker().select_tier(task_id, chosen)
    return RedirectResponse(url="/", status_code=303)


@app.post("/points/adjust")
def adjust_points(delta: int = Form(...)) -> RedirectResponse:
    get_tracker().adjust_points(delta)
    return RedirectResponse(url="/", status_code=303)


@app.get("/settings", response_class=HTMLResponse)
def settings(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "settings.html", {"settings": get_settings(), "page": "settings", "saved": False, "error": None})


@app.post("/settings", response_class=HTMLResponse)
def save_settings(
    request: Request,
    user_id: str = Form(""),
    remote_url: str = Form(""),
    rollover_hour: int = Form(6),
    day_timezone: str = Form(""),
    starting_points: int = Form(1000),
    catalog_path: str = Form(""),
    testing_mode: bool = Form(False),
    discord_webhook_url: str = Form(""),
    ntfy_topic_url: str = Form(""),
) -> HTMLResponse:
    try:
        load_catalog(catalog_path.strip() or None)
        update_settings(
            user_id=user_id,
            remote_url=remote_url,
            rollover_hour=rollover_hour,
            day_timezone=day_timezone,
            starting_points=starting_points,
            catalog_path=catalog_path,
            testing_mode=testing_mode,
            discord_webhook_url=discord_webhook_url,
            ntfy_topic_url=ntfy_topic_url,
        )
        reset_tracker()
    except (ValueError, CatalogError) as exc:
        context = {"settings": get_settings(), "page": "settings", "saved": False, "error": str(exc)}
        return templates.TemplateResponse(request, "settings.html", context, status_code=400)
    return RedirectResponse(url="/settings", status_code=303)


@app.post("/testing/advance-day")
def advance_day() -> RedirectResponse:
    if get_settings()["testing_mode"]:
        testing_advance_day(1)
        get_tracker().run_rollover_tick()
    return RedirectResponse(url="/", status_code=303)


@app.post("/storage/clear")
def clear_storage() -> RedirectResponse:
    get_tracker().reset_storage()
    return RedirectResponse(url="/", status_code=303)


@app.get("/api/state", response_class=JSONResponse)
def api_state() -> JSONResponse:
    tracker = get_tracker()
    snapshot = tracker.current()
    return JSONResponse(
        {
            "snapshot": codec.snapshot_to_dict(snapshot),
            "today": tracker.today().isoformat(),
            "projectedDelta": tracker.projected_delta(snapshot),
            "status": tracker.sync.status(),
            "error": tracker.sync.error,
        }
    )


@app.get("/export")
def export_save() -> JSONResponse:
    return JSONResponse(codec.snapshot_to_dict(get_tracker().current()))


@app.post("/import")
def import_save(payload: str = Form(...)) -> RedirectResponse:
    try:
        snapshot = codec.snapshot_from_dict(json.loads(payload), day_zone())
    except (json.JSONDecodeError, codec.SnapshotFormatError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid save data: {exc}")
    get_tracker().replace_snapshot(snapshot)
    return RedirectResponse(url="/settings", status_code=303)
