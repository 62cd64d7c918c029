from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lifehelper import codec
from lifehelper.engine import DEFAULT_ROLLOVER_HOUR, DEFAULT_STARTING_POINTS, effective_day
from lifehelper.models import Snapshot

logger = logging.getLogger(__name__)

DB_PATH = Path(__file__).resolve().parent.parent / "data.sqlite3"

LOCAL_OWNER = "local"

DEFAULT_SETTINGS = {
    "id": 1,
    "user_id": "",
    "remote_url": "",
    "rollover_hour": DEFAULT_ROLLOVER_HOUR,
    "day_timezone": "",
    "starting_points": DEFAULT_STARTING_POINTS,
    "catalog_path": "",
    "testing_mode": 0,
    "discord_webhook_url": "",
    "ntfy_topic_url": "",
}


def get_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, definition: str) -> None:
    cols = conn.execute(f"PRAGMA table_info({table})").fetchall()
    if column not in {c[1] for c in cols}:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


def init_db() -> None:
    conn = get_conn()
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS settings (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                user_id TEXT NOT NULL,
                remote_url TEXT NOT NULL,
                rollover_hour INTEGER NOT NULL,
                day_timezone TEXT NOT NULL,
                starting_points INTEGER NOT NULL,
                catalog_path TEXT NOT NULL,
                testing_mode INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS app_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                simulated_offset_days INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS snapshot_doc (
                owner TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                body_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS reminder_log (
                kind TEXT NOT NULL,
                date TEXT NOT NULL,
                sent_at TEXT NOT NULL,
                PRIMARY KEY (kind, date)
            );
            """
        )

        _ensure_column(conn, "settings", "discord_webhook_url", "TEXT NOT NULL DEFAULT ''")
        _ensure_column(conn, "settings", "ntfy_topic_url", "TEXT NOT NULL DEFAULT ''")

        conn.execute(
            """
            INSERT INTO settings (
                id, user_id, remote_url, rollover_hour, day_timezone, starting_points,
                catalog_path, testing_mode, discord_webhook_url, ntfy_topic_url
            ) VALUES (
                :id, :user_id, :remote_url, :rollover_hour, :day_timezone, :starting_points,
                :catalog_path, :testing_mode, :discord_webhook_url, :ntfy_topic_url
            ) ON CONFLICT(id) DO NOTHING
            """,
            DEFAULT_SETTINGS,
        )
        conn.execute("INSERT INTO app_state (id, simulated_offset_days) VALUES (1, 0) ON CONFLICT(id) DO NOTHING")
        conn.commit()
    finally:
        conn.close()


def get_settings() -> dict:
    conn = get_conn()
    try:
        row = conn.execute("SELECT * FROM settings WHERE id = 1").fetchone()
        if not row:
            raise RuntimeError("Missing settings")
        return dict(row)
    finally:
        conn.close()


def update_settings(
    user_id: str,
    remote_url: str,
    rollover_hour: int,
    day_timezone: str,
    starting_points: int,
    catalog_path: str,
    testing_mode: bool,
    discord_webhook_url: str,
    ntfy_topic_url: str,
) -> None:
    if not 0 <= rollover_hour <= 23:
        raise ValueError(f"rollover hour must be within 0..23, got {rollover_hour}")
    conn = get_conn()
    try:
        conn.execute(
            """
            UPDATE settings
            SET user_id = ?, remote_url = ?, rollover_hour = ?, day_timezone = ?, starting_points = ?,
                catalog_path = ?, testing_mode = ?, discord_webhook_url = ?, ntfy_topic_url = ?
            WHERE id = 1
            """,
            (
                user_id.strip(),
                remote_url.strip().rstrip("/"),
                rollover_hour,
                day_timezone.strip(),
                starting_points,
                catalog_path.strip(),
                int(testing_mode),
                discord_webhook_url.strip(),
                ntfy_topic_url.strip(),
            ),
        )
        if not testing_mode:
            conn.execute("UPDATE app_state SET simulated_offset_days = 0 WHERE id = 1")
        conn.commit()
    finally:
        conn.close()


def _zone(name: str) -> ZoneInfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r; using system local time", name)
        return None


def day_zone() -> ZoneInfo | None:
    """The configured day zone, or None for system local time."""
    return _zone(get_settings()["day_timezone"])


def get_app_now() -> datetime:
    """Current time in the configured zone, shifted by the testing clock when enabled."""
    conn = get_conn()
    try:
        settings = conn.execute("SELECT testing_mode, day_timezone FROM settings WHERE id = 1").fetchone()
        state = conn.execute("SELECT simulated_offset_days FROM app_state WHERE id = 1").fetchone()
    finally:
        conn.close()
    zone = _zone(settings["day_timezone"]) if settings else None
    now = datetime.now(zone) if zone else datetime.now().astimezone()
    if settings and settings["testing_mode"] and state:
        now += timedelta(days=state["simulated_offset_days"])
    return now


def get_app_today() -> date:
    return effective_day(get_app_now(), get_settings()["rollover_hour"])


def today_key() -> str:
    return get_app_today().isoformat()


def testing_advance_day(days: int = 1) -> datetime:
    conn = get_conn()
    try:
        conn.execute("UPDATE app_state SET simulated_offset_days = simulated_offset_days + ? WHERE id = 1", (days,))
        conn.commit()
    finally:
        conn.close()
    return get_app_now()


def get_schedule_context() -> dict:
    now = get_app_now()
    settings = get_settings()
    return {
        "local_date": effective_day(now, settings["rollover_hour"]).isoformat(),
        "local_hour": now.hour,
        "local_minute": now.minute,
        "rollover_hour": settings["rollover_hour"],
        "timezone": settings["day_timezone"] or "local",
    }


def load_snapshot(owner: str = LOCAL_OWNER) -> Snapshot | None:
    conn = get_conn()
    try:
        row = conn.execute("SELECT body_json FROM snapshot_doc WHERE owner = ?", (owner,)).fetchone()
    finally:
        conn.close()
    if row is None:
        return None
    return codec.loads(row["body_json"], day_zone())


def save_snapshot(snapshot: Snapshot, owner: str = LOCAL_OWNER) -> None:
    conn = get_conn()
    try:
        conn.execute(
            """
            INSERT INTO snapshot_doc (owner, version, body_json, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(owner) DO UPDATE SET version=excluded.version, body_json=excluded.body_json, updated_at=excluded.updated_at
            """,
            (owner, snapshot.version, codec.dumps(snapshot), utc_now_iso()),
        )
        conn.commit()
    finally:
        conn.close()


def delete_snapshot(owner: str = LOCAL_OWNER) -> None:
    conn = get_conn()
    try:
        conn.execute("DELETE FROM snapshot_doc WHERE owner = ?", (owner,))
        conn.commit()
    finally:
        conn.close()


class LocalSnapshotStore:
    """Snapshot store backed by the SQLite ``snapshot_doc`` table."""

    def __init__(self, owner: str = LOCAL_OWNER) -> None:
        self.owner = owner

    def load(self) -> Snapshot | None:
        return load_snapshot(self.owner)

    def save(self, snapshot: Snapshot) -> None:
        save_snapshot(snapshot, self.owner)

    def clear(self) -> None:
        delete_snapshot(self.owner)


def was_reminder_sent(kind: str, for_date: str) -> bool:
    conn = get_conn()
    try:
        row = conn.execute("SELECT 1 FROM reminder_log WHERE kind = ? AND date = ?", (kind, for_date)).fetchone()
        return row is not None
    finally:
        conn.close()


def mark_reminder_sent(kind: str, for_date: str) -> None:
    conn = get_conn()
    try:
        conn.execute(
            "INSERT INTO reminder_log (kind, date, sent_at) VALUES (?, ?, ?) ON CONFLICT(kind, date) DO NOTHING",
            (kind, for_date, utc_now_iso()),
        )
        conn.commit()
    finally:
        conn.close()
