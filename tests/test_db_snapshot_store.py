from __future__ import annotations

import json
import tempfile
import unittest
from datetime import date, timedelta
from pathlib import Path
from unittest.mock import patch

import lifehelper.db as db
from lifehelper import engine
from lifehelper.codec import SnapshotFormatError
from lifehelper.content import load_catalog
from lifehelper.remote import RemoteSnapshotStore
from lifehelper.tracker import Tracker


class DBIsolatedTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._old_db = db.DB_PATH
        db.DB_PATH = Path(self._tmp.name) / "test.sqlite3"
        db.init_db()

    def tearDown(self) -> None:
        db.DB_PATH = self._old_db
        self._tmp.cleanup()

    def _settings(self, **overrides) -> None:
        current = db.get_settings()
        fields = {
            "user_id": current["user_id"],
            "remote_url": current["remote_url"],
            "rollover_hour": current["rollover_hour"],
            "day_timezone": current["day_timezone"],
            "starting_points": current["starting_points"],
            "catalog_path": current["catalog_path"],
            "testing_mode": bool(current["testing_mode"]),
            "discord_webhook_url": current["discord_webhook_url"],
            "ntfy_topic_url": current["ntfy_topic_url"],
        }
        fields.update(overrides)
        db.update_settings(**fields)


class SettingsTests(DBIsolatedTestCase):
    def test_defaults(self) -> None:
        settings = db.get_settings()
        self.assertEqual(settings["rollover_hour"], 6)
        self.assertEqual(settings["starting_points"], 1000)
        self.assertEqual(settings["testing_mode"], 0)

    def test_init_db_is_idempotent(self) -> None:
        self._settings(user_id="me")
        db.init_db()
        self.assertEqual(db.get_settings()["user_id"], "me")

    def test_rejects_bad_rollover_hour(self) -> None:
        with self.assertRaises(ValueError):
            self._settings(rollover_hour=24)

    def test_remote_url_is_normalised(self) -> None:
        self._settings(remote_url=" https://docs.example.com/api/ ")
        self.assertEqual(db.get_settings()["remote_url"], "https://docs.example.com/api")

    def test_tracker_uses_remote_store_once_signed_in(self) -> None:
        self.assertIsNone(Tracker.from_settings().sync.remote)
        self._settings(user_id="me", remote_url="https://docs.example.com")
        remote = Tracker.from_settings().sync.remote
        self.assertIsInstance(remote, RemoteSnapshotStore)
        self.assertEqual(remote.doc_url, "https://docs.example.com/users/me")


class ClockTests(DBIsolatedTestCase):
    def test_get_app_today_falls_back_when_zoneinfo_unavailable(self) -> None:
        self._settings(day_timezone="Pacific/Auckland")
        with patch("lifehelper.db.ZoneInfo", side_effect=db.ZoneInfoNotFoundError("missing")):
            today = db.today_key()
        self.assertRegex(today, r"^\d{4}-\d{2}-\d{2}$")

    def test_testing_clock_advances_only_in_testing_mode(self) -> None:
        self._settings(testing_mode=True)
        before = db.get_app_today()
        db.testing_advance_day(2)
        self.assertEqual(db.get_app_today() - before, timedelta(days=2))

        self._settings(testing_mode=False)
        self.assertEqual(db.get_app_today(), before)

    def test_schedule_context_reports_rollover_hour(self) -> None:
        self._settings(rollover_hour=4)
        ctx = db.get_schedule_context()
        self.assertEqual(ctx["rollover_hour"], 4)
        self.assertIn("local_hour", ctx)
        date.fromisoformat(ctx["local_date"])


class SnapshotStoreTests(DBIsolatedTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.catalog = load_catalog()
        self.snapshot = engine.new_snapshot(self.catalog, date(2026, 10, 19))

    def test_missing_snapshot_loads_as_none(self) -> None:
        self.assertIsNone(db.LocalSnapshotStore().load())

    def test_save_load_round_trip(self) -> None:
        store = db.LocalSnapshotStore()
        store.save(self.snapshot)
        self.assertEqual(store.load(), self.snapshot)

        changed = engine.apply_manual_adjustment(self.snapshot, 5, date(2026, 10, 19))
        store.save(changed)
        self.assertEqual(store.load(), changed)

    def test_owners_are_independent(self) -> None:
        db.LocalSnapshotStore("a").save(self.snapshot)
        self.assertIsNone(db.LocalSnapshotStore("b").load())
        db.LocalSnapshotStore("a").clear()
        self.assertIsNone(db.LocalSnapshotStore("a").load())

    def test_legacy_row_is_read_in_configured_zone(self) -> None:
        self._settings(day_timezone="Europe/Berlin")
        legacy = {"hp": 700, "lastResetDate": "2026-10-18T22:00:00.000Z", "todos": []}
        conn = db.get_conn()
        conn.execute(
            "INSERT INTO snapshot_doc (owner, version, body_json, updated_at) VALUES (?, ?, ?, ?)",
            (db.LOCAL_OWNER, 0, json.dumps(legacy), db.utc_now_iso()),
        )
        conn.commit()
        conn.close()
        self.assertEqual(db.LocalSnapshotStore().load().last_rollover_day, date(2026, 10, 19))

    def test_remote_store_uses_configured_zone(self) -> None:
        self._settings(user_id="me", remote_url="https://docs.example.com", day_timezone="Europe/Berlin")
        remote = Tracker.from_settings().sync.remote
        self.assertEqual(str(remote.zone), "Europe/Berlin")

    def test_corrupt_row_raises_format_error(self) -> None:
        conn = db.get_conn()
        conn.execute(
            "INSERT INTO snapshot_doc (owner, version, body_json, updated_at) VALUES (?, ?, ?, ?)",
            (db.LOCAL_OWNER, 1, "{not valid json", db.utc_now_iso()),
        )
        conn.commit()
        conn.close()
        with self.assertRaises(SnapshotFormatError):
            db.LocalSnapshotStore().load()


class ReminderLogTests(DBIsolatedTestCase):
    def test_mark_once_per_kind_and_day(self) -> None:
        self.assertFalse(db.was_reminder_sent("evening", "2026-10-19"))
        db.mark_reminder_sent("evening", "2026-10-19")
        db.mark_reminder_sent("evening", "2026-10-19")
        self.assertTrue(db.was_reminder_sent("evening", "2026-10-19"))
        self.assertFalse(db.was_reminder_sent("morning", "2026-10-19"))


if __name__ == "__main__":
    unittest.main()
