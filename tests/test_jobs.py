from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import lifehelper.db as db
from lifehelper.jobs.reminders import send_evening, send_morning
from lifehelper.jobs.rollover_tick import run_tick


def _enable_testing_mode() -> None:
    s = db.get_settings()
    db.update_settings(
        user_id=s["user_id"],
        remote_url=s["remote_url"],
        rollover_hour=s["rollover_hour"],
        day_timezone=s["day_timezone"],
        starting_points=s["starting_points"],
        catalog_path=s["catalog_path"],
        testing_mode=True,
        discord_webhook_url=s["discord_webhook_url"],
        ntfy_topic_url=s["ntfy_topic_url"],
    )


class JobsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.old_db = db.DB_PATH
        db.DB_PATH = Path(self.tmp.name) / "test.sqlite3"
        db.init_db()

    def tearDown(self) -> None:
        db.DB_PATH = self.old_db
        self.tmp.cleanup()

    @patch("lifehelper.jobs.reminders.build_notifier")
    def test_evening_nudge_sent_once_per_day(self, build_notifier) -> None:
        self.assertTrue(send_evening("2026-10-19"))
        self.assertFalse(send_evening("2026-10-19"))
        build_notifier.return_value.send.assert_called_once()
        title = build_notifier.return_value.send.call_args[0][0]
        self.assertEqual(title, "Evening Nudge")

    @patch("lifehelper.jobs.reminders.build_notifier")
    def test_morning_summary_sent_once_per_day(self, build_notifier) -> None:
        self.assertTrue(send_morning("2026-10-19"))
        self.assertFalse(send_morning("2026-10-19"))
        self.assertTrue(db.was_reminder_sent("morning", "2026-10-19"))

    @patch("lifehelper.jobs.rollover_tick.build_notifier")
    def test_tick_notifies_only_when_days_closed(self, build_notifier) -> None:
        first = run_tick()
        self.assertEqual(first["rollovers"], 0)
        build_notifier.return_value.send.assert_not_called()

        _enable_testing_mode()
        db.testing_advance_day(1)
        second = run_tick()
        self.assertEqual(second["rollovers"], 1)
        self.assertLess(second["delta"], 0)
        build_notifier.return_value.send.assert_called_once()


if __name__ == "__main__":
    unittest.main()
