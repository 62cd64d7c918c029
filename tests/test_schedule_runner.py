from __future__ import annotations

import unittest
from unittest.mock import patch

from lifehelper.jobs.schedule_runner import main


def _context(hour: int, minute: int) -> dict:
    return {
        "local_date": "2026-10-19",
        "local_hour": hour,
        "local_minute": minute,
        "rollover_hour": 6,
        "timezone": "Pacific/Auckland",
    }


@patch("lifehelper.jobs.schedule_runner.init_db")
@patch("lifehelper.jobs.schedule_runner.send_evening")
@patch("lifehelper.jobs.schedule_runner.send_morning")
@patch("lifehelper.jobs.schedule_runner.run_tick")
@patch("lifehelper.jobs.schedule_runner.get_schedule_context")
class ScheduleRunnerTests(unittest.TestCase):
    def test_rollover_window_triggers_tick(self, get_schedule_context, run_tick, send_morning, send_evening, init_db) -> None:
        get_schedule_context.return_value = _context(6, 5)

        main()

        run_tick.assert_called_once()
        send_morning.assert_not_called()
        send_evening.assert_not_called()

    def test_evening_window_sends_nudge(self, get_schedule_context, run_tick, send_morning, send_evening, init_db) -> None:
        get_schedule_context.return_value = _context(20, 0)

        main()

        run_tick.assert_not_called()
        send_evening.assert_called_once_with("2026-10-19")

    def test_morning_window_sends_summary(self, get_schedule_context, run_tick, send_morning, send_evening, init_db) -> None:
        get_schedule_context.return_value = _context(8, 10)

        main()

        send_morning.assert_called_once_with("2026-10-19")
        send_evening.assert_not_called()

    def test_outside_windows_does_nothing(self, get_schedule_context, run_tick, send_morning, send_evening, init_db) -> None:
        get_schedule_context.return_value = _context(6, 30)

        main()

        run_tick.assert_not_called()
        send_morning.assert_not_called()
        send_evening.assert_not_called()


if __name__ == "__main__":
    unittest.main()
