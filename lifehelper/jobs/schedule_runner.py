from __future__ import annotations

import logging

from lifehelper.db import get_schedule_context, init_db
from lifehelper.jobs.reminders import send_evening, send_morning
from lifehelper.jobs.rollover_tick import run_tick

MORNING_HOUR = 8
EVENING_HOUR = 20


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()
    ctx = get_schedule_context()
    today = ctx["local_date"]
    hour = ctx["local_hour"]
    minute = ctx["local_minute"]

    # Run this command every 5-10 minutes via cron/systemd timer.
    if hour == ctx["rollover_hour"] and minute < 15:
        run_tick()

    if hour == MORNING_HOUR and minute < 15:
        send_morning(today)

    if hour == EVENING_HOUR and minute < 15:
        send_evening(today)


if __name__ == "__main__":
    main()
