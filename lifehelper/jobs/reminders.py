from __future__ import annotations

import argparse
import logging

from lifehelper.db import get_settings, init_db, mark_reminder_sent, today_key, was_reminder_sent
from lifehelper.notifier import build_notifier
from lifehelper.tracker import Tracker


def send_morning(for_date: str | None = None) -> bool:
    for_date = for_date or today_key()
    if was_reminder_sent("morning", for_date):
        return False
    tracker = Tracker.from_settings()
    due = tracker.due_tasks()
    if not due:
        return False
    names = ", ".join(task.name for task in due)
    build_notifier(get_settings()).send("Good morning", f"{len(due)} task(s) due today: {names}.")
    mark_reminder_sent("morning", for_date)
    return True


def send_evening(for_date: str | None = None) -> bool:
    for_date = for_date or today_key()
    if was_reminder_sent("evening", for_date):
        return False
    tracker = Tracker.from_settings()
    pending = tracker.unaddressed_tasks(tracker.current())
    if not pending:
        return False
    names = ", ".join(task.name for task in pending)
    build_notifier(get_settings()).send(
        "Evening Nudge",
        f"Still open: {names}. Anything left unmarked counts as not done at the daily reset.",
        priority="high",
    )
    mark_reminder_sent("evening", for_date)
    return True


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser()
    parser.add_argument("mode", choices=["morning", "evening"])
    args = parser.parse_args()

    init_db()
    if args.mode == "morning":
        send_morning()
    else:
        send_evening()


if __name__ == "__main__":
    main()
