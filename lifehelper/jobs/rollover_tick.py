from __future__ import annotations

import logging

from lifehelper.db import get_settings, init_db
from lifehelper.notifier import build_notifier
from lifehelper.tracker import Tracker, format_delta, format_hp


def run_tick() -> dict:
    tracker = Tracker.from_settings()
    result = tracker.run_rollover_tick()
    if result["rollovers"]:
        build_notifier(get_settings()).send(
            "Life Helper Daily Reset",
            f"Closed {result['rollovers']} day(s): {format_delta(result['delta'])}. HP is now {format_hp(result['total_points'])}.",
        )
    return result


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()
    run_tick()


if __name__ == "__main__":
    main()
