#!/usr/bin/env python3
"""
Life Helper - launcher (FastAPI + SQLite)

- Creates .venv on first use and installs the project into it (pip install -e .)
- Serves the web app with uvicorn
- Optionally runs the scheduler loop (daily reset + reminders) next to it

Usage:
  python run.py                     # web app at http://127.0.0.1:8000
  python run.py --scheduler         # scheduler loop only
  python run.py --both              # web app + scheduler loop
  python run.py --no-install        # reuse .venv as is
  python run.py --tick              # run one daily reset catch-up and exit
"""

from __future__ import annotations

import argparse
import platform
import subprocess
import sys
import threading
import time
import webbrowser
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent
VENV_DIR = PROJECT_ROOT / ".venv"
SCHEDULER_INTERVAL_S = 5 * 60


def is_windows() -> bool:
    return platform.system().lower().startswith("win")


def venv_python() -> Path:
    if is_windows():
        return VENV_DIR / "Scripts" / "python.exe"
    return VENV_DIR / "bin" / "python"


def run(cmd: list[str], *, check: bool = True) -> int:
    print("\n> " + " ".join(cmd))
    return subprocess.run(cmd, cwd=str(PROJECT_ROOT), check=check).returncode


def ensure_venv(install: bool) -> Path:
    if not (PROJECT_ROOT / "pyproject.toml").exists() or not (PROJECT_ROOT / "lifehelper").is_dir():
        raise FileNotFoundError(f"{PROJECT_ROOT} does not look like the Life Helper project root")
    py = venv_python()
    if not py.exists():
        print(f"Creating virtual environment at: {VENV_DIR}")
        run([sys.executable, "-m", "venv", str(VENV_DIR)])
        install = True
    if install:
        run([str(py), "-m", "pip", "install", "--upgrade", "pip"])
        run([str(py), "-m", "pip", "install", "-e", str(PROJECT_ROOT)])
    return py


def scheduler_loop(py: Path) -> None:
    # Stand-in for a cron/systemd timer: the runner decides what is due.
    while True:
        run([str(py), "-m", "lifehelper.jobs.schedule_runner"], check=False)
        time.sleep(SCHEDULER_INTERVAL_S)


def serve(py: Path, host: str, port: int, reload: bool) -> int:
    cmd = [str(py), "-m", "uvicorn", "lifehelper.main:app", "--host", host, "--port", str(port)]
    if reload:
        cmd.append("--reload")
    url = f"http://{host if host != '0.0.0.0' else '127.0.0.1'}:{port}"
    print(f"\nStarting Life Helper at {url} (Ctrl+C to stop)\n")

    def open_browser() -> None:
        time.sleep(1.0)
        webbrowser.open(url)

    threading.Thread(target=open_browser, daemon=True).start()
    return run(cmd, check=False)


def main() -> int:
    parser = argparse.ArgumentParser(prog="life-helper")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--scheduler", action="store_true", help="Run only the scheduler loop")
    mode.add_argument("--both", action="store_true", help="Run the web app and the scheduler loop")
    mode.add_argument("--tick", action="store_true", help="Run one daily reset catch-up and exit")
    parser.add_argument("--no-install", action="store_true", help="Skip pip install")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--no-reload", action="store_true", help="Disable uvicorn --reload")
    args = parser.parse_args()

    py = ensure_venv(install=not args.no_install)

    if args.tick:
        return run([str(py), "-m", "lifehelper.jobs.rollover_tick"], check=False)
    if args.scheduler:
        scheduler_loop(py)
        return 0
    if args.both:
        threading.Thread(target=scheduler_loop, args=(py,), daemon=True).start()
    return serve(py, args.host, args.port, reload=not args.no_reload)


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        print("\nStopped.")
