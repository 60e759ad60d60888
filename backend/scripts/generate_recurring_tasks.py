"""Run recurring task generation once, as the "Generate Now" action does.

Usage:
    python scripts/generate_recurring_tasks.py               # all firms
    python scripts/generate_recurring_tasks.py --firm 101    # one firm
    python scripts/generate_recurring_tasks.py --as-of 2025-07-31

Meant for cron jobs and manual catch-up runs when the in-process worker is
disabled (RECURRENCE_WORKER_ENABLED=false).
"""
import asyncio
import logging
import sys
from datetime import datetime, time, timezone
from pathlib import Path
from typing import Optional

# Add backend to path so imports work
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.services.generation import run_generation

USAGE = "usage: generate_recurring_tasks.py [--firm FIRM_ID] [--as-of YYYY-MM-DD]"


class UsageError(Exception):
    pass


def _option(argv: list[str], name: str) -> str | None:
    if name not in argv:
        return None
    index = argv.index(name)
    if index + 1 >= len(argv) or argv[index + 1].startswith("--"):
        raise UsageError(f"{name} needs a value")
    return argv[index + 1]


def parse_options(argv: list[str]) -> tuple[Optional[int], Optional[datetime]]:
    firm = _option(argv, "--firm")
    as_of = _option(argv, "--as-of")

    firm_id = None
    if firm is not None:
        try:
            firm_id = int(firm)
        except ValueError:
            raise UsageError(f"--firm must be an integer, got {firm!r}") from None

    now = None
    if as_of is not None:
        try:
            day = datetime.strptime(as_of, "%Y-%m-%d").date()
        except ValueError:
            raise UsageError(f"--as-of must be a date like 2025-07-31, got {as_of!r}") from None
        now = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return firm_id, now


def main(argv: Optional[list[str]] = None) -> int:
    try:
        firm_id, now = parse_options(sys.argv[1:] if argv is None else argv)
    except UsageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return 2

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    result = asyncio.run(run_generation(now, firm_id=firm_id))

    for ref in result.created:
        print(f"created task {ref.task_id} for schedule {ref.schedule_id} due {ref.due_date.isoformat()}")
    for entry in result.skipped:
        print(f"skipped schedule {entry.schedule_id}: {entry.reason.value} {entry.detail}".rstrip())
    print(
        f"{len(result.created)} created, {len(result.deactivated)} deactivated, {len(result.failures)} failed"
    )
    return 1 if result.failures else 0


if __name__ == "__main__":
    sys.exit(main())
