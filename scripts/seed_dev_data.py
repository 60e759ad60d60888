"""Dev data seeder for the practice scheduler.

Usage:
    python seed_dev_data.py          # Create test data
    python seed_dev_data.py --clean  # Remove seeded test data

Designed to run from the backend/ directory (CWD) so app imports resolve.
Saves created IDs to .vscode/.dev_seed_ids.json for cleanup.

Creates two firms with compliance task templates, the standard filing
patterns and a handful of recurring schedules, some of them already due.
"""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import date, timedelta
from pathlib import Path

# ---------------------------------------------------------------------------
# Bootstrap: add backend/ to sys.path so `app.*` imports work when invoked
# as `python ../scripts/seed_dev_data.py` from the backend/ directory.
# ---------------------------------------------------------------------------
BACKEND_DIR = Path(__file__).resolve().parent.parent / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlmodel import select  # noqa: E402

from app.db.session import AsyncSessionLocal, init_models  # noqa: E402
from app.models.recurrence_pattern import RecurrencePattern  # noqa: E402
from app.models.recurring_schedule import RecurringSchedule  # noqa: E402
from app.models.task import Task  # noqa: E402
from app.models.task_template import TaskTemplate, TemplateCategory  # noqa: E402
from app.schemas.recurrence import (  # noqa: E402
    AfterOccurrencesEnd,
    CustomConfig,
    CustomUnit,
    MonthlyConfig,
    PatternKind,
    RecurrenceRule,
)
from app.services import recurrence_patterns as patterns_service  # noqa: E402
from app.services import recurring_schedules as schedules_service  # noqa: E402

STATE_FILE = Path(__file__).resolve().parent.parent / ".vscode" / ".dev_seed_ids.json"

TODAY = date.today()

FIRMS = {
    101: "Mehta & Associates",
    102: "Iyer Tax Consultants",
}

TEMPLATES = [
    {
        "title": "GSTR-3B Filing",
        "description": "Monthly summary return",
        "category": TemplateCategory.gst,
        "subtasks": [{"title": "Reconcile purchase register"}, {"title": "Compute liability"}, {"title": "File return"}],
        "price": 2500.0,
        "is_payable": True,
        "estimated_hours": 3.0,
    },
    {
        "title": "GSTR-1 Filing",
        "description": "Outward supplies return",
        "category": TemplateCategory.gst,
        "subtasks": [{"title": "Export sales register"}, {"title": "Upload invoices"}],
        "price": 1500.0,
        "is_payable": True,
        "estimated_hours": 2.0,
    },
    {
        "title": "Income Tax Return",
        "description": "Annual ITR preparation and filing",
        "category": TemplateCategory.itr,
        "subtasks": [{"title": "Collect Form 16 / 26AS"}, {"title": "Prepare computation"}, {"title": "File and e-verify"}],
        "price": 5000.0,
        "is_payable": True,
        "estimated_hours": 6.0,
    },
    {
        "title": "ROC Annual Filing",
        "description": "AOC-4 and MGT-7",
        "category": TemplateCategory.roc,
        "subtasks": [{"title": "Board resolution"}, {"title": "File AOC-4"}, {"title": "File MGT-7"}],
        "price": 8000.0,
        "is_payable": True,
        "estimated_hours": 8.0,
    },
    {
        "title": "Weekly bookkeeping review",
        "description": "Review entries posted by the client's accountant",
        "category": TemplateCategory.other,
        "subtasks": [],
        "price": None,
        "is_payable": False,
        "estimated_hours": 1.0,
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _save_state(state: dict) -> None:
    STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
    STATE_FILE.write_text(json.dumps(state, indent=2))
    print(f"  State saved to {STATE_FILE}")


def _load_state() -> dict | None:
    if not STATE_FILE.exists():
        return None
    return json.loads(STATE_FILE.read_text())


class IDTracker:
    def __init__(self) -> None:
        self.data: dict[str, list] = {
            "templates": [],
            "patterns": [],
            "schedules": [],
        }

    def add(self, key: str, value) -> None:
        self.data[key].append(value)


# ---------------------------------------------------------------------------
# Seed
# ---------------------------------------------------------------------------

async def seed() -> None:
    if _load_state() is not None:
        print("Seed data already exists (.vscode/.dev_seed_ids.json found).")
        print("  Run with --clean first to remove existing data.")
        return

    await init_models()
    print(f"Seeding dev data ({len(FIRMS)} firms)...")
    ids = IDTracker()

    async with AsyncSessionLocal() as session:
        async with session.begin():
            for firm_id, firm_name in FIRMS.items():
                print(f"\n  --- Firm {firm_id}: {firm_name} ---")

                print("  Creating task templates...")
                templates: dict[str, TaskTemplate] = {}
                for fields in TEMPLATES:
                    template = TaskTemplate(firm_id=firm_id, **fields)
                    session.add(template)
                    await session.flush()
                    templates[template.title] = template
                    ids.add("templates", template.id)

                print("  Creating compliance patterns...")
                presets = await patterns_service.create_ca_presets(session, firm_id=firm_id)
                patterns = {pattern.name: pattern for pattern in presets}
                weekly = await patterns_service.create_pattern(
                    session,
                    firm_id=firm_id,
                    name="Every Monday",
                    description="Weekly review cadence",
                    rule=RecurrenceRule(
                        kind=PatternKind.custom,
                        custom_config=CustomConfig(unit=CustomUnit.weeks, days_of_week=frozenset({1})),
                    ),
                )
                for pattern in [*presets, weekly]:
                    ids.add("patterns", pattern.id)

                print("  Creating recurring schedules...")
                schedules = [
                    # Started last quarter so the first occurrences are already due.
                    dict(
                        template=templates["GSTR-3B Filing"],
                        pattern_id=patterns["Monthly GST Filing"].id,
                        start_date=TODAY - timedelta(days=75),
                        client_id=firm_id * 10 + 1,
                        assigned_to=[1, 2],
                    ),
                    dict(
                        template=templates["GSTR-1 Filing"],
                        rule=RecurrenceRule(
                            kind=PatternKind.monthly,
                            monthly_config=MonthlyConfig(day_of_month=11),
                            end_condition=AfterOccurrencesEnd(occurrences=6),
                        ),
                        start_date=TODAY - timedelta(days=20),
                        client_id=firm_id * 10 + 2,
                        assigned_to=[2],
                    ),
                    dict(
                        template=templates["Income Tax Return"],
                        pattern_id=patterns["Annual ITR Filing"].id,
                        client_id=firm_id * 10 + 1,
                        assigned_to=[1],
                    ),
                    dict(
                        template=templates["ROC Annual Filing"],
                        pattern_id=patterns["Annual ROC Filing"].id,
                        client_id=firm_id * 10 + 3,
                        assigned_to=[3],
                    ),
                    dict(
                        template=templates["Weekly bookkeeping review"],
                        pattern_id=weekly.id,
                        start_date=TODAY - timedelta(days=14),
                        client_id=firm_id * 10 + 2,
                        assigned_to=[4],
                    ),
                ]
                for entry in schedules:
                    template = entry.pop("template")
                    schedule = await schedules_service.create_schedule(
                        session,
                        firm_id=firm_id,
                        template_id=template.id,
                        **entry,
                    )
                    ids.add("schedules", schedule.id)

        # Transaction committed

    _save_state(ids.data)
    print("\nDone! Dev data seeded successfully.")
    print(f"  {len(ids.data['templates'])} templates, {len(ids.data['patterns'])} patterns")
    print(f"  {len(ids.data['schedules'])} recurring schedules")
    print("  Run backend/scripts/generate_recurring_tasks.py to materialize due tasks.")


# ---------------------------------------------------------------------------
# Cleanup
# ---------------------------------------------------------------------------

async def clean() -> None:
    state = _load_state()
    if state is None:
        print("No seed state file found. Nothing to clean.")
        return

    print("Cleaning up seeded dev data...")

    async with AsyncSessionLocal() as session:
        async with session.begin():
            # Delete in reverse dependency order.
            schedule_ids = state.get("schedules", [])
            if schedule_ids:
                result = await session.exec(select(Task).where(Task.schedule_id.in_(schedule_ids)))
                for task in result.all():
                    await session.delete(task)
            await session.flush()
            print("  Removed generated tasks")

            for sid in schedule_ids:
                obj = await session.get(RecurringSchedule, sid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed recurring schedules")

            for pid in state.get("patterns", []):
                obj = await session.get(RecurrencePattern, pid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed recurrence patterns")

            for tid in state.get("templates", []):
                obj = await session.get(TaskTemplate, tid)
                if obj:
                    await session.delete(obj)
            await session.flush()
            print("  Removed task templates")

        # Transaction committed

    STATE_FILE.unlink(missing_ok=True)
    print("Done! All seeded data removed.")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    if "--clean" in sys.argv:
        asyncio.run(clean())
    else:
        asyncio.run(seed())
