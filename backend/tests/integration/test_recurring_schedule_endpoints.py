"""
Integration tests for recurring schedule endpoints.

Tests the schedule API endpoints at /api/v1/recurring-schedules including:
- Creating schedules from rules and stored patterns
- Reading and listing schedules
- Toggling and deactivating
- "Generate Now" summaries
- Listing generated tasks
"""

from datetime import date, datetime, timezone

import pytest
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.recurring_schedule import DeactivationReason
from app.testing import create_pattern, create_schedule, create_template, get_firm_headers

BASE = "/api/v1/recurring-schedules"
MONTHLY_20 = {"kind": "monthly", "monthly_config": {"day_of_month": 20}}


@pytest.mark.integration
async def test_create_schedule_with_rule(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)

    response = await client.post(
        f"{BASE}/",
        headers=get_firm_headers(),
        json={
            "template_id": template.id,
            "client_id": 12,
            "assigned_to": [2, 3],
            "rule": MONTHLY_20,
            "start_date": "2024-03-21",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["next_generation_date"] == "2024-04-20"
    assert data["frequency_description"] == "Every 1 month(s) on day 20"
    assert data["is_active"] is True
    assert data["occurrence_count"] == 0
    assert data["assigned_to"] == [2, 3]
    assert data["deactivation_reason"] is None


@pytest.mark.integration
async def test_create_schedule_with_pattern(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)
    pattern = await create_pattern(session)

    response = await client.post(
        f"{BASE}/",
        headers=get_firm_headers(),
        json={"template_id": template.id, "pattern_id": pattern.id, "start_date": "2024-01-16"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["pattern_id"] == pattern.id
    assert data["next_generation_date"] == "2024-02-15"


@pytest.mark.integration
async def test_create_schedule_requires_rule_or_pattern(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)

    response = await client.post(f"{BASE}/", headers=get_firm_headers(), json={"template_id": template.id})

    assert response.status_code == 422


@pytest.mark.integration
async def test_create_schedule_invalid_rule(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)

    response = await client.post(
        f"{BASE}/",
        headers=get_firm_headers(),
        json={
            "template_id": template.id,
            "rule": {"kind": "quarterly", "quarterly_config": {"month_of_quarter": 4, "day_of_month": 1}},
        },
    )

    assert response.status_code == 422


@pytest.mark.integration
async def test_create_schedule_missing_template(client: AsyncClient):
    response = await client.post(
        f"{BASE}/",
        headers=get_firm_headers(),
        json={"template_id": 999, "rule": MONTHLY_20},
    )

    assert response.status_code == 404


@pytest.mark.integration
async def test_create_schedule_missing_pattern(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)

    response = await client.post(
        f"{BASE}/",
        headers=get_firm_headers(),
        json={"template_id": template.id, "pattern_id": 999},
    )

    assert response.status_code == 404


@pytest.mark.integration
async def test_list_and_read_schedules(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)
    active = await create_schedule(session, template, next_generation_date=date(2024, 2, 1))
    await create_schedule(session, template, is_active=False, next_generation_date=date(2024, 1, 1))

    listed = await client.get(f"{BASE}/", headers=get_firm_headers())
    everything = await client.get(f"{BASE}/", headers=get_firm_headers(), params={"include_inactive": True})
    single = await client.get(f"{BASE}/{active.id}", headers=get_firm_headers())
    missing = await client.get(f"{BASE}/999", headers=get_firm_headers())

    assert [item["id"] for item in listed.json()] == [active.id]
    assert len(everything.json()) == 2
    assert single.status_code == 200
    assert single.json()["rule"]["kind"] == "monthly"
    assert missing.status_code == 404


@pytest.mark.integration
async def test_toggle_schedule(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(session, template)

    paused = await client.patch(f"{BASE}/{schedule.id}", headers=get_firm_headers(), json={"is_active": False})
    resumed = await client.patch(f"{BASE}/{schedule.id}", headers=get_firm_headers(), json={"is_active": True})

    assert paused.status_code == 200
    assert paused.json()["is_active"] is False
    assert paused.json()["deactivation_reason"] == "user_disabled"
    assert resumed.json()["is_active"] is True


@pytest.mark.integration
async def test_finished_schedule_cannot_be_resumed(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(
        session,
        template,
        is_active=False,
        deactivation_reason=DeactivationReason.end_condition_met,
    )

    response = await client.patch(f"{BASE}/{schedule.id}", headers=get_firm_headers(), json={"is_active": True})

    assert response.status_code == 409


@pytest.mark.integration
async def test_deactivate_schedule(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(session, template)

    response = await client.post(f"{BASE}/{schedule.id}/deactivate", headers=get_firm_headers())
    missing = await client.post(f"{BASE}/999/deactivate", headers=get_firm_headers())

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert missing.status_code == 404


@pytest.mark.integration
async def test_generate_now(client: AsyncClient, session: AsyncSession):
    template = await create_template(session)
    retired = await create_template(session, deleted_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    healthy = await create_schedule(session, template, next_generation_date=date(2024, 1, 15))
    broken = await create_schedule(session, retired, next_generation_date=date(2024, 1, 15))

    response = await client.post(f"{BASE}/generate", headers=get_firm_headers())

    assert response.status_code == 200
    data = response.json()
    assert data["created_count"] == 1
    assert data["failed_count"] == 1
    assert data["deactivated_count"] == 0
    assert data["created"][0]["schedule_id"] == healthy.id
    assert data["created"][0]["due_date"] == "2024-01-15"
    assert data["skipped"] == [
        {
            "schedule_id": broken.id,
            "code": "not_found",
            "reason": "Task template not found",
            "detail": f"Task template {retired.id} not found",
        }
    ]

    tasks = await client.get(f"{BASE}/{healthy.id}/tasks", headers=get_firm_headers())
    assert tasks.status_code == 200
    assert [task["due_date"] for task in tasks.json()] == ["2024-01-15"]
    assert tasks.json()[0]["is_recurring"] is True


@pytest.mark.integration
async def test_generate_now_only_touches_own_firm(client: AsyncClient, session: AsyncSession):
    template = await create_template(session, firm_id=2)
    await create_schedule(session, template, next_generation_date=date(2024, 1, 15))

    response = await client.post(f"{BASE}/generate", headers=get_firm_headers(firm_id=1))

    assert response.json()["created_count"] == 0
