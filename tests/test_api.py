"""Tests for the escalation REST API."""
import pytest
from httpx import ASGITransport, AsyncClient

from storepulse.infrastructure.database import get_session
from storepulse.main import app


@pytest.fixture
async def client(seeded):
    """Create test client bound to the in-memory test database."""

    async def override_get_session():
        try:
            yield seeded
            await seeded.commit()
        except Exception:
            await seeded.rollback()
            raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _assign(client, review_id):
    response = await client.post(f"/escalation/reviews/{review_id}/assign")
    assert response.status_code == 200
    return response.json()["task"]


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "storepulse"


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


@pytest.mark.asyncio
async def test_assign_review(client, add_review):
    await add_review("R1", rating=2)

    task = await _assign(client, "R1")

    assert task["review_id"] == "R1"
    assert task["assigned_to_id"] == "U1"
    assert task["status"] == "PENDING"
    assert task["sla_status"] == "PENDING"
    assert task["hours_elapsed"] == 0
    assert task["deadline_tier"] == "within_24h"


@pytest.mark.asyncio
async def test_assign_positive_review_returns_null(client, add_review):
    await add_review("R1", rating=5)

    assert await _assign(client, "R1") is None


@pytest.mark.asyncio
async def test_assign_unknown_review_is_404(client):
    response = await client.post("/escalation/reviews/missing/assign")
    assert response.status_code == 404
    assert response.json()["error_type"] == "ResourceNotFoundException"


@pytest.mark.asyncio
async def test_resolve_task(client, add_review):
    await add_review("R1")
    task = await _assign(client, "R1")

    response = await client.patch(
        f"/escalation/tasks/{task['id']}/resolve",
        json={"remarks": "Apologised and exchanged the shirt"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ON_TIME"
    assert data["sla_status"] == "ON_TIME"
    assert data["remarks"] == "Apologised and exchanged the shirt"
    assert data["resolved_at"] is not None


@pytest.mark.asyncio
async def test_resolve_twice_is_409(client, add_review):
    await add_review("R1")
    task = await _assign(client, "R1")
    url = f"/escalation/tasks/{task['id']}/resolve"

    first = await client.patch(url, json={"remarks": "First fix"})
    second = await client.patch(url, json={"remarks": "Second fix"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert "already resolved" in second.json()["detail"]

    stored = await client.get(f"/escalation/tasks/{task['id']}")
    assert stored.json()["remarks"] == "First fix"


@pytest.mark.asyncio
async def test_resolve_unknown_task_is_404(client):
    response = await client.patch(
        "/escalation/tasks/missing/resolve", json={"remarks": "Done"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_resolve_with_blank_remarks_is_422(client, add_review):
    await add_review("R1")
    task = await _assign(client, "R1")

    response = await client.patch(
        f"/escalation/tasks/{task['id']}/resolve", json={"remarks": "   "}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_tasks_with_filters(client, add_review):
    await add_review("R1")
    await add_review("R2", section_id="SEC-KIDS")
    await _assign(client, "R1")
    await _assign(client, "R2")

    all_tasks = await client.get("/escalation/tasks")
    owned = await client.get("/escalation/tasks", params={"assigned_to_id": "U1"})
    resolved = await client.get("/escalation/tasks", params={"status": "ON_TIME"})

    assert all_tasks.json()["total"] == 2
    assert [t["review_id"] for t in owned.json()["items"]] == ["R1"]
    assert resolved.json()["total"] == 0


@pytest.mark.asyncio
async def test_list_tasks_rejects_unknown_status(client):
    response = await client.get("/escalation/tasks", params={"status": "DONE"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_dashboard(client, add_review):
    await add_review("R1")
    await add_review("R2")
    task = await _assign(client, "R1")
    await _assign(client, "R2")
    await client.patch(f"/escalation/tasks/{task['id']}/resolve", json={"remarks": "Fixed"})

    response = await client.get("/escalation/dashboard", params={"shop_id": "S1"})

    assert response.status_code == 200
    data = response.json()
    assert data["total_tasks"] == 2
    assert data["on_time_count"] == 1
    assert data["pending_count"] == 1
    assert data["on_time_percentage"] == 50.0


@pytest.mark.asyncio
async def test_cron_endpoints(client, add_review):
    await add_review("R1")
    await add_review("R2", rating=4)

    assignment = await client.post("/escalation/cron/assignment")
    sweep = await client.post("/escalation/cron/sla")
    logs = await client.get("/escalation/cron/logs")

    assert assignment.status_code == 200
    assert assignment.json()["status"] == "SUCCESS"
    assert assignment.json()["reviews_processed"] == 1
    assert assignment.json()["tasks_created"] == 1

    assert sweep.status_code == 200
    assert sweep.json()["tasks_inspected"] == 1

    assert logs.status_code == 200
    assert {log["job_name"] for log in logs.json()} == {
        "DAILY_TASK_ASSIGNMENT",
        "SLA_STATUS_SWEEP",
    }


@pytest.mark.asyncio
async def test_team_lead_dashboard(client, add_review):
    await add_review("R1")
    await _assign(client, "R1")

    response = await client.get("/escalation/team-leads/U1/dashboard")
    missing = await client.get("/escalation/team-leads/nobody/dashboard")

    assert response.status_code == 200
    data = response.json()
    assert data["user_name"] == "Asha"
    assert data["total_tasks"] == 1
    assert data["pending_count"] == 1
    assert [t["review_id"] for t in data["recent_tasks"]] == ["R1"]
    assert missing.status_code == 404
