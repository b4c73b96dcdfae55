"""
Tests for department, worker, user, notification and analytics endpoints.
"""
import uuid

import pytest

from civicdesk.services.complaints import ComplaintService

from conftest import actor, as_user


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_magistrate_creates_department_with_head(client, db_session, sanitation):
    from conftest import make_user
    from civicdesk.models.user import Role

    new_head = await make_user(db_session, Role.DEPARTMENT_HEAD, "Water Head")
    resp = await client.post(
        "/api/v1/departments",
        json={
            "name": "Water & Sewerage Board",
            "name_local": "जल एवं सीवरेज बोर्ड",
            "head_id": str(new_head.id),
            "routing_priority": 40,
            "categories": ["Drainage & Sewage", " Drainage & Sewage "],
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["categories"] == ["Drainage & Sewage"]
    assert body["head_id"] == str(new_head.id)

    await db_session.refresh(new_head)
    assert str(new_head.department_id) == body["id"]

    resp = await client.get("/api/v1/departments")
    assert [d["name"] for d in resp.json()] == ["Sanitation Department", "Water & Sewerage Board"]


@pytest.mark.asyncio
async def test_duplicate_department_name_conflicts(client, sanitation):
    resp = await client.post(
        "/api/v1/departments",
        json={"name": "Sanitation Department", "name_local": "स्वच्छता विभाग"},
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_department_head_cannot_manage_departments(client, head, sanitation):
    resp = await client.put(
        f"/api/v1/departments/{sanitation.id}", json={"status": "inactive"}, headers=as_user(head)
    )
    assert resp.status_code == 403

    resp = await client.get("/api/v1/departments", headers=as_user(head))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_update_department_routing(client, sanitation):
    resp = await client.put(
        f"/api/v1/departments/{sanitation.id}",
        json={"categories": ["Garbage & Waste", "Pollution"], "routing_priority": 5},
    )
    assert resp.status_code == 200
    assert resp.json()["categories"] == ["Garbage & Waste", "Pollution"]
    assert resp.json()["routing_priority"] == 5

    resp = await client.put(f"/api/v1/departments/{sanitation.id}", json={"status": "closed"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_appointing_non_head_is_rejected(client, sanitation, citizen):
    resp = await client.put(
        f"/api/v1/departments/{sanitation.id}", json={"head_id": str(citizen.id)}
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_head_lists_own_workers(client, head, worker, roads_head):
    resp = await client.get("/api/v1/workers", headers=as_user(head))
    assert resp.status_code == 200
    assert [w["user_id"] for w in resp.json()] == [str(worker.id)]

    resp = await client.get("/api/v1/workers", headers=as_user(roads_head))
    assert resp.json() == []


@pytest.mark.asyncio
async def test_upsert_worker_profile(client, worker):
    resp = await client.post(
        "/api/v1/workers",
        json={"user_id": str(worker.id), "specializations": ["Drainage & Sewage", " "]},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["specializations"] == ["Drainage & Sewage"]
    assert resp.json()["total_assigned"] == 0


@pytest.mark.asyncio
async def test_upsert_rejects_non_worker(client, citizen):
    resp = await client.post("/api/v1/workers", json={"user_id": str(citizen.id)})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_worker_updates_own_status(client, worker, second_worker):
    resp = await client.patch(
        f"/api/v1/workers/{worker.id}/status",
        json={"current_status": "busy", "latitude": 25.31, "longitude": 82.97},
        headers=as_user(worker),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["current_status"] == "busy"
    assert body["location_lat"] == 25.31
    assert body["last_active"] is not None

    resp = await client.patch(
        f"/api/v1/workers/{second_worker.id}/status",
        json={"current_status": "offline"},
        headers=as_user(worker),
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_worker_status_rejects_bad_coordinates(client, worker):
    resp = await client.patch(
        f"/api/v1/workers/{worker.id}/status",
        json={"latitude": 120, "longitude": 10},
        headers=as_user(worker),
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_me(client, citizen):
    resp = await client.get("/api/v1/users/me", headers=as_user(citizen))
    assert resp.status_code == 200
    assert resp.json()["role"] == "citizen"
    assert resp.json()["email"] == citizen.email


@pytest.mark.asyncio
async def test_list_users_paginated(client, citizen, other_citizen):
    resp = await client.get("/api/v1/users", params={"page_size": 2})
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 3
    assert data["pages"] == 2
    assert len(data["items"]) == 2

    resp = await client.get("/api/v1/users", params={"role": "citizen"})
    assert resp.json()["total"] == 2


@pytest.mark.asyncio
async def test_citizen_cannot_list_users(client, citizen):
    resp = await client.get("/api/v1/users", headers=as_user(citizen))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_unknown_dev_user_is_401(client):
    resp = await client.get("/api/v1/users/me", headers={"X-Dev-User-ID": str(uuid.uuid4())})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Notifications & analytics
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_notifications_inbox(client, db_session, vocabulary, citizen, magistrate, worker):
    service = ComplaintService(db_session, vocabulary)
    complaint = await service.create_complaint(
        actor(citizen), categories=["Garbage & Waste"], latitude=25.3, longitude=83.0,
        evidence_ref="uploads/x.jpg",
    )
    await service.assign_worker(actor(magistrate), complaint.id, worker.id)

    resp = await client.get("/api/v1/notifications", headers=as_user(worker))
    items = resp.json()
    assert len(items) == 1
    assert items[0]["type"] == "assignment"
    assert items[0]["is_read"] is False

    resp = await client.patch(
        f"/api/v1/notifications/{items[0]['id']}/read", headers=as_user(citizen)
    )
    assert resp.status_code == 404

    resp = await client.patch(f"/api/v1/notifications/{items[0]['id']}/read", headers=as_user(worker))
    assert resp.status_code == 200
    assert resp.json()["is_read"] is True

    resp = await client.get("/api/v1/notifications", params={"unread_only": True}, headers=as_user(worker))
    assert resp.json() == []


@pytest.mark.asyncio
async def test_analytics_payloads_are_camel_case(client, head, worker):
    resp = await client.get("/api/v1/analytics/dashboard", headers=as_user(head))
    assert resp.status_code == 200
    data = resp.json()
    assert data["totalComplaints"] == 0
    assert data["avgResolutionDays"] == 0.0
    assert len(data["hourlyDistribution"]) == 24

    resp = await client.get("/api/v1/analytics/departments")
    names = [row["name"] for row in resp.json()]
    assert names[-1] == "Unrouted"
    assert "resolvedComplaints" in resp.json()[0]

    resp = await client.get("/api/v1/analytics/workers", headers=as_user(head))
    assert resp.json()[0]["workerId"] == str(worker.id)


@pytest.mark.asyncio
async def test_worker_cannot_view_analytics(client, worker):
    resp = await client.get("/api/v1/analytics/dashboard", headers=as_user(worker))
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_health_reports_database(client, vocabulary, tmp_path):
    from civicdesk.core.db import Database
    from civicdesk.main import app

    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'health.db'}")
    original = app.state.database
    app.state.database = database
    try:
        resp = await client.get("/health")
        assert resp.json()["db"] == "error"
        assert resp.json()["classifier"] == "disabled"

        await database.connect()
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["db"] == "ok"
        assert resp.json()["vocabulary_version"] == vocabulary.version
    finally:
        await database.disconnect()
        app.state.database = original
