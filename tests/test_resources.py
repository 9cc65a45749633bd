"""
Tests for the machine catalogue endpoints.
"""

from datetime import time

import pytest
from httpx import AsyncClient


NEW_RESOURCE = {
    "name": "Logic Analyzer",
    "description": "16-channel logic analyzer",
    "location": "Lab 4",
    "department": "ECE",
    "specifications": {"channels": 16, "sample_rate": "500MS/s"},
}


@pytest.mark.asyncio
async def test_admin_creates_resource(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/resources/", json=NEW_RESOURCE, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Logic Analyzer"
    assert data["specifications"]["channels"] == 16
    assert data["active"] is True
    assert data["requires_training"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("headers_fixture", ["student_headers", "faculty_headers"])
async def test_non_admin_cannot_create(client: AsyncClient, request, headers_fixture):
    headers = request.getfixturevalue(headers_fixture)
    response = await client.post("/api/v1/resources/", json=NEW_RESOURCE, headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_catalogue_requires_auth(client: AsyncClient):
    response = await client.get("/api/v1/resources/")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_hides_inactive(
    client: AsyncClient, student_headers, admin_headers, resource_id, inactive_resource_id
):
    """Machines under maintenance are listed only for admins who ask."""
    response = await client.get("/api/v1/resources/", headers=student_headers)
    assert response.status_code == 200
    data = response.json()
    assert [r["id"] for r in data["resources"]] == [resource_id]
    assert data["total"] == 1
    assert data["cached"] is False

    student_all = await client.get(
        "/api/v1/resources/", params={"include_inactive": True}, headers=student_headers
    )
    assert student_all.json()["total"] == 1

    admin_all = await client.get(
        "/api/v1/resources/", params={"include_inactive": True}, headers=admin_headers
    )
    assert {r["id"] for r in admin_all.json()["resources"]} == {resource_id, inactive_resource_id}


@pytest.mark.asyncio
async def test_list_filters_and_order(client: AsyncClient, student_headers, resource_factory):
    await resource_factory(name="Spectrum Analyzer", department="ECE", location="Lab 1")
    await resource_factory(name="Function Generator", department="ECE", location="Lab 2")
    await resource_factory(name="Lathe", department="Mechanical", location="Workshop")

    ece = await client.get(
        "/api/v1/resources/", params={"department": "ECE"}, headers=student_headers
    )
    assert [r["name"] for r in ece.json()["resources"]] == ["Function Generator", "Spectrum Analyzer"]

    lab1 = await client.get(
        "/api/v1/resources/", params={"location": "Lab 1"}, headers=student_headers
    )
    assert [r["name"] for r in lab1.json()["resources"]] == ["Spectrum Analyzer"]


@pytest.mark.asyncio
async def test_get_resource(client: AsyncClient, student_headers, resource_id):
    response = await client.get(f"/api/v1/resources/{resource_id}", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Oscilloscope DSO-X"

    missing = await client.get("/api/v1/resources/9999", headers=student_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_deactivate_blocks_new_bookings(
    client: AsyncClient, admin_headers, student_headers, resource_id, tomorrow
):
    """Setting active to false puts the machine under maintenance."""
    response = await client.patch(
        f"/api/v1/resources/{resource_id}", json={"active": False}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["active"] is False
    assert response.json()["name"] == "Oscilloscope DSO-X"

    booking = await client.post(
        "/api/v1/bookings/",
        json={
            "resource_id": resource_id,
            "booking_date": tomorrow.isoformat(),
            "start_time": "09:00",
            "end_time": "10:00",
            "purpose": "Lab report",
        },
        headers=student_headers,
    )
    assert booking.status_code == 409
    assert booking.json()["detail"]["code"] == "RESOURCE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_student_cannot_update(client: AsyncClient, student_headers, resource_id):
    response = await client.patch(
        f"/api/v1/resources/{resource_id}", json={"active": False}, headers=student_headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_unused_resource(client: AsyncClient, admin_headers, student_headers, resource_id):
    response = await client.delete(f"/api/v1/resources/{resource_id}", headers=admin_headers)
    assert response.status_code == 204

    gone = await client.get(f"/api/v1/resources/{resource_id}", headers=student_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_delete_booked_resource_refused(
    client: AsyncClient, admin_headers, resource_id, booking_factory
):
    """History is kept: booked machines are deactivated, not deleted."""
    await booking_factory(resource_id, status="cancelled")
    response = await client.delete(f"/api/v1/resources/{resource_id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "RESOURCE_IN_USE"


@pytest.mark.asyncio
async def test_availability(
    client: AsyncClient, student_headers, resource_id, tomorrow, booking_factory
):
    afternoon = await booking_factory(
        resource_id, status="approved", start_time=time(14, 0), end_time=time(15, 30)
    )
    morning = await booking_factory(resource_id, start_time=time(9, 0), end_time=time(10, 0))
    await booking_factory(resource_id, status="rejected", decision_comment="Clash with course")

    response = await client.get(
        f"/api/v1/resources/{resource_id}/availability",
        params={"date": tomorrow.isoformat()},
        headers=student_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["booking_date"] == tomorrow.isoformat()
    assert [slot["booking_id"] for slot in data["occupied"]] == [morning, afternoon]
    assert data["occupied"][1]["status"] == "approved"
    assert data["occupied"][1]["end_time"] == "15:30:00"


@pytest.mark.asyncio
async def test_health_and_request_id(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == {"status": "disabled"}
    assert response.headers["X-Request-ID"] == "trace-123"
    assert "X-Response-Time" in response.headers


@pytest.mark.asyncio
async def test_cache_invalidated_after_commit(
    client: AsyncClient, admin_headers, db_session, resource_id, monkeypatch
):
    """Each write is committed before the list cache is dropped."""
    in_transaction = []

    async def record_invalidation():
        in_transaction.append(db_session.in_transaction())

    monkeypatch.setattr(
        "labbook.api.routes.resources.invalidate_resource_cache", record_invalidation
    )

    created = await client.post("/api/v1/resources/", json=NEW_RESOURCE, headers=admin_headers)
    assert created.status_code == 201
    new_id = created.json()["id"]

    updated = await client.patch(
        f"/api/v1/resources/{resource_id}", json={"location": "Lab 9"}, headers=admin_headers
    )
    assert updated.status_code == 200

    deleted = await client.delete(f"/api/v1/resources/{new_id}", headers=admin_headers)
    assert deleted.status_code == 204

    assert in_transaction == [False, False, False]
