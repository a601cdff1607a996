"""
Integration tests for the tracking log.
"""

import pytest
from parcel_backend.tests.factories import auth_headers, create_user, parcel_payload


async def _create_parcel(client, headers):
    response = await client.post("/parcels", json=parcel_payload(), headers=headers)
    return response.json()


@pytest.mark.asyncio
async def test_history_starts_with_creation(client, sender_headers):
    parcel = await _create_parcel(client, sender_headers)

    response = await client.get("/trackings", params={"tracking_id": parcel["tracking_id"]}, headers=sender_headers)

    assert response.status_code == 200
    events = response.json()
    assert len(events) == 1
    assert events[0]["status"] == "pending"
    assert events[0]["parcel_id"] == parcel["id"]


@pytest.mark.asyncio
async def test_append_tracking_event(client, sender_headers):
    parcel = await _create_parcel(client, sender_headers)

    response = await client.post(
        "/trackings",
        json={
            "tracking_id": parcel["tracking_id"],
            "parcel_id": parcel["id"],
            "status": "note",
            "message": "Receiver asked for evening delivery",
            "location": "Banani",
        },
        headers=sender_headers,
    )
    assert response.status_code == 201
    assert response.json()["updated_by"] == "sender@example.com"

    response = await client.get("/trackings", params={"tracking_id": parcel["tracking_id"]}, headers=sender_headers)
    assert [e["status"] for e in response.json()] == ["pending", "note"]


@pytest.mark.asyncio
async def test_append_with_mismatched_tracking_id(client, sender_headers):
    parcel = await _create_parcel(client, sender_headers)

    response = await client.post(
        "/trackings",
        json={"tracking_id": "PCL-WRONG", "parcel_id": parcel["id"], "status": "note", "message": "x"},
        headers=sender_headers,
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_history_hidden_from_strangers(client, db_session, sender_headers):
    parcel = await _create_parcel(client, sender_headers)
    await create_user(db_session, "stranger@example.com")

    response = await client.get(
        "/trackings", params={"tracking_id": parcel["tracking_id"]}, headers=auth_headers("stranger@example.com")
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_tracking_id(client, sender_headers, admin_headers):
    response = await client.get("/trackings", params={"tracking_id": "PCL-NOPE"}, headers=sender_headers)
    assert response.status_code == 404

    response = await client.get("/trackings", params={"tracking_id": "PCL-NOPE"}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deleted_parcel_history_visible_to_admin(client, sender_headers, admin_headers):
    parcel = await _create_parcel(client, sender_headers)
    await client.delete(f"/parcels/{parcel['id']}", headers=sender_headers)

    response = await client.get("/trackings", params={"tracking_id": parcel["tracking_id"]}, headers=sender_headers)
    assert response.status_code == 404

    response = await client.get("/trackings", params={"tracking_id": parcel["tracking_id"]}, headers=admin_headers)
    assert response.status_code == 200
    assert [e["status"] for e in response.json()] == ["pending"]
