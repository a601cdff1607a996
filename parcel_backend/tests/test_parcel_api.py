"""
Integration tests for parcel management.

Covers creation, ownership-scoped listing, deletion and the
assign → in_transit → delivered → cashout workflow over HTTP.
"""

import pytest
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.models.rider_enums import RiderStatus
from parcel_backend.tests.factories import (
    RIDER_EMAIL,
    SENDER_EMAIL,
    auth_headers,
    create_rider,
    create_user,
    parcel_payload,
)


async def _create_parcel(client, headers, **overrides):
    response = await client.post("/parcels", json=parcel_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_parcel(client, sender_headers):
    response = await client.post("/parcels", json=parcel_payload(), headers=sender_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["created_by"] == SENDER_EMAIL
    assert data["payment_status"] == "unpaid"
    assert data["delivery_status"] == "pending"
    assert data["cashed_out_status"] == "not_cashed_out"
    assert data["tracking_id"].startswith("PCL-")
    assert data["assigned_rider_id"] is None


@pytest.mark.asyncio
async def test_create_parcel_validation_error(client, sender_headers):
    response = await client.post("/parcels", json=parcel_payload(cost=-5), headers=sender_headers)

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_create_parcel_duplicate_tracking_id(client, sender_headers):
    await _create_parcel(client, sender_headers, tracking_id="PCL-MANUAL-1")

    response = await client.post("/parcels", json=parcel_payload(tracking_id="PCL-MANUAL-1"), headers=sender_headers)

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT_001"


@pytest.mark.asyncio
async def test_list_parcels_scoped_to_caller(client, db_session, sender_headers, admin_headers):
    await create_user(db_session, "other@example.com")
    other_headers = auth_headers("other@example.com")

    await _create_parcel(client, sender_headers, title="Mine 1")
    await _create_parcel(client, sender_headers, title="Mine 2")
    await _create_parcel(client, other_headers, title="Theirs")

    response = await client.get("/parcels", headers=sender_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    # Newest first
    assert [p["title"] for p in data["parcels"]] == ["Mine 2", "Mine 1"]

    response = await client.get("/parcels", headers=admin_headers)
    assert response.json()["total"] == 3

    response = await client.get("/parcels", params={"email": "OTHER@example.com"}, headers=admin_headers)
    assert [p["title"] for p in response.json()["parcels"]] == ["Theirs"]


@pytest.mark.asyncio
async def test_list_parcels_for_another_email_forbidden(client, sender_headers):
    response = await client.get("/parcels", params={"email": "other@example.com"}, headers=sender_headers)
    assert response.status_code == 403

    response = await client.get("/parcels/user/other@example.com", headers=sender_headers)
    assert response.status_code == 403

    response = await client.get(f"/parcels/user/{SENDER_EMAIL}", headers=sender_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_list_parcels_filters_and_pagination(client, sender_headers):
    for i in range(3):
        await _create_parcel(client, sender_headers, title=f"Parcel {i}")

    response = await client.get("/parcels", params={"page": 2, "page_size": 2}, headers=sender_headers)
    data = response.json()
    assert data["total"] == 3
    assert data["page"] == 2
    assert [p["title"] for p in data["parcels"]] == ["Parcel 0"]

    response = await client.get("/parcels", params={"payment_status": "paid"}, headers=sender_headers)
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_get_parcel_visibility(client, db_session, sender_headers):
    parcel = await _create_parcel(client, sender_headers)
    await create_user(db_session, "stranger@example.com")

    response = await client.get(f"/parcels/{parcel['id']}", headers=sender_headers)
    assert response.status_code == 200

    response = await client.get(f"/parcels/{parcel['id']}", headers=auth_headers("stranger@example.com"))
    assert response.status_code == 403

    response = await client.get("/parcels/9999", headers=sender_headers)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_delete_parcel(client, sender_headers):
    parcel = await _create_parcel(client, sender_headers)

    response = await client.delete(f"/parcels/{parcel['id']}", headers=sender_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Parcel deleted successfully", "deleted_count": 1}

    response = await client.get(f"/parcels/{parcel['id']}", headers=sender_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_assigned_parcel_conflicts(client, sender_headers, admin_headers, active_rider):
    parcel = await _create_parcel(client, sender_headers)
    await client.patch(f"/parcels/{parcel['id']}/assign", json={"rider_id": active_rider.id}, headers=admin_headers)

    response = await client.delete(f"/parcels/{parcel['id']}", headers=sender_headers)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_assign_requires_admin(client, sender_headers, active_rider):
    parcel = await _create_parcel(client, sender_headers)

    response = await client.patch(
        f"/parcels/{parcel['id']}/assign", json={"rider_id": active_rider.id}, headers=sender_headers
    )

    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_assign_inactive_rider_rejected(client, db_session, sender_headers, admin_headers):
    rider = await create_rider(db_session, email="pending.rider@example.com", status=RiderStatus.PENDING)
    parcel = await _create_parcel(client, sender_headers)

    response = await client.patch(f"/parcels/{parcel['id']}/assign", json={"rider_id": rider.id}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_RIDER_001"


@pytest.mark.asyncio
async def test_full_delivery_workflow(client, sender_headers, admin_headers, rider_headers, active_rider):
    parcel = await _create_parcel(client, sender_headers, receiver_district="dhaka")
    parcel_id = parcel["id"]

    response = await client.patch(
        f"/parcels/{parcel_id}/assign", json={"rider_id": active_rider.id}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["delivery_status"] == "rider_assigned"
    assert response.json()["assigned_rider_email"] == RIDER_EMAIL

    # Assigned rider can now see the parcel
    response = await client.get(f"/parcels/{parcel_id}", headers=rider_headers)
    assert response.status_code == 200

    response = await client.patch(
        f"/parcels/{parcel_id}/status", json={"status": "in_transit", "location": "Mirpur"}, headers=rider_headers
    )
    assert response.status_code == 200
    assert response.json()["delivery_status"] == "in_transit"

    response = await client.patch(f"/parcels/{parcel_id}/status", json={"status": "delivered"}, headers=rider_headers)
    assert response.status_code == 200
    assert response.json()["delivery_status"] == "delivered"

    response = await client.patch(f"/parcels/{parcel_id}/cashout", headers=rider_headers)
    assert response.status_code == 200
    assert response.json()["cashed_out_status"] == "cashed_out"
    assert response.json()["rider_earning"] == 800

    response = await client.patch(f"/parcels/{parcel_id}/cashout", headers=rider_headers)
    assert response.status_code == 409

    response = await client.get("/riders/earnings", headers=rider_headers)
    assert response.json()["total_earnings"] == 800

    response = await client.get("/trackings", params={"tracking_id": parcel["tracking_id"]}, headers=sender_headers)
    assert [e["status"] for e in response.json()] == ["pending", "rider_assigned", "in_transit", "delivered"]
    assert response.json()[2]["location"] == "Mirpur"


@pytest.mark.asyncio
async def test_status_update_invalid_transition(client, sender_headers, admin_headers, rider_headers, active_rider):
    parcel = await _create_parcel(client, sender_headers)
    await client.patch(f"/parcels/{parcel['id']}/assign", json={"rider_id": active_rider.id}, headers=admin_headers)

    response = await client.patch(f"/parcels/{parcel['id']}/status", json={"status": "pending"}, headers=rider_headers)

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_TRANSITION_001"


@pytest.mark.asyncio
async def test_cashout_before_delivery_rejected(client, sender_headers, admin_headers, rider_headers, active_rider):
    parcel = await _create_parcel(client, sender_headers)
    await client.patch(f"/parcels/{parcel['id']}/assign", json={"rider_id": active_rider.id}, headers=admin_headers)

    response = await client.patch(f"/parcels/{parcel['id']}/cashout", headers=rider_headers)

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_TRANSITION_001"


@pytest.mark.asyncio
async def test_other_rider_cannot_update_parcel(client, db_session, sender_headers, admin_headers, active_rider):
    await create_user(db_session, "other.rider@example.com", UserRole.RIDER)
    await create_rider(db_session, email="other.rider@example.com")
    parcel = await _create_parcel(client, sender_headers)
    await client.patch(f"/parcels/{parcel['id']}/assign", json={"rider_id": active_rider.id}, headers=admin_headers)

    response = await client.patch(
        f"/parcels/{parcel['id']}/status",
        json={"status": "in_transit"},
        headers=auth_headers("other.rider@example.com"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_sender_cannot_update_status(client, sender_headers):
    parcel = await _create_parcel(client, sender_headers)

    response = await client.patch(f"/parcels/{parcel['id']}/status", json={"status": "in_transit"}, headers=sender_headers)

    assert response.status_code == 403
