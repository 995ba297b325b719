"""
Integration tests for operator vehicle and trip management.
"""

import pytest
from datetime import timedelta


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def registered_vehicle(client, operator_token):
    token, _ = operator_token
    response = await client.post(
        "/v1/operator/vehicles",
        json={"registration_number": "SYL-KHA-14-0091", "name": "Shyamoli", "seat_count": 40},
        headers=auth(token),
    )
    assert response.status_code == 201
    return response.json()


def trip_payload(vehicle_id, now, **overrides):
    payload = {
        "vehicle_id": str(vehicle_id),
        "origin": "Dhaka",
        "destination": "Sylhet",
        "departure_time": (now + timedelta(hours=6)).isoformat().replace("+00:00", "Z"),
        "arrival_time": (now + timedelta(hours=12)).isoformat(),
        "fare": 1200,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_trip_classifies_status(client, operator_token, registered_vehicle, now):
    token, user_id = operator_token
    
    response = await client.post(
        "/v1/operator/trips", json=trip_payload(registered_vehicle["id"], now), headers=auth(token)
    )
    
    assert response.status_code == 201
    data = response.json()
    assert data["organizer_id"] == user_id
    assert data["status"] == "upcoming"
    assert data["vehicle_id"] == str(registered_vehicle["id"])


@pytest.mark.asyncio
async def test_created_trip_is_available(client, operator_token, registered_vehicle, now):
    token, _ = operator_token
    await client.post("/v1/operator/trips", json=trip_payload(registered_vehicle["id"], now), headers=auth(token))
    
    response = await client.get("/v1/trips/available", params={"origin": "dhaka", "destination": "SYLHET"})
    
    assert len(response.json()) == 1
    assert response.json()[0]["bus_details"]["name"] == "Shyamoli"


@pytest.mark.asyncio
async def test_create_trip_with_reversed_window_is_invalid(client, operator_token, registered_vehicle, now):
    token, _ = operator_token
    payload = trip_payload(
        registered_vehicle["id"], now,
        departure_time=(now + timedelta(hours=8)).isoformat(),
        arrival_time=(now + timedelta(hours=2)).isoformat(),
    )
    
    response = await client.post("/v1/operator/trips", json=payload, headers=auth(token))
    
    assert response.status_code == 201
    assert response.json()["status"] == "invalid"


@pytest.mark.asyncio
@pytest.mark.parametrize("vehicle_ref", ["bus-abc", "²"])
async def test_create_trip_with_malformed_vehicle_reference(client, operator_token, now, vehicle_ref):
    token, _ = operator_token
    
    response = await client.post("/v1/operator/trips", json=trip_payload(vehicle_ref, now), headers=auth(token))
    
    assert response.status_code == 422
    assert response.json()["error"] == "ReferenceCoercionError"


@pytest.mark.asyncio
async def test_create_trip_on_foreign_vehicle_is_forbidden(client, operator2_token, registered_vehicle, now):
    token, _ = operator2_token
    
    response = await client.post(
        "/v1/operator/trips", json=trip_payload(registered_vehicle["id"], now), headers=auth(token)
    )
    
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_trip_rejects_bad_timestamp(client, operator_token, registered_vehicle, now):
    token, _ = operator_token
    payload = trip_payload(registered_vehicle["id"], now, departure_time="soon")
    
    response = await client.post("/v1/operator/trips", json=payload, headers=auth(token))
    
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_patch_reschedule_rederives_status(client, operator_token, registered_vehicle, now):
    token, _ = operator_token
    created = (await client.post(
        "/v1/operator/trips", json=trip_payload(registered_vehicle["id"], now), headers=auth(token)
    )).json()
    
    response = await client.patch(
        f"/v1/operator/trips/{created['id']}",
        json={"departure_time": (now - timedelta(hours=1)).isoformat()},
        headers=auth(token),
    )
    
    assert response.status_code == 200
    assert response.json()["status"] == "active"


@pytest.mark.asyncio
async def test_patch_other_fields_keeps_status(client, operator_token, registered_vehicle, now):
    token, _ = operator_token
    created = (await client.post(
        "/v1/operator/trips", json=trip_payload(registered_vehicle["id"], now), headers=auth(token)
    )).json()
    
    response = await client.patch(
        f"/v1/operator/trips/{created['id']}",
        json={"destination": "Moulvibazar", "fare": 900},
        headers=auth(token),
    )
    
    data = response.json()
    assert data["destination"] == "Moulvibazar"
    assert data["fare"] == 900
    assert data["status"] == "upcoming"


@pytest.mark.asyncio
async def test_other_operator_cannot_read_or_edit_trip(client, operator_token, operator2_token, registered_vehicle, now):
    token, _ = operator_token
    other_token, _ = operator2_token
    created = (await client.post(
        "/v1/operator/trips", json=trip_payload(registered_vehicle["id"], now), headers=auth(token)
    )).json()
    
    read = await client.get(f"/v1/operator/trips/{created['id']}", headers=auth(other_token))
    edit = await client.patch(
        f"/v1/operator/trips/{created['id']}", json={"fare": 1}, headers=auth(other_token)
    )
    
    assert read.status_code == 403
    assert edit.status_code == 403


@pytest.mark.asyncio
async def test_list_own_trips(client, operator_token, operator2_token, registered_vehicle, now):
    token, _ = operator_token
    other_token, _ = operator2_token
    for offset in (9, 3):
        await client.post(
            "/v1/operator/trips",
            json=trip_payload(
                registered_vehicle["id"], now,
                departure_time=(now + timedelta(hours=offset)).isoformat(),
                arrival_time=(now + timedelta(hours=offset + 2)).isoformat(),
            ),
            headers=auth(token),
        )
    
    own = await client.get("/v1/operator/trips", headers=auth(token))
    other = await client.get("/v1/operator/trips", headers=auth(other_token))
    
    departures = [t["departure_time"] for t in own.json()]
    assert len(departures) == 2
    assert departures == sorted(departures)
    assert other.json() == []


@pytest.mark.asyncio
async def test_missing_trip_is_not_found(client, operator_token):
    token, _ = operator_token
    
    response = await client.get("/v1/operator/trips/4242", headers=auth(token))
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_duplicate_vehicle_registration_conflicts(client, operator_token, registered_vehicle):
    token, _ = operator_token
    
    response = await client.post(
        "/v1/operator/vehicles",
        json={"registration_number": registered_vehicle["registration_number"]},
        headers=auth(token),
    )
    
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_customer_cannot_post_trips(client, now):
    from tickto.app.core.jwt import create_access_token
    token = create_access_token({"sub": "rider", "user_id": 7, "role": "CUSTOMER"})
    
    response = await client.post("/v1/operator/trips", json=trip_payload(1, now), headers=auth(token))
    
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_operator_endpoints_require_token(client, now):
    response = await client.get("/v1/operator/trips")
    
    assert response.status_code in (401, 403)
