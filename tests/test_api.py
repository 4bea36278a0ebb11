from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from carpark.errors import InvalidConfiguration, StoreUnavailable
from carpark.ledger import ParkingLedger
from carpark.main import app, get_ledger
from carpark.models import MAX_LICENSE_LENGTH


@pytest_asyncio.fixture
async def client(ledger: ParkingLedger):
    app.dependency_overrides[get_ledger] = lambda: ledger
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://carpark.test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_inbound_outbound_round_trip(client: httpx.AsyncClient) -> None:
    response = await client.post(
        "/api/inbound", json={"license": "AB-123", "arrival": "2026-03-14T09:00:00Z"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "OK"
    record_id = body["data"]["recordID"]

    response = await client.get("/api/parked", params={"license": "AB-123"})
    assert response.json() == {"message": "OK", "data": {"parked": True}}

    response = await client.post(
        "/api/outbound", json={"recordID": record_id, "departure": "2026-03-14T10:30:00+00:00"}
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"timeParked": 5400, "fee": 11.25}

    response = await client.get("/api/parked", params={"license": "AB-123"})
    assert response.json()["data"] == {"parked": False}


@pytest.mark.asyncio
async def test_second_outbound_is_conflict(client: httpx.AsyncClient) -> None:
    record_id = (await client.post("/api/inbound", json={"license": "AB-123"})).json()["data"]["recordID"]
    await client.post("/api/outbound", json={"recordID": record_id})

    response = await client.post("/api/outbound", json={"recordID": record_id})

    assert response.status_code == 409
    assert response.json()["message"] == "AlreadyClosed"


@pytest.mark.asyncio
async def test_outbound_unknown_id_is_not_found(client: httpx.AsyncClient) -> None:
    response = await client.post("/api/outbound", json={"recordID": 777})
    assert response.status_code == 404
    assert response.json()["message"] == "NotFound"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"license": ""},
        {"license": "   "},
        {"license": "X" * (MAX_LICENSE_LENGTH + 1)},
        {"license": "AB-123", "arrival": "yesterday"},
    ],
)
async def test_inbound_rejects_malformed_body(client: httpx.AsyncClient, payload: dict) -> None:
    response = await client.post("/api/inbound", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == "InvalidInput"


@pytest.mark.asyncio
async def test_outbound_requires_record_id(client: httpx.AsyncClient) -> None:
    response = await client.post("/api/outbound", json={"license": "AB-123"})
    assert response.status_code == 400
    assert response.json()["message"] == "InvalidInput"


@pytest.mark.asyncio
async def test_fee(client: httpx.AsyncClient) -> None:
    response = await client.get("/api/fee", params={"timeParked": 1800})
    assert response.status_code == 200
    assert response.json() == {"message": "OK", "data": {"fee": 3.75}}


@pytest.mark.asyncio
@pytest.mark.parametrize("time_parked", ["soon", "-60"])
async def test_fee_rejects_bad_duration(client: httpx.AsyncClient, time_parked: str) -> None:
    response = await client.get("/api/fee", params={"timeParked": time_parked})
    assert response.status_code == 400
    assert response.json()["message"] == "InvalidInput"


@pytest.mark.asyncio
async def test_occupancy_lists_open_sessions(client: httpx.AsyncClient) -> None:
    first = (await client.post("/api/inbound", json={"license": "AB-123"})).json()["data"]["recordID"]
    await client.post("/api/inbound", json={"license": "CD-456", "arrival": "2026-03-14T09:00:00"})
    await client.post("/api/outbound", json={"recordID": first})

    response = await client.get("/api/occupancy")

    data = response.json()["data"]
    assert [session["license"] for session in data] == ["CD-456"]
    assert data[0]["arrival"] == "2026-03-14T09:00:00"
    assert data[0]["departure"] is None


@pytest.mark.asyncio
async def test_session_detail(client: httpx.AsyncClient) -> None:
    record_id = (await client.post("/api/inbound", json={"license": "AB-123"})).json()["data"]["recordID"]

    response = await client.get(f"/api/sessions/{record_id}")
    assert response.json()["data"]["id"] == record_id

    response = await client.get("/api/sessions/31337")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_store_outage_is_service_unavailable(client: httpx.AsyncClient, ledger: ParkingLedger, monkeypatch) -> None:
    async def _down():
        raise StoreUnavailable("list_open failed: database unavailable")

    monkeypatch.setattr(ledger, "current_occupancy", _down)

    response = await client.get("/api/occupancy")

    assert response.status_code == 503
    assert response.json() == {
        "message": "StoreUnavailable",
        "detail": "list_open failed: database unavailable",
    }


@pytest.mark.asyncio
async def test_misconfigured_rate_is_server_error(client: httpx.AsyncClient, ledger: ParkingLedger, monkeypatch) -> None:
    def _misconfigured(duration_seconds):
        raise InvalidConfiguration("Parking rate must be positive and finite, got 0")

    monkeypatch.setattr(ledger, "charge", _misconfigured)

    response = await client.get("/api/fee", params={"timeParked": 3600})

    assert response.status_code == 500
    assert response.json()["message"] == "InvalidConfiguration"


@pytest.mark.asyncio
async def test_duplicate_entry_refused_when_enabled(store) -> None:
    strict = ParkingLedger(store, rate_per_hour=7.50, reject_duplicate_entry=True)
    app.dependency_overrides[get_ledger] = lambda: strict
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://carpark.test") as client:
            first = await client.post("/api/inbound", json={"license": "AB-123"})
            second = await client.post("/api/inbound", json={"license": "AB-123"})
    finally:
        app.dependency_overrides.clear()

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["message"] == "AlreadyParked"
