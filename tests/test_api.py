from datetime import UTC, datetime

import httpx
import pytest
import pytest_asyncio

from clinic_scheduler.api.deps import get_clock, get_session
from clinic_scheduler.main import app
from clinic_scheduler.services.tools import build_registry
from conftest import add_slot, fixed_clock

S1_START = datetime(2025, 9, 4, 22, 5, tzinfo=UTC)

BOOKING = {
    "name": "Maria Oliveira",
    "cpf": "52998224725",
    "birthdate": "15/03/1990",
    "specialty": "Cardiologia",
    "region": "Centro",
    "phone": "(11) 91234-5678",
    "email": "maria@example.com",
    "desiredDate": "04/09/2025 19:05",
}


@pytest_asyncio.fixture
async def client(session_maker, catalog):
    async def override_session():
        async with session_maker() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: fixed_clock()
    # lifespan does not run under ASGITransport
    app.state.tool_registry = build_registry()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_tool_declarations(client):
    response = await client.get("/api/v1/tools")
    assert response.status_code == 200
    assert len(response.json()) == 12


@pytest.mark.asyncio
async def test_unknown_tool_is_404(client):
    response = await client.post("/api/v1/tools/deleteEverything", json={})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_call_tool(client):
    response = await client.post("/api/v1/tools/listSpecialties", json={})
    assert response.status_code == 200
    assert response.json()["specialties"] == ["Cardiologia", "Clínica Geral", "Dermatologia"]

    response = await client.post("/api/v1/tools/validateDateTime", json={"dateText": "ontem"})
    assert response.status_code == 200
    assert response.json()["ok"] is False


@pytest.mark.asyncio
async def test_doctor_slots_route(client, session):
    slot = await add_slot(session, 10, S1_START)
    response = await client.get("/api/v1/slots/doctors/10", params={"day": "2025-09-04"})
    assert response.status_code == 200
    body = response.json()
    assert body["day"] == "2025-09-04"
    assert [s["id"] for s in body["slots"]] == [slot.id]

    response = await client.get("/api/v1/slots/doctors/10", params={"day": "quinta"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_specialty_slots_route(client, session):
    await add_slot(session, 10, S1_START)
    response = await client.get("/api/v1/slots/specialties", params={"specialty_name": "cardiologista", "day": "2025-09-04"})
    assert response.status_code == 200
    assert len(response.json()["slots"]) == 1

    response = await client.get("/api/v1/slots/specialties")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_book_and_cancel_routes(client, session):
    slot = await add_slot(session, 10, S1_START)

    response = await client.post("/api/v1/appointments", json=BOOKING)
    assert response.status_code == 201
    appointment_id = response.json()["id"]
    assert response.json()["summary"]["slotId"] == slot.id

    response = await client.post("/api/v1/appointments", json=BOOKING)
    assert response.status_code == 409

    for _ in range(2):
        response = await client.delete(f"/api/v1/appointments/{appointment_id}")
        assert response.status_code == 200
        assert response.json() == {"id": appointment_id, "freed_slot_id": slot.id}

    response = await client.delete("/api/v1/appointments/424242")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_book_route_rejects_bad_cpf(client, session):
    await add_slot(session, 10, S1_START)
    response = await client.post("/api/v1/appointments", json={**BOOKING, "cpf": "11111111111"})
    assert response.status_code == 400
    assert "CPF" in response.json()["detail"]
