from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy import DateTime

from clinic_scheduler.core.errors import InvalidDateFormat
from clinic_scheduler.models import Appointment, Slot, SlotStatus
from clinic_scheduler.services.slot_service import AvailabilityService
from conftest import add_slot


def utc(*args):
    return datetime(*args, tzinfo=UTC)


@pytest_asyncio.fixture
async def agenda(session, catalog):
    """Ana (10, cardiology) and Lucas (20, general practice); NOW is Monday 09:00 local."""
    return {
        "started": await add_slot(session, 10, utc(2025, 9, 1, 11, 0)),  # Mon 08:00
        "today": await add_slot(session, 10, utc(2025, 9, 1, 18, 0)),  # Mon 15:00
        "tue_9": await add_slot(session, 10, utc(2025, 9, 2, 12, 0)),
        "tue_10": await add_slot(session, 10, utc(2025, 9, 2, 13, 0)),
        "tue_11_taken": await add_slot(session, 10, utc(2025, 9, 2, 14, 0), SlotStatus.RESERVED),
        "thu": await add_slot(session, 10, utc(2025, 9, 4, 22, 5)),  # Thu 19:05
        "next_week": await add_slot(session, 10, utc(2025, 9, 10, 13, 0)),
        "lucas_tue": await add_slot(session, 20, utc(2025, 9, 2, 12, 0)),
    }


@pytest.fixture
def availability(session, config, clock):
    return AvailabilityService(session, config, clock)


@pytest.mark.asyncio
async def test_today_hides_slots_that_already_started(availability, agenda):
    slots = await availability.slots_for_doctor_on_day(10, "2025-09-01")
    assert [s.id for s in slots] == [agenda["today"].id]
    assert slots[0].local == "segunda-feira, 01/09/2025, 15:00"


@pytest.mark.asyncio
async def test_default_day_is_tomorrow_and_skips_reserved(availability, agenda):
    slots = await availability.slots_for_doctor_on_day(10)
    assert [s.id for s in slots] == [agenda["tue_9"].id, agenda["tue_10"].id]
    payload = slots[0].to_dict()
    assert payload["isoUTC"] == "2025-09-02T12:00:00Z"
    assert payload["doctorName"] == "Ana Souza"
    assert payload["durationMin"] == 30


@pytest.mark.asyncio
async def test_limit_is_applied(availability, agenda):
    slots = await availability.slots_for_doctor_on_day(10, "2025-09-02", limit=1)
    assert len(slots) == 1


@pytest.mark.asyncio
async def test_malformed_day_is_rejected(availability, agenda):
    with pytest.raises(InvalidDateFormat):
        await availability.slots_for_doctor_on_day(10, "amanhã")


@pytest.mark.asyncio
async def test_specialty_slots_by_alias(availability, agenda):
    slots = await availability.slots_for_specialty_on_day("cardiologista", "2025-09-02")
    assert {s.doctor_id for s in slots} == {10}
    assert len(slots) == 2
    general = await availability.slots_for_specialty_on_day(2, "2025-09-02")
    assert [s.id for s in general] == [agenda["lucas_tue"].id]


@pytest.mark.asyncio
async def test_weekly_agenda_keeps_empty_days(availability, agenda):
    week = await availability.weekly_agenda_for_doctor(10)
    assert week.start_day == "2025-09-01"
    assert week.total_days == 7
    assert week.doctor_name == "Ana Souza"
    by_day = {d.day: [s.id for s in d.slots] for d in week.days}
    assert list(by_day) == [
        "2025-09-01", "2025-09-02", "2025-09-03", "2025-09-04", "2025-09-05", "2025-09-06", "2025-09-07",
    ]
    assert by_day["2025-09-01"] == [agenda["today"].id]
    assert by_day["2025-09-02"] == [agenda["tue_9"].id, agenda["tue_10"].id]
    assert by_day["2025-09-03"] == []
    assert by_day["2025-09-04"] == [agenda["thu"].id]
    assert agenda["next_week"].id not in sum(by_day.values(), [])


@pytest.mark.asyncio
async def test_weekly_agenda_for_unknown_specialty(availability, agenda):
    week = await availability.weekly_agenda_for_specialty("astrologia")
    assert week.start_day is None
    assert week.total_days == 0
    assert week.days == []


@pytest.mark.asyncio
async def test_next_available_day(availability, agenda):
    day, slots = await availability.next_available_day_for_doctor(10)
    assert day == "2025-09-01"
    assert [s.id for s in slots] == [agenda["today"].id]

    day, slots = await availability.next_available_day_for_doctor(10, "2025-09-03")
    assert day == "2025-09-04"
    assert [s.id for s in slots] == [agenda["thu"].id]


@pytest.mark.asyncio
async def test_next_available_day_from_past_day_starts_now(availability, agenda):
    day, _ = await availability.next_available_day_for_doctor(10, "2025-08-01")
    assert day == "2025-09-01"


@pytest.mark.asyncio
async def test_next_available_day_none(availability, agenda):
    assert await availability.next_available_day_for_doctor(30) == (None, [])
    day, slots = await availability.next_available_day_for_specialty("clinica geral")
    assert day == "2025-09-02"
    assert [s.id for s in slots] == [agenda["lucas_tue"].id]


def test_instant_columns_are_naive_timestamps():
    for column in (Slot.__table__.c.start_utc, Appointment.__table__.c.slot_start_utc, Appointment.__table__.c.created_at):
        assert type(column.type) is DateTime
        assert column.type.timezone is False


@pytest.mark.asyncio
async def test_naive_utc_slot_is_listed_for_its_local_day(session, catalog, config, clock):
    slot = await add_slot(session, 10, utc(2025, 9, 4, 22, 5))
    slot_id = slot.id
    items = await AvailabilityService(session, config, clock).slots_for_doctor_on_day(10, "2025-09-04")
    assert [i.id for i in items] == [slot_id]
    assert items[0].start_utc == utc(2025, 9, 4, 22, 5)


@pytest.mark.asyncio
async def test_past_day_lists_nothing(session, catalog, config, clock):
    await add_slot(session, 10, utc(2025, 8, 29, 13, 0))  # last Friday
    service = AvailabilityService(session, config, clock)
    assert await service.slots_for_doctor_on_day(10, "2025-08-29") == []
