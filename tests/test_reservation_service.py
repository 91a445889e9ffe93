import asyncio
from datetime import UTC, datetime

import pytest

from clinic_scheduler.core.errors import AmbiguousSlot, InvalidInput, SlotUnavailable
from clinic_scheduler.models import SlotStatus
from clinic_scheduler.services.reservation_service import SlotReservationService, set_slot_status
from conftest import add_slot, slot_status

START = datetime(2025, 9, 4, 22, 5, tzinfo=UTC)


@pytest.mark.asyncio
async def test_reserve_by_id(session, session_maker, catalog):
    slot = await add_slot(session, 10, START)
    reserved = await SlotReservationService(session).reserve(slot_id=slot.id)
    assert reserved.id == slot.id
    assert reserved.doctor_id == 10
    assert reserved.start_utc == START
    assert await slot_status(session_maker, slot.id) == SlotStatus.RESERVED.value


@pytest.mark.asyncio
async def test_reserve_taken_or_missing_slot(session, catalog):
    slot = await add_slot(session, 10, START, SlotStatus.RESERVED)
    service = SlotReservationService(session)
    with pytest.raises(SlotUnavailable):
        await service.reserve(slot_id=slot.id)
    with pytest.raises(SlotUnavailable):
        await service.reserve(slot_id=9999)


@pytest.mark.asyncio
async def test_reserve_requires_a_target(session, catalog):
    with pytest.raises(InvalidInput):
        await SlotReservationService(session).reserve()


@pytest.mark.asyncio
async def test_reserve_by_instant(session, catalog):
    slot = await add_slot(session, 10, START)
    reserved = await SlotReservationService(session).reserve(target_instant=START)
    assert reserved.id == slot.id


@pytest.mark.asyncio
async def test_reserve_by_instant_with_two_doctors_is_ambiguous(session, session_maker, catalog):
    a = await add_slot(session, 10, START)
    b = await add_slot(session, 20, START)
    service = SlotReservationService(session)
    with pytest.raises(AmbiguousSlot):
        await service.reserve(target_instant=START)
    # nothing was claimed
    assert await slot_status(session_maker, a.id) == SlotStatus.FREE.value
    assert await slot_status(session_maker, b.id) == SlotStatus.FREE.value
    # naming the doctor disambiguates
    reserved = await service.reserve(target_instant=START, doctor_id=20)
    assert reserved.id == b.id


@pytest.mark.asyncio
async def test_reserve_by_instant_without_free_slot(session, catalog):
    await add_slot(session, 10, START, SlotStatus.RESERVED)
    with pytest.raises(SlotUnavailable):
        await SlotReservationService(session).reserve(target_instant=START)


@pytest.mark.asyncio
@pytest.mark.parametrize("attempts", [2, 5])
async def test_concurrent_reservations_have_exactly_one_winner(session, session_maker, catalog, attempts):
    slot = await add_slot(session, 10, START)

    async def attempt():
        async with session_maker() as s:
            try:
                await SlotReservationService(s).reserve(slot_id=slot.id)
                return "won"
            except SlotUnavailable:
                return "lost"

    results = await asyncio.gather(*(attempt() for _ in range(attempts)))
    assert results.count("won") == 1
    assert results.count("lost") == attempts - 1
    assert await slot_status(session_maker, slot.id) == SlotStatus.RESERVED.value


@pytest.mark.asyncio
async def test_release_with_expected_status(session, session_maker, catalog):
    slot = await add_slot(session, 10, START)
    service = SlotReservationService(session)
    # not reserved yet, so a conditional release does nothing
    assert await service.release(slot.id, expected_status=SlotStatus.RESERVED) is False
    await service.reserve(slot_id=slot.id)
    assert await service.release(slot.id, expected_status=SlotStatus.RESERVED) is True
    assert await slot_status(session_maker, slot.id) == SlotStatus.FREE.value


@pytest.mark.asyncio
async def test_set_slot_status_compare_and_set(session, catalog):
    slot = await add_slot(session, 10, START)
    assert await set_slot_status(session, slot.id, SlotStatus.RESERVED, SlotStatus.FREE) is not None
    assert await set_slot_status(session, slot.id, SlotStatus.RESERVED, SlotStatus.FREE) is None
    await session.rollback()
