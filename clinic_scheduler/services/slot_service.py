import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import StoreFailure
from clinic_scheduler.core.timezones import (
    DayRange,
    as_aware_utc,
    day_range_for,
    format_local,
    local_ymd,
    next_day_range_utc,
    to_naive_utc,
    utc_now,
    week_range_until_sunday,
)
from clinic_scheduler.models.catalog import Doctor
from clinic_scheduler.models.slot import Slot, SlotStatus
from clinic_scheduler.services.catalog_service import doctors_for_specialties, get_doctor
from clinic_scheduler.services.specialty_resolver import SpecialtyResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotItem:
    id: int
    start_utc: datetime
    local: str
    doctor_id: int
    doctor_name: str | None
    duration_min: int | None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "isoUTC": self.start_utc.isoformat().replace("+00:00", "Z"),
            "local": self.local,
            "doctorId": self.doctor_id,
            "doctorName": self.doctor_name,
            "durationMin": self.duration_min,
        }


@dataclass
class AgendaDay:
    day: str
    slots: list[SlotItem] = field(default_factory=list)


@dataclass
class WeeklyAgenda:
    start_day: str | None
    total_days: int
    days: list[AgendaDay] = field(default_factory=list)
    doctor_name: str | None = None


def clamp_limit(requested: int | None, default: int, maximum: int) -> int:
    if not requested or requested < 1:
        return default
    return min(int(requested), maximum)


async def get_free_slots(
    session: AsyncSession,
    doctor_ids: Sequence[int],
    start_inclusive: datetime,
    end_exclusive: datetime | None = None,
    limit: int | None = None,
) -> list[tuple[Slot, str]]:
    """Free slots of the given doctors starting in ``[start, end)``, ascending,
    each paired with the doctor's name. Read-only."""
    if not doctor_ids:
        return []
    q = (
        select(Slot, Doctor.name)
        .join(Doctor, Doctor.id == Slot.doctor_id)
        .where(
            Slot.doctor_id.in_(list(doctor_ids)),
            Slot.status == SlotStatus.FREE.value,
            Slot.start_utc >= to_naive_utc(start_inclusive),
        )
        .order_by(Slot.start_utc, Slot.id)
    )
    if end_exclusive is not None:
        q = q.where(Slot.start_utc < to_naive_utc(end_exclusive))
    if limit is not None:
        q = q.limit(limit)
    try:
        result = await session.execute(q)
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar horários disponíveis.", detail=str(e)) from e
    return [(row[0], row[1]) for row in result.all()]


class AvailabilityService:
    """Free-slot listings by doctor or specialty, in the clinic's civil days.

    Slots that already started are never listed: every window starts at
    ``max(start, now)``. Today keeps only what is left of it and a past day
    is empty.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: ClinicConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.config = config
        self.clock = clock
        self.specialties = SpecialtyResolver(session, config)

    def _item(self, slot: Slot, doctor_name: str | None) -> SlotItem:
        start = as_aware_utc(slot.start_utc)
        return SlotItem(
            id=slot.id,
            start_utc=start,
            local=format_local(start, self.config.tz, self.config.locale),
            doctor_id=slot.doctor_id,
            doctor_name=doctor_name,
            duration_min=slot.duration_min,
        )

    def _day_range(self, day: str | date | None, now: datetime) -> DayRange:
        if day:
            return day_range_for(self.config.tz, day)
        return next_day_range_utc(self.config.tz, now)

    async def _doctor_ids_for_specialty(self, specialty: int | str | None) -> list[int]:
        specialty_ids = await self.specialties.resolve_ids(specialty)
        if not specialty_ids:
            return []
        return [d.id for d in await doctors_for_specialties(self.session, specialty_ids)]

    async def _slots_in_day(
        self, doctor_ids: Sequence[int], day_range: DayRange, now: datetime, limit: int | None = None
    ) -> list[SlotItem]:
        start = max(day_range.start_utc, now)
        rows = await get_free_slots(self.session, doctor_ids, start, day_range.end_utc, limit)
        return [self._item(slot, name) for slot, name in rows]

    async def slots_for_doctor_on_day(
        self, doctor_id: int, day: str | date | None = None, limit: int | None = None
    ) -> list[SlotItem]:
        """Free slots of one doctor on ``day`` (default: tomorrow)."""
        now = self.clock()
        limit = clamp_limit(limit, self.config.doctor_slots_default_limit, self.config.doctor_slots_max_limit)
        return await self._slots_in_day([doctor_id], self._day_range(day, now), now, limit)

    async def slots_for_specialty_on_day(
        self, specialty: int | str | None, day: str | date | None = None, limit: int | None = None
    ) -> list[SlotItem]:
        """Free slots across every doctor of the specialty on ``day`` (default: tomorrow)."""
        now = self.clock()
        limit = clamp_limit(limit, self.config.specialty_slots_default_limit, self.config.specialty_slots_max_limit)
        day_range = self._day_range(day, now)
        doctor_ids = await self._doctor_ids_for_specialty(specialty)
        return await self._slots_in_day(doctor_ids, day_range, now, limit)

    async def _weekly_agenda(self, doctor_ids: Sequence[int], now: datetime) -> WeeklyAgenda:
        week = week_range_until_sunday(self.config.tz, now)
        rows = await get_free_slots(self.session, doctor_ids, max(week.start_utc, now), week.end_utc)
        by_day: dict[str, list[SlotItem]] = {}
        for slot, name in rows:
            item = self._item(slot, name)
            by_day.setdefault(local_ymd(item.start_utc, self.config.tz), []).append(item)
        return WeeklyAgenda(
            start_day=week.start_ymd,
            total_days=week.total_days,
            days=[AgendaDay(day=d, slots=by_day.get(d, [])) for d in week.days],
        )

    async def weekly_agenda_for_doctor(self, doctor_id: int) -> WeeklyAgenda:
        """Today through Sunday, one entry per civil day even when it has no slots."""
        agenda = await self._weekly_agenda([doctor_id], self.clock())
        doctor = await get_doctor(self.session, doctor_id)
        agenda.doctor_name = doctor.name if doctor else None
        return agenda

    async def weekly_agenda_for_specialty(self, specialty: int | str | None) -> WeeklyAgenda:
        doctor_ids = await self._doctor_ids_for_specialty(specialty)
        if not doctor_ids:
            return WeeklyAgenda(start_day=None, total_days=0)
        return await self._weekly_agenda(doctor_ids, self.clock())

    async def _next_available_day(
        self, doctor_ids: Sequence[int], from_day: str | date | None
    ) -> tuple[str | None, list[SlotItem]]:
        now = self.clock()
        start = now
        if from_day:
            start = max(day_range_for(self.config.tz, from_day).start_utc, now)
        first = await get_free_slots(self.session, doctor_ids, start, limit=1)
        if not first:
            logger.debug("No free slot from %s for doctors %s", start, list(doctor_ids))
            return None, []
        day = local_ymd(as_aware_utc(first[0][0].start_utc), self.config.tz)
        slots = await self._slots_in_day(doctor_ids, day_range_for(self.config.tz, day), now)
        return day, slots

    async def next_available_day_for_doctor(
        self, doctor_id: int, from_day: str | date | None = None
    ) -> tuple[str | None, list[SlotItem]]:
        """Civil day of the earliest free slot at or after ``from_day`` (default: now),
        with every free slot on that day."""
        return await self._next_available_day([doctor_id], from_day)

    async def next_available_day_for_specialty(
        self, specialty: int | str | None, from_day: str | date | None = None
    ) -> tuple[str | None, list[SlotItem]]:
        doctor_ids = await self._doctor_ids_for_specialty(specialty)
        if not doctor_ids:
            return None, []
        return await self._next_available_day(doctor_ids, from_day)
