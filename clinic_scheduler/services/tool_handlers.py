"""
Handlers for the scheduling tools.

Each handler receives its already-validated argument model and a ToolContext
and returns the JSON-ready result. Handlers raise SchedulingError subclasses
for expected failures; the registry turns those into ``{ok: false, message}``.
"""
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import InvalidInput
from clinic_scheduler.core.timezones import utc_now
from clinic_scheduler.services.appointment_service import AppointmentCoordinator
from clinic_scheduler.services.catalog_service import doctors_for_specialties, list_doctors, list_specialty_names
from clinic_scheduler.services.doctor_resolver import DoctorResolver
from clinic_scheduler.services.email_service import send_appointment_confirmation_email
from clinic_scheduler.services.normalizers import (
    BirthdateNormalizer,
    DateTimeNormalizer,
    PtBrBirthdateNormalizer,
    PtBrDateTimeNormalizer,
    validate_date_time,
)
from clinic_scheduler.services.slot_service import AvailabilityService, WeeklyAgenda, clamp_limit
from clinic_scheduler.services.specialty_resolver import SpecialtyResolver
from clinic_scheduler.services.tool_schemas import (
    BookAppointmentArgs,
    CancelAppointmentArgs,
    ListDoctorsArgs,
    ListDoctorsBySpecialtyArgs,
    ListDoctorSlotsArgs,
    ListSpecialtiesArgs,
    ListSpecialtySlotsArgs,
    NextAvailableDoctorDayArgs,
    NextAvailableSpecialtyDayArgs,
    SpecialtyRef,
    ValidateDateTimeArgs,
    WeeklyDoctorAgendaArgs,
    WeeklySpecialtyAgendaArgs,
)


@dataclass
class ToolContext:
    session: AsyncSession
    config: ClinicConfig
    clock: Callable[[], datetime] = utc_now
    datetime_normalizer: DateTimeNormalizer | None = None
    birthdate_normalizer: BirthdateNormalizer | None = None
    # set by the HTTP layer; confirmation email is skipped without it
    background: BackgroundTasks | None = None

    def __post_init__(self):
        if self.datetime_normalizer is None:
            self.datetime_normalizer = PtBrDateTimeNormalizer(self.clock)
        if self.birthdate_normalizer is None:
            self.birthdate_normalizer = PtBrBirthdateNormalizer(self.clock, self.config.tz)

    def availability(self) -> AvailabilityService:
        return AvailabilityService(self.session, self.config, self.clock)

    def coordinator(self) -> AppointmentCoordinator:
        return AppointmentCoordinator(
            self.session,
            self.config,
            datetime_normalizer=self.datetime_normalizer,
            birthdate_normalizer=self.birthdate_normalizer,
            clock=self.clock,
        )


def _require_specialty(args: SpecialtyRef) -> int | str:
    if args.ref is None:
        raise InvalidInput("Informe a especialidade (specialtyId ou specialtyName).")
    return args.ref


def _agenda_payload(agenda: WeeklyAgenda, with_doctor: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ok": True,
        "startDay": agenda.start_day,
        "totalDays": agenda.total_days,
        "agenda": [{"day": d.day, "slots": [s.to_dict() for s in d.slots]} for d in agenda.days],
    }
    if with_doctor:
        payload["doctorName"] = agenda.doctor_name
    return payload


async def validate_date_time_handler(args: ValidateDateTimeArgs, ctx: ToolContext) -> dict[str, Any]:
    when = await validate_date_time(ctx.datetime_normalizer, args.date_text, ctx.config.tz, ctx.clock())
    return {
        "ok": True,
        "isoUTC": when.iso_utc.isoformat().replace("+00:00", "Z"),
        "ymdLocal": when.ymd_local,
        "hasTime": when.has_time,
    }


async def book_appointment_handler(args: BookAppointmentArgs, ctx: ToolContext) -> dict[str, Any]:
    result = await ctx.coordinator().book(args)
    summary = result.summary
    if ctx.background is not None:
        ctx.background.add_task(
            send_appointment_confirmation_email,
            to_email=summary["email"],
            recipient_name=summary["name"],
            slot_local=summary["local"],
            duration_minutes=summary["durationMin"],
            specialty=summary["specialty"],
        )
    return {
        "ok": True,
        "id": result.id,
        "summary": summary,
        "message": f"Consulta agendada para {summary['local']}.",
    }


async def list_specialties_handler(args: ListSpecialtiesArgs, ctx: ToolContext) -> dict[str, Any]:
    names = await list_specialty_names(ctx.session)
    if not names:
        return {"ok": False, "message": "Nenhuma especialidade cadastrada."}
    return {"ok": True, "specialties": names}


async def list_doctors_handler(args: ListDoctorsArgs, ctx: ToolContext) -> dict[str, Any]:
    limit = clamp_limit(args.limit, ctx.config.doctors_default_limit, ctx.config.doctors_max_limit)
    if args.search:
        resolution = await DoctorResolver(ctx.session, ctx.config).resolve(args.search, limit)
        return {
            "ok": True,
            "doctors": [
                {"id": c.id, "name": c.name, "specialtyId": c.specialty_id, "score": round(c.score, 3)}
                for c in resolution.candidates
            ],
            "hasMore": resolution.has_more,
            "ambiguous": resolution.ambiguous,
            "resolvedId": resolution.resolved_id,
            "resolvedBy": resolution.resolved_by,
            "confidence": resolution.confidence,
        }
    # one extra row tells whether there is another page
    doctors = await list_doctors(ctx.session, limit + 1)
    return {
        "ok": True,
        "doctors": [{"id": d.id, "name": d.name, "specialtyId": d.specialty_id} for d in doctors[:limit]],
        "hasMore": len(doctors) > limit,
    }


async def list_doctors_by_specialty_handler(args: ListDoctorsBySpecialtyArgs, ctx: ToolContext) -> dict[str, Any]:
    ref = _require_specialty(args)
    limit = clamp_limit(args.limit, ctx.config.doctors_default_limit, ctx.config.doctors_max_limit)
    specialty_ids = await SpecialtyResolver(ctx.session, ctx.config).resolve_ids(ref)
    doctors = await doctors_for_specialties(ctx.session, specialty_ids, limit)
    return {"ok": True, "doctors": [{"id": d.id, "name": d.name, "specialtyId": d.specialty_id} for d in doctors]}


async def list_doctor_slots_handler(args: ListDoctorSlotsArgs, ctx: ToolContext) -> dict[str, Any]:
    """Free slots of one doctor on ``day`` (default tomorrow).

    Slots that already started are never listed, so today only shows what is
    left of it and a past day comes back empty.
    """
    slots = await ctx.availability().slots_for_doctor_on_day(args.doctor_id, args.day, args.limit)
    return {"ok": True, "slots": [s.to_dict() for s in slots]}


async def list_specialty_slots_handler(args: ListSpecialtySlotsArgs, ctx: ToolContext) -> dict[str, Any]:
    """Same listing across every doctor of the specialty; a past day comes back empty."""
    ref = _require_specialty(args)
    slots = await ctx.availability().slots_for_specialty_on_day(ref, args.day, args.limit)
    return {"ok": True, "slots": [s.to_dict() for s in slots]}


async def weekly_doctor_agenda_handler(args: WeeklyDoctorAgendaArgs, ctx: ToolContext) -> dict[str, Any]:
    agenda = await ctx.availability().weekly_agenda_for_doctor(args.doctor_id)
    return _agenda_payload(agenda, with_doctor=True)


async def weekly_specialty_agenda_handler(args: WeeklySpecialtyAgendaArgs, ctx: ToolContext) -> dict[str, Any]:
    agenda = await ctx.availability().weekly_agenda_for_specialty(_require_specialty(args))
    return _agenda_payload(agenda)


async def next_available_doctor_day_handler(args: NextAvailableDoctorDayArgs, ctx: ToolContext) -> dict[str, Any]:
    day, slots = await ctx.availability().next_available_day_for_doctor(args.doctor_id, args.from_day)
    return {"ok": True, "day": day, "slots": [s.to_dict() for s in slots]}


async def next_available_specialty_day_handler(
    args: NextAvailableSpecialtyDayArgs, ctx: ToolContext
) -> dict[str, Any]:
    ref = _require_specialty(args)
    day, slots = await ctx.availability().next_available_day_for_specialty(ref, args.from_day)
    return {"ok": True, "day": day, "slots": [s.to_dict() for s in slots]}


async def cancel_appointment_handler(args: CancelAppointmentArgs, ctx: ToolContext) -> dict[str, Any]:
    result = await ctx.coordinator().cancel(args.appointment_id)
    return {"ok": True, "id": result.id, "freedSlotId": result.freed_slot_id}


HANDLERS: dict[str, Callable] = {
    "validateDateTime": validate_date_time_handler,
    "bookAppointment": book_appointment_handler,
    "listSpecialties": list_specialties_handler,
    "listDoctors": list_doctors_handler,
    "listDoctorsBySpecialty": list_doctors_by_specialty_handler,
    "listDoctorSlots": list_doctor_slots_handler,
    "listSpecialtySlots": list_specialty_slots_handler,
    "weeklyDoctorAgenda": weekly_doctor_agenda_handler,
    "weeklySpecialtyAgenda": weekly_specialty_agenda_handler,
    "nextAvailableDoctorDay": next_available_doctor_day_handler,
    "nextAvailableSpecialtyDay": next_available_specialty_day_handler,
    "cancelAppointment": cancel_appointment_handler,
}
