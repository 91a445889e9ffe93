import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import (
    FatalInconsistency,
    InvalidBirthdate,
    InvalidDateTime,
    InvalidInput,
    NotFound,
    StoreFailure,
)
from clinic_scheduler.core.timezones import format_local, to_naive_utc, utc_now
from clinic_scheduler.core.validators import (
    is_valid_cpf,
    normalize_phone,
    only_digits,
)
from clinic_scheduler.models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from clinic_scheduler.models.slot import SlotStatus
from clinic_scheduler.services.normalizers import (
    BirthdateNormalizer,
    DateTimeNormalizer,
    PtBrBirthdateNormalizer,
    PtBrDateTimeNormalizer,
)
from clinic_scheduler.services.reservation_service import ReservedSlot, SlotReservationService

logger = logging.getLogger(__name__)

FIELD_MESSAGES = {
    "name": "Informe o nome completo.",
    "cpf": "CPF obrigatório.",
    "birthdate": "Data de nascimento obrigatória.",
    "specialty": "Especialidade obrigatória.",
    "region": "Região obrigatória.",
    "phone": "Telefone obrigatório.",
    "email": "E-mail inválido. Verifique e envie novamente.",
    "reason": "Motivo inválido.",
    "desiredDate": "Data/hora da consulta obrigatória.",
    "dataISO": "Data/hora da consulta obrigatória.",
    "desired_date": "Data/hora da consulta obrigatória.",
    "slotId": "Horário selecionado inválido.",
    "slot_id": "Horário selecionado inválido.",
    "doctorId": "Médico inválido.",
    "doctor_id": "Médico inválido.",
}


def invalid_input_from(exc: ValidationError) -> InvalidInput:
    errors = exc.errors()
    field = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else ""
    return InvalidInput(FIELD_MESSAGES.get(field, "Dados inválidos."), detail=str(exc))


def parse_booking(data: AppointmentCreate | Mapping[str, Any]) -> AppointmentCreate:
    if isinstance(data, AppointmentCreate):
        return data
    try:
        return AppointmentCreate.model_validate(dict(data))
    except ValidationError as e:
        raise invalid_input_from(e) from e


@dataclass(frozen=True)
class BookingResult:
    id: int
    summary: dict[str, Any]


@dataclass(frozen=True)
class CancellationResult:
    id: int
    freed_slot_id: int | None


class AppointmentCoordinator:
    """Books and cancels appointments, keeping slot and appointment in step.

    Every non-canceled appointment holds exactly one reserved slot. When the
    appointment row cannot be written after its slot was claimed, the slot is
    handed back with a compensating update before the failure is reported.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: ClinicConfig,
        datetime_normalizer: DateTimeNormalizer | None = None,
        birthdate_normalizer: BirthdateNormalizer | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.config = config
        self.clock = clock
        self.datetime_normalizer = datetime_normalizer or PtBrDateTimeNormalizer(clock)
        self.birthdate_normalizer = birthdate_normalizer or PtBrBirthdateNormalizer(clock, config.tz)
        self.reservations = SlotReservationService(session)

    async def _desired_instant(self, text: str) -> datetime:
        when = await self.datetime_normalizer.normalize(text, self.config.tz)
        if when is None:
            raise InvalidDateTime(
                'Data/hora da consulta inválida. Use 25/08/2025 18:00 ou "25 de agosto de 2025 às 18:00".'
            )
        if not when.has_time:
            raise InvalidDateTime("Informe também o horário da consulta (ex.: 25/08/2025 18:00).")
        if when.iso_utc <= self.clock():
            raise InvalidDateTime("A data/hora deve ser no futuro. Informe um horário válido.")
        return when.iso_utc

    async def book(self, data: AppointmentCreate | Mapping[str, Any]) -> BookingResult:
        booking = parse_booking(data)

        cpf = only_digits(booking.cpf)
        if not is_valid_cpf(cpf):
            raise InvalidInput("CPF inválido. Verifique e envie novamente.")

        birth_iso = await self.birthdate_normalizer.normalize(booking.birthdate)
        if not birth_iso:
            raise InvalidBirthdate()
        try:
            birthdate = date.fromisoformat(birth_iso)
        except ValueError as e:
            raise InvalidBirthdate(detail=f"normalizer returned {birth_iso!r}") from e

        email = str(booking.email).lower()

        phone = normalize_phone(booking.phone, self.config.default_country_code)
        if phone is None:
            raise InvalidInput("Telefone inválido. Envie com DDI + DDD (ex.: 55 11 91234-5678).")

        if booking.reason and len(booking.reason) > self.config.reason_max_length:
            raise InvalidInput(f"O motivo deve ter no máximo {self.config.reason_max_length} caracteres.")

        desired = await self._desired_instant(booking.desired_date)

        reserved = await self.reservations.reserve(
            slot_id=booking.slot_id, target_instant=desired, doctor_id=booking.doctor_id
        )

        try:
            appointment = Appointment(
                patient_name=booking.name,
                cpf=cpf,
                birthdate=birthdate,
                specialty=booking.specialty,
                region=booking.region,
                phone=phone,
                email=email,
                reason=booking.reason,
                slot_start_utc=to_naive_utc(reserved.start_utc),
                status=AppointmentStatus.PENDING.value,
                slot_id=reserved.id,
                doctor_id=reserved.doctor_id,
                source="chatbot",
            )
            self.session.add(appointment)
            await self.session.flush()
            appointment_id = appointment.id
            await self.session.commit()
        except Exception as e:
            logger.exception("Appointment insert failed for slot_id=%s", reserved.id)
            await self._compensate(reserved, e)
            raise StoreFailure("Erro ao salvar o agendamento.", detail=str(e)) from e

        logger.info("Appointment %s booked on slot %s (doctor_id=%s)", appointment_id, reserved.id, reserved.doctor_id)
        return BookingResult(id=appointment_id, summary=self._summary(booking, cpf, birth_iso, email, phone, reserved))

    async def _compensate(self, reserved: ReservedSlot, cause: Exception) -> None:
        """Return a claimed slot to free after the appointment write failed."""
        try:
            await self.session.rollback()
            released = await self.reservations.release(reserved.id, expected_status=SlotStatus.RESERVED)
        except Exception as rollback_error:
            logger.critical(
                "ORPHANED_SLOT slot_id=%s appointment_id=%s: compensation failed (%s) after %s",
                reserved.id,
                None,
                rollback_error,
                cause,
            )
            raise FatalInconsistency(detail=f"slot {reserved.id} left reserved") from rollback_error
        if released:
            logger.warning("Slot %s returned to free after failed booking", reserved.id)
        else:
            logger.warning("Slot %s was no longer reserved during compensation", reserved.id)

    def _summary(
        self,
        booking: AppointmentCreate,
        cpf: str,
        birth_iso: str,
        email: str,
        phone: str,
        reserved: ReservedSlot,
    ) -> dict[str, Any]:
        return {
            "name": booking.name,
            "cpf": cpf,
            "birthdate": birth_iso,
            "specialty": booking.specialty,
            "region": booking.region,
            "phone": phone,
            "email": email,
            "reason": booking.reason,
            "desiredDate": reserved.start_utc.isoformat().replace("+00:00", "Z"),
            "local": format_local(reserved.start_utc, self.config.tz, self.config.locale),
            "durationMin": reserved.duration_min,
            "slotId": reserved.id,
            "doctorId": reserved.doctor_id,
        }

    async def cancel(self, appointment_id: int) -> CancellationResult:
        """Cancel and free the linked slot. Safe to repeat."""
        try:
            appointment = await self.session.get(Appointment, appointment_id)
        except SQLAlchemyError as e:
            raise StoreFailure("Erro ao buscar o agendamento.", detail=str(e)) from e
        if appointment is None:
            raise NotFound()

        previous_status = appointment.status
        slot_id = appointment.slot_id
        if previous_status != AppointmentStatus.CANCELED.value:
            try:
                appointment.status = AppointmentStatus.CANCELED.value
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise StoreFailure("Falha ao cancelar o agendamento.", detail=str(e)) from e

        if slot_id is not None:
            try:
                await self.reservations.release(slot_id)
            except StoreFailure as e:
                logger.error("Slot %s release failed while canceling appointment %s: %s", slot_id, appointment_id, e)
                await self._restore_status(appointment_id, previous_status)
                raise StoreFailure("Falha ao cancelar o agendamento.", detail=e.detail) from e

        logger.info("Appointment %s canceled, slot %s freed", appointment_id, slot_id)
        return CancellationResult(id=appointment_id, freed_slot_id=slot_id)

    async def _restore_status(self, appointment_id: int, status: str) -> None:
        if status == AppointmentStatus.CANCELED.value:
            return
        try:
            await self.session.execute(
                update(Appointment)
                .where(Appointment.id == appointment_id)
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.critical(
                "INCONSISTENT_APPOINTMENT appointment_id=%s: canceled but slot still reserved, status restore failed",
                appointment_id,
            )
