import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import StoreFailure
from clinic_scheduler.core.timezones import civil_to_utc, format_local, local_date, next_day_range_utc, to_naive_utc
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.services.email_service import send_appointment_reminder_email

logger = logging.getLogger(__name__)


async def find_reminders_due(session: AsyncSession, config: ClinicConfig, now: datetime) -> list[Appointment]:
    """Confirmed appointments falling on tomorrow's civil day in the clinic time zone."""
    tomorrow = next_day_range_utc(config.tz, now)
    q = (
        select(Appointment)
        .where(
            Appointment.status == AppointmentStatus.CONFIRMED.value,
            Appointment.slot_start_utc >= to_naive_utc(tomorrow.start_utc),
            Appointment.slot_start_utc < to_naive_utc(tomorrow.end_utc),
        )
        .order_by(Appointment.slot_start_utc)
    )
    try:
        result = await session.execute(q)
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar consultas de amanhã.", detail=str(e)) from e
    return list(result.scalars().all())


def send_reminders(appointments: list[Appointment], config: ClinicConfig) -> int:
    """Send one reminder per appointment; a failed send does not stop the rest."""
    sent = 0
    for appt in appointments:
        try:
            send_appointment_reminder_email(
                to_email=appt.email,
                recipient_name=appt.patient_name,
                slot_local=format_local(appt.slot_start_utc, config.tz, config.locale),
                specialty=appt.specialty,
            )
            sent += 1
        except Exception as e:
            logger.exception("Reminder for appointment %s failed: %s", appt.id, e)
    return sent


def seconds_until_local_hour(tz: str, hour: int, now: datetime) -> float:
    """Seconds from ``now`` to the next ``hour``:00 wall-clock time in ``tz``."""
    today = local_date(now, tz)
    target = civil_to_utc(tz, today.year, today.month, today.day, hour)
    if target <= now:
        tomorrow = today + timedelta(days=1)
        target = civil_to_utc(tz, tomorrow.year, tomorrow.month, tomorrow.day, hour)
    return (target - now).total_seconds()
