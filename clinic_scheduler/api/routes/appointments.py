import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_clinic_config, get_clock, get_session, http_error
from clinic_scheduler.api.schemas.appointment import BookingResponse, CancellationResponse
from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import SchedulingError
from clinic_scheduler.models.appointment import AppointmentCreate
from clinic_scheduler.services.appointment_service import AppointmentCoordinator
from clinic_scheduler.services.email_service import send_appointment_confirmation_email

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    config: ClinicConfig = Depends(get_clinic_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BookingResponse:
    try:
        result = await AppointmentCoordinator(session, config, clock=clock).book(body)
    except SchedulingError as e:
        raise http_error(e) from e
    summary = result.summary
    # Send confirmation email in background (uses sync SMTP)
    background_tasks.add_task(
        send_appointment_confirmation_email,
        to_email=summary["email"],
        recipient_name=summary["name"],
        slot_local=summary["local"],
        duration_minutes=summary["durationMin"],
        specialty=summary["specialty"],
    )
    return BookingResponse(id=result.id, summary=summary)


@router.delete("/{appointment_id}", response_model=CancellationResponse)
async def cancel_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    config: ClinicConfig = Depends(get_clinic_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> CancellationResponse:
    """Cancel and free the slot. Repeating the call is safe."""
    try:
        result = await AppointmentCoordinator(session, config, clock=clock).cancel(appointment_id)
    except SchedulingError as e:
        raise http_error(e) from e
    logger.info("Appointment %s canceled via API", appointment_id)
    return CancellationResponse(id=result.id, freed_slot_id=result.freed_slot_id)
