from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_clinic_config, get_clock, get_session, http_error
from clinic_scheduler.api.schemas.slot import DaySlotsResponse, SlotInfo
from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.core.errors import SchedulingError
from clinic_scheduler.services.slot_service import AvailabilityService, SlotItem

router = APIRouter(prefix="/slots", tags=["slots"])


def _to_info(item: SlotItem) -> SlotInfo:
    return SlotInfo(
        id=item.id,
        start_utc=item.start_utc,
        local=item.local,
        doctor_id=item.doctor_id,
        doctor_name=item.doctor_name,
        duration_min=item.duration_min,
    )


@router.get("/doctors/{doctor_id}", response_model=DaySlotsResponse)
async def doctor_slots(
    doctor_id: int,
    day: str | None = Query(None, description="YYYY-MM-DD in the clinic time zone; default tomorrow"),
    limit: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    config: ClinicConfig = Depends(get_clinic_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> DaySlotsResponse:
    """Free slots of one doctor on a civil day."""
    try:
        items = await AvailabilityService(session, config, clock).slots_for_doctor_on_day(doctor_id, day, limit)
    except SchedulingError as e:
        raise http_error(e) from e
    return DaySlotsResponse(day=day, slots=[_to_info(i) for i in items])


@router.get("/specialties", response_model=DaySlotsResponse)
async def specialty_slots(
    specialty_id: int | None = Query(None),
    specialty_name: str | None = Query(None),
    day: str | None = Query(None),
    limit: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    config: ClinicConfig = Depends(get_clinic_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> DaySlotsResponse:
    """Free slots across every doctor of a specialty on a civil day."""
    ref = specialty_id if specialty_id is not None else specialty_name
    if ref is None or (isinstance(ref, str) and not ref.strip()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="specialty_id or specialty_name is required")
    try:
        items = await AvailabilityService(session, config, clock).slots_for_specialty_on_day(ref, day, limit)
    except SchedulingError as e:
        raise http_error(e) from e
    return DaySlotsResponse(day=day, slots=[_to_info(i) for i in items])
