import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.errors import AmbiguousSlot, InvalidInput, SlotUnavailable, StoreFailure
from clinic_scheduler.core.timezones import as_aware_utc, to_naive_utc
from clinic_scheduler.models.slot import Slot, SlotStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservedSlot:
    id: int
    doctor_id: int
    start_utc: datetime
    duration_min: int | None


async def set_slot_status(
    session: AsyncSession,
    slot_id: int,
    new_status: SlotStatus,
    expected_status: SlotStatus | None = None,
) -> ReservedSlot | None:
    """Compare-and-set on ``agenda_slots.status``.

    A single ``UPDATE ... WHERE id = :id AND status = :expected`` so the store
    serializes competing writers: of N callers expecting ``free``, exactly one
    gets the row back. Returns None when no row matched. Does not commit.
    """
    stmt = update(Slot).where(Slot.id == slot_id)
    if expected_status is not None:
        stmt = stmt.where(Slot.status == expected_status.value)
    stmt = (
        stmt.values(status=new_status.value)
        .returning(Slot.id, Slot.doctor_id, Slot.start_utc, Slot.duration_min)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    row = result.first()
    if row is None:
        return None
    return ReservedSlot(id=row[0], doctor_id=row[1], start_utc=as_aware_utc(row[2]), duration_min=row[3])


class SlotReservationService:
    """Claims and releases slots. Each claim/release is committed on its own so
    that a later failure can be compensated explicitly."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _claim(self, slot_id: int) -> ReservedSlot:
        try:
            claimed = await set_slot_status(self.session, slot_id, SlotStatus.RESERVED, SlotStatus.FREE)
            if claimed is None:
                await self.session.rollback()
                raise SlotUnavailable("Horário indisponível (não estava livre ou não existe).")
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Slot claim failed for slot_id=%s", slot_id)
            raise StoreFailure("Falha ao reservar o horário.", detail=str(e)) from e
        logger.info("Slot %s reserved (doctor_id=%s, start=%s)", claimed.id, claimed.doctor_id, claimed.start_utc)
        return claimed

    async def _find_candidates(self, target: datetime, doctor_id: int | None) -> list[int]:
        q = (
            select(Slot.id)
            .where(Slot.start_utc == to_naive_utc(target), Slot.status == SlotStatus.FREE.value)
            .order_by(Slot.id)
        )
        if doctor_id is not None:
            q = q.where(Slot.doctor_id == doctor_id)
        try:
            result = await self.session.execute(q)
        except SQLAlchemyError as e:
            raise StoreFailure("Erro ao verificar disponibilidade.", detail=str(e)) from e
        return list(result.scalars().all())

    async def reserve(
        self,
        slot_id: int | None = None,
        target_instant: datetime | None = None,
        doctor_id: int | None = None,
    ) -> ReservedSlot:
        """Move one slot from free to reserved.

        With ``slot_id`` that exact slot is claimed. Otherwise the free slot
        starting at ``target_instant`` (optionally of ``doctor_id``) is
        located; several doctors free at that instant is ambiguous and nothing
        is claimed.
        """
        if slot_id is not None:
            return await self._claim(slot_id)
        if target_instant is None:
            raise InvalidInput("Informe o horário desejado ou escolha um horário da lista.")

        candidates = await self._find_candidates(target_instant, doctor_id)
        if not candidates:
            raise SlotUnavailable()
        if len(candidates) > 1:
            logger.info("Ambiguous slot at %s: %d free slots (doctor_id=%s)", target_instant, len(candidates), doctor_id)
            raise AmbiguousSlot()
        return await self._claim(candidates[0])

    async def release(self, slot_id: int, expected_status: SlotStatus | None = None) -> bool:
        """Set the slot back to free and commit. With ``expected_status`` the
        update only applies if the slot is still in that state. Raises
        StoreFailure on store errors."""
        try:
            released = await set_slot_status(self.session, slot_id, SlotStatus.FREE, expected_status)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreFailure("Falha ao liberar o horário.", detail=str(e)) from e
        return released is not None
