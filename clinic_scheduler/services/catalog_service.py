from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.errors import StoreFailure
from clinic_scheduler.models.catalog import Doctor, Specialty


async def list_specialty_names(session: AsyncSession) -> list[str]:
    """Distinct, trimmed specialty names in alphabetical order."""
    try:
        result = await session.execute(select(Specialty.name).order_by(Specialty.name))
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar especialidades.", detail=str(e)) from e
    names = [str(n or "").strip() for n in result.scalars().all()]
    return list(dict.fromkeys(n for n in names if n))


async def list_specialties(session: AsyncSession) -> list[Specialty]:
    try:
        result = await session.execute(select(Specialty).order_by(Specialty.name))
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar especialidades.", detail=str(e)) from e
    return list(result.scalars().all())


async def list_doctors(session: AsyncSession, limit: int | None = None) -> list[Doctor]:
    q = select(Doctor).order_by(Doctor.name)
    if limit is not None:
        q = q.limit(limit)
    try:
        result = await session.execute(q)
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar médicos.", detail=str(e)) from e
    return list(result.scalars().all())


async def get_doctor(session: AsyncSession, doctor_id: int) -> Doctor | None:
    try:
        return await session.get(Doctor, doctor_id)
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar médico.", detail=str(e)) from e


async def doctors_for_specialties(
    session: AsyncSession, specialty_ids: Sequence[int], limit: int | None = None
) -> list[Doctor]:
    if not specialty_ids:
        return []
    q = select(Doctor).where(Doctor.specialty_id.in_(list(specialty_ids))).order_by(Doctor.name)
    if limit is not None:
        q = q.limit(limit)
    try:
        result = await session.execute(q)
    except SQLAlchemyError as e:
        raise StoreFailure("Erro ao buscar médicos da especialidade.", detail=str(e)) from e
    return list(result.scalars().all())
