"""Shared fixtures: a throwaway SQLite database per test and a small clinic catalog."""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REMINDERS_ENABLED", "false")

from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from clinic_scheduler.core.config import ClinicConfig
from clinic_scheduler.models import Doctor, Slot, SlotStatus, Specialty

# Monday 2025-09-01, 09:00 in America/Sao_Paulo
NOW = datetime(2025, 9, 1, 12, 0, tzinfo=UTC)


def fixed_clock(now: datetime = NOW):
    return lambda: now


@pytest.fixture
def config():
    return ClinicConfig()


@pytest.fixture
def clock():
    return fixed_clock()


@pytest_asyncio.fixture
async def engine(tmp_path):
    # file-backed so that separate sessions really contend for the same rows
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(session):
    """Three specialties with one doctor each."""
    cardio = Specialty(id=1, name="Cardiologia")
    clinica = Specialty(id=2, name="Clínica Geral")
    derma = Specialty(id=3, name="Dermatologia")
    session.add_all([cardio, clinica, derma])
    await session.flush()
    ana = Doctor(id=10, name="Ana Souza", specialty_id=1)
    lucas = Doctor(id=20, name="Lucas Pereira", specialty_id=2)
    mariana = Doctor(id=30, name="Mariana Costa", specialty_id=3)
    session.add_all([ana, lucas, mariana])
    await session.commit()
    return {"ana": ana, "lucas": lucas, "mariana": mariana}


async def add_slot(session, doctor_id: int, start_utc: datetime, status: SlotStatus = SlotStatus.FREE) -> Slot:
    slot = Slot(doctor_id=doctor_id, start_utc=start_utc.replace(tzinfo=None), status=status.value)
    session.add(slot)
    await session.commit()
    # detached: rollbacks in the code under test must not expire it
    session.expunge(slot)
    return slot


async def slot_status(session_maker, slot_id: int) -> str:
    async with session_maker() as s:
        slot = await s.get(Slot, slot_id)
        return slot.status
