from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class SlotStatus(StrEnum):
    FREE = "free"
    RESERVED = "reserved"


class Slot(SQLModel, table=True):
    """One bookable time unit for one doctor. Maintained by the clinic's agenda
    management; this service only flips ``status`` between free and reserved."""

    __tablename__ = "agenda_slots"
    # one doctor cannot hold two slots at the same instant
    __table_args__ = (UniqueConstraint("doctor_id", "start_utc", name="uq_agenda_slots_doctor_start"),)

    id: int | None = Field(default=None, primary_key=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    # naive UTC, TIMESTAMP WITHOUT TIME ZONE
    start_utc: datetime = Field(sa_type=DateTime(), index=True)
    duration_min: int = 30
    status: str = Field(default=SlotStatus.FREE.value, max_length=16, index=True)
