from datetime import UTC, date, datetime
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, field_validator
from pydantic import Field as PydanticField
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    patient_name: str
    cpf: str = Field(index=True)
    birthdate: date
    specialty: str
    region: str
    phone: str
    email: str
    reason: str | None = None
    # mirrors the reserved slot's start_utc
    slot_start_utc: datetime = Field(sa_type=DateTime(), index=True)
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=16, index=True)
    slot_id: int | None = Field(default=None, foreign_key="agenda_slots.id", index=True)
    doctor_id: int | None = Field(default=None, foreign_key="doctors.id")
    source: str = "chatbot"
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class AppointmentCreate(BaseModel):
    """Booking input as sent by the dialogue driver or the REST API."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    name: str = PydanticField(min_length=3)
    cpf: str = PydanticField(min_length=11)
    birthdate: str = PydanticField(min_length=6)
    specialty: str = PydanticField(min_length=2)
    region: str = PydanticField(min_length=2)
    phone: str = PydanticField(min_length=8)
    email: EmailStr
    reason: str | None = None
    desired_date: str = PydanticField(
        min_length=5, validation_alias=AliasChoices("desiredDate", "dataISO", "desired_date")
    )
    slot_id: int | None = PydanticField(default=None, validation_alias=AliasChoices("slotId", "slot_id"))
    doctor_id: int | None = PydanticField(default=None, validation_alias=AliasChoices("doctorId", "doctor_id"))

    @field_validator("reason", "slot_id", "doctor_id", mode="before")
    @classmethod
    def _empty_is_missing(cls, value):
        return _blank_to_none(value)
