"""Initial schema: specialties, doctors, agenda_slots, appointments.

Revision ID: 001_initial
Revises:
Create Date: 2025-09-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "specialties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_specialties_name"), "specialties", ["name"], unique=True)

    op.create_table(
        "doctors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("specialty_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["specialty_id"], ["specialties.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_doctors_name"), "doctors", ["name"], unique=False)
    op.create_index(op.f("ix_doctors_specialty_id"), "doctors", ["specialty_id"], unique=False)

    op.create_table(
        "agenda_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("start_utc", sa.DateTime(), nullable=False),
        sa.Column("duration_min", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="free"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id", "start_utc", name="uq_agenda_slots_doctor_start"),
    )
    op.create_index(op.f("ix_agenda_slots_doctor_id"), "agenda_slots", ["doctor_id"], unique=False)
    op.create_index(op.f("ix_agenda_slots_start_utc"), "agenda_slots", ["start_utc"], unique=False)
    op.create_index(op.f("ix_agenda_slots_status"), "agenda_slots", ["status"], unique=False)

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_name", sa.String(), nullable=False),
        sa.Column("cpf", sa.String(), nullable=False),
        sa.Column("birthdate", sa.Date(), nullable=False),
        sa.Column("specialty", sa.String(), nullable=False),
        sa.Column("region", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("slot_start_utc", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("slot_id", sa.Integer(), nullable=True),
        sa.Column("doctor_id", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(), nullable=False, server_default="chatbot"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["slot_id"], ["agenda_slots.id"]),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_cpf"), "appointments", ["cpf"], unique=False)
    op.create_index(op.f("ix_appointments_slot_start_utc"), "appointments", ["slot_start_utc"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(op.f("ix_appointments_slot_id"), "appointments", ["slot_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_appointments_slot_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_slot_start_utc"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_cpf"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(op.f("ix_agenda_slots_status"), table_name="agenda_slots")
    op.drop_index(op.f("ix_agenda_slots_start_utc"), table_name="agenda_slots")
    op.drop_index(op.f("ix_agenda_slots_doctor_id"), table_name="agenda_slots")
    op.drop_table("agenda_slots")
    op.drop_index(op.f("ix_doctors_specialty_id"), table_name="doctors")
    op.drop_index(op.f("ix_doctors_name"), table_name="doctors")
    op.drop_table("doctors")
    op.drop_index(op.f("ix_specialties_name"), table_name="specialties")
    op.drop_table("specialties")
