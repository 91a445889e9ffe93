from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.catalog import Doctor, Specialty
from clinic_scheduler.models.slot import Slot, SlotStatus

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Doctor",
    "Specialty",
    "Slot",
    "SlotStatus",
]
