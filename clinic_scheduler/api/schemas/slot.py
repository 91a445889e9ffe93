from datetime import datetime

from pydantic import BaseModel


class SlotInfo(BaseModel):
    id: int
    start_utc: datetime
    local: str
    doctor_id: int
    doctor_name: str | None = None
    duration_min: int | None = None


class DaySlotsResponse(BaseModel):
    day: str | None  # YYYY-MM-DD, None = tomorrow
    slots: list[SlotInfo]
