from pydantic import BaseModel


class BookingResponse(BaseModel):
    id: int
    summary: dict


class CancellationResponse(BaseModel):
    id: int
    freed_slot_id: int | None = None
