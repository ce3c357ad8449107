import uuid
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

class TokenRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    token: str = Field(max_length=256)

class SlotsRequest(TokenRequest):
    date: date

class SubmitRequest(TokenRequest):
    date: date
    time: str = Field(pattern=TIME_PATTERN)

class SlotOut(BaseModel):
    time: str
    available: bool
    reason: str | None = None

class SlotsOut(BaseModel):
    date: date
    slots: list[SlotOut]
    blocked: bool = False
    block_reason: str | None = None

class BookingReceipt(BaseModel):
    interview_id: uuid.UUID
    confirmation_code: str
    scheduled_at: datetime
    duration_minutes: int
    side_effects: list[str]
