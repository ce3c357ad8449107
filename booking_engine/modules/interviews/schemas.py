import uuid
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, AwareDatetime, model_validator

Resolution = Literal["rescheduled", "completed", "cancelled", "no_show"]

class InterviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    candidate_id: uuid.UUID
    candidate_name: str
    kind: str
    scheduled_at: datetime
    duration_minutes: int
    status: str
    booked_via: str
    confirmation_code: str | None = None
    job_title: str | None = None
    branch_name: str | None = None
    auto_completed: bool = False
    completed_at: datetime | None = None
    lapsed_at: datetime | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    resolution_reason: str | None = None
    resolution_notes: str | None = None
    rescheduled_from: datetime | None = None
    reschedule_count: int = 0
    created_at: datetime

class ResolveLapsed(BaseModel):
    model_config = ConfigDict(extra="forbid")
    resolution: Resolution
    notes: str | None = None
    new_date: AwareDatetime | None = None

    @model_validator(mode="after")
    def _new_date_for_reschedule(self):
        if self.resolution == "rescheduled" and self.new_date is None:
            raise ValueError("new_date is required when rescheduling")
        return self

class ResolveOut(BaseModel):
    interview_id: uuid.UUID
    new_status: str
