import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

class CandidateCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = Field(min_length=1, max_length=160)
    email: str | None = None
    phone: str | None = None
    status: str = "new"
    branch_id: uuid.UUID | None = None

class CandidateStatusChange(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str
    reason: str | None = None

class CandidateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    name: str
    email: str | None = None
    status: str
    status_updated_at: datetime | None = None
    status_updated_by: str | None = None
    withdrawal_reason: str | None = None
    last_interview_no_show_at: datetime | None = None
    created_at: datetime
