import uuid
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

class IssueLink(BaseModel):
    model_config = ConfigDict(extra="forbid")
    candidate_id: uuid.UUID
    kind: Literal["interview", "trial"] = "interview"
    expires_in_days: int | None = Field(default=None, ge=1, le=90)
    max_uses: int = Field(default=1, ge=1, le=10)
    job_id: uuid.UUID | None = None
    job_title: str | None = None
    branch_id: uuid.UUID | None = None
    branch_name: str | None = None
    branch_address: str | None = None

class IssuedLink(BaseModel):
    id: uuid.UUID
    token: str  # shown once
    url: str
    kind: str
    duration_minutes: int
    expires_at: datetime
    max_uses: int

class BookingLinkOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: uuid.UUID
    candidate_id: uuid.UUID
    candidate_name: str
    kind: str
    duration_minutes: int
    status: str
    expires_at: datetime
    max_uses: int
    use_count: int
    used_at: datetime | None = None
    expired_at: datetime | None = None
    revoked_at: datetime | None = None
    interview_id: uuid.UUID | None = None
    created_at: datetime
