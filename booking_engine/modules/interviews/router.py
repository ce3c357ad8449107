import uuid
from typing import Literal
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession
from zoneinfo import ZoneInfo

from booking_engine.core.clock import Clock, get_clock, get_tz
from booking_engine.core.db import get_session
from booking_engine.core.security import Principal, require_scopes
from booking_engine.modules.interviews.schemas import InterviewOut, ResolveLapsed, ResolveOut
from booking_engine.modules.interviews.service import InterviewService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session), clock: Clock = Depends(get_clock), tz: ZoneInfo = Depends(get_tz)) -> InterviewService:
    return InterviewService(session, clock=clock, tz=tz)

class StatusChange(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: Literal["confirmed", "completed", "cancelled", "no_show"]

@router.get("/interviews", response_model=list[InterviewOut], dependencies=[Depends(require_scopes("interviews:read"))])
async def list_interviews(
    status: str | None = None,
    candidate_id: uuid.UUID | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: InterviewService = Depends(svc),
):
    return await service.list(status=status, candidate_id=candidate_id, limit=limit, offset=offset)

@router.get("/interviews/{interview_id}", response_model=InterviewOut, dependencies=[Depends(require_scopes("interviews:read"))])
async def get_interview(interview_id: uuid.UUID, service: InterviewService = Depends(svc)):
    return await service.get(interview_id)

@router.post("/interviews/{interview_id}/status", response_model=InterviewOut)
async def change_status(
    interview_id: uuid.UUID,
    payload: StatusChange,
    principal: Principal = Depends(require_scopes("interviews:write")),
    service: InterviewService = Depends(svc),
):
    return await service.change_status(interview_id, payload.status, actor=principal.actor)

@router.post("/interviews/{interview_id}/resolve", response_model=ResolveOut)
async def resolve_lapsed(
    interview_id: uuid.UUID,
    payload: ResolveLapsed,
    principal: Principal = Depends(require_scopes("interviews:write")),
    service: InterviewService = Depends(svc),
):
    return await service.resolve_lapsed(
        interview_id, payload.resolution, actor=principal.actor, notes=payload.notes, new_date=payload.new_date
    )
