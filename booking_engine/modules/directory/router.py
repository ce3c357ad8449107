import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, get_clock
from booking_engine.core.db import get_session
from booking_engine.core.security import Principal, require_scopes
from booking_engine.modules.booking_links.sweeper import ExpiredLinkSweeper
from booking_engine.modules.directory.schemas import CandidateCreate, CandidateOut, CandidateStatusChange
from booking_engine.modules.directory.service import DirectoryService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session), clock: Clock = Depends(get_clock)) -> DirectoryService:
    return DirectoryService(session, clock=clock)

@router.post("/candidates", response_model=CandidateOut, status_code=status.HTTP_201_CREATED)
async def create_candidate(
    payload: CandidateCreate,
    principal: Principal = Depends(require_scopes("candidates:write")),
    service: DirectoryService = Depends(svc),
):
    return await service.create_candidate(**payload.model_dump(), actor=principal.actor)

@router.get("/candidates", response_model=list[CandidateOut], dependencies=[Depends(require_scopes("candidates:read"))])
async def list_candidates(
    status: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: DirectoryService = Depends(svc),
):
    return await service.list(status=status, limit=limit, offset=offset)

@router.get("/candidates/{candidate_id}", response_model=CandidateOut, dependencies=[Depends(require_scopes("candidates:read"))])
async def get_candidate(candidate_id: uuid.UUID, service: DirectoryService = Depends(svc)):
    return await service.get(candidate_id)

@router.post("/candidates/{candidate_id}/status", response_model=CandidateOut)
async def change_status(
    candidate_id: uuid.UUID,
    payload: CandidateStatusChange,
    principal: Principal = Depends(require_scopes("candidates:write")),
    service: DirectoryService = Depends(svc),
):
    return await service.change_status(candidate_id, payload.status, actor=principal.actor, reason=payload.reason)

@router.post("/candidates/{candidate_id}/booking-expiry-check", dependencies=[Depends(require_scopes("candidates:write"))])
async def booking_expiry_check(
    candidate_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
):
    # same sweep as the daily job, scoped to one candidate
    await DirectoryService(session, clock=clock).get(candidate_id)
    result = await ExpiredLinkSweeper(session, clock=clock).check_candidate(candidate_id)
    return result.as_dict()
