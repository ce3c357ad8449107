import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, get_clock
from booking_engine.core.db import get_session
from booking_engine.core.security import Principal, require_scopes
from booking_engine.modules.booking_links.schemas import BookingLinkOut, IssueLink, IssuedLink
from booking_engine.modules.booking_links.service import BookingLinkService

router = APIRouter()

def svc(session: AsyncSession = Depends(get_session), clock: Clock = Depends(get_clock)) -> BookingLinkService:
    return BookingLinkService(session, clock=clock)

@router.post("/booking-links", response_model=IssuedLink, status_code=status.HTTP_201_CREATED)
async def issue_link(
    payload: IssueLink,
    principal: Principal = Depends(require_scopes("booking_links:write")),
    service: BookingLinkService = Depends(svc),
):
    return await service.issue(payload, actor=principal.actor)

@router.get("/booking-links", response_model=list[BookingLinkOut], dependencies=[Depends(require_scopes("booking_links:read"))])
async def list_links(
    candidate_id: uuid.UUID | None = None,
    status: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    service: BookingLinkService = Depends(svc),
):
    return await service.list(candidate_id=candidate_id, status=status, limit=limit)

@router.post("/booking-links/{link_id}/revoke", response_model=BookingLinkOut)
async def revoke_link(
    link_id: uuid.UUID,
    principal: Principal = Depends(require_scopes("booking_links:write")),
    service: BookingLinkService = Depends(svc),
):
    return await service.revoke(link_id, actor=principal.actor)
