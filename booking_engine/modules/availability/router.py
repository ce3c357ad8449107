from typing import Literal
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from booking_engine.core.db import get_session
from booking_engine.core.security import Principal, require_scopes
from booking_engine.modules.availability.service import AvailabilityService
from booking_engine.modules.availability.schemas import AvailabilityConfig, AvailabilityConfigOut, BookingBlocksIn, BookingBlocksOut

router = APIRouter()

def svc(s: AsyncSession = Depends(get_session)) -> AvailabilityService:
    return AvailabilityService(s)

# Company-wide blocks (declared before /{kind} so "blocks" is not read as a kind)
@router.get("/availability/blocks", response_model=BookingBlocksOut, dependencies=[Depends(require_scopes("availability:read"))])
async def get_blocks(service: AvailabilityService = Depends(svc)):
    return await service.get_blocks()

@router.put("/availability/blocks", response_model=BookingBlocksOut)
async def put_blocks(payload: BookingBlocksIn, principal: Principal = Depends(require_scopes("availability:write")), service: AvailabilityService = Depends(svc)):
    return await service.update_blocks(payload, actor=principal.actor)

# Per-kind settings
@router.get("/availability/{kind}", response_model=AvailabilityConfigOut, dependencies=[Depends(require_scopes("availability:read"))])
async def get_config(kind: Literal["interview", "trial"], service: AvailabilityService = Depends(svc)):
    config, is_default = await service.get_config(kind)
    return AvailabilityConfigOut(kind=kind, is_default=is_default, **config.model_dump())

@router.put("/availability/{kind}", response_model=AvailabilityConfigOut)
async def put_config(kind: Literal["interview", "trial"], payload: AvailabilityConfig, principal: Principal = Depends(require_scopes("availability:write")), service: AvailabilityService = Depends(svc)):
    config = await service.update_config(kind, payload, actor=principal.actor)
    return AvailabilityConfigOut(kind=kind, is_default=False, **config.model_dump())
