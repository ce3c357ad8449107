from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from zoneinfo import ZoneInfo

from booking_engine.core.clock import Clock, get_clock, get_tz
from booking_engine.core.db import get_session
from booking_engine.modules.booking.schemas import BookingReceipt, SlotsOut, SlotsRequest, SubmitRequest, TokenRequest
from booking_engine.modules.booking.service import BookingService

# Public: the booking token in the body is the only credential
router = APIRouter()

def svc(session: AsyncSession = Depends(get_session), clock: Clock = Depends(get_clock), tz: ZoneInfo = Depends(get_tz)) -> BookingService:
    return BookingService(session, clock=clock, tz=tz)

@router.post("/booking/validate")
async def validate_token(payload: TokenRequest, service: BookingService = Depends(svc)):
    return await service.validate(payload.token)

@router.post("/booking/availability")
async def get_availability(payload: TokenRequest, service: BookingService = Depends(svc)):
    return await service.get_availability(payload.token)

@router.post("/booking/slots", response_model=SlotsOut)
async def get_time_slots(payload: SlotsRequest, service: BookingService = Depends(svc)):
    return await service.get_time_slots(payload.token, payload.date)

@router.post("/booking/submit", response_model=BookingReceipt)
async def submit_booking(payload: SubmitRequest, service: BookingService = Depends(svc)):
    return await service.submit_booking(payload.token, payload.date, payload.time)
