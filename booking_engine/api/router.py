from fastapi import APIRouter
from booking_engine.modules.audit.router import router as audit_router
from booking_engine.modules.availability.router import router as availability_router
from booking_engine.modules.booking.router import router as booking_router
from booking_engine.modules.booking_links.router import router as booking_links_router
from booking_engine.modules.directory.router import router as directory_router
from booking_engine.modules.interviews.router import router as interviews_router
from booking_engine.modules.jobs.router import router as jobs_router

api_router = APIRouter()
api_router.include_router(booking_router, tags=["booking"])
api_router.include_router(availability_router, tags=["availability"])
api_router.include_router(booking_links_router, tags=["booking-links"])
api_router.include_router(interviews_router, tags=["interviews"])
api_router.include_router(directory_router, tags=["candidates"])
api_router.include_router(jobs_router, tags=["jobs"])
api_router.include_router(audit_router, tags=["audit"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
