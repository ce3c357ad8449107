from fastapi import APIRouter, Depends, Request
from booking_engine.core.errors import NotFound
from booking_engine.core.security import require_scopes
from booking_engine.modules.jobs.scheduler import run_job_once

router = APIRouter()

@router.get("/jobs", dependencies=[Depends(require_scopes("jobs:read"))])
async def list_jobs(request: Request):
    return [
        {"name": job.name, "interval_seconds": job.interval_seconds}
        for job in request.app.state.jobs.values()
    ]

@router.post("/jobs/{name}/run", dependencies=[Depends(require_scopes("jobs:run"))])
async def run_job(name: str, request: Request):
    job = request.app.state.jobs.get(name)
    if job is None:
        raise NotFound(f"Unknown job: {name}")
    result = await run_job_once(job, request.app.state.sessionmaker)
    return {"job": name, "result": result}
