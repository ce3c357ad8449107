import time
import asyncio
import logging
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_engine.api.router import api_router
from booking_engine.core.clock import Clock, system_clock
from booking_engine.core.config import settings
from booking_engine.core.db import build_engine, build_sessionmaker, init_models
from booking_engine.core.errors import BookingError
from booking_engine.core.logging import request_id_ctx, setup_logging
from booking_engine.modules.events.outbox import run_outbox_relay
from booking_engine.modules.jobs.scheduler import default_jobs, run_recurring_job
from booking_engine.platform.provider_registry import registry

logger = logging.getLogger(__name__)


def create_app(
    *,
    sessionmaker: async_sessionmaker[AsyncSession] | None = None,
    clock: Clock | None = None,
    tz: ZoneInfo | None = None,
    start_workers: bool | None = None,
) -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.state.sessionmaker = sessionmaker
    app.state.clock = clock
    app.state.tz = tz
    app.state.jobs = default_jobs(clock or system_clock)
    app.state.tasks = []
    workers = settings.SCHEDULER_ENABLED if start_workers is None else start_workers

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = (time.time() - start_time) * 1000
        logger.info(
            f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {process_time:.2f}ms"
        )
        return response

    # registered last so it runs first: the request id is set before logging
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id", "-")
        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        if rid != "-":
            response.headers["x-request-id"] = rid
        return response

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        logger.info("%s %s rejected: %s/%s %s", request.method, request.url.path, exc.kind, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "invalid_input", "kind": "invalid_input", "message": "Request is invalid",
                     "details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "internal", "kind": "internal", "message": "An internal server error occurred."},
        )

    @app.on_event("startup")
    async def on_startup():
        if app.state.sessionmaker is None:
            engine = build_engine()
            await init_models(engine)
            app.state.engine = engine
            app.state.sessionmaker = build_sessionmaker(engine)
        if workers:
            sm = app.state.sessionmaker
            app.state.tasks.append(asyncio.create_task(run_outbox_relay(sm, settings.OUTBOX_POLL_INTERVAL_SECONDS)))
            for job in app.state.jobs.values():
                app.state.tasks.append(asyncio.create_task(run_recurring_job(job, sm)))

    @app.on_event("shutdown")
    async def on_shutdown():
        for task in app.state.tasks:
            task.cancel()
        for task in app.state.tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        app.state.tasks = []
        await registry.close()
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()

    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()
