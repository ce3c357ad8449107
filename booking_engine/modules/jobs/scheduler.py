"""Recurring background jobs.

One loop implementation drives every job; a job is just a name, an interval
and a coroutine taking a fresh session. Jobs are idempotent, so a run that
overlaps a manual trigger is harmless.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_engine.core.clock import Clock, system_clock
from booking_engine.core.config import settings
from booking_engine.modules.booking_links.sweeper import ExpiredLinkSweeper
from booking_engine.modules.interviews.lifecycle import LapsedInterviewProcessor

log = logging.getLogger("jobs")

JobFn = Callable[[AsyncSession], Awaitable[dict]]


@dataclass(frozen=True)
class RecurringJob:
    name: str
    interval_seconds: float
    run: JobFn


def default_jobs(clock: Clock = system_clock) -> dict[str, RecurringJob]:
    async def lapsed_interviews(session: AsyncSession) -> dict:
        return (await LapsedInterviewProcessor(session, clock=clock).run()).as_dict()

    async def expired_links(session: AsyncSession) -> dict:
        return (await ExpiredLinkSweeper(session, clock=clock).run()).as_dict()

    return {
        "lapsed_interviews": RecurringJob("lapsed_interviews", settings.LAPSED_SWEEP_INTERVAL_SECONDS, lapsed_interviews),
        "expired_links": RecurringJob("expired_links", settings.EXPIRED_LINK_SWEEP_INTERVAL_SECONDS, expired_links),
    }


async def run_job_once(job: RecurringJob, sessionmaker: async_sessionmaker[AsyncSession]) -> dict:
    async with sessionmaker() as session:
        result = await job.run(session)
    log.info("Job %s finished: %s", job.name, result)
    return result


async def run_recurring_job(job: RecurringJob, sessionmaker: async_sessionmaker[AsyncSession], *, initial_delay: float = 0.0):
    log.info("Job %s scheduled every %ss", job.name, job.interval_seconds)
    try:
        if initial_delay:
            await asyncio.sleep(initial_delay)
        while True:
            try:
                await run_job_once(job, sessionmaker)
            except Exception:
                log.exception("Job %s run failed; will retry next interval", job.name)
            await asyncio.sleep(job.interval_seconds)
    except asyncio.CancelledError:
        log.info("Job %s cancelled; shutting down", job.name)
        raise
