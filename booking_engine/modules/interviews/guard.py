import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.errors import Internal, SlotConflict
from booking_engine.modules.interviews.repository import InterviewRepository

log = logging.getLogger("interviews.guard")

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


class Contention(Exception):
    """Raised by ``work`` when a compare-and-set inside it lost a race."""


def is_contention(ex: Exception) -> bool:
    """True for store errors that mean another writer got there first."""
    if isinstance(ex, (Contention, IntegrityError)):
        return True
    if isinstance(ex, OperationalError):
        orig = ex.orig
        if getattr(orig, "sqlstate", None) in _RETRYABLE_SQLSTATES or getattr(orig, "pgcode", None) in _RETRYABLE_SQLSTATES:
            return True
        return "database is locked" in str(orig) or "database table is locked" in str(orig)
    return False


async def commit_with_day_guard(
    session: AsyncSession,
    day: date,
    work: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 0.05,
) -> T:
    """Run ``work`` and commit it while holding the guard for ``day``.

    ``work`` is re-run from scratch on every attempt and must re-read anything
    it depends on. Losing the guard (or the store reporting a lock, serialization failure or
    unique violation) rolls back and retries. Any other store failure becomes
    ``Internal``; domain errors raised by ``work`` roll back and propagate
    unchanged.
    """
    repo = InterviewRepository(session)
    for attempt in range(1, attempts + 1):
        try:
            if await repo.claim_day(day):
                result = await work()
                await session.commit()
                return result
            log.info("Day guard for %s moved underneath us (attempt %d/%d)", day, attempt, attempts)
        except (IntegrityError, OperationalError, Contention) as ex:
            if not is_contention(ex):
                await session.rollback()
                log.exception("Store failure committing booking for %s", day)
                raise Internal("The booking could not be saved. Please try again later.") from ex
            log.info("Contention committing booking for %s (attempt %d/%d): %s", day, attempt, attempts, ex.__class__.__name__)
        except Exception:
            await session.rollback()
            raise
        await session.rollback()
        if attempt < attempts:
            await asyncio.sleep(backoff_seconds * (2 ** (attempt - 1)))
    raise SlotConflict("This time was just taken by someone else. Please choose another slot.")
