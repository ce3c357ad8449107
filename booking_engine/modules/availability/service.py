import logging
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.errors import InvalidInput
from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.availability.repository import AvailabilityRepository
from booking_engine.modules.availability.schemas import (
    AvailabilityConfig,
    BookingBlocksIn,
    BookingBlocksOut,
    DEFAULT_CONFIGS,
    LunchBlock,
    TRIAL_DURATION_MINUTES,
    default_blocks,
    default_config,
    merge_with_defaults,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    def __init__(self, s: AsyncSession):
        self.s = s
        self.repo = AvailabilityRepository(s)

    async def get_config(self, kind: str) -> tuple[AvailabilityConfig, bool]:
        """Effective config for ``kind`` and whether it came from the defaults.

        Listing must keep working when the settings row is unreadable or holds
        an invalid document, so both cases degrade to the defaults.
        """
        if kind not in DEFAULT_CONFIGS:
            raise InvalidInput(f"Unknown booking kind: {kind}")
        try:
            row = await self.repo.get_settings(kind)
        except SQLAlchemyError:
            logger.warning("Could not read %s availability settings; using defaults", kind, exc_info=True)
            await self.s.rollback()
            return default_config(kind), True
        if row is None:
            return default_config(kind), True
        try:
            return merge_with_defaults(kind, row.config), False
        except ValidationError:
            logger.warning("Stored %s availability settings are invalid; using defaults", kind, exc_info=True)
            return default_config(kind), True

    async def update_config(self, kind: str, payload: AvailabilityConfig, actor: str) -> AvailabilityConfig:
        if kind not in DEFAULT_CONFIGS:
            raise InvalidInput(f"Unknown booking kind: {kind}")
        doc = payload.model_dump()
        if kind == "trial":
            # trials are always a half-day block
            doc["slot_duration_minutes"] = TRIAL_DURATION_MINUTES
        previous = await self.repo.get_settings(kind)
        previous_doc = dict(previous.config) if previous else None
        await self.repo.upsert_settings(kind, doc, actor)
        await AuditService(self.s).log(
            entity_type="availability_settings",
            entity_id=kind,
            action="updated",
            description=f"{kind.capitalize()} availability updated",
            previous_value=previous_doc,
            new_value=doc,
            actor=actor,
        )
        await self.s.commit()
        return merge_with_defaults(kind, doc)

    async def get_blocks(self) -> BookingBlocksOut:
        try:
            row = await self.repo.get_blocks()
        except SQLAlchemyError:
            logger.warning("Could not read booking blocks; using defaults", exc_info=True)
            await self.s.rollback()
            return default_blocks()
        if row is None:
            return default_blocks()
        try:
            return BookingBlocksOut(
                bank_holidays=row.bank_holidays or [],
                lunch_block=LunchBlock.model_validate(row.lunch_block or {}),
            )
        except ValidationError:
            logger.warning("Stored booking blocks are invalid; using defaults", exc_info=True)
            return default_blocks()

    async def update_blocks(self, payload: BookingBlocksIn, actor: str) -> BookingBlocksOut:
        holidays = sorted({d.isoformat() for d in payload.bank_holidays})
        lunch = payload.lunch_block.model_dump()
        await self.repo.upsert_blocks(holidays, lunch, actor)
        await AuditService(self.s).log(
            entity_type="booking_blocks",
            entity_id="default",
            action="updated",
            description=f"Booking blocks updated ({len(holidays)} bank holidays, lunch {'on' if payload.lunch_block.enabled else 'off'})",
            new_value={"bank_holidays": holidays, "lunch_block": lunch},
            actor=actor,
        )
        await self.s.commit()
        return BookingBlocksOut(bank_holidays=payload.bank_holidays, lunch_block=payload.lunch_block)
