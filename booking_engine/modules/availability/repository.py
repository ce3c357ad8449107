from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from booking_engine.modules.availability.models import AvailabilitySettings, BookingBlocks

class AvailabilityRepository:
    def __init__(self, s: AsyncSession): self.s = s

    async def get_settings(self, kind: str) -> AvailabilitySettings | None:
        res = await self.s.execute(select(AvailabilitySettings).where(AvailabilitySettings.kind == kind))
        return res.scalar_one_or_none()

    async def upsert_settings(self, kind: str, config: dict, updated_by: str | None) -> AvailabilitySettings:
        obj = await self.get_settings(kind)
        if obj is None:
            obj = AvailabilitySettings(kind=kind, config=config, updated_by=updated_by)
            self.s.add(obj)
        else:
            obj.config = config
            obj.updated_by = updated_by
        await self.s.flush()
        return obj

    async def get_blocks(self) -> BookingBlocks | None:
        res = await self.s.execute(select(BookingBlocks).where(BookingBlocks.key == "default"))
        return res.scalar_one_or_none()

    async def upsert_blocks(self, bank_holidays: list[str], lunch_block: dict, updated_by: str | None) -> BookingBlocks:
        obj = await self.get_blocks()
        if obj is None:
            obj = BookingBlocks(key="default", bank_holidays=bank_holidays, lunch_block=lunch_block, updated_by=updated_by)
            self.s.add(obj)
        else:
            obj.bank_holidays = bank_holidays
            obj.lunch_block = lunch_block
            obj.updated_by = updated_by
        await self.s.flush()
        return obj
