from datetime import date

import pytest
from pydantic import ValidationError

from booking_engine.modules.audit.service import AuditService
from booking_engine.modules.availability.repository import AvailabilityRepository
from booking_engine.modules.availability.schemas import AvailabilityConfig, BookingBlocksIn, LunchBlock, merge_with_defaults
from booking_engine.modules.availability.service import AvailabilityService


async def test_defaults_when_nothing_stored(session):
    config, is_default = await AvailabilityService(session).get_config("interview")
    assert is_default
    assert config.slot_duration_minutes == 30
    assert config.buffer_minutes == 15
    assert config.advance_booking_days == 14
    assert config.min_notice_hours == 24
    assert config.schedule["saturday"].enabled is False

    trial, _ = await AvailabilityService(session).get_config("trial")
    assert (trial.slot_duration_minutes, trial.buffer_minutes, trial.advance_booking_days, trial.min_notice_hours) == (240, 30, 21, 48)


def test_missing_or_zero_fields_fall_back_individually():
    config = merge_with_defaults("interview", {"buffer_minutes": 0, "advance_booking_days": 7})
    assert config.buffer_minutes == 15
    assert config.advance_booking_days == 7
    assert config.slot_duration_minutes == 30


def test_overlapping_windows_are_rejected_on_write():
    with pytest.raises(ValidationError):
        AvailabilityConfig.model_validate({
            "schedule": {"monday": {"enabled": True, "windows": [
                {"start": "09:00", "end": "12:00"},
                {"start": "11:30", "end": "14:00"},
            ]}},
            "slot_duration_minutes": 30, "buffer_minutes": 0, "advance_booking_days": 14, "min_notice_hours": 24,
        })


def test_window_must_start_before_it_ends():
    with pytest.raises(ValidationError):
        AvailabilityConfig.model_validate({
            "schedule": {"monday": {"enabled": True, "windows": [{"start": "12:00", "end": "09:00"}]}},
            "slot_duration_minutes": 30, "buffer_minutes": 0, "advance_booking_days": 14, "min_notice_hours": 24,
        })


async def test_update_config_persists_and_logs(session):
    service = AvailabilityService(session)
    payload = AvailabilityConfig.model_validate({
        "schedule": {"monday": {"enabled": True, "windows": [{"start": "10:00", "end": "12:00"}]}},
        "slot_duration_minutes": 45, "buffer_minutes": 10, "advance_booking_days": 10, "min_notice_hours": 12,
    })
    await service.update_config("interview", payload, actor="user:test")

    config, is_default = await service.get_config("interview")
    assert not is_default
    assert config.slot_duration_minutes == 45
    assert config.schedule["monday"].windows[0].start == "10:00"

    entries = await AuditService(session).list(entity_type="availability_settings")
    assert entries[0].action == "updated"


async def test_trial_duration_cannot_be_changed(session):
    payload = AvailabilityConfig.model_validate({
        "schedule": {}, "slot_duration_minutes": 60, "buffer_minutes": 30, "advance_booking_days": 21, "min_notice_hours": 48,
    })
    config = await AvailabilityService(session).update_config("trial", payload, actor="user:test")
    assert config.slot_duration_minutes == 240


async def test_invalid_stored_document_degrades_to_defaults(session):
    await AvailabilityRepository(session).upsert_settings("interview", {"schedule": {"funday": {}}}, "user:test")
    await session.commit()
    config, is_default = await AvailabilityService(session).get_config("interview")
    assert is_default
    assert config.slot_duration_minutes == 30


async def test_blocks_default_to_uk_bank_holidays(session):
    blocks = await AvailabilityService(session).get_blocks()
    assert date(2025, 12, 25) in blocks.holidays
    assert date(2026, 8, 31) in blocks.holidays
    assert blocks.lunch_block.enabled is False


async def test_blocks_round_trip(session):
    service = AvailabilityService(session)
    await service.update_blocks(
        BookingBlocksIn(bank_holidays=[date(2025, 6, 4)], lunch_block=LunchBlock(enabled=True, start="12:30", end="13:30")),
        actor="user:test",
    )
    blocks = await service.get_blocks()
    assert blocks.holidays == frozenset({date(2025, 6, 4)})
    assert blocks.lunch_block.start == "12:30"
