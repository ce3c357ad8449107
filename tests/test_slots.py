from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from booking_engine.modules.availability.schemas import (
    BookingBlocksOut,
    LunchBlock,
    default_blocks,
    default_config,
    merge_with_defaults,
)
from booking_engine.modules.availability.slots import (
    BLOCKED_HOLIDAY,
    BusyInterval,
    REASON_BOOKED,
    REASON_LUNCH,
    REASON_NOTICE,
    block_reason,
    evaluate_slots,
    fully_booked_dates,
    generate_slots,
    to_instant,
)

UTC = ZoneInfo("UTC")
TUESDAY = date(2025, 6, 3)
NO_BLOCKS = BookingBlocksOut(bank_holidays=[], lunch_block=LunchBlock())


def times(candidates):
    return [c.time for c in candidates]


def config_with(window=("09:00", "17:00"), **overrides):
    doc = {
        "schedule": {"tuesday": {"enabled": True, "windows": [{"start": window[0], "end": window[1]}]}},
        **overrides,
    }
    return merge_with_defaults("interview", doc)


def test_default_interview_grid_steps_by_duration_plus_buffer():
    slots = times(generate_slots(TUESDAY, "interview", default_config("interview"), NO_BLOCKS))
    assert slots[:4] == ["09:00", "09:45", "10:30", "11:15"]
    assert slots[-1] == "16:30"


def test_disabled_weekday_yields_nothing():
    saturday = date(2025, 6, 7)
    assert list(generate_slots(saturday, "interview", default_config("interview"), NO_BLOCKS)) == []


def test_slots_never_run_past_window_end():
    cfg = config_with(window=("09:00", "10:10"), buffer_minutes=0)
    # buffer 0 falls back to the default buffer of 15
    assert times(generate_slots(TUESDAY, "interview", cfg, NO_BLOCKS)) == ["09:00"]
    for c in generate_slots(TUESDAY, "interview", config_with(window=("09:00", "12:20")), NO_BLOCKS):
        assert c.end_minute <= 12 * 60 + 20


def test_multiple_windows_are_walked_in_order():
    cfg = merge_with_defaults("interview", {
        "schedule": {"tuesday": {"enabled": True, "windows": [
            {"start": "14:00", "end": "15:00"},
            {"start": "09:00", "end": "10:00"},
        ]}},
    })
    assert times(generate_slots(TUESDAY, "interview", cfg, NO_BLOCKS)) == ["09:00", "14:00"]


def test_trial_is_always_four_hours():
    cfg = default_config("trial")
    slots = list(generate_slots(TUESDAY, "trial", cfg, NO_BLOCKS))
    assert times(slots) == ["09:00"]
    assert slots[0].end_minute - slots[0].start_minute == 240


def test_bank_holiday_blocks_whole_day():
    blocks = default_blocks()
    holiday = date(2025, 8, 25)
    assert block_reason(holiday, blocks) == BLOCKED_HOLIDAY
    assert list(generate_slots(holiday, "interview", default_config("interview"), blocks)) == []


def test_lunch_overlap_is_flagged_on_candidates():
    blocks = BookingBlocksOut(bank_holidays=[], lunch_block=LunchBlock(enabled=True))
    flagged = {c.time for c in generate_slots(TUESDAY, "interview", default_config("interview"), blocks) if c.in_lunch}
    # 12:00-12:30 and 12:45-13:15 touch 12:00-13:00; 11:15-11:45 and 13:30 do not
    assert flagged == {"12:00", "12:45"}


def test_notice_window_marks_early_slots():
    now = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)
    cfg = default_config("interview")
    monday = date(2025, 6, 2)
    out = evaluate_slots(monday, generate_slots(monday, "interview", cfg, NO_BLOCKS), busy=[],
                         buffer_minutes=15, min_notice_hours=24, now=now, tz=UTC)
    assert out and all(not s.available and s.reason == REASON_NOTICE for s in out)

    out = evaluate_slots(TUESDAY, generate_slots(TUESDAY, "interview", cfg, NO_BLOCKS), busy=[],
                         buffer_minutes=15, min_notice_hours=24, now=now, tz=UTC)
    assert out[0].time == "09:00" and out[0].available


def test_buffer_blocks_neighbouring_slot():
    now = datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)
    booked = BusyInterval(datetime(2025, 6, 3, 10, 0, tzinfo=timezone.utc), datetime(2025, 6, 3, 10, 30, tzinfo=timezone.utc))
    out = {s.time: s for s in evaluate_slots(
        TUESDAY, generate_slots(TUESDAY, "interview", default_config("interview"), NO_BLOCKS),
        busy=[booked], buffer_minutes=15, min_notice_hours=24, now=now, tz=UTC,
    )}
    assert out["09:45"].reason == REASON_BOOKED
    assert out["10:30"].reason == REASON_BOOKED
    assert out["09:00"].available
    assert out["11:15"].available


def test_reason_precedence_notice_then_booked_then_lunch():
    blocks = BookingBlocksOut(bank_holidays=[], lunch_block=LunchBlock(enabled=True))
    noon = BusyInterval(datetime(2025, 6, 3, 12, 0, tzinfo=timezone.utc), datetime(2025, 6, 3, 12, 30, tzinfo=timezone.utc))
    candidates = [c for c in generate_slots(TUESDAY, "interview", default_config("interview"), blocks) if c.time == "12:00"]

    far = datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)
    near = datetime(2025, 6, 3, 0, 0, tzinfo=timezone.utc)
    assert evaluate_slots(TUESDAY, candidates, busy=[noon], buffer_minutes=15, min_notice_hours=24, now=near, tz=UTC)[0].reason == REASON_NOTICE
    assert evaluate_slots(TUESDAY, candidates, busy=[noon], buffer_minutes=15, min_notice_hours=24, now=far, tz=UTC)[0].reason == REASON_BOOKED
    assert evaluate_slots(TUESDAY, candidates, busy=[], buffer_minutes=15, min_notice_hours=24, now=far, tz=UTC)[0].reason == REASON_LUNCH


def test_local_times_follow_business_timezone():
    london = ZoneInfo("Europe/London")
    assert to_instant(TUESDAY, 9 * 60, london) == datetime(2025, 6, 3, 8, 0, tzinfo=timezone.utc)
    assert to_instant(date(2025, 12, 2), 9 * 60, london) == datetime(2025, 12, 2, 9, 0, tzinfo=timezone.utc)


def test_fully_booked_threshold():
    counts = {TUESDAY: 8, TUESDAY + timedelta(days=1): 7}
    assert fully_booked_dates(counts, 8) == [TUESDAY]
