"""
Tests for the daily status cache and the cooldown helpers.
"""

from conftest import DATE, ms

from attendance_sync.core.status_cache import (
    cooldown_message,
    is_within_cooldown,
    remaining_cooldown_seconds,
)


def test_get_for_date_missing_returns_none(cache):
    assert cache.get_for_date(DATE) is None


def test_record_check_in_creates_row(cache):
    row = cache.record_check_in(DATE, ms(9))

    assert row.has_checked_in is True
    assert row.has_checked_out is False
    assert row.check_in_time == ms(9)
    assert row.last_punch_time == ms(9)


def test_reapplying_check_in_keeps_first_time_but_advances_last_punch(cache):
    cache.record_check_in(DATE, ms(9))
    row = cache.record_check_in(DATE, ms(9, 10))

    assert row.check_in_time == ms(9)
    assert row.last_punch_time == ms(9, 10)


def test_record_check_out_keeps_latest_time(cache):
    cache.record_check_in(DATE, ms(9))
    cache.record_check_out(DATE, ms(18))
    row = cache.record_check_out(DATE, ms(17))

    assert row.has_checked_in is True
    assert row.has_checked_out is True
    assert row.check_out_time == ms(18)
    assert row.last_punch_time == ms(18)


def test_touch_never_moves_last_punch_backwards(cache):
    cache.touch(DATE, ms(10))
    row = cache.touch(DATE, ms(9))

    assert row.last_punch_time == ms(10)
    assert row.has_checked_in is False


def test_cooldown_blocks_second_punch_within_window(cache):
    """Test a punch 60 seconds after the last one is inside the 120s window."""
    cache.touch(DATE, ms(9))

    assert cache.is_within_cooldown(DATE, ms(9) + 60_000) is True
    assert cache.is_within_cooldown(DATE, ms(9) + 120_000) is False


def test_cooldown_without_row_allows_punch(cache):
    assert cache.is_within_cooldown(DATE, ms(9)) is False


def test_cooldown_custom_window(cache):
    cache.touch(DATE, ms(9))

    assert cache.is_within_cooldown(DATE, ms(9) + 60_000, window_ms=30_000) is False


def test_purge_older_than(cache):
    cache.touch("2026-09-01", ms(9, day=1))
    cache.touch(DATE, ms(9))

    assert cache.purge_older_than("2026-10-01") == 1
    assert cache.get_for_date("2026-09-01") is None
    assert cache.get_for_date(DATE) is not None


def test_cooldown_helpers():
    last = ms(9)

    assert is_within_cooldown(None, last) is False
    assert remaining_cooldown_seconds(last, last + 30_000) == 90
    assert remaining_cooldown_seconds(last, last + 200_000) == 0
    assert cooldown_message(last, last + 30_000) == (
        "Please wait 90 seconds before punching attendance again"
    )
    assert cooldown_message(last, last + 200_000) == "You can now punch attendance"


def test_remaining_cooldown_rounds_up_partial_seconds():
    last = ms(9)

    assert remaining_cooldown_seconds(last, last + 119_500) == 1
    assert remaining_cooldown_seconds(last, last + 60_001) == 60
    assert cooldown_message(last, last + 119_999) == (
        "Please wait 1 seconds before punching attendance again"
    )
