from datetime import date, datetime, timedelta, timezone

import pytest

from remindday.date_logic import (
    celebrates_on,
    days_until_next_occurrence,
    format_for_display,
    next_trigger_instant,
    occurrence_for_year,
)
from remindday.validation import ValidationError


def test_days_until_future_date_same_year() -> None:
    assert days_until_next_occurrence("03-14", datetime(2026, 3, 1, 10, 30)) == 13


def test_days_until_is_zero_all_day_long() -> None:
    assert days_until_next_occurrence("10-17", datetime(2026, 10, 17, 0, 0)) == 0
    assert days_until_next_occurrence("10-17", datetime(2026, 10, 17, 23, 59)) == 0


def test_days_until_next_year_after_passed() -> None:
    reference = datetime(2026, 6, 1, 8, 0)
    assert days_until_next_occurrence("01-02", reference) == (date(2027, 1, 2) - reference.date()).days


def test_days_until_stays_within_a_year_for_every_valid_date() -> None:
    reference = datetime(2026, 10, 17, 12, 0)
    day = date(2000, 1, 1)
    while day.year == 2000:
        birth_date = day.strftime("%m-%d")
        result = days_until_next_occurrence(birth_date, reference)
        if birth_date == "10-17":
            assert result == 0
        else:
            assert 1 <= result <= 366
        day += timedelta(days=1)


def test_next_trigger_rolls_over_when_this_year_passed() -> None:
    instant = next_trigger_instant("01-01", "00:00", datetime(2025, 1, 1, 0, 0, 1))
    assert instant == datetime(2026, 1, 1, 0, 0)


def test_next_trigger_at_exact_instant_rolls_over() -> None:
    instant = next_trigger_instant("03-14", "09:00", datetime(2026, 3, 14, 9, 0))
    assert instant == datetime(2027, 3, 14, 9, 0)


def test_next_trigger_later_today_stays_this_year() -> None:
    instant = next_trigger_instant("03-14", "18:30", datetime(2026, 3, 14, 9, 0))
    assert instant == datetime(2026, 3, 14, 18, 30)


def test_next_trigger_keeps_reference_tzinfo() -> None:
    reference = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    instant = next_trigger_instant("05-02", "07:15", reference)
    assert instant == datetime(2026, 5, 2, 7, 15, tzinfo=timezone.utc)


def test_feb_29_maps_to_feb_28_on_non_leap_year() -> None:
    reference = datetime(2025, 2, 27, 12, 0)

    assert days_until_next_occurrence("02-29", reference) == 1
    assert next_trigger_instant("02-29", "09:00", reference) == datetime(2025, 2, 28, 9, 0)
    assert celebrates_on("02-29", date(2025, 2, 28)) is True


def test_feb_29_mar1_rule() -> None:
    reference = datetime(2025, 2, 27, 12, 0)

    assert days_until_next_occurrence("02-29", reference, "mar1") == 2
    assert next_trigger_instant("02-29", "09:00", reference, "mar1") == datetime(2025, 3, 1, 9, 0)


def test_feb_29_keeps_date_on_leap_year() -> None:
    reference = datetime(2028, 2, 27, 12, 0)

    assert next_trigger_instant("02-29", "09:00", reference) == datetime(2028, 2, 29, 9, 0)
    assert celebrates_on("02-29", date(2028, 2, 28)) is False


def test_unknown_leap_day_rule_rejected() -> None:
    with pytest.raises(ValidationError):
        occurrence_for_year(2, 29, 2025, "skip")


def test_invalid_birth_date_rejected() -> None:
    with pytest.raises(ValidationError):
        days_until_next_occurrence("13-01", datetime(2026, 1, 1))


def test_format_for_display() -> None:
    assert format_for_display("03-14") == "March 14"
    assert format_for_display("12-01") == "December 1"
