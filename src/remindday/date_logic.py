from __future__ import annotations

import calendar
from datetime import date, datetime, time

from remindday.models import DiagnosticKind
from remindday.validation import ValidationError, parse_birth_date, parse_time_of_day

DEFAULT_LEAP_DAY_RULE = "feb28"
ALLOWED_LEAP_DAY_RULES = {"feb28", "mar1"}


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def occurrence_for_year(month: int, day: int, year: int, leap_day_rule: str = DEFAULT_LEAP_DAY_RULE) -> date:
    if month == 2 and day == 29 and not is_leap_year(year):
        if leap_day_rule == "feb28":
            return date(year, 2, 28)
        if leap_day_rule == "mar1":
            return date(year, 3, 1)
        raise ValidationError(
            DiagnosticKind.INVALID_BIRTH_DATE_FORMAT,
            f"Unsupported leap day rule: {leap_day_rule}",
        )
    return date(year, month, day)


def next_occurrence(birth_date: str, today: date, leap_day_rule: str = DEFAULT_LEAP_DAY_RULE) -> date:
    month, day = parse_birth_date(birth_date)
    this_year = occurrence_for_year(month, day, today.year, leap_day_rule)
    if this_year >= today:
        return this_year
    return occurrence_for_year(month, day, today.year + 1, leap_day_rule)


def days_until_next_occurrence(
    birth_date: str,
    reference: datetime,
    leap_day_rule: str = DEFAULT_LEAP_DAY_RULE,
) -> int:
    """Whole days from ``reference``'s local date to the next occurrence, 0 when it is today."""
    today = reference.date()
    return (next_occurrence(birth_date, today, leap_day_rule) - today).days


def next_trigger_instant(
    birth_date: str,
    time_of_day: str,
    reference: datetime,
    leap_day_rule: str = DEFAULT_LEAP_DAY_RULE,
) -> datetime:
    """First wall-clock instant strictly after ``reference`` at ``time_of_day`` on the birthday.

    The result shares ``reference``'s tzinfo, so a naive reference gives a
    naive instant.
    """
    month, day = parse_birth_date(birth_date)
    hour, minute = parse_time_of_day(time_of_day)
    at = time(hour=hour, minute=minute)

    candidate = datetime.combine(
        occurrence_for_year(month, day, reference.year, leap_day_rule), at, tzinfo=reference.tzinfo
    )
    if candidate <= reference:
        candidate = datetime.combine(
            occurrence_for_year(month, day, reference.year + 1, leap_day_rule), at, tzinfo=reference.tzinfo
        )
    return candidate


def celebrates_on(birth_date: str, day: date, leap_day_rule: str = DEFAULT_LEAP_DAY_RULE) -> bool:
    month, dom = parse_birth_date(birth_date)
    return occurrence_for_year(month, dom, day.year, leap_day_rule) == day


def format_for_display(birth_date: str) -> str:
    month, day = parse_birth_date(birth_date)
    return f"{calendar.month_name[month]} {day}"
