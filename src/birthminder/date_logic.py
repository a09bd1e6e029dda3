from __future__ import annotations

from datetime import date, timedelta

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class InvalidBirthdayError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def validate_month_day(month: int, day: int, *, allow_feb_29: bool = True) -> None:
    if month < 1 or month > 12:
        raise InvalidBirthdayError(f"Invalid month: {month}")

    if day < 1 or day > 31:
        raise InvalidBirthdayError(f"Invalid day: {day}")

    year = 2000 if allow_feb_29 else 2001
    try:
        date(year, month, day)
    except ValueError as exc:
        raise InvalidBirthdayError(f"Invalid month/day combination: {month:02d}-{day:02d}") from exc


def occurrence_in_year(month: int, day: int, year: int) -> date:
    # Leap-day birthdays are observed on Feb 28 in common years.
    if month == 2 and day == 29 and not is_leap_year(year):
        return date(year, 2, 28)
    return date(year, month, day)


def next_occurrence(month: int, day: int, today: date) -> date:
    this_year = occurrence_in_year(month, day, today.year)
    if this_year >= today:
        return this_year
    return occurrence_in_year(month, day, today.year + 1)


def days_until(month: int, day: int, today: date) -> int:
    return (next_occurrence(month, day, today) - today).days


def age_on_next_occurrence(birth_year: int | None, month: int, day: int, today: date) -> int | None:
    """Age the person turns on their upcoming birthday, not their current age."""
    if birth_year is None:
        return None
    return next_occurrence(month, day, today).year - birth_year


def is_today(month: int, day: int, today: date) -> bool:
    return today.month == month and today.day == day


def reminder_date(month: int, day: int, today: date, days_before: int) -> date:
    return next_occurrence(month, day, today) - timedelta(days=days_before)


def format_date(month: int, day: int, year: int | None = None) -> str:
    month_day = f"{MONTH_NAMES[month - 1]} {day}"
    if year is not None:
        return f"{month_day}, {year}"
    return month_day
