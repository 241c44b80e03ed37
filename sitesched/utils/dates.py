import calendar
from datetime import datetime, timedelta


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(value: datetime) -> datetime:
    """Monday of the week containing `value`."""
    return start_of_day(value) - timedelta(days=value.weekday())


def end_of_week(value: datetime) -> datetime:
    return start_of_week(value) + timedelta(days=6)


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def end_of_month(value: datetime) -> datetime:
    last = calendar.monthrange(value.year, value.month)[1]
    return start_of_day(value).replace(day=last)


def start_of_quarter(value: datetime) -> datetime:
    first_month = 3 * ((value.month - 1) // 3) + 1
    return start_of_day(value).replace(month=first_month, day=1)


def end_of_quarter(value: datetime) -> datetime:
    return end_of_month(add_months(start_of_quarter(value), 2))


def start_of_year(value: datetime) -> datetime:
    return start_of_day(value).replace(month=1, day=1)


def end_of_year(value: datetime) -> datetime:
    return start_of_day(value).replace(month=12, day=31)


def add_years(value: datetime, years: int) -> datetime:
    return add_months(value, 12 * years)
