from __future__ import annotations

from collections.abc import Collection
from datetime import date, datetime, time, timedelta, timezone, tzinfo

STANDARD_WORK_HOURS = 9.0
MIN_LATE_THRESHOLD_MINUTES = 1


def parse_hhmm(value: str) -> time:
    hour_str, sep, minute_str = value.strip().partition(":")
    if not sep or not hour_str.isdigit() or not minute_str.isdigit():
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    hour = int(hour_str)
    minute = int(minute_str)
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    return time(hour=hour, minute=minute)


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def to_local(ts: datetime, tz: tzinfo) -> datetime:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz)


def _late_cutoff(check_in_local: datetime, work_start: time, threshold_minutes: int) -> datetime:
    threshold = max(MIN_LATE_THRESHOLD_MINUTES, int(threshold_minutes or 0))
    start = check_in_local.replace(hour=work_start.hour, minute=work_start.minute, second=0, microsecond=0)
    return start + timedelta(minutes=threshold)


def is_late_check_in(
    check_in: datetime,
    *,
    work_start: time,
    threshold_minutes: int,
    tz: tzinfo,
) -> bool:
    """True when the local check-in is strictly after work start plus the grace threshold."""
    check_in_local = to_local(check_in, tz)
    return check_in_local > _late_cutoff(check_in_local, work_start, threshold_minutes)


def late_minutes(
    check_in: datetime,
    *,
    work_start: time,
    threshold_minutes: int,
    tz: tzinfo,
) -> int:
    if not is_late_check_in(check_in, work_start=work_start, threshold_minutes=threshold_minutes, tz=tz):
        return 0
    check_in_local = to_local(check_in, tz)
    start = check_in_local.replace(hour=work_start.hour, minute=work_start.minute, second=0, microsecond=0)
    return int((check_in_local - start).total_seconds() // 60)


def worked_hours(check_in: datetime | None, check_out: datetime | None) -> float:
    if check_in is None or check_out is None:
        return 0.0
    if check_in.tzinfo is None:
        check_in = check_in.replace(tzinfo=timezone.utc)
    if check_out.tzinfo is None:
        check_out = check_out.replace(tzinfo=timezone.utc)
    seconds = (check_out - check_in).total_seconds()
    if seconds <= 0:
        return 0.0
    return round(seconds / 3600, 2)


def is_early_checkout(total_hours: float, threshold_hours: float | None) -> bool:
    if not threshold_hours:
        return False
    return total_hours < threshold_hours


def is_half_day(total_hours: float, minimum_work_hours: float | None) -> bool:
    """A shift shorter than half of the minimum work hours counts as a half day."""
    if not minimum_work_hours:
        return False
    return total_hours < minimum_work_hours / 2


def overtime_hours(total_hours: float, standard_hours: float = STANDARD_WORK_HOURS) -> float:
    return max(0.0, (total_hours or 0.0) - standard_hours)


def is_work_day(
    day: date,
    *,
    week_off_days: Collection[int],
    holidays: Collection[date] = (),
) -> bool:
    if day.weekday() in week_off_days:
        return False
    return day not in holidays


def month_bounds(year: int, month: int) -> tuple[date, date]:
    start = date(year, month, 1)
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return start, next_month - timedelta(days=1)


def parse_month(value: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` label into ``(year, month)``."""
    year_str, sep, month_str = value.strip().partition("-")
    if not sep or len(year_str) != 4 or not year_str.isdigit() or not month_str.isdigit():
        raise ValueError(f"Invalid month value: {value!r}")
    month = int(month_str)
    if month < 1 or month > 12:
        raise ValueError(f"Invalid month value: {value!r}")
    return int(year_str), month
