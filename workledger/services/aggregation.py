"""Attendance aggregation shared by reports, payroll and the API.

Every screen of the old admin panel re-derived its own present/absent counts.
Here a single pure function buckets a list of attendance records for one
period, and everything else is derived from the resulting ``AttendanceCounts``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Protocol

from workledger.services.attendance_calc import overtime_hours

PRESENT_STATUSES = frozenset({"present", "checked_out", "work_from_home"})
OPEN_CHECK_IN_STATUS = "checked_in"
LEAVE_STATUSES = frozenset({"leave", "sick_leave", "casual_leave"})
HALF_DAY_STATUS = "half_day"
ABSENT_STATUS = "absent"
WEEKOFF_STATUS = "weekoff"
HOLIDAY_STATUS = "holiday"
WFH_STATUS = "work_from_home"


class AttendanceLike(Protocol):
    employee_email: str
    date: date
    status: Any
    total_hours: float | None
    is_late: bool | None
    is_early_checkout: bool | None


@dataclass(frozen=True)
class AttendanceEntry:
    employee_email: str
    date: date
    status: str
    total_hours: float | None = 0.0
    is_late: bool | None = False
    is_early_checkout: bool | None = False
    check_in: datetime | None = None
    check_out: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class AttendanceCounts:
    period_days: int
    present: int = 0
    absent: int = 0
    half_day: int = 0
    leave: int = 0
    work_from_home: int = 0
    weekoff: int = 0
    holiday: int = 0
    late: int = 0
    early_checkout: int = 0
    open_check_in: int = 0
    total_hours: float = 0.0
    overtime_hours: float = 0.0
    marked_dates: list[date] = field(default_factory=list)

    @property
    def marked_days(self) -> int:
        return len(self.marked_dates)

    @property
    def not_marked_days(self) -> int:
        return max(0, self.period_days - self.marked_days)

    @property
    def present_equivalent_days(self) -> float:
        return self.present + 0.5 * self.half_day + self.leave

    @property
    def paid_days(self) -> float:
        return self.present_equivalent_days + self.weekoff + self.holiday

    @property
    def attendance_rate(self) -> float:
        denominator = self.present + self.absent + self.leave
        if denominator <= 0:
            return 0.0
        return round(self.present / denominator * 100, 1)

    @property
    def regularity_score(self) -> int:
        return max(0, 100 - self.absent * 5 - self.late * 2 - self.half_day * 3)

    @property
    def salary_deduction_days(self) -> float:
        # The first absence in a period is paid.
        return max(0, self.absent - 1) + 0.5 * self.half_day

    @property
    def avg_hours(self) -> float:
        if not self.marked_dates:
            return 0.0
        return round(self.total_hours / len(self.marked_dates), 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_days": self.period_days,
            "present": self.present,
            "absent": self.absent,
            "half_day": self.half_day,
            "leave": self.leave,
            "work_from_home": self.work_from_home,
            "weekoff": self.weekoff,
            "holiday": self.holiday,
            "late": self.late,
            "early_checkout": self.early_checkout,
            "open_check_in": self.open_check_in,
            "total_hours": round(self.total_hours, 2),
            "overtime_hours": round(self.overtime_hours, 2),
            "avg_hours": self.avg_hours,
            "marked_days": self.marked_days,
            "not_marked_days": self.not_marked_days,
            "present_equivalent_days": self.present_equivalent_days,
            "paid_days": self.paid_days,
            "attendance_rate": self.attendance_rate,
            "regularity_score": self.regularity_score,
            "salary_deduction_days": self.salary_deduction_days,
        }


def status_value(status: Any) -> str:
    return str(getattr(status, "value", status) or "").strip().lower()


def _recency_key(record: Any) -> datetime:
    for attr in ("updated_at", "created_at"):
        value = getattr(record, attr, None)
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value
    return datetime.min.replace(tzinfo=timezone.utc)


def present_statuses(*, require_checkout: bool = True) -> frozenset[str]:
    """Statuses that count as a worked day. An open check-in only counts when checkout is optional."""
    if require_checkout:
        return PRESENT_STATUSES
    return PRESENT_STATUSES | {OPEN_CHECK_IN_STATUS}


def latest_per_day(records: Iterable[AttendanceLike]) -> dict[date, AttendanceLike]:
    """Collapse same-day duplicates; the most recently updated record wins, ties go to the later one."""
    by_day: dict[date, AttendanceLike] = {}
    for record in records:
        current = by_day.get(record.date)
        if current is None or _recency_key(record) >= _recency_key(current):
            by_day[record.date] = record
    return by_day


def aggregate_attendance(
    records: Iterable[AttendanceLike],
    *,
    period_start: date,
    period_end: date,
    require_checkout: bool = True,
) -> AttendanceCounts:
    if period_end < period_start:
        raise ValueError("period_end must not be before period_start")

    in_period = [record for record in records if period_start <= record.date <= period_end]
    counts = AttendanceCounts(period_days=(period_end - period_start).days + 1)
    worked = present_statuses(require_checkout=require_checkout)

    for day, record in sorted(latest_per_day(in_period).items()):
        status = status_value(record.status)
        counts.marked_dates.append(day)

        if status in worked:
            counts.present += 1
            if status == WFH_STATUS:
                counts.work_from_home += 1
        elif status == OPEN_CHECK_IN_STATUS:
            counts.open_check_in += 1
        elif status == HALF_DAY_STATUS:
            counts.half_day += 1
        elif status in LEAVE_STATUSES:
            counts.leave += 1
        elif status == WEEKOFF_STATUS:
            counts.weekoff += 1
        elif status == HOLIDAY_STATUS:
            counts.holiday += 1
        elif status == ABSENT_STATUS:
            counts.absent += 1

        if record.is_late:
            counts.late += 1
        if record.is_early_checkout:
            counts.early_checkout += 1
        hours = float(record.total_hours or 0.0)
        counts.total_hours += hours
        counts.overtime_hours += overtime_hours(hours)

    return counts


def summarize_by_employee(
    records: Iterable[AttendanceLike],
    employee_emails: Iterable[str],
    *,
    period_start: date,
    period_end: date,
    require_checkout: bool = True,
) -> dict[str, AttendanceCounts]:
    grouped: dict[str, list[AttendanceLike]] = {}
    for record in records:
        grouped.setdefault(record.employee_email, []).append(record)

    summary: dict[str, AttendanceCounts] = {}
    for email in employee_emails:
        summary[email] = aggregate_attendance(
            grouped.get(email, []),
            period_start=period_start,
            period_end=period_end,
            require_checkout=require_checkout,
        )
    return summary
