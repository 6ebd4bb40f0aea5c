from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone

from workledger.services.aggregation import AttendanceEntry, aggregate_attendance, summarize_by_employee

EMAIL = "asha@example.com"
WEEK_START = date(2026, 2, 1)
WEEK_END = date(2026, 2, 7)


def _entry(day: date, status: str, **kwargs) -> AttendanceEntry:  # type: ignore[no-untyped-def]
    return AttendanceEntry(employee_email=EMAIL, date=day, status=status, **kwargs)


class AggregateAttendanceTests(unittest.TestCase):
    def test_counts_each_status_bucket(self) -> None:
        records = [
            _entry(date(2026, 2, 1), "weekoff"),
            _entry(date(2026, 2, 2), "present", total_hours=10.5),
            _entry(date(2026, 2, 3), "half_day", total_hours=4.0),
            _entry(date(2026, 2, 4), "sick_leave"),
            _entry(date(2026, 2, 5), "absent"),
            _entry(date(2026, 2, 6), "work_from_home", is_late=True, total_hours=9.0),
            _entry(date(2026, 2, 10), "present"),
        ]

        counts = aggregate_attendance(records, period_start=WEEK_START, period_end=WEEK_END)

        self.assertEqual(counts.period_days, 7)
        self.assertEqual(counts.present, 2)
        self.assertEqual(counts.work_from_home, 1)
        self.assertEqual(counts.half_day, 1)
        self.assertEqual(counts.leave, 1)
        self.assertEqual(counts.absent, 1)
        self.assertEqual(counts.weekoff, 1)
        self.assertEqual(counts.late, 1)
        self.assertEqual(counts.marked_days, 6)
        self.assertEqual(counts.not_marked_days, 1)
        self.assertEqual(counts.present_equivalent_days, 3.5)
        self.assertEqual(counts.paid_days, 4.5)
        self.assertEqual(counts.salary_deduction_days, 0.5)
        self.assertEqual(counts.attendance_rate, 50.0)
        self.assertEqual(counts.regularity_score, 90)
        self.assertEqual(counts.overtime_hours, 1.5)
        self.assertEqual(counts.total_hours, 23.5)

    def test_open_check_in_is_not_a_worked_day_when_checkout_required(self) -> None:
        records = [
            _entry(date(2026, 2, 2), "checked_in", is_late=True),
            _entry(date(2026, 2, 3), "checked_out", total_hours=9.0),
        ]

        counts = aggregate_attendance(records, period_start=WEEK_START, period_end=WEEK_END)

        self.assertEqual(counts.present, 1)
        self.assertEqual(counts.open_check_in, 1)
        self.assertEqual(counts.paid_days, 1.0)
        self.assertEqual(counts.late, 1)
        self.assertEqual(counts.marked_days, 2)

    def test_open_check_in_counts_when_checkout_optional(self) -> None:
        records = [_entry(date(2026, 2, 2), "checked_in")]

        counts = aggregate_attendance(
            records,
            period_start=WEEK_START,
            period_end=WEEK_END,
            require_checkout=False,
        )

        self.assertEqual(counts.present, 1)
        self.assertEqual(counts.open_check_in, 0)
        self.assertEqual(counts.paid_days, 1.0)

    def test_latest_record_wins_for_duplicate_day(self) -> None:
        earlier = datetime(2026, 2, 2, 8, 0, tzinfo=timezone.utc)
        records = [
            _entry(date(2026, 2, 2), "absent", updated_at=earlier),
            _entry(date(2026, 2, 2), "present", updated_at=earlier + timedelta(hours=2)),
        ]

        counts = aggregate_attendance(records, period_start=WEEK_START, period_end=WEEK_END)

        self.assertEqual(counts.present, 1)
        self.assertEqual(counts.absent, 0)
        self.assertEqual(counts.marked_days, 1)

    def test_present_equivalent_never_exceeds_period_days(self) -> None:
        records = []
        day = WEEK_START
        while day <= WEEK_END:
            records.append(_entry(day, "present"))
            records.append(_entry(day, "sick_leave"))
            records.append(_entry(day, "present"))
            day += timedelta(days=1)

        counts = aggregate_attendance(records, period_start=WEEK_START, period_end=WEEK_END)

        self.assertLessEqual(counts.present_equivalent_days, counts.period_days)
        self.assertEqual(counts.marked_days, 7)
        self.assertEqual(counts.not_marked_days, 0)

    def test_first_absence_is_not_a_deduction_day(self) -> None:
        records = [_entry(date(2026, 2, 2), "absent"), _entry(date(2026, 2, 3), "absent")]

        counts = aggregate_attendance(records, period_start=WEEK_START, period_end=WEEK_END)

        self.assertEqual(counts.salary_deduction_days, 1)

    def test_empty_period_has_zero_rate(self) -> None:
        counts = aggregate_attendance([], period_start=WEEK_START, period_end=WEEK_END)
        self.assertEqual(counts.attendance_rate, 0.0)
        self.assertEqual(counts.avg_hours, 0.0)
        self.assertEqual(counts.not_marked_days, 7)

    def test_reversed_period_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            aggregate_attendance([], period_start=WEEK_END, period_end=WEEK_START)

    def test_summarize_by_employee_includes_employees_without_records(self) -> None:
        records = [_entry(date(2026, 2, 2), "present")]

        summary = summarize_by_employee(
            records,
            [EMAIL, "ravi@example.com"],
            period_start=WEEK_START,
            period_end=WEEK_END,
        )

        self.assertEqual(summary[EMAIL].present, 1)
        self.assertEqual(summary["ravi@example.com"].marked_days, 0)


if __name__ == "__main__":
    unittest.main()
