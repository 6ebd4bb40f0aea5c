from __future__ import annotations

import unittest
from datetime import date, datetime, time, timezone
from types import SimpleNamespace

from workledger.services.aggregation import AttendanceCounts, AttendanceEntry
from workledger.services.salary_calc import (
    advance_recovery_for_month,
    attendance_adjustment_total,
    calculate_monthly_salary,
    daily_adjustment_fraction,
    round_half_up,
    salary_preview,
    sum_adjustments,
)

UTC = timezone.utc


def _policy(**overrides):  # type: ignore[no-untyped-def]
    values = {
        "basic_salary": 0.0,
        "hra": 0.0,
        "travelling_allowance": 0.0,
        "children_education_allowance": 0.0,
        "fixed_incentive": 0.0,
        "employer_incentive": 0.0,
        "employee_pf_percentage": None,
        "employee_pf_fixed": None,
        "employer_pf_percentage": None,
        "employer_pf_fixed": None,
        "employee_esi_percentage": None,
        "employee_esi_fixed": None,
        "employer_esi_percentage": None,
        "employer_esi_fixed": None,
        "labour_welfare_employee": 0.0,
        "labour_welfare_employer": 0.0,
        "ex_gratia_percentage": None,
        "ex_gratia_fixed": None,
        "late_penalty_enabled": True,
        "late_penalty_per_minute": 0.0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class SalaryPreviewTests(unittest.TestCase):
    def test_preview_counts_leave_as_earned(self) -> None:
        preview = salary_preview(500, 20, 2, 1)
        self.assertEqual(preview.earned, 11000)
        self.assertEqual(preview.deduction, 500)
        self.assertEqual(preview.net, 10500)

    def test_round_half_up(self) -> None:
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(2.49), 2)


class DailyAdjustmentTests(unittest.TestCase):
    def test_late_check_in_bands(self) -> None:
        self.assertEqual(daily_adjustment_fraction(time(10, 0), time(18, 0)), 0.0)
        self.assertEqual(daily_adjustment_fraction(time(10, 1), time(18, 0)), 0.25)
        self.assertEqual(daily_adjustment_fraction(time(11, 30), time(18, 0)), 0.5)
        self.assertEqual(daily_adjustment_fraction(time(14, 0), time(18, 0)), 0.75)
        self.assertEqual(daily_adjustment_fraction(time(16, 5), None), 1.0)

    def test_early_check_out_bands_after_on_time_arrival(self) -> None:
        self.assertEqual(daily_adjustment_fraction(time(9, 30), time(13, 59)), 1.0)
        self.assertEqual(daily_adjustment_fraction(time(9, 30), time(16, 30)), 0.5)
        self.assertEqual(daily_adjustment_fraction(time(9, 30), time(17, 30)), 0.25)
        self.assertEqual(daily_adjustment_fraction(time(9, 30), None), 0.0)
        self.assertEqual(daily_adjustment_fraction(None, time(12, 0)), 0.0)

    def test_attendance_adjustment_total_only_counts_present_days(self) -> None:
        records = [
            AttendanceEntry(
                employee_email="asha@example.com",
                date=date(2026, 3, 2),
                status="present",
                check_in=datetime(2026, 3, 2, 11, 30, tzinfo=UTC),
                check_out=datetime(2026, 3, 2, 18, 0, tzinfo=UTC),
            ),
            AttendanceEntry(
                employee_email="asha@example.com",
                date=date(2026, 3, 3),
                status="absent",
                check_in=datetime(2026, 3, 3, 16, 30, tzinfo=UTC),
            ),
        ]

        self.assertEqual(attendance_adjustment_total(records, daily_salary=1000, tz=UTC), -500)

    def test_attendance_adjustment_total_skips_open_check_in_when_checkout_required(self) -> None:
        records = [
            AttendanceEntry(
                employee_email="asha@example.com",
                date=date(2026, 3, 2),
                status="checked_in",
                check_in=datetime(2026, 3, 2, 11, 30, tzinfo=UTC),
            ),
        ]

        self.assertEqual(attendance_adjustment_total(records, daily_salary=1000, tz=UTC), 0)
        self.assertEqual(
            attendance_adjustment_total(records, daily_salary=1000, tz=UTC, require_checkout=False),
            -500,
        )


class AdjustmentAndAdvanceTests(unittest.TestCase):
    def test_sum_adjustments_splits_additions_and_deductions(self) -> None:
        adjustments = [
            SimpleNamespace(adjustment_type="bonus", amount=1000, status="approved"),
            SimpleNamespace(adjustment_type="bonus", amount=500, status="pending"),
            SimpleNamespace(adjustment_type="incentive", amount=250, status="pending"),
            SimpleNamespace(adjustment_type="penalty", amount=200, status="pending"),
            SimpleNamespace(adjustment_type="other", amount=-300, status="approved"),
        ]

        additions, deductions = sum_adjustments(adjustments)

        self.assertEqual(additions, 1250)
        self.assertEqual(deductions, 500)

    def test_advance_recovery_is_capped_by_remaining_balance(self) -> None:
        advances = [
            SimpleNamespace(status="active", recovery_start_month="2026-01", installment_amount=1000, remaining_balance=600),
            SimpleNamespace(status="active", recovery_start_month="2026-03", installment_amount=1000, remaining_balance=5000),
            SimpleNamespace(status="closed", recovery_start_month="2025-01", installment_amount=1000, remaining_balance=1000),
        ]

        self.assertEqual(advance_recovery_for_month(advances, "2026-02"), 600)


class MonthlySalaryTests(unittest.TestCase):
    def test_prorated_salary_with_statutory_deductions(self) -> None:
        counts = AttendanceCounts(period_days=28, present=20, absent=2, half_day=1, leave=1, weekoff=4)
        policy = _policy(basic_salary=28000, employee_pf_percentage=12, employer_pf_percentage=12)

        result = calculate_monthly_salary(
            employee_email="asha@example.com",
            month="2026-02",
            days_in_month=28,
            counts=counts,
            policy=policy,
            tz=UTC,
        )

        # 20 + 0.5 + 1 + 4 paid days plus the first absence.
        self.assertEqual(result.total_paid_days, 26.5)
        self.assertEqual(result.basic_salary, 26500)
        self.assertEqual(result.employee_pf, 3180)
        self.assertEqual(result.employer_pf, 3180)
        self.assertEqual(result.absent_deduction, 1000)
        self.assertEqual(result.gross_salary, 26500)
        self.assertEqual(result.total_deductions, 3180)
        self.assertEqual(result.net_salary, 23320)
        self.assertEqual(result.ctc_monthly, 29680)
        self.assertTrue(result.has_policy)

    def test_paid_days_are_capped_at_days_in_month(self) -> None:
        counts = AttendanceCounts(period_days=28, present=28, absent=1)

        result = calculate_monthly_salary(
            employee_email="asha@example.com",
            month="2026-02",
            days_in_month=28,
            counts=counts,
            policy=_policy(basic_salary=28000),
            tz=UTC,
        )

        self.assertEqual(result.total_paid_days, 28)
        self.assertEqual(result.basic_salary, 28000)

    def test_late_penalty_uses_multiplier_and_policy_flag(self) -> None:
        counts = AttendanceCounts(period_days=28, present=28, late=3)

        enabled = calculate_monthly_salary(
            employee_email="asha@example.com",
            month="2026-02",
            days_in_month=28,
            counts=counts,
            policy=_policy(basic_salary=28000, late_penalty_per_minute=2),
            tz=UTC,
            late_penalty_multiplier=10,
        )
        disabled = calculate_monthly_salary(
            employee_email="asha@example.com",
            month="2026-02",
            days_in_month=28,
            counts=counts,
            policy=_policy(basic_salary=28000, late_penalty_per_minute=2, late_penalty_enabled=False),
            tz=UTC,
        )

        self.assertEqual(enabled.late_penalty, 60)
        self.assertEqual(enabled.net_salary, 27940)
        self.assertEqual(disabled.late_penalty, 0)

    def test_missing_policy_still_applies_advances(self) -> None:
        counts = AttendanceCounts(period_days=28, present=20)
        advances = [
            SimpleNamespace(status="active", recovery_start_month="2026-01", installment_amount=1500, remaining_balance=3000),
        ]

        result = calculate_monthly_salary(
            employee_email="asha@example.com",
            month="2026-02",
            days_in_month=28,
            counts=counts,
            policy=None,
            advances=advances,
            tz=UTC,
        )

        self.assertFalse(result.has_policy)
        self.assertIn("NO_ACTIVE_SALARY_POLICY", result.notes)
        self.assertEqual(result.gross_salary, 0)
        self.assertEqual(result.advance_recovery, 1500)
        self.assertEqual(result.net_salary, -1500)


if __name__ == "__main__":
    unittest.main()
