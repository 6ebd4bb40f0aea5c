from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import time, tzinfo
from math import floor
from typing import Any

from workledger.services.aggregation import (
    AttendanceCounts,
    latest_per_day,
    present_statuses,
    status_value,
)
from workledger.services.attendance_calc import to_local

EXPECTED_CHECK_IN = time(10, 0)
EXPECTED_CHECK_OUT_START = time(17, 0)
EXPECTED_CHECK_OUT_END = time(18, 0)
EARLY_CHECK_OUT_FULL_DAY = time(14, 0)
DEFAULT_LATE_PENALTY_MULTIPLIER = 10

# (from hour inclusive, fraction of daily salary deducted)
LATE_CHECK_IN_BANDS: tuple[tuple[int, float], ...] = (
    (16, 1.0),
    (14, 0.75),
    (11, 0.5),
    (10, 0.25),
)

ADDITION_TYPES = frozenset({"bonus", "reimbursement", "allowance", "other"})
DEDUCTION_TYPES = frozenset({"advance_deduction", "penalty"})


@dataclass(frozen=True)
class SalaryPreview:
    earned: float
    deduction: float
    net: float


@dataclass
class SalaryBreakdown:
    employee_email: str
    month: str
    total_working_days: int
    total_paid_days: float = 0.0
    present_days: float = 0.0
    paid_leave_days: int = 0
    absent_days: int = 0
    half_days: int = 0
    weekoff_days: int = 0
    holiday_days: int = 0
    wfh_days: int = 0
    late_count: int = 0
    early_checkout_count: int = 0
    overtime_hours: float = 0.0
    not_marked_days: int = 0
    basic_salary: int = 0
    hra: int = 0
    travelling_allowance: int = 0
    children_education_allowance: int = 0
    fixed_incentive: int = 0
    per_day_rate: float = 0.0
    base_earned_salary: int = 0
    attendance_adjustments: float = 0.0
    late_penalty: float = 0.0
    absent_deduction: int = 0
    employee_pf: int = 0
    employee_esi: int = 0
    labour_welfare_employee: int = 0
    total_employee_deduction: int = 0
    employer_pf: int = 0
    employer_esi: int = 0
    labour_welfare_employer: int = 0
    ex_gratia: int = 0
    employer_incentive: float = 0.0
    total_employer_contribution: float = 0.0
    additions: float = 0.0
    other_deductions: float = 0.0
    advance_recovery: float = 0.0
    gross_salary: float = 0.0
    total_deductions: float = 0.0
    net_salary: float = 0.0
    cash_in_hand: float = 0.0
    ctc_monthly: float = 0.0
    has_policy: bool = False
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def round_half_up(value: float) -> int:
    return int(floor(value + 0.5))


def salary_preview(rate: float, present: float, leave: float, absent: float) -> SalaryPreview:
    earned = (present + leave) * rate
    deduction = absent * rate
    return SalaryPreview(earned=earned, deduction=deduction, net=earned - deduction)


def _num(value: Any) -> float:
    return float(value or 0)


def _percentage_or_fixed(
    *,
    percentage: float | None,
    fixed: float | None,
    base: float,
    days_ratio: float,
) -> int:
    if percentage:
        return round_half_up(base * percentage / 100)
    if fixed:
        return round_half_up(fixed * days_ratio)
    return 0


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def daily_adjustment_fraction(check_in_local: time | None, check_out_local: time | None) -> float:
    """Fraction of a day's salary removed for a late arrival or, after an on-time arrival, an early departure."""
    if check_in_local is None:
        return 0.0

    check_in_minutes = _minutes(check_in_local)
    if check_in_minutes > _minutes(EXPECTED_CHECK_IN):
        for from_hour, fraction in LATE_CHECK_IN_BANDS:
            if check_in_local.hour >= from_hour:
                return fraction
        return 0.0

    if check_out_local is None:
        return 0.0
    check_out_minutes = _minutes(check_out_local)
    if check_out_minutes < _minutes(EARLY_CHECK_OUT_FULL_DAY):
        return 1.0
    if check_out_minutes < _minutes(EXPECTED_CHECK_OUT_START):
        return 0.5
    if check_out_minutes < _minutes(EXPECTED_CHECK_OUT_END):
        return 0.25
    return 0.0


def attendance_adjustment_total(
    records: Iterable[Any],
    *,
    daily_salary: float,
    tz: tzinfo,
    require_checkout: bool = True,
) -> float:
    worked = present_statuses(require_checkout=require_checkout)
    total = 0.0
    for record in latest_per_day(records).values():
        if status_value(record.status) not in worked:
            continue
        check_in = getattr(record, "check_in", None)
        check_out = getattr(record, "check_out", None)
        check_in_local = to_local(check_in, tz).time() if check_in is not None else None
        check_out_local = to_local(check_out, tz).time() if check_out is not None else None
        total -= daily_salary * daily_adjustment_fraction(check_in_local, check_out_local)
    return total


def sum_adjustments(adjustments: Iterable[Any]) -> tuple[float, float]:
    additions = 0.0
    deductions = 0.0
    for adjustment in adjustments:
        adjustment_type = status_value(adjustment.adjustment_type)
        amount = _num(adjustment.amount)
        approved = status_value(adjustment.status) == "approved"
        if approved and adjustment_type in ADDITION_TYPES and amount > 0:
            additions += amount
        elif adjustment_type == "incentive" and amount > 0:
            additions += amount
        elif adjustment_type in DEDUCTION_TYPES or amount < 0:
            deductions += abs(amount)
    return additions, deductions


def advance_recovery_for_month(advances: Iterable[Any], month: str) -> float:
    total = 0.0
    for advance in advances:
        if status_value(advance.status) != "active":
            continue
        if advance.recovery_start_month <= month:
            total += min(_num(advance.installment_amount), _num(advance.remaining_balance))
    return total


def calculate_monthly_salary(
    *,
    employee_email: str,
    month: str,
    days_in_month: int,
    counts: AttendanceCounts,
    policy: Any | None,
    records: Iterable[Any] = (),
    adjustments: Iterable[Any] = (),
    advances: Iterable[Any] = (),
    tz: tzinfo,
    late_penalty_multiplier: int = DEFAULT_LATE_PENALTY_MULTIPLIER,
    require_checkout: bool = True,
) -> SalaryBreakdown:
    result = SalaryBreakdown(
        employee_email=employee_email,
        month=month,
        total_working_days=days_in_month,
        present_days=counts.present,
        paid_leave_days=counts.leave,
        absent_days=counts.absent,
        half_days=counts.half_day,
        weekoff_days=counts.weekoff,
        holiday_days=counts.holiday,
        wfh_days=counts.work_from_home,
        late_count=counts.late,
        early_checkout_count=counts.early_checkout,
        overtime_hours=round(counts.overtime_hours, 2),
        not_marked_days=counts.not_marked_days,
    )

    paid_days = counts.paid_days
    if counts.absent > 0:
        paid_days += 1
    result.total_paid_days = min(float(days_in_month), paid_days)

    if policy is not None and days_in_month > 0:
        result.has_policy = True
        full_basic = _num(policy.basic_salary)
        full_hra = _num(policy.hra)
        full_ta = _num(policy.travelling_allowance)
        full_cea = _num(policy.children_education_allowance)
        full_fi = _num(policy.fixed_incentive)
        employer_incentive = _num(policy.employer_incentive)

        monthly_gross = full_basic + full_hra + full_ta + full_cea + full_fi
        result.per_day_rate = monthly_gross / days_in_month
        daily_salary = (monthly_gross + employer_incentive) / days_in_month
        days_ratio = result.total_paid_days / days_in_month

        def prorate(amount: float) -> int:
            return round_half_up(amount / days_in_month * result.total_paid_days)

        result.basic_salary = prorate(full_basic)
        result.hra = prorate(full_hra)
        result.travelling_allowance = prorate(full_ta)
        result.children_education_allowance = prorate(full_cea)
        result.fixed_incentive = prorate(full_fi)
        earned_gross = (
            result.basic_salary
            + result.hra
            + result.travelling_allowance
            + result.children_education_allowance
            + result.fixed_incentive
        )
        result.base_earned_salary = earned_gross
        result.employer_incentive = employer_incentive

        result.employee_pf = _percentage_or_fixed(
            percentage=policy.employee_pf_percentage,
            fixed=policy.employee_pf_fixed,
            base=result.basic_salary,
            days_ratio=days_ratio,
        )
        result.employee_esi = _percentage_or_fixed(
            percentage=policy.employee_esi_percentage,
            fixed=policy.employee_esi_fixed,
            base=earned_gross,
            days_ratio=days_ratio,
        )
        result.labour_welfare_employee = round_half_up(_num(policy.labour_welfare_employee) * days_ratio)
        result.total_employee_deduction = (
            result.employee_pf + result.employee_esi + result.labour_welfare_employee
        )

        result.employer_pf = _percentage_or_fixed(
            percentage=policy.employer_pf_percentage,
            fixed=policy.employer_pf_fixed,
            base=result.basic_salary,
            days_ratio=days_ratio,
        )
        result.employer_esi = _percentage_or_fixed(
            percentage=policy.employer_esi_percentage,
            fixed=policy.employer_esi_fixed,
            base=earned_gross,
            days_ratio=days_ratio,
        )
        result.labour_welfare_employer = round_half_up(_num(policy.labour_welfare_employer) * days_ratio)
        result.ex_gratia = _percentage_or_fixed(
            percentage=policy.ex_gratia_percentage,
            fixed=policy.ex_gratia_fixed,
            base=result.basic_salary,
            days_ratio=days_ratio,
        )
        result.total_employer_contribution = (
            result.employer_pf
            + result.employer_esi
            + result.labour_welfare_employer
            + result.ex_gratia
            + employer_incentive
        )

        multiplier = late_penalty_multiplier if policy.late_penalty_enabled is not False else 0
        result.late_penalty = counts.late * _num(policy.late_penalty_per_minute) * multiplier

        # Informational only, absences are already excluded from the prorated gross.
        if counts.absent > 1:
            result.absent_deduction = round_half_up((counts.absent - 1) * result.per_day_rate)

        result.attendance_adjustments = attendance_adjustment_total(
            records,
            daily_salary=daily_salary,
            tz=tz,
            require_checkout=require_checkout,
        )
    else:
        result.notes.append("NO_ACTIVE_SALARY_POLICY")

    result.additions, result.other_deductions = sum_adjustments(adjustments)
    result.advance_recovery = advance_recovery_for_month(advances, month)

    result.gross_salary = result.base_earned_salary + result.attendance_adjustments
    result.total_deductions = (
        result.total_employee_deduction
        + result.late_penalty
        + result.other_deductions
        + result.advance_recovery
    )
    result.net_salary = result.gross_salary + result.additions - result.total_deductions
    result.cash_in_hand = result.net_salary
    result.ctc_monthly = result.gross_salary + result.total_employer_contribution
    return result
