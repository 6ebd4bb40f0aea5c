from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from workledger.errors import ApiError, not_found
from workledger.models import (
    AdvanceStatus,
    AttendanceRecord,
    Employee,
    SalaryAdjustment,
    SalaryAdvance,
    SalaryPolicy,
    SalaryRecord,
    SalaryRecordStatus,
)
from workledger.schemas import (
    SalaryAdjustmentCreate,
    SalaryAdvanceCreate,
    SalaryPolicyUpsert,
    SalaryPreviewRequest,
)
from workledger.services.aggregation import summarize_by_employee
from workledger.services.attendance import ensure_month_not_locked
from workledger.services.attendance_calc import month_bounds, parse_month
from workledger.services.attendance_settings import get_or_create_attendance_settings
from workledger.services.salary_calc import SalaryBreakdown, SalaryPreview, calculate_monthly_salary, salary_preview
from workledger.settings import get_attendance_timezone, get_settings

logger = logging.getLogger("workledger.payroll")


def preview_salary(payload: SalaryPreviewRequest) -> SalaryPreview:
    return salary_preview(payload.per_day_rate, payload.present_days, payload.leave_days, payload.absent_days)


def _employee_by_email(db: Session, employee_email: str) -> Employee:
    employee = db.scalar(select(Employee).where(Employee.email == employee_email.strip().lower()))
    if employee is None:
        raise not_found("employee")
    return employee


def _run_employees(db: Session, month_records: list[AttendanceRecord], employee_email: str | None) -> list[Employee]:
    if employee_email:
        return [_employee_by_email(db, employee_email)]

    emails_with_attendance = {record.employee_email for record in month_records}
    stmt = select(Employee).order_by(Employee.full_name.asc(), Employee.id.asc())
    return [
        employee
        for employee in db.scalars(stmt).all()
        if employee.is_active or employee.email in emails_with_attendance
    ]


def _apply_breakdown(record: SalaryRecord, employee: Employee, breakdown: SalaryBreakdown) -> None:
    record.employee_name = employee.full_name
    record.total_working_days = breakdown.total_working_days
    record.total_paid_days = breakdown.total_paid_days
    record.present_days = breakdown.present_days + 0.5 * breakdown.half_days
    record.absent_days = breakdown.absent_days
    record.leave_days = breakdown.paid_leave_days
    record.weekoff_days = breakdown.weekoff_days
    record.holiday_days = breakdown.holiday_days
    record.gross_salary = breakdown.gross_salary
    record.total_deductions = breakdown.total_deductions
    record.net_salary = breakdown.net_salary
    record.attendance_adjustments = breakdown.attendance_adjustments
    record.details = breakdown.to_dict()
    record.status = SalaryRecordStatus.DRAFT


def calculate_monthly_salaries(
    db: Session,
    *,
    month: str,
    employee_email: str | None = None,
) -> list[dict[str, Any]]:
    """Compute and store one salary record per employee for ``month``.

    Records that are already locked are left untouched and reported as
    ``skipped_locked``.
    """
    year, month_number = parse_month(month)
    start, end = month_bounds(year, month_number)
    days_in_month = end.day
    tz = get_attendance_timezone()
    multiplier = get_settings().late_penalty_multiplier
    require_checkout = get_or_create_attendance_settings(db).require_checkout

    month_records = list(
        db.scalars(
            select(AttendanceRecord).where(
                AttendanceRecord.date >= start,
                AttendanceRecord.date <= end,
            )
        ).all()
    )
    employees = _run_employees(db, month_records, employee_email)
    emails = [employee.email for employee in employees]
    if not emails:
        return []

    records_by_email: dict[str, list[AttendanceRecord]] = defaultdict(list)
    for record in month_records:
        records_by_email[record.employee_email].append(record)
    counts_by_email = summarize_by_employee(
        month_records,
        emails,
        period_start=start,
        period_end=end,
        require_checkout=require_checkout,
    )

    policies = {
        policy.employee_email: policy
        for policy in db.scalars(
            select(SalaryPolicy).where(SalaryPolicy.employee_email.in_(emails), SalaryPolicy.is_active.is_(True))
        ).all()
    }
    adjustments_by_email: dict[str, list[SalaryAdjustment]] = defaultdict(list)
    for adjustment in db.scalars(
        select(SalaryAdjustment).where(SalaryAdjustment.month == month, SalaryAdjustment.employee_email.in_(emails))
    ).all():
        adjustments_by_email[adjustment.employee_email].append(adjustment)
    advances_by_email: dict[str, list[SalaryAdvance]] = defaultdict(list)
    for advance in db.scalars(
        select(SalaryAdvance).where(
            SalaryAdvance.employee_email.in_(emails),
            SalaryAdvance.status == AdvanceStatus.ACTIVE,
        )
    ).all():
        advances_by_email[advance.employee_email].append(advance)
    existing_by_email = {
        record.employee_email: record
        for record in db.scalars(
            select(SalaryRecord).where(SalaryRecord.month == month, SalaryRecord.employee_email.in_(emails))
        ).all()
    }

    results: list[dict[str, Any]] = []
    pending_rows: list[tuple[Employee, SalaryRecord, str]] = []
    for employee in employees:
        existing = existing_by_email.get(employee.email)
        if existing is not None and existing.locked:
            pending_rows.append((employee, existing, "skipped_locked"))
            continue

        breakdown = calculate_monthly_salary(
            employee_email=employee.email,
            month=month,
            days_in_month=days_in_month,
            counts=counts_by_email[employee.email],
            policy=policies.get(employee.email),
            records=records_by_email.get(employee.email, []),
            adjustments=adjustments_by_email.get(employee.email, []),
            advances=advances_by_email.get(employee.email, []),
            tz=tz,
            late_penalty_multiplier=multiplier,
            require_checkout=require_checkout,
        )
        if existing is None:
            existing = SalaryRecord(employee_email=employee.email, month=month)
            db.add(existing)
            action = "created"
        else:
            action = "updated"
        _apply_breakdown(existing, employee, breakdown)
        pending_rows.append((employee, existing, action))

    db.commit()
    for employee, record, action in pending_rows:
        results.append(
            {
                "employee_email": employee.email,
                "employee_name": record.employee_name or employee.full_name,
                "record_id": record.id,
                "action": action,
                "gross_salary": record.gross_salary,
                "total_deductions": record.total_deductions,
                "net_salary": record.net_salary,
            }
        )

    logger.info(
        "salary_run_completed",
        extra={
            "month": month,
            "total_processed": len(results),
            "created": sum(1 for item in results if item["action"] == "created"),
            "updated": sum(1 for item in results if item["action"] == "updated"),
            "skipped_locked": sum(1 for item in results if item["action"] == "skipped_locked"),
        },
    )
    return results


def lock_salary_records(
    db: Session,
    *,
    month: str,
    locked_by: str,
    employee_emails: list[str] | None = None,
    now: datetime | None = None,
) -> int:
    parse_month(month)
    stmt = select(SalaryRecord).where(SalaryRecord.month == month, SalaryRecord.locked.is_(False))
    if employee_emails:
        stmt = stmt.where(SalaryRecord.employee_email.in_([email.strip().lower() for email in employee_emails]))

    locked_at = now or datetime.now(timezone.utc)
    count = 0
    for record in db.scalars(stmt.with_for_update()).all():
        record.locked = True
        record.locked_by = locked_by
        record.locked_at = locked_at
        record.status = SalaryRecordStatus.LOCKED
        count += 1

    db.commit()
    logger.info("salary_records_locked", extra={"month": month, "locked": count, "locked_by": locked_by})
    return count


def list_salary_records(
    db: Session,
    *,
    month: str | None = None,
    employee_email: str | None = None,
) -> list[SalaryRecord]:
    stmt = select(SalaryRecord).order_by(SalaryRecord.month.desc(), SalaryRecord.employee_name.asc())
    if month:
        stmt = stmt.where(SalaryRecord.month == month)
    if employee_email:
        stmt = stmt.where(SalaryRecord.employee_email == employee_email.strip().lower())
    return list(db.scalars(stmt).all())


def create_adjustment(db: Session, payload: SalaryAdjustmentCreate) -> SalaryAdjustment:
    employee = _employee_by_email(db, payload.employee_email)
    year, month_number = parse_month(payload.month)
    ensure_month_not_locked(db, employee.email, date(year, month_number, 1))

    adjustment = SalaryAdjustment(
        employee_email=employee.email,
        month=payload.month,
        adjustment_type=payload.adjustment_type,
        amount=payload.amount,
        description=payload.description,
        status=payload.status,
    )
    db.add(adjustment)
    db.commit()
    db.refresh(adjustment)
    return adjustment


def list_adjustments(
    db: Session,
    *,
    month: str | None = None,
    employee_email: str | None = None,
) -> list[SalaryAdjustment]:
    stmt = select(SalaryAdjustment).order_by(SalaryAdjustment.created_at.desc(), SalaryAdjustment.id.desc())
    if month:
        stmt = stmt.where(SalaryAdjustment.month == month)
    if employee_email:
        stmt = stmt.where(SalaryAdjustment.employee_email == employee_email.strip().lower())
    return list(db.scalars(stmt).all())


def create_advance(db: Session, payload: SalaryAdvanceCreate) -> SalaryAdvance:
    employee = _employee_by_email(db, payload.employee_email)
    advance = SalaryAdvance(
        employee_email=employee.email,
        advance_amount=payload.advance_amount,
        installment_amount=payload.installment_amount,
        total_paid=0.0,
        remaining_balance=payload.advance_amount,
        status=AdvanceStatus.ACTIVE,
        recovery_start_month=payload.recovery_start_month,
    )
    db.add(advance)
    db.commit()
    db.refresh(advance)
    return advance


def list_advances(
    db: Session,
    *,
    employee_email: str | None = None,
    status: AdvanceStatus | None = None,
) -> list[SalaryAdvance]:
    stmt = select(SalaryAdvance).order_by(SalaryAdvance.created_at.desc(), SalaryAdvance.id.desc())
    if employee_email:
        stmt = stmt.where(SalaryAdvance.employee_email == employee_email.strip().lower())
    if status is not None:
        stmt = stmt.where(SalaryAdvance.status == status)
    return list(db.scalars(stmt).all())


def upsert_salary_policy(db: Session, payload: SalaryPolicyUpsert) -> SalaryPolicy:
    employee = _employee_by_email(db, payload.employee_email)
    policy = db.scalar(select(SalaryPolicy).where(SalaryPolicy.employee_email == employee.email))
    if policy is None:
        policy = SalaryPolicy(employee_email=employee.email)
        db.add(policy)

    values = payload.model_dump(exclude={"employee_email"})
    for field_name, value in values.items():
        setattr(policy, field_name, value)

    db.commit()
    db.refresh(policy)
    return policy


def list_salary_policies(db: Session, *, include_inactive: bool = False) -> list[SalaryPolicy]:
    stmt = select(SalaryPolicy).order_by(SalaryPolicy.employee_email.asc())
    if not include_inactive:
        stmt = stmt.where(SalaryPolicy.is_active.is_(True))
    return list(db.scalars(stmt).all())


def get_salary_record(db: Session, record_id: int) -> SalaryRecord:
    record = db.get(SalaryRecord, record_id)
    if record is None:
        raise ApiError(status_code=404, code="SALARY_RECORD_NOT_FOUND", message="Salary record not found.")
    return record
