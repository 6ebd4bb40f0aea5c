from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from workledger.errors import ApiError, salary_locked
from workledger.models import (
    AttendanceRecord,
    AttendanceSettings,
    AttendanceSource,
    AttendanceStatus,
    Employee,
    SalaryRecord,
)
from workledger.schemas import (
    AttendanceMarkRequest,
    BulkWeekoffRequest,
    CheckInRequest,
    CheckOutRequest,
)
from workledger.services.aggregation import AttendanceCounts, summarize_by_employee
from workledger.services.attendance_calc import (
    is_early_checkout,
    is_half_day,
    is_late_check_in,
    is_work_day,
    late_minutes,
    month_bounds,
    parse_hhmm,
    to_local,
    worked_hours,
)
from workledger.services.attendance_settings import get_or_create_attendance_settings, holiday_dates
from workledger.services.location import evaluate_geofence
from workledger.settings import get_attendance_timezone

logger = logging.getLogger("workledger.attendance")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_active_employee(db: Session, employee_email: str) -> Employee:
    email = employee_email.strip().lower()
    employee = db.scalar(select(Employee).where(Employee.email == email))
    if employee is None:
        raise ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message="Employee not found.")
    if not employee.is_active:
        raise ApiError(status_code=403, code="EMPLOYEE_INACTIVE", message="Employee is inactive.")
    return employee


def _get_record(db: Session, employee_email: str, day: date) -> AttendanceRecord | None:
    return db.scalar(
        select(AttendanceRecord).where(
            AttendanceRecord.employee_email == employee_email,
            AttendanceRecord.date == day,
        )
    )


def _lateness(settings_row: AttendanceSettings, check_in: datetime) -> tuple[bool, int]:
    work_start = parse_hhmm(settings_row.work_start_time)
    tz = get_attendance_timezone()
    late = is_late_check_in(
        check_in,
        work_start=work_start,
        threshold_minutes=settings_row.late_threshold_minutes,
        tz=tz,
    )
    minutes = late_minutes(
        check_in,
        work_start=work_start,
        threshold_minutes=settings_row.late_threshold_minutes,
        tz=tz,
    )
    return late, minutes


def ensure_month_not_locked(db: Session, employee_email: str | None, day: date) -> None:
    month_label = f"{day.year:04d}-{day.month:02d}"
    stmt = select(SalaryRecord.id).where(SalaryRecord.month == month_label, SalaryRecord.locked.is_(True))
    if employee_email is not None:
        stmt = stmt.where(SalaryRecord.employee_email == employee_email)
    if db.scalar(stmt.limit(1)) is not None:
        raise salary_locked(month_label)


def check_in(db: Session, payload: CheckInRequest, *, now: datetime | None = None) -> AttendanceRecord:
    now = now or _utcnow()
    employee = get_active_employee(db, payload.employee_email)
    settings_row = get_or_create_attendance_settings(db)
    today = to_local(now, get_attendance_timezone()).date()

    if not is_work_day(today, week_off_days=settings_row.week_off_days, holidays=holiday_dates(db, today, today)):
        raise ApiError(
            status_code=409,
            code="NOT_A_WORK_DAY",
            message="Today is a week-off or holiday. Attendance not required.",
        )

    record = _get_record(db, employee.email, today)
    ensure_month_not_locked(db, employee.email, today)
    if record is not None and record.check_in is None:
        raise ApiError(
            status_code=409,
            code="ATTENDANCE_ALREADY_MARKED",
            message=f"Attendance for today is already marked as {record.status.value}.",
        )
    if record is not None and not settings_row.allow_multiple_checkins:
        raise ApiError(status_code=409, code="ALREADY_CHECKED_IN", message="You have already checked in today.")

    geofence = evaluate_geofence(settings_row, payload.lat, payload.lon)
    if not geofence.allowed:
        if geofence.distance_m is None:
            message = "Location is required for check-in."
        else:
            message = f"You are {round(geofence.distance_m)}m away. Must be within {geofence.radius_m}m."
        raise ApiError(status_code=403, code="OUTSIDE_GEOFENCE", message=message)

    late, minutes_late = _lateness(settings_row, now)
    location = None
    if payload.lat is not None and payload.lon is not None:
        location = {
            "lat": payload.lat,
            "lon": payload.lon,
            "accuracy_m": payload.accuracy_m,
            "distance_m": geofence.distance_m,
        }

    if record is None:
        record = AttendanceRecord(employee_email=employee.email, date=today)
        db.add(record)
    if record.check_in is None:
        record.check_in = now
        record.is_late = late
        record.late_minutes = minutes_late
    record.status = AttendanceStatus.CHECKED_IN
    record.check_out = None
    record.total_hours = 0.0
    record.is_early_checkout = False
    record.source = AttendanceSource.WEB
    record.marked_by = employee.email
    record.location = location
    record.ip_address = payload.ip_address

    db.commit()
    db.refresh(record)
    logger.info(
        "attendance_checked_in",
        extra={
            "employee_email": employee.email,
            "date": today.isoformat(),
            "is_late": record.is_late,
            "late_minutes": record.late_minutes,
            "geofence": geofence.reason,
        },
    )
    return record


def check_out(db: Session, payload: CheckOutRequest, *, now: datetime | None = None) -> AttendanceRecord:
    now = now or _utcnow()
    employee = get_active_employee(db, payload.employee_email)
    settings_row = get_or_create_attendance_settings(db)
    today = to_local(now, get_attendance_timezone()).date()

    record = _get_record(db, employee.email, today)
    ensure_month_not_locked(db, employee.email, today)
    if record is not None and record.check_out is not None:
        raise ApiError(status_code=409, code="ALREADY_CHECKED_OUT", message="You have already checked out today.")
    if record is None or record.check_in is None or record.status != AttendanceStatus.CHECKED_IN:
        raise ApiError(status_code=409, code="NOT_CHECKED_IN", message="Please check in first.")

    total_hours = worked_hours(record.check_in, now)
    record.check_out = now
    record.total_hours = total_hours
    if is_half_day(total_hours, settings_row.minimum_work_hours):
        record.status = AttendanceStatus.HALF_DAY
    else:
        record.status = AttendanceStatus.PRESENT
    record.is_early_checkout = is_early_checkout(total_hours, settings_row.early_checkout_threshold_hours)

    db.commit()
    db.refresh(record)
    logger.info(
        "attendance_checked_out",
        extra={
            "employee_email": employee.email,
            "date": today.isoformat(),
            "total_hours": total_hours,
            "is_early_checkout": record.is_early_checkout,
        },
    )
    return record


def mark_attendance(db: Session, payload: AttendanceMarkRequest, *, marked_by: str) -> AttendanceRecord:
    employee = get_active_employee(db, payload.employee_email)
    ensure_month_not_locked(db, employee.email, payload.date)
    settings_row = get_or_create_attendance_settings(db)

    record = _get_record(db, employee.email, payload.date)
    if record is None:
        record = AttendanceRecord(employee_email=employee.email, date=payload.date)
        db.add(record)

    record.status = payload.status
    record.check_in = payload.check_in
    record.check_out = payload.check_out
    record.total_hours = worked_hours(payload.check_in, payload.check_out)
    if payload.check_in is not None:
        record.is_late, record.late_minutes = _lateness(settings_row, payload.check_in)
    else:
        record.is_late, record.late_minutes = False, 0
    record.is_early_checkout = payload.check_out is not None and is_early_checkout(
        record.total_hours,
        settings_row.early_checkout_threshold_hours,
    )
    record.source = AttendanceSource.MANUAL
    record.marked_by = marked_by
    record.remarks = payload.remarks

    db.commit()
    db.refresh(record)
    return record


def bulk_mark_weekoff(db: Session, payload: BulkWeekoffRequest, *, marked_by: str) -> tuple[int, int]:
    settings_row = get_or_create_attendance_settings(db)
    weekdays = set(payload.weekdays if payload.weekdays is not None else settings_row.week_off_days)
    start, end = month_bounds(payload.year, payload.month)

    emails = [email.strip().lower() for email in payload.employee_emails if email.strip()]
    if not emails:
        emails = list(db.scalars(select(Employee.email).where(Employee.is_active.is_(True))).all())
    if not emails:
        return 0, 0

    target_days: list[date] = []
    current = start
    while current <= end:
        if current.weekday() in weekdays:
            target_days.append(current)
        current += timedelta(days=1)

    existing = {
        (row.employee_email, row.date)
        for row in db.scalars(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_email.in_(emails),
                AttendanceRecord.date >= start,
                AttendanceRecord.date <= end,
            )
        ).all()
    }

    created = 0
    skipped = 0
    for email in emails:
        for day in target_days:
            if (email, day) in existing:
                skipped += 1
                continue
            db.add(
                AttendanceRecord(
                    employee_email=email,
                    date=day,
                    status=AttendanceStatus.WEEKOFF,
                    total_hours=0.0,
                    source=AttendanceSource.BULK,
                    marked_by=marked_by,
                    remarks="Week off",
                )
            )
            created += 1

    db.commit()
    logger.info(
        "attendance_weekoff_bulk_marked",
        extra={"year": payload.year, "month": payload.month, "created": created, "skipped_existing": skipped},
    )
    return created, skipped


def clear_month(db: Session, *, year: int, month: int, employee_email: str | None = None) -> int:
    start, end = month_bounds(year, month)
    email = employee_email.strip().lower() if employee_email else None
    ensure_month_not_locked(db, email, start)

    stmt = delete(AttendanceRecord).where(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
    if email is not None:
        stmt = stmt.where(AttendanceRecord.employee_email == email)
    result = db.execute(stmt)
    db.commit()
    deleted = int(result.rowcount or 0)
    logger.info(
        "attendance_month_cleared",
        extra={"year": year, "month": month, "employee_email": email, "deleted": deleted},
    )
    return deleted


def list_attendance(
    db: Session,
    *,
    employee_email: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status: AttendanceStatus | None = None,
    limit: int = 500,
) -> list[AttendanceRecord]:
    stmt = select(AttendanceRecord).order_by(AttendanceRecord.date.desc(), AttendanceRecord.employee_email.asc())
    if employee_email:
        stmt = stmt.where(AttendanceRecord.employee_email == employee_email.strip().lower())
    if start_date is not None:
        stmt = stmt.where(AttendanceRecord.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(AttendanceRecord.date <= end_date)
    if status is not None:
        stmt = stmt.where(AttendanceRecord.status == status)
    return list(db.scalars(stmt.limit(limit)).all())


def monthly_summary(
    db: Session,
    *,
    year: int,
    month: int,
    include_inactive: bool = False,
) -> list[tuple[Employee, AttendanceCounts]]:
    start, end = month_bounds(year, month)
    employee_stmt = select(Employee).order_by(Employee.full_name.asc(), Employee.id.asc())
    if not include_inactive:
        employee_stmt = employee_stmt.where(Employee.is_active.is_(True))
    employees = list(db.scalars(employee_stmt).all())
    settings_row = get_or_create_attendance_settings(db)

    records = list_attendance(db, start_date=start, end_date=end, limit=1_000_000)
    counts_by_email = summarize_by_employee(
        records,
        [employee.email for employee in employees],
        period_start=start,
        period_end=end,
        require_checkout=settings_row.require_checkout,
    )
    return [(employee, counts_by_email[employee.email]) for employee in employees]
