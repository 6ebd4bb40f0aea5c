from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from workledger.models import (
    AttendanceRecord,
    AttendanceSource,
    AttendanceStatus,
    LeaveRequest,
    LeaveType,
)

logger = logging.getLogger("workledger.leave_sync")

SUNDAY = 6

# Checked in order; the first keyword found in the lowercased leave type name wins.
_NAME_KEYWORDS: tuple[tuple[str, AttendanceStatus], ...] = (
    ("sick", AttendanceStatus.SICK_LEAVE),
    ("casual", AttendanceStatus.CASUAL_LEAVE),
    ("wfh", AttendanceStatus.WORK_FROM_HOME),
    ("work from home", AttendanceStatus.WORK_FROM_HOME),
)


def resolve_attendance_status(leave_type: LeaveType | None) -> AttendanceStatus:
    if leave_type is None:
        return AttendanceStatus.LEAVE
    if leave_type.attendance_status is not None:
        return AttendanceStatus(leave_type.attendance_status)

    name_lower = (leave_type.name or "").lower()
    for keyword, status in _NAME_KEYWORDS:
        if keyword in name_lower:
            return status
    return AttendanceStatus.LEAVE


def leave_sync_dates(
    start_date: date,
    end_date: date,
    *,
    skip_weekdays: Collection[int] = (SUNDAY,),
) -> list[date]:
    if end_date < start_date:
        return []
    days: list[date] = []
    current = start_date
    while current <= end_date:
        if current.weekday() not in skip_weekdays:
            days.append(current)
        current += timedelta(days=1)
    return days


def leave_remarks(leave_type: LeaveType | None) -> str:
    name = leave_type.name if leave_type is not None and leave_type.name else "Leave"
    return f"Leave Approved: {name}"


def sync_leave_to_attendance(
    db: Session,
    leave_request: LeaveRequest,
    leave_type: LeaveType | None,
    *,
    skip_weekdays: Collection[int] = (SUNDAY,),
    marked_by: str | None = None,
) -> list[AttendanceRecord]:
    """Upsert one attendance row per synced day of an approved leave.

    Nothing is committed here; the caller owns the transaction so the balance
    update and every attendance row land together.
    """
    days = leave_sync_dates(leave_request.start_date, leave_request.end_date, skip_weekdays=skip_weekdays)
    if not days:
        return []

    status = resolve_attendance_status(leave_type)
    remarks = leave_remarks(leave_type)
    existing_rows = db.scalars(
        select(AttendanceRecord).where(
            AttendanceRecord.employee_email == leave_request.employee_email,
            AttendanceRecord.date >= days[0],
            AttendanceRecord.date <= days[-1],
        )
    ).all()
    existing_by_day = {row.date: row for row in existing_rows}

    touched: list[AttendanceRecord] = []
    created_count = 0
    for day in days:
        record = existing_by_day.get(day)
        if record is None:
            record = AttendanceRecord(
                employee_email=leave_request.employee_email,
                date=day,
                status=status,
                check_in=None,
                check_out=None,
                total_hours=0.0,
                is_late=False,
                late_minutes=0,
                is_early_checkout=False,
                source=AttendanceSource.LEAVE_SYNC,
                marked_by=marked_by,
                remarks=remarks,
            )
            db.add(record)
            created_count += 1
        else:
            record.status = status
            record.remarks = remarks
            record.source = AttendanceSource.LEAVE_SYNC
            if marked_by:
                record.marked_by = marked_by
        touched.append(record)

    db.flush()
    logger.info(
        "leave_attendance_synced",
        extra={
            "leave_request_id": leave_request.id,
            "employee_email": leave_request.employee_email,
            "attendance_status": status.value,
            "days_synced": len(touched),
            "days_created": created_count,
            "days_updated": len(touched) - created_count,
        },
    )
    return touched
