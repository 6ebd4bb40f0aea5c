from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from workledger.audit import audit_admin_action
from workledger.db import get_db
from workledger.models import AttendanceRecord, AttendanceStatus
from workledger.schemas import (
    AttendanceCountsRead,
    AttendanceMarkRequest,
    AttendanceRecordRead,
    BulkWeekoffRequest,
    BulkWeekoffResponse,
    CheckInRequest,
    CheckOutRequest,
    ClearMonthResponse,
    MonthlyAttendanceSummaryItem,
    MonthlyAttendanceSummaryResponse,
)
from workledger.security import require_admin_permission
from workledger.services.attendance import (
    bulk_mark_weekoff,
    check_in,
    check_out,
    clear_month,
    list_attendance,
    mark_attendance,
    monthly_summary,
)

router = APIRouter(tags=["attendance"])


def _actor(claims: dict[str, Any]) -> str:
    return str(claims.get("username") or claims.get("sub") or "admin")


def _set_request_context(request: Request, record: AttendanceRecord) -> None:
    request.state.employee_email = record.employee_email
    request.state.attendance_record_id = record.id


@router.post("/api/attendance/check-in", response_model=AttendanceRecordRead)
def post_check_in(
    payload: CheckInRequest,
    request: Request,
    db: Session = Depends(get_db),
    _claims: dict[str, Any] = Depends(require_admin_permission("attendance", write=True)),
) -> AttendanceRecordRead:
    if payload.ip_address is None and request.client is not None:
        payload = payload.model_copy(update={"ip_address": request.client.host})
    record = check_in(db, payload)
    _set_request_context(request, record)
    audit_admin_action(
        db,
        request,
        action="ATTENDANCE_CHECKED_IN",
        entity_type="attendance_record",
        entity_id=record.id,
        details={"employee_email": record.employee_email, "is_late": record.is_late},
    )
    return AttendanceRecordRead.model_validate(record)


@router.post("/api/attendance/check-out", response_model=AttendanceRecordRead)
def post_check_out(
    payload: CheckOutRequest,
    request: Request,
    db: Session = Depends(get_db),
    _claims: dict[str, Any] = Depends(require_admin_permission("attendance", write=True)),
) -> AttendanceRecordRead:
    record = check_out(db, payload)
    _set_request_context(request, record)
    audit_admin_action(
        db,
        request,
        action="ATTENDANCE_CHECKED_OUT",
        entity_type="attendance_record",
        entity_id=record.id,
        details={
            "employee_email": record.employee_email,
            "total_hours": record.total_hours,
            "is_early_checkout": record.is_early_checkout,
        },
    )
    return AttendanceRecordRead.model_validate(record)


@router.put("/api/attendance/records", response_model=AttendanceRecordRead)
def put_attendance_record(
    payload: AttendanceMarkRequest,
    request: Request,
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(require_admin_permission("attendance", write=True)),
) -> AttendanceRecordRead:
    record = mark_attendance(db, payload, marked_by=_actor(claims))
    _set_request_context(request, record)
    audit_admin_action(
        db,
        request,
        action="ATTENDANCE_MARKED",
        entity_type="attendance_record",
        entity_id=record.id,
        details={
            "employee_email": record.employee_email,
            "date": record.date.isoformat(),
            "status": record.status.value,
        },
    )
    return AttendanceRecordRead.model_validate(record)


@router.get(
    "/api/attendance/records",
    response_model=list[AttendanceRecordRead],
    dependencies=[Depends(require_admin_permission("attendance"))],
)
def get_attendance_records(
    employee_email: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    status: AttendanceStatus | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=5000),
    db: Session = Depends(get_db),
) -> list[AttendanceRecordRead]:
    records = list_attendance(
        db,
        employee_email=employee_email,
        start_date=start_date,
        end_date=end_date,
        status=status,
        limit=limit,
    )
    return [AttendanceRecordRead.model_validate(item) for item in records]


@router.post("/api/attendance/bulk-weekoff", response_model=BulkWeekoffResponse)
def post_bulk_weekoff(
    payload: BulkWeekoffRequest,
    request: Request,
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(require_admin_permission("attendance", write=True)),
) -> BulkWeekoffResponse:
    created, skipped = bulk_mark_weekoff(db, payload, marked_by=_actor(claims))
    audit_admin_action(
        db,
        request,
        action="ATTENDANCE_WEEKOFF_BULK_MARKED",
        entity_type="attendance_month",
        entity_id=f"{payload.year:04d}-{payload.month:02d}",
        details={"created": created, "skipped_existing": skipped},
    )
    return BulkWeekoffResponse(created=created, skipped_existing=skipped)


@router.delete(
    "/api/attendance/month",
    response_model=ClearMonthResponse,
    dependencies=[Depends(require_admin_permission("attendance", write=True))],
)
def delete_attendance_month(
    request: Request,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    employee_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> ClearMonthResponse:
    deleted = clear_month(db, year=year, month=month, employee_email=employee_email)
    audit_admin_action(
        db,
        request,
        action="ATTENDANCE_MONTH_CLEARED",
        entity_type="attendance_month",
        entity_id=f"{year:04d}-{month:02d}",
        details={"employee_email": employee_email, "deleted": deleted},
    )
    return ClearMonthResponse(deleted=deleted)


@router.get(
    "/api/attendance/monthly-summary",
    response_model=MonthlyAttendanceSummaryResponse,
    dependencies=[Depends(require_admin_permission("attendance"))],
)
def get_monthly_summary(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> MonthlyAttendanceSummaryResponse:
    rows = monthly_summary(db, year=year, month=month, include_inactive=include_inactive)
    return MonthlyAttendanceSummaryResponse(
        year=year,
        month=month,
        employees=[
            MonthlyAttendanceSummaryItem(
                employee_email=employee.email,
                full_name=employee.full_name,
                counts=AttendanceCountsRead(**counts.to_dict()),
            )
            for employee, counts in rows
        ],
    )
