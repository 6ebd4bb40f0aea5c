from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workledger.errors import ApiError, insufficient_leave_balance, not_found
from workledger.models import (
    Employee,
    LeaveBalance,
    LeaveRequest,
    LeaveRequestStatus,
    LeaveType,
)
from workledger.schemas import LeaveRequestCreate, LeaveTypeCreate, LeaveTypeUpdate
from workledger.services.attendance import ensure_month_not_locked, get_active_employee
from workledger.services.leave_sync import sync_leave_to_attendance
from workledger.settings import get_leave_sync_skip_weekdays

logger = logging.getLogger("workledger.leaves")


def create_leave_type(db: Session, payload: LeaveTypeCreate) -> LeaveType:
    name = payload.name.strip()
    existing = db.scalar(select(LeaveType).where(LeaveType.name == name))
    if existing is not None:
        raise ApiError(status_code=409, code="LEAVE_TYPE_EXISTS", message="A leave type with this name already exists.")

    leave_type = LeaveType(
        name=name,
        annual_quota=payload.annual_quota,
        is_paid=payload.is_paid,
        attendance_status=payload.attendance_status,
        is_active=payload.is_active,
    )
    db.add(leave_type)
    db.commit()
    db.refresh(leave_type)
    return leave_type


def list_leave_types(db: Session, *, include_inactive: bool = False) -> list[LeaveType]:
    stmt = select(LeaveType).order_by(LeaveType.name.asc())
    if not include_inactive:
        stmt = stmt.where(LeaveType.is_active.is_(True))
    return list(db.scalars(stmt).all())


def update_leave_type(db: Session, leave_type_id: int, payload: LeaveTypeUpdate) -> LeaveType:
    leave_type = db.get(LeaveType, leave_type_id)
    if leave_type is None:
        raise not_found("leave_type")

    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is not None:
        changes["name"] = changes["name"].strip()
    for field_name, value in changes.items():
        if field_name != "attendance_status" and value is None:
            continue
        setattr(leave_type, field_name, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApiError(
            status_code=409,
            code="LEAVE_TYPE_EXISTS",
            message="A leave type with this name already exists.",
        ) from exc
    db.refresh(leave_type)
    return leave_type


def _recompute_available(balance: LeaveBalance) -> None:
    balance.used = max(0.0, balance.used or 0.0)
    balance.pending = max(0.0, balance.pending or 0.0)
    balance.available = (
        (balance.total_allocated or 0.0)
        + (balance.carried_forward or 0.0)
        - balance.used
        - balance.pending
    )


def _balance_stmt(employee_email: str, leave_type_id: int, year: int):
    return select(LeaveBalance).where(
        LeaveBalance.employee_email == employee_email,
        LeaveBalance.leave_type_id == leave_type_id,
        LeaveBalance.year == year,
    )


def get_or_create_balance(
    db: Session,
    *,
    employee_email: str,
    leave_type: LeaveType,
    year: int,
    for_update: bool = False,
) -> LeaveBalance:
    stmt = _balance_stmt(employee_email, leave_type.id, year)
    if for_update:
        stmt = stmt.with_for_update()
    balance = db.scalar(stmt)
    if balance is not None:
        return balance

    balance = LeaveBalance(
        employee_email=employee_email,
        leave_type_id=leave_type.id,
        year=year,
        total_allocated=leave_type.annual_quota,
        carried_forward=0.0,
        used=0.0,
        pending=0.0,
    )
    _recompute_available(balance)
    db.add(balance)
    db.flush()
    return balance


def initialize_balances(db: Session, year: int) -> int:
    employees = list(db.scalars(select(Employee).where(Employee.is_active.is_(True))).all())
    leave_types = list_leave_types(db)
    existing = {
        (row.employee_email, row.leave_type_id)
        for row in db.scalars(select(LeaveBalance).where(LeaveBalance.year == year)).all()
    }

    created = 0
    for employee in employees:
        for leave_type in leave_types:
            if (employee.email, leave_type.id) in existing:
                continue
            balance = LeaveBalance(
                employee_email=employee.email,
                leave_type_id=leave_type.id,
                year=year,
                total_allocated=leave_type.annual_quota,
                carried_forward=0.0,
                used=0.0,
                pending=0.0,
            )
            _recompute_available(balance)
            db.add(balance)
            created += 1

    db.commit()
    logger.info("leave_balances_initialized", extra={"year": year, "created": created})
    return created


def list_balances(
    db: Session,
    *,
    employee_email: str | None = None,
    year: int | None = None,
) -> list[LeaveBalance]:
    stmt = select(LeaveBalance).order_by(
        LeaveBalance.year.desc(),
        LeaveBalance.employee_email.asc(),
        LeaveBalance.leave_type_id.asc(),
    )
    if employee_email:
        stmt = stmt.where(LeaveBalance.employee_email == employee_email.strip().lower())
    if year is not None:
        stmt = stmt.where(LeaveBalance.year == year)
    return list(db.scalars(stmt).all())


def _get_active_leave_type(db: Session, leave_type_id: int) -> LeaveType:
    leave_type = db.get(LeaveType, leave_type_id)
    if leave_type is None or not leave_type.is_active:
        raise not_found("leave_type")
    return leave_type


def submit_leave_request(db: Session, payload: LeaveRequestCreate) -> LeaveRequest:
    employee = get_active_employee(db, payload.employee_email)
    leave_type = _get_active_leave_type(db, payload.leave_type_id)

    if payload.end_date < payload.start_date:
        raise ApiError(
            status_code=422,
            code="INVALID_DATE_RANGE",
            message="end_date must be greater than or equal to start_date.",
        )
    # Balances are kept per calendar year.
    if payload.end_date.year != payload.start_date.year:
        raise ApiError(
            status_code=422,
            code="LEAVE_SPANS_YEARS",
            message="A leave request must stay within one calendar year. Submit one request per year.",
        )

    total_days = float((payload.end_date - payload.start_date).days + 1)
    balance = get_or_create_balance(
        db,
        employee_email=employee.email,
        leave_type=leave_type,
        year=payload.start_date.year,
        for_update=True,
    )
    _recompute_available(balance)
    available = balance.available
    if available < total_days:
        db.rollback()
        raise insufficient_leave_balance(total_days, available)

    leave_request = LeaveRequest(
        employee_email=employee.email,
        leave_type_id=leave_type.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_days=total_days,
        reason=payload.reason,
        status=LeaveRequestStatus.PENDING,
    )
    db.add(leave_request)
    balance.pending = (balance.pending or 0.0) + total_days
    _recompute_available(balance)

    db.commit()
    db.refresh(leave_request)
    logger.info(
        "leave_requested",
        extra={
            "leave_request_id": leave_request.id,
            "employee_email": employee.email,
            "leave_type_id": leave_type.id,
            "total_days": total_days,
        },
    )
    return leave_request


def _get_pending_request(db: Session, request_id: int) -> LeaveRequest:
    leave_request = db.scalar(select(LeaveRequest).where(LeaveRequest.id == request_id).with_for_update())
    if leave_request is None:
        raise not_found("leave_request")
    if leave_request.status != LeaveRequestStatus.PENDING:
        raise ApiError(
            status_code=409,
            code="LEAVE_ALREADY_REVIEWED",
            message=f"Leave request is already {leave_request.status.value}.",
        )
    return leave_request


def review_leave_request(
    db: Session,
    request_id: int,
    *,
    action: str,
    reviewer: str,
    comments: str | None = None,
    now: datetime | None = None,
) -> tuple[LeaveRequest, LeaveBalance, int]:
    """Approve or reject a pending request.

    The request row and its balance row are locked for the whole transaction, so
    two reviewers acting on the same balance are serialized. On approval the
    attendance sync happens in the same transaction as the counter update.
    """
    leave_request = _get_pending_request(db, request_id)
    leave_type = db.get(LeaveType, leave_request.leave_type_id)
    if leave_type is None:
        raise not_found("leave_type")

    if action == LeaveRequestStatus.APPROVED.value:
        day = leave_request.start_date
        while day <= leave_request.end_date:
            ensure_month_not_locked(db, leave_request.employee_email, day)
            day = date(day.year + (day.month == 12), day.month % 12 + 1, 1)

    balance = get_or_create_balance(
        db,
        employee_email=leave_request.employee_email,
        leave_type=leave_type,
        year=leave_request.start_date.year,
        for_update=True,
    )
    days = leave_request.total_days or 0.0
    balance.pending = (balance.pending or 0.0) - days

    synced = 0
    if action == LeaveRequestStatus.APPROVED.value:
        balance.used = (balance.used or 0.0) + days
        leave_request.status = LeaveRequestStatus.APPROVED
        touched = sync_leave_to_attendance(
            db,
            leave_request,
            leave_type,
            skip_weekdays=get_leave_sync_skip_weekdays(),
            marked_by=reviewer,
        )
        synced = len(touched)
    elif action == LeaveRequestStatus.REJECTED.value:
        leave_request.status = LeaveRequestStatus.REJECTED
    else:
        db.rollback()
        raise ApiError(status_code=422, code="INVALID_REVIEW_ACTION", message="action must be approved or rejected.")

    _recompute_available(balance)
    leave_request.reviewed_by = reviewer
    leave_request.reviewed_at = now or datetime.now(timezone.utc)
    leave_request.review_comments = comments

    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "leave_review_failed",
            extra={"leave_request_id": request_id, "action": action},
        )
        raise
    db.refresh(leave_request)
    db.refresh(balance)
    logger.info(
        "leave_reviewed",
        extra={
            "leave_request_id": leave_request.id,
            "employee_email": leave_request.employee_email,
            "action": action,
            "reviewer": reviewer,
            "attendance_days_synced": synced,
        },
    )
    return leave_request, balance, synced


def cancel_leave_request(db: Session, request_id: int, *, cancelled_by: str) -> tuple[LeaveRequest, LeaveBalance]:
    leave_request = _get_pending_request(db, request_id)
    leave_type = db.get(LeaveType, leave_request.leave_type_id)
    if leave_type is None:
        raise not_found("leave_type")

    balance = get_or_create_balance(
        db,
        employee_email=leave_request.employee_email,
        leave_type=leave_type,
        year=leave_request.start_date.year,
        for_update=True,
    )
    balance.pending = (balance.pending or 0.0) - (leave_request.total_days or 0.0)
    _recompute_available(balance)
    leave_request.status = LeaveRequestStatus.CANCELLED
    leave_request.reviewed_by = cancelled_by
    leave_request.reviewed_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(leave_request)
    db.refresh(balance)
    logger.info(
        "leave_cancelled",
        extra={"leave_request_id": leave_request.id, "employee_email": leave_request.employee_email},
    )
    return leave_request, balance


def list_leave_requests(
    db: Session,
    *,
    employee_email: str | None = None,
    status: LeaveRequestStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    if employee_email:
        stmt = stmt.where(LeaveRequest.employee_email == employee_email.strip().lower())
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    if start_date is not None:
        stmt = stmt.where(LeaveRequest.end_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(LeaveRequest.start_date <= end_date)
    return list(db.scalars(stmt).all())

