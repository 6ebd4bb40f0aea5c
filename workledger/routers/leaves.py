from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from workledger.audit import audit_admin_action
from workledger.db import get_db
from workledger.models import LeaveRequestStatus
from workledger.schemas import (
    LeaveBalanceInitializeRequest,
    LeaveBalanceInitializeResponse,
    LeaveBalanceRead,
    LeaveRequestCreate,
    LeaveRequestRead,
    LeaveReviewRequest,
    LeaveReviewResponse,
    LeaveTypeCreate,
    LeaveTypeRead,
    LeaveTypeUpdate,
)
from workledger.security import require_admin_permission
from workledger.services.leaves import (
    cancel_leave_request,
    create_leave_type,
    initialize_balances,
    list_balances,
    list_leave_requests,
    list_leave_types,
    review_leave_request,
    submit_leave_request,
    update_leave_type,
)

router = APIRouter(tags=["leaves"])


def _actor(claims: dict[str, Any]) -> str:
    return str(claims.get("username") or claims.get("sub") or "admin")


@router.post(
    "/api/leave-types",
    response_model=LeaveTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_permission("leaves", write=True))],
)
def post_leave_type(
    payload: LeaveTypeCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveTypeRead:
    leave_type = create_leave_type(db, payload)
    audit_admin_action(
        db,
        request,
        action="LEAVE_TYPE_CREATED",
        entity_type="leave_type",
        entity_id=leave_type.id,
        details={"name": leave_type.name, "annual_quota": leave_type.annual_quota},
    )
    return LeaveTypeRead.model_validate(leave_type)


@router.get(
    "/api/leave-types",
    response_model=list[LeaveTypeRead],
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def get_leave_types(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[LeaveTypeRead]:
    return [LeaveTypeRead.model_validate(item) for item in list_leave_types(db, include_inactive=include_inactive)]


@router.patch(
    "/api/leave-types/{leave_type_id}",
    response_model=LeaveTypeRead,
    dependencies=[Depends(require_admin_permission("leaves", write=True))],
)
def patch_leave_type(
    leave_type_id: int,
    payload: LeaveTypeUpdate,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveTypeRead:
    leave_type = update_leave_type(db, leave_type_id, payload)
    audit_admin_action(
        db,
        request,
        action="LEAVE_TYPE_UPDATED",
        entity_type="leave_type",
        entity_id=leave_type.id,
        details=payload.model_dump(exclude_unset=True, mode="json"),
    )
    return LeaveTypeRead.model_validate(leave_type)


@router.post(
    "/api/leave-balances/initialize",
    response_model=LeaveBalanceInitializeResponse,
    dependencies=[Depends(require_admin_permission("leaves", write=True))],
)
def post_initialize_balances(
    payload: LeaveBalanceInitializeRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveBalanceInitializeResponse:
    created = initialize_balances(db, payload.year)
    audit_admin_action(
        db,
        request,
        action="LEAVE_BALANCES_INITIALIZED",
        entity_type="leave_balance",
        entity_id=payload.year,
        details={"created": created},
    )
    return LeaveBalanceInitializeResponse(year=payload.year, created=created)


@router.get(
    "/api/leave-balances",
    response_model=list[LeaveBalanceRead],
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def get_leave_balances(
    employee_email: str | None = Query(default=None),
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> list[LeaveBalanceRead]:
    return [
        LeaveBalanceRead.model_validate(item)
        for item in list_balances(db, employee_email=employee_email, year=year)
    ]


@router.post(
    "/api/leave-requests",
    response_model=LeaveRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_permission("leaves", write=True))],
)
def post_leave_request(
    payload: LeaveRequestCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    leave_request = submit_leave_request(db, payload)
    audit_admin_action(
        db,
        request,
        action="LEAVE_REQUESTED",
        entity_type="leave_request",
        entity_id=leave_request.id,
        details={
            "employee_email": leave_request.employee_email,
            "leave_type_id": leave_request.leave_type_id,
            "total_days": leave_request.total_days,
        },
    )
    return LeaveRequestRead.model_validate(leave_request)


@router.get(
    "/api/leave-requests",
    response_model=list[LeaveRequestRead],
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def get_leave_requests(
    employee_email: str | None = Query(default=None),
    status_filter: LeaveRequestStatus | None = Query(default=None, alias="status"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[LeaveRequestRead]:
    requests = list_leave_requests(
        db,
        employee_email=employee_email,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
    )
    return [LeaveRequestRead.model_validate(item) for item in requests]


@router.post("/api/leave-requests/{request_id}/review", response_model=LeaveReviewResponse)
def post_review_leave_request(
    request_id: int,
    payload: LeaveReviewRequest,
    request: Request,
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(require_admin_permission("leaves", write=True)),
) -> LeaveReviewResponse:
    leave_request, balance, synced = review_leave_request(
        db,
        request_id,
        action=payload.action,
        reviewer=_actor(claims),
        comments=payload.comments,
    )
    audit_admin_action(
        db,
        request,
        action="LEAVE_APPROVED" if payload.action == "approved" else "LEAVE_REJECTED",
        entity_type="leave_request",
        entity_id=leave_request.id,
        details={
            "employee_email": leave_request.employee_email,
            "total_days": leave_request.total_days,
            "attendance_days_synced": synced,
        },
    )
    return LeaveReviewResponse(
        request=LeaveRequestRead.model_validate(leave_request),
        balance=LeaveBalanceRead.model_validate(balance),
        attendance_days_synced=synced,
    )


@router.post("/api/leave-requests/{request_id}/cancel", response_model=LeaveReviewResponse)
def post_cancel_leave_request(
    request_id: int,
    request: Request,
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(require_admin_permission("leaves", write=True)),
) -> LeaveReviewResponse:
    leave_request, balance = cancel_leave_request(db, request_id, cancelled_by=_actor(claims))
    audit_admin_action(
        db,
        request,
        action="LEAVE_CANCELLED",
        entity_type="leave_request",
        entity_id=leave_request.id,
        details={"employee_email": leave_request.employee_email},
    )
    return LeaveReviewResponse(
        request=LeaveRequestRead.model_validate(leave_request),
        balance=LeaveBalanceRead.model_validate(balance),
    )
