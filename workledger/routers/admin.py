from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from workledger.audit import audit_admin_action, log_audit
from workledger.db import get_db
from workledger.errors import ApiError, not_found
from workledger.models import AuditActorType, AuditLog, Employee
from workledger.schemas import (
    AdminAuthResponse,
    AdminLoginRequest,
    AdminMeResponse,
    AttendanceSettingsRead,
    AttendanceSettingsUpsertRequest,
    AuditLogRead,
    EmployeeActiveUpdateRequest,
    EmployeeCreate,
    EmployeeRead,
    HolidayCreateRequest,
    HolidayRead,
)
from workledger.security import (
    authenticate_admin,
    create_access_token,
    ensure_login_attempt_allowed,
    full_permissions,
    normalize_permissions,
    register_login_failure,
    register_login_success,
    require_admin,
    require_admin_permission,
)
from workledger.services.attendance_settings import (
    create_holiday,
    get_or_create_attendance_settings,
    list_holidays,
    upsert_attendance_settings,
)

router = APIRouter(tags=["admin"])


def _client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_ip = forwarded_for.split(",")[0].strip()
        if first_ip:
            return first_ip
    return request.client.host if request.client else None


@router.post("/api/auth/login", response_model=AdminAuthResponse)
def admin_login(
    payload: AdminLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AdminAuthResponse:
    username = payload.username.strip()
    ip = _client_ip(request)
    user_agent = request.headers.get("user-agent")
    request_id = getattr(request.state, "request_id", None)

    if ip:
        try:
            ensure_login_attempt_allowed(ip)
        except ApiError:
            log_audit(
                db,
                actor_type=AuditActorType.SYSTEM,
                actor_id=username or "admin",
                action="ADMIN_LOGIN_FAIL",
                success=False,
                ip=ip,
                user_agent=user_agent,
                details={"reason": "TOO_MANY_ATTEMPTS"},
                request_id=request_id,
            )
            raise

    identity = authenticate_admin(username, payload.password)
    if identity is None:
        if ip:
            register_login_failure(ip)
        log_audit(
            db,
            actor_type=AuditActorType.SYSTEM,
            actor_id=username or "admin",
            action="ADMIN_LOGIN_FAIL",
            success=False,
            ip=ip,
            user_agent=user_agent,
            details={"reason": "INVALID_CREDENTIALS"},
            request_id=request_id,
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid credentials.")

    if ip:
        register_login_success(ip)

    access_token, expires_in, claims = create_access_token(identity)
    request.state.actor = "admin"
    request.state.actor_id = username
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=username,
        action="ADMIN_LOGIN_SUCCESS",
        success=True,
        ip=ip,
        user_agent=user_agent,
        details={"access_jti": claims["jti"], "is_super_admin": identity.is_super_admin},
        request_id=request_id,
    )
    return AdminAuthResponse(access_token=access_token, expires_in=expires_in)


@router.get("/api/auth/me", response_model=AdminMeResponse)
def admin_me(claims: dict[str, Any] = Depends(require_admin)) -> AdminMeResponse:
    is_super_admin = bool(claims.get("is_super_admin"))
    return AdminMeResponse(
        username=str(claims.get("username") or claims.get("sub") or "admin"),
        is_super_admin=is_super_admin,
        permissions=full_permissions() if is_super_admin else normalize_permissions(claims.get("permissions")),
    )


@router.post(
    "/api/employees",
    response_model=EmployeeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_permission("employees", write=True))],
)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> EmployeeRead:
    existing = db.scalar(select(Employee).where(Employee.email == payload.email))
    if existing is not None:
        raise ApiError(status_code=409, code="EMPLOYEE_EXISTS", message="An employee with this email already exists.")

    employee = Employee(
        email=payload.email,
        full_name=payload.full_name.strip(),
        department=payload.department,
        is_active=payload.is_active,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    audit_admin_action(
        db,
        request,
        action="EMPLOYEE_CREATED",
        entity_type="employee",
        entity_id=employee.id,
        details={"email": employee.email},
    )
    return EmployeeRead.model_validate(employee)


@router.get(
    "/api/employees",
    response_model=list[EmployeeRead],
    dependencies=[Depends(require_admin_permission("employees"))],
)
def list_employees(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[EmployeeRead]:
    stmt = select(Employee).order_by(Employee.full_name.asc(), Employee.id.asc())
    if not include_inactive:
        stmt = stmt.where(Employee.is_active.is_(True))
    return [EmployeeRead.model_validate(item) for item in db.scalars(stmt).all()]


@router.patch(
    "/api/employees/{employee_id}/active",
    response_model=EmployeeRead,
    dependencies=[Depends(require_admin_permission("employees", write=True))],
)
def update_employee_active_status(
    employee_id: int,
    payload: EmployeeActiveUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("employee")

    employee.is_active = payload.is_active
    db.commit()
    db.refresh(employee)
    audit_admin_action(
        db,
        request,
        action="EMPLOYEE_REACTIVATED" if payload.is_active else "EMPLOYEE_DEACTIVATED",
        entity_type="employee",
        entity_id=employee.id,
        details={"is_active": payload.is_active},
    )
    return EmployeeRead.model_validate(employee)


@router.get(
    "/api/attendance/settings",
    response_model=AttendanceSettingsRead,
    dependencies=[Depends(require_admin_permission("settings"))],
)
def get_attendance_settings(db: Session = Depends(get_db)) -> AttendanceSettingsRead:
    return AttendanceSettingsRead.model_validate(get_or_create_attendance_settings(db))


@router.put(
    "/api/attendance/settings",
    response_model=AttendanceSettingsRead,
    dependencies=[Depends(require_admin_permission("settings", write=True))],
)
def put_attendance_settings(
    payload: AttendanceSettingsUpsertRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceSettingsRead:
    settings_row = upsert_attendance_settings(db, payload)
    audit_admin_action(
        db,
        request,
        action="ATTENDANCE_SETTINGS_UPDATED",
        entity_type="attendance_settings",
        entity_id=settings_row.id,
        details=payload.model_dump(),
    )
    return AttendanceSettingsRead.model_validate(settings_row)


@router.post(
    "/api/attendance/holidays",
    response_model=HolidayRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_permission("settings", write=True))],
)
def post_holiday(
    payload: HolidayCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> HolidayRead:
    holiday = create_holiday(db, payload)
    audit_admin_action(
        db,
        request,
        action="HOLIDAY_CREATED",
        entity_type="holiday",
        entity_id=holiday.id,
        details={"date": holiday.date.isoformat(), "name": holiday.name},
    )
    return HolidayRead.model_validate(holiday)


@router.get(
    "/api/attendance/holidays",
    response_model=list[HolidayRead],
    dependencies=[Depends(require_admin_permission("settings"))],
)
def get_holidays(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[HolidayRead]:
    return [
        HolidayRead.model_validate(item)
        for item in list_holidays(db, start_date=start_date, end_date=end_date)
    ]


@router.get(
    "/api/audit-logs",
    response_model=list[AuditLogRead],
    dependencies=[Depends(require_admin_permission("audit"))],
)
def list_audit_logs(
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[AuditLogRead]:
    stmt = select(AuditLog).order_by(AuditLog.ts_utc.desc(), AuditLog.id.desc())
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    return [AuditLogRead.model_validate(item) for item in db.scalars(stmt.limit(limit)).all()]
