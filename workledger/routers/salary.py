from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from workledger.audit import audit_admin_action
from workledger.db import get_db
from workledger.models import AdvanceStatus
from workledger.schemas import (
    MONTH_PATTERN,
    SalaryAdjustmentCreate,
    SalaryAdjustmentRead,
    SalaryAdvanceCreate,
    SalaryAdvanceRead,
    SalaryCalculateRequest,
    SalaryCalculateResponse,
    SalaryLockRequest,
    SalaryLockResponse,
    SalaryPolicyRead,
    SalaryPolicyUpsert,
    SalaryPreviewRequest,
    SalaryPreviewResponse,
    SalaryRecordRead,
    SalaryRunItem,
)
from workledger.security import require_admin_permission
from workledger.services.exports import build_salary_register_xlsx
from workledger.services.payroll import (
    calculate_monthly_salaries,
    create_adjustment,
    create_advance,
    get_salary_record,
    list_adjustments,
    list_advances,
    list_salary_policies,
    list_salary_records,
    lock_salary_records,
    preview_salary,
    upsert_salary_policy,
)

router = APIRouter(tags=["salary"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post(
    "/api/salary/preview",
    response_model=SalaryPreviewResponse,
    dependencies=[Depends(require_admin_permission("salary"))],
)
def post_salary_preview(payload: SalaryPreviewRequest) -> SalaryPreviewResponse:
    preview = preview_salary(payload)
    return SalaryPreviewResponse(earned=preview.earned, deduction=preview.deduction, net=preview.net)


@router.post(
    "/api/salary/calculate",
    response_model=SalaryCalculateResponse,
    dependencies=[Depends(require_admin_permission("salary", write=True))],
)
def post_salary_calculate(
    payload: SalaryCalculateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> SalaryCalculateResponse:
    results = calculate_monthly_salaries(db, month=payload.month, employee_email=payload.employee_email)
    audit_admin_action(
        db,
        request,
        action="SALARY_CALCULATED",
        entity_type="salary_month",
        entity_id=payload.month,
        details={
            "employee_email": payload.employee_email,
            "total_processed": len(results),
            "skipped_locked": sum(1 for item in results if item["action"] == "skipped_locked"),
        },
    )
    return SalaryCalculateResponse(
        month=payload.month,
        total_processed=len(results),
        results=[SalaryRunItem(**item) for item in results],
    )


@router.post("/api/salary/lock", response_model=SalaryLockResponse)
def post_salary_lock(
    payload: SalaryLockRequest,
    request: Request,
    db: Session = Depends(get_db),
    claims: dict[str, Any] = Depends(require_admin_permission("salary", write=True)),
) -> SalaryLockResponse:
    locked_by = str(claims.get("username") or claims.get("sub") or "admin")
    locked = lock_salary_records(
        db,
        month=payload.month,
        locked_by=locked_by,
        employee_emails=payload.employee_emails,
    )
    audit_admin_action(
        db,
        request,
        action="SALARY_LOCKED",
        entity_type="salary_month",
        entity_id=payload.month,
        details={"locked": locked, "employee_emails": payload.employee_emails},
    )
    return SalaryLockResponse(month=payload.month, locked=locked)


@router.get(
    "/api/salary/records",
    response_model=list[SalaryRecordRead],
    dependencies=[Depends(require_admin_permission("salary"))],
)
def get_salary_records(
    month: str | None = Query(default=None, pattern=MONTH_PATTERN),
    employee_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[SalaryRecordRead]:
    return [
        SalaryRecordRead.model_validate(item)
        for item in list_salary_records(db, month=month, employee_email=employee_email)
    ]


@router.get(
    "/api/salary/records/{record_id}",
    response_model=SalaryRecordRead,
    dependencies=[Depends(require_admin_permission("salary"))],
)
def get_salary_record_detail(record_id: int, db: Session = Depends(get_db)) -> SalaryRecordRead:
    return SalaryRecordRead.model_validate(get_salary_record(db, record_id))


@router.get(
    "/api/salary/export.xlsx",
    dependencies=[Depends(require_admin_permission("salary"))],
)
def export_salary_register(
    month: str = Query(pattern=MONTH_PATTERN),
    db: Session = Depends(get_db),
) -> Response:
    content = build_salary_register_xlsx(db, month=month)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="salary-register-{month}.xlsx"'},
    )


@router.put(
    "/api/salary/policies",
    response_model=SalaryPolicyRead,
    dependencies=[Depends(require_admin_permission("salary", write=True))],
)
def put_salary_policy(
    payload: SalaryPolicyUpsert,
    request: Request,
    db: Session = Depends(get_db),
) -> SalaryPolicyRead:
    policy = upsert_salary_policy(db, payload)
    audit_admin_action(
        db,
        request,
        action="SALARY_POLICY_UPSERTED",
        entity_type="salary_policy",
        entity_id=policy.id,
        details={"employee_email": policy.employee_email, "basic_salary": policy.basic_salary},
    )
    return SalaryPolicyRead.model_validate(policy)


@router.get(
    "/api/salary/policies",
    response_model=list[SalaryPolicyRead],
    dependencies=[Depends(require_admin_permission("salary"))],
)
def get_salary_policies(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[SalaryPolicyRead]:
    return [
        SalaryPolicyRead.model_validate(item)
        for item in list_salary_policies(db, include_inactive=include_inactive)
    ]


@router.post(
    "/api/salary/adjustments",
    response_model=SalaryAdjustmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_permission("salary", write=True))],
)
def post_salary_adjustment(
    payload: SalaryAdjustmentCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> SalaryAdjustmentRead:
    adjustment = create_adjustment(db, payload)
    audit_admin_action(
        db,
        request,
        action="SALARY_ADJUSTMENT_CREATED",
        entity_type="salary_adjustment",
        entity_id=adjustment.id,
        details={
            "employee_email": adjustment.employee_email,
            "month": adjustment.month,
            "adjustment_type": adjustment.adjustment_type.value,
            "amount": adjustment.amount,
        },
    )
    return SalaryAdjustmentRead.model_validate(adjustment)


@router.get(
    "/api/salary/adjustments",
    response_model=list[SalaryAdjustmentRead],
    dependencies=[Depends(require_admin_permission("salary"))],
)
def get_salary_adjustments(
    month: str | None = Query(default=None, pattern=MONTH_PATTERN),
    employee_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[SalaryAdjustmentRead]:
    return [
        SalaryAdjustmentRead.model_validate(item)
        for item in list_adjustments(db, month=month, employee_email=employee_email)
    ]


@router.post(
    "/api/salary/advances",
    response_model=SalaryAdvanceRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_permission("salary", write=True))],
)
def post_salary_advance(
    payload: SalaryAdvanceCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> SalaryAdvanceRead:
    advance = create_advance(db, payload)
    audit_admin_action(
        db,
        request,
        action="SALARY_ADVANCE_CREATED",
        entity_type="salary_advance",
        entity_id=advance.id,
        details={
            "employee_email": advance.employee_email,
            "advance_amount": advance.advance_amount,
            "installment_amount": advance.installment_amount,
        },
    )
    return SalaryAdvanceRead.model_validate(advance)


@router.get(
    "/api/salary/advances",
    response_model=list[SalaryAdvanceRead],
    dependencies=[Depends(require_admin_permission("salary"))],
)
def get_salary_advances(
    employee_email: str | None = Query(default=None),
    status_filter: AdvanceStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[SalaryAdvanceRead]:
    return [
        SalaryAdvanceRead.model_validate(item)
        for item in list_advances(db, employee_email=employee_email, status=status_filter)
    ]
