from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from workledger.models import (
    AdjustmentStatus,
    AdjustmentType,
    AdvanceStatus,
    AttendanceSource,
    AttendanceStatus,
    AuditActorType,
    LeaveRequestStatus,
    SalaryRecordStatus,
)
from workledger.services.attendance_calc import parse_hhmm, parse_month

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class AdminLoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class AdminAuthResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int


class AdminMeResponse(BaseModel):
    username: str
    is_super_admin: bool
    permissions: dict[str, dict[str, bool]]


class EmployeeCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    full_name: str = Field(min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("email must contain @")
        return value


class EmployeeRead(BaseModel):
    id: int
    email: str
    full_name: str
    department: str | None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmployeeActiveUpdateRequest(BaseModel):
    is_active: bool


class AttendanceSettingsUpsertRequest(BaseModel):
    work_start_time: str = "09:30"
    late_threshold_minutes: int = Field(default=15, ge=0, le=24 * 60)
    minimum_work_hours: float = Field(default=9.0, ge=0, le=24)
    early_checkout_threshold_hours: float | None = Field(default=8.5, ge=0, le=24)
    allow_multiple_checkins: bool = False
    enable_geofencing: bool = False
    office_latitude: float | None = Field(default=None, ge=-90, le=90)
    office_longitude: float | None = Field(default=None, ge=-180, le=180)
    geofence_radius_meters: int = Field(default=500, ge=1)
    week_off_days: list[int] = Field(default_factory=lambda: [6])
    require_checkout: bool = True

    @field_validator("work_start_time")
    @classmethod
    def _validate_work_start(cls, value: str) -> str:
        parsed = parse_hhmm(value)
        return f"{parsed.hour:02d}:{parsed.minute:02d}"

    @field_validator("week_off_days")
    @classmethod
    def _validate_week_off_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("week_off_days must contain weekday numbers between 0 (Monday) and 6 (Sunday)")
        return value


class AttendanceSettingsRead(BaseModel):
    id: int
    work_start_time: str
    late_threshold_minutes: int
    minimum_work_hours: float
    early_checkout_threshold_hours: float | None
    allow_multiple_checkins: bool
    enable_geofencing: bool
    office_latitude: float | None
    office_longitude: float | None
    geofence_radius_meters: int
    week_off_days: list[int]
    require_checkout: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HolidayCreateRequest(BaseModel):
    date: date
    name: str = Field(min_length=1, max_length=255)


class HolidayRead(BaseModel):
    id: int
    date: date
    name: str

    model_config = ConfigDict(from_attributes=True)


class CheckInRequest(BaseModel):
    employee_email: str
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)
    accuracy_m: float | None = Field(default=None, ge=0)
    ip_address: str | None = None


class CheckOutRequest(BaseModel):
    employee_email: str


class AttendanceMarkRequest(BaseModel):
    employee_email: str
    date: date
    status: AttendanceStatus
    check_in: datetime | None = None
    check_out: datetime | None = None
    remarks: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_times(self) -> "AttendanceMarkRequest":
        if self.check_in is not None and self.check_out is not None and self.check_out < self.check_in:
            raise ValueError("check_out must not be before check_in")
        return self


class AttendanceRecordRead(BaseModel):
    id: int
    employee_email: str
    date: date
    status: AttendanceStatus
    check_in: datetime | None
    check_out: datetime | None
    total_hours: float
    is_late: bool
    late_minutes: int
    is_early_checkout: bool
    source: AttendanceSource
    marked_by: str | None
    location: dict[str, Any] | None
    ip_address: str | None
    remarks: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BulkWeekoffRequest(BaseModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    employee_emails: list[str] = Field(default_factory=list)
    weekdays: list[int] | None = None


class BulkWeekoffResponse(BaseModel):
    created: int
    skipped_existing: int


class ClearMonthResponse(BaseModel):
    deleted: int


class AttendanceCountsRead(BaseModel):
    period_days: int
    present: int
    absent: int
    half_day: int
    leave: int
    work_from_home: int
    weekoff: int
    holiday: int
    late: int
    early_checkout: int
    open_check_in: int = 0
    total_hours: float
    overtime_hours: float
    avg_hours: float
    marked_days: int
    not_marked_days: int
    present_equivalent_days: float
    paid_days: float
    attendance_rate: float
    regularity_score: int
    salary_deduction_days: float


class MonthlyAttendanceSummaryItem(BaseModel):
    employee_email: str
    full_name: str
    counts: AttendanceCountsRead


class MonthlyAttendanceSummaryResponse(BaseModel):
    year: int
    month: int
    employees: list[MonthlyAttendanceSummaryItem]


class LeaveTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    annual_quota: float = Field(default=0, ge=0)
    is_paid: bool = True
    attendance_status: AttendanceStatus | None = None
    is_active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    annual_quota: float | None = Field(default=None, ge=0)
    is_paid: bool | None = None
    attendance_status: AttendanceStatus | None = None
    is_active: bool | None = None


class LeaveTypeRead(BaseModel):
    id: int
    name: str
    annual_quota: float
    is_paid: bool
    attendance_status: AttendanceStatus | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceInitializeRequest(BaseModel):
    year: int = Field(ge=2000, le=2100)


class LeaveBalanceInitializeResponse(BaseModel):
    year: int
    created: int


class LeaveBalanceRead(BaseModel):
    id: int
    employee_email: str
    leave_type_id: int
    year: int
    total_allocated: float
    carried_forward: float
    used: float
    pending: float
    available: float

    model_config = ConfigDict(from_attributes=True)


class LeaveRequestCreate(BaseModel):
    employee_email: str
    leave_type_id: int = Field(ge=1)
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=1000)


class LeaveReviewRequest(BaseModel):
    action: Literal["approved", "rejected"]
    comments: str | None = Field(default=None, max_length=1000)


class LeaveRequestRead(BaseModel):
    id: int
    employee_email: str
    leave_type_id: int
    start_date: date
    end_date: date
    total_days: float
    reason: str | None
    status: LeaveRequestStatus
    reviewed_by: str | None
    reviewed_at: datetime | None
    review_comments: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeaveReviewResponse(BaseModel):
    request: LeaveRequestRead
    balance: LeaveBalanceRead | None = None
    attendance_days_synced: int = 0


class SalaryPreviewRequest(BaseModel):
    per_day_rate: float = Field(ge=0)
    present_days: float = Field(ge=0)
    leave_days: float = Field(default=0, ge=0)
    absent_days: float = Field(default=0, ge=0)


class SalaryPreviewResponse(BaseModel):
    earned: float
    deduction: float
    net: float


class SalaryPolicyUpsert(BaseModel):
    employee_email: str
    basic_salary: float = Field(default=0, ge=0)
    hra: float = Field(default=0, ge=0)
    travelling_allowance: float = Field(default=0, ge=0)
    children_education_allowance: float = Field(default=0, ge=0)
    fixed_incentive: float = Field(default=0, ge=0)
    employer_incentive: float = Field(default=0, ge=0)
    employee_pf_percentage: float | None = Field(default=None, ge=0, le=100)
    employee_pf_fixed: float | None = Field(default=None, ge=0)
    employer_pf_percentage: float | None = Field(default=None, ge=0, le=100)
    employer_pf_fixed: float | None = Field(default=None, ge=0)
    employee_esi_percentage: float | None = Field(default=None, ge=0, le=100)
    employee_esi_fixed: float | None = Field(default=None, ge=0)
    employer_esi_percentage: float | None = Field(default=None, ge=0, le=100)
    employer_esi_fixed: float | None = Field(default=None, ge=0)
    labour_welfare_employee: float = Field(default=0, ge=0)
    labour_welfare_employer: float = Field(default=0, ge=0)
    ex_gratia_percentage: float | None = Field(default=None, ge=0, le=100)
    ex_gratia_fixed: float | None = Field(default=None, ge=0)
    late_penalty_enabled: bool = True
    late_penalty_per_minute: float = Field(default=0, ge=0)
    is_active: bool = True


class SalaryPolicyRead(SalaryPolicyUpsert):
    id: int

    model_config = ConfigDict(from_attributes=True)


class SalaryCalculateRequest(BaseModel):
    month: str = Field(pattern=MONTH_PATTERN)
    employee_email: str | None = None

    @field_validator("month")
    @classmethod
    def _validate_month(cls, value: str) -> str:
        parse_month(value)
        return value


class SalaryRunItem(BaseModel):
    employee_email: str
    employee_name: str
    record_id: int
    action: Literal["created", "updated", "skipped_locked"]
    gross_salary: float
    total_deductions: float
    net_salary: float


class SalaryCalculateResponse(BaseModel):
    month: str
    total_processed: int
    results: list[SalaryRunItem]


class SalaryLockRequest(BaseModel):
    month: str = Field(pattern=MONTH_PATTERN)
    employee_emails: list[str] | None = None


class SalaryLockResponse(BaseModel):
    month: str
    locked: int


class SalaryRecordRead(BaseModel):
    id: int
    employee_email: str
    employee_name: str
    month: str
    total_working_days: int
    total_paid_days: float
    present_days: float
    absent_days: int
    leave_days: int
    weekoff_days: int
    holiday_days: int
    gross_salary: float
    total_deductions: float
    net_salary: float
    attendance_adjustments: float
    details: dict[str, Any]
    status: SalaryRecordStatus
    locked: bool
    locked_by: str | None
    locked_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class SalaryAdjustmentCreate(BaseModel):
    employee_email: str
    month: str = Field(pattern=MONTH_PATTERN)
    adjustment_type: AdjustmentType
    amount: float
    description: str | None = None
    status: AdjustmentStatus = AdjustmentStatus.PENDING


class SalaryAdjustmentRead(BaseModel):
    id: int
    employee_email: str
    month: str
    adjustment_type: AdjustmentType
    amount: float
    description: str | None
    status: AdjustmentStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SalaryAdvanceCreate(BaseModel):
    employee_email: str
    advance_amount: float = Field(gt=0)
    installment_amount: float = Field(gt=0)
    recovery_start_month: str = Field(pattern=MONTH_PATTERN)

    @model_validator(mode="after")
    def _validate_installment(self) -> "SalaryAdvanceCreate":
        if self.installment_amount > self.advance_amount:
            raise ValueError("installment_amount must not exceed advance_amount")
        return self


class SalaryAdvanceRead(BaseModel):
    id: int
    employee_email: str
    advance_amount: float
    installment_amount: float
    total_paid: float
    remaining_balance: float
    status: AdvanceStatus
    recovery_start_month: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    actor_type: AuditActorType
    actor_id: str
    action: str
    entity_type: str | None
    entity_id: str | None
    ip: str | None
    user_agent: str | None
    success: bool
    details: dict[str, Any]

    model_config = ConfigDict(from_attributes=True)
