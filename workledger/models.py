from __future__ import annotations

import datetime as dt
import enum
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workledger.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [item.value for item in enum_cls]


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half_day"
    LEAVE = "leave"
    WORK_FROM_HOME = "work_from_home"
    SICK_LEAVE = "sick_leave"
    CASUAL_LEAVE = "casual_leave"
    WEEKOFF = "weekoff"
    HOLIDAY = "holiday"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class AttendanceSource(str, enum.Enum):
    WEB = "web"
    MANUAL = "manual"
    LEAVE_SYNC = "leave_sync"
    BULK = "bulk"


class LeaveRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class SalaryRecordStatus(str, enum.Enum):
    DRAFT = "draft"
    LOCKED = "locked"
    PAID = "paid"


class AdjustmentType(str, enum.Enum):
    BONUS = "bonus"
    INCENTIVE = "incentive"
    REIMBURSEMENT = "reimbursement"
    ALLOWANCE = "allowance"
    OTHER = "other"
    ADVANCE_DEDUCTION = "advance_deduction"
    PENALTY = "penalty"


class AdjustmentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdvanceStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class AuditActorType(str, enum.Enum):
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )


class AttendanceSettings(Base):
    __tablename__ = "attendance_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_start_time: Mapped[str] = mapped_column(String(5), nullable=False, default="09:30", server_default=text("'09:30'"))
    late_threshold_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15, server_default=text("15"))
    minimum_work_hours: Mapped[float] = mapped_column(Float, nullable=False, default=9.0, server_default=text("9"))
    early_checkout_threshold_hours: Mapped[float | None] = mapped_column(Float, nullable=True, default=8.5)
    allow_multiple_checkins: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    enable_geofencing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    office_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    office_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    geofence_radius_meters: Mapped[int] = mapped_column(Integer, nullable=False, default=500, server_default=text("500"))
    week_off_days: Mapped[list[int]] = mapped_column(JSONType, nullable=False, default=lambda: [6])
    require_checkout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("employee_email", "date", name="uq_attendance_records_employee_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus, name="attendance_status", values_callable=_enum_values),
        nullable=False,
    )
    check_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    is_early_checkout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    source: Mapped[AttendanceSource] = mapped_column(
        Enum(AttendanceSource, name="attendance_source", values_callable=_enum_values),
        nullable=False,
        default=AttendanceSource.MANUAL,
    )
    marked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    annual_quota: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    attendance_status: Mapped[AttendanceStatus | None] = mapped_column(
        Enum(AttendanceStatus, name="attendance_status", values_callable=_enum_values),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    leave_type_id: Mapped[int] = mapped_column(
        ForeignKey("leave_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[LeaveRequestStatus] = mapped_column(
        Enum(LeaveRequestStatus, name="leave_request_status", values_callable=_enum_values),
        nullable=False,
        default=LeaveRequestStatus.PENDING,
        server_default=text("'pending'"),
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_comments: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_email", "leave_type_id", "year", name="uq_leave_balances_employee_type_year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    leave_type_id: Mapped[int] = mapped_column(
        ForeignKey("leave_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_allocated: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    carried_forward: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    used: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    pending: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    available: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))


class SalaryPolicy(Base):
    __tablename__ = "salary_policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    basic_salary: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    hra: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    travelling_allowance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    children_education_allowance: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    fixed_incentive: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    employer_incentive: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    employee_pf_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    employee_pf_fixed: Mapped[float | None] = mapped_column(Float, nullable=True)
    employer_pf_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    employer_pf_fixed: Mapped[float | None] = mapped_column(Float, nullable=True)
    employee_esi_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    employee_esi_fixed: Mapped[float | None] = mapped_column(Float, nullable=True)
    employer_esi_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    employer_esi_fixed: Mapped[float | None] = mapped_column(Float, nullable=True)
    labour_welfare_employee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    labour_welfare_employer: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    ex_gratia_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    ex_gratia_fixed: Mapped[float | None] = mapped_column(Float, nullable=True)
    late_penalty_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    late_penalty_per_minute: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class SalaryRecord(Base):
    __tablename__ = "salary_records"
    __table_args__ = (UniqueConstraint("employee_email", "month", name="uq_salary_records_employee_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    total_working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_paid_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    present_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leave_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekoff_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    holiday_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gross_salary: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_deductions: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    net_salary: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    attendance_adjustments: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    status: Mapped[SalaryRecordStatus] = mapped_column(
        Enum(SalaryRecordStatus, name="salary_record_status", values_callable=_enum_values),
        nullable=False,
        default=SalaryRecordStatus.DRAFT,
        server_default=text("'draft'"),
    )
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    locked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class SalaryAdjustment(Base):
    __tablename__ = "salary_adjustments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        Enum(AdjustmentType, name="salary_adjustment_type", values_callable=_enum_values),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[AdjustmentStatus] = mapped_column(
        Enum(AdjustmentStatus, name="salary_adjustment_status", values_callable=_enum_values),
        nullable=False,
        default=AdjustmentStatus.PENDING,
        server_default=text("'pending'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )


class SalaryAdvance(Base):
    __tablename__ = "salary_advances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    advance_amount: Mapped[float] = mapped_column(Float, nullable=False)
    installment_amount: Mapped[float] = mapped_column(Float, nullable=False)
    total_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    remaining_balance: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[AdvanceStatus] = mapped_column(
        Enum(AdvanceStatus, name="salary_advance_status", values_callable=_enum_values),
        nullable=False,
        default=AdvanceStatus.ACTIVE,
        server_default=text("'active'"),
    )
    recovery_start_month: Mapped[str] = mapped_column(String(7), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
