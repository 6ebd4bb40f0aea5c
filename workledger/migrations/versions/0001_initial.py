"""Initial attendance, leave and salary schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

attendance_status = postgresql.ENUM(
    "present",
    "absent",
    "half_day",
    "leave",
    "work_from_home",
    "sick_leave",
    "casual_leave",
    "weekoff",
    "holiday",
    "checked_in",
    "checked_out",
    name="attendance_status",
    create_type=False,
)
attendance_source = postgresql.ENUM("web", "manual", "leave_sync", "bulk", name="attendance_source", create_type=False)
leave_request_status = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    "cancelled",
    name="leave_request_status",
    create_type=False,
)
salary_record_status = postgresql.ENUM("draft", "locked", "paid", name="salary_record_status", create_type=False)
salary_adjustment_type = postgresql.ENUM(
    "bonus",
    "incentive",
    "reimbursement",
    "allowance",
    "other",
    "advance_deduction",
    "penalty",
    name="salary_adjustment_type",
    create_type=False,
)
salary_adjustment_status = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    name="salary_adjustment_status",
    create_type=False,
)
salary_advance_status = postgresql.ENUM("active", "closed", name="salary_advance_status", create_type=False)
audit_actor_type = postgresql.ENUM("ADMIN", "SYSTEM", name="audit_actor_type", create_type=False)

ALL_ENUMS = (
    attendance_status,
    attendance_source,
    leave_request_status,
    salary_record_status,
    salary_adjustment_type,
    salary_adjustment_status,
    salary_advance_status,
    audit_actor_type,
)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Float(), nullable=False, server_default=sa.text("0"))


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
    )
    op.create_index("ix_employees_email", "employees", ["email"], unique=True)

    op.create_table(
        "attendance_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("work_start_time", sa.String(length=5), nullable=False, server_default=sa.text("'09:30'")),
        sa.Column("late_threshold_minutes", sa.Integer(), nullable=False, server_default=sa.text("15")),
        sa.Column("minimum_work_hours", sa.Float(), nullable=False, server_default=sa.text("9")),
        sa.Column("early_checkout_threshold_hours", sa.Float(), nullable=True),
        sa.Column("allow_multiple_checkins", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("enable_geofencing", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("office_latitude", sa.Float(), nullable=True),
        sa.Column("office_longitude", sa.Float(), nullable=True),
        sa.Column("geofence_radius_meters", sa.Integer(), nullable=False, server_default=sa.text("500")),
        sa.Column(
            "week_off_days",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[6]'::jsonb"),
        ),
        sa.Column("require_checkout", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("updated_at"),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_holidays_date", "holidays", ["date"], unique=True)

    op.create_table(
        "attendance_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_late", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_early_checkout", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("source", attendance_source, nullable=False, server_default=sa.text("'manual'")),
        sa.Column("marked_by", sa.String(length=255), nullable=True),
        sa.Column("location", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("ip_address", sa.String(length=128), nullable=True),
        sa.Column("remarks", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("employee_email", "date", name="uq_attendance_records_employee_date"),
    )
    op.create_index("ix_attendance_records_employee_email", "attendance_records", ["employee_email"], unique=False)
    op.create_index("ix_attendance_records_date", "attendance_records", ["date"], unique=False)

    op.create_table(
        "leave_types",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        _money("annual_quota"),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("attendance_status", attendance_status, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("leave_type_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_days", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("status", leave_request_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_comments", sa.String(length=1000), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["leave_type_id"], ["leave_types.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_leave_requests_employee_email", "leave_requests", ["employee_email"], unique=False)
    op.create_index("ix_leave_requests_leave_type_id", "leave_requests", ["leave_type_id"], unique=False)

    op.create_table(
        "leave_balances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("leave_type_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        _money("total_allocated"),
        _money("carried_forward"),
        _money("used"),
        _money("pending"),
        _money("available"),
        sa.ForeignKeyConstraint(["leave_type_id"], ["leave_types.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "employee_email",
            "leave_type_id",
            "year",
            name="uq_leave_balances_employee_type_year",
        ),
    )
    op.create_index("ix_leave_balances_employee_email", "leave_balances", ["employee_email"], unique=False)

    op.create_table(
        "salary_policies",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        _money("basic_salary"),
        _money("hra"),
        _money("travelling_allowance"),
        _money("children_education_allowance"),
        _money("fixed_incentive"),
        _money("employer_incentive"),
        sa.Column("employee_pf_percentage", sa.Float(), nullable=True),
        sa.Column("employee_pf_fixed", sa.Float(), nullable=True),
        sa.Column("employer_pf_percentage", sa.Float(), nullable=True),
        sa.Column("employer_pf_fixed", sa.Float(), nullable=True),
        sa.Column("employee_esi_percentage", sa.Float(), nullable=True),
        sa.Column("employee_esi_fixed", sa.Float(), nullable=True),
        sa.Column("employer_esi_percentage", sa.Float(), nullable=True),
        sa.Column("employer_esi_fixed", sa.Float(), nullable=True),
        _money("labour_welfare_employee"),
        _money("labour_welfare_employer"),
        sa.Column("ex_gratia_percentage", sa.Float(), nullable=True),
        sa.Column("ex_gratia_fixed", sa.Float(), nullable=True),
        sa.Column("late_penalty_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _money("late_penalty_per_minute"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_salary_policies_employee_email", "salary_policies", ["employee_email"], unique=True)

    op.create_table(
        "salary_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("employee_name", sa.String(length=255), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("total_working_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _money("total_paid_days"),
        _money("present_days"),
        sa.Column("absent_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("leave_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("weekoff_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("holiday_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _money("gross_salary"),
        _money("total_deductions"),
        _money("net_salary"),
        _money("attendance_adjustments"),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("status", salary_record_status, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("locked_by", sa.String(length=255), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("employee_email", "month", name="uq_salary_records_employee_month"),
    )
    op.create_index("ix_salary_records_employee_email", "salary_records", ["employee_email"], unique=False)
    op.create_index("ix_salary_records_month", "salary_records", ["month"], unique=False)

    op.create_table(
        "salary_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("adjustment_type", salary_adjustment_type, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", salary_adjustment_status, nullable=False, server_default=sa.text("'pending'")),
        _timestamp("created_at"),
    )
    op.create_index("ix_salary_adjustments_employee_email", "salary_adjustments", ["employee_email"], unique=False)
    op.create_index("ix_salary_adjustments_month", "salary_adjustments", ["month"], unique=False)

    op.create_table(
        "salary_advances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_email", sa.String(length=255), nullable=False),
        sa.Column("advance_amount", sa.Float(), nullable=False),
        sa.Column("installment_amount", sa.Float(), nullable=False),
        _money("total_paid"),
        sa.Column("remaining_balance", sa.Float(), nullable=False),
        sa.Column("status", salary_advance_status, nullable=False, server_default=sa.text("'active'")),
        sa.Column("recovery_start_month", sa.String(length=7), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_salary_advances_employee_email", "salary_advances", ["employee_email"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _timestamp("ts_utc"),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_salary_advances_employee_email", table_name="salary_advances")
    op.drop_table("salary_advances")
    op.drop_index("ix_salary_adjustments_month", table_name="salary_adjustments")
    op.drop_index("ix_salary_adjustments_employee_email", table_name="salary_adjustments")
    op.drop_table("salary_adjustments")
    op.drop_index("ix_salary_records_month", table_name="salary_records")
    op.drop_index("ix_salary_records_employee_email", table_name="salary_records")
    op.drop_table("salary_records")
    op.drop_index("ix_salary_policies_employee_email", table_name="salary_policies")
    op.drop_table("salary_policies")
    op.drop_index("ix_leave_balances_employee_email", table_name="leave_balances")
    op.drop_table("leave_balances")
    op.drop_index("ix_leave_requests_leave_type_id", table_name="leave_requests")
    op.drop_index("ix_leave_requests_employee_email", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_table("leave_types")
    op.drop_index("ix_attendance_records_date", table_name="attendance_records")
    op.drop_index("ix_attendance_records_employee_email", table_name="attendance_records")
    op.drop_table("attendance_records")
    op.drop_index("ix_holidays_date", table_name="holidays")
    op.drop_table("holidays")
    op.drop_table("attendance_settings")
    op.drop_index("ix_employees_email", table_name="employees")
    op.drop_table("employees")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
