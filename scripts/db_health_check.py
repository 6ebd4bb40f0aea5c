#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from workledger.settings import get_settings

EXPECTED_HEAD = "0001_initial"
BALANCE_TOLERANCE = 0.001

REQUIRED_TABLES = (
    "employees",
    "attendance_settings",
    "holidays",
    "attendance_records",
    "leave_types",
    "leave_requests",
    "leave_balances",
    "salary_policies",
    "salary_records",
    "salary_adjustments",
    "salary_advances",
    "audit_logs",
)


def run(engine: Engine | None = None) -> dict:
    if engine is None:
        engine = create_engine(get_settings().database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    tables = set(inspect(engine).get_table_names())
    with engine.connect() as conn:
        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        missing_tables = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables})

        if "attendance_records" in tables:
            duplicate_days = conn.execute(
                text(
                    """
                    select employee_email, date, count(*)
                    from attendance_records
                    group by employee_email, date
                    having count(*) > 1
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "duplicate_attendance_day",
                "fail" if duplicate_days else "ok",
                {"rows": [[str(value) for value in row] for row in duplicate_days]},
            )

        if "leave_balances" in tables:
            drifted = conn.execute(
                text(
                    """
                    select id, employee_email, leave_type_id, year, available,
                           total_allocated + carried_forward - used - pending as expected
                    from leave_balances
                    where abs(available - (total_allocated + carried_forward - used - pending)) > :tolerance
                       or used < 0
                       or pending < 0
                    limit 20
                    """
                ),
                {"tolerance": BALANCE_TOLERANCE},
            ).fetchall()
            add(
                "leave_balance_drift",
                "fail" if drifted else "ok",
                {"rows": [[str(value) for value in row] for row in drifted]},
            )

        if "leave_balances" in tables and "leave_requests" in tables:
            # Requests are matched to the balance of their start-date year.
            start_year = _year_expression(engine, "r.start_date")
            pending_drift = conn.execute(
                text(
                    f"""
                    select b.id, b.pending, coalesce(sum(r.total_days), 0) as requested
                    from leave_balances b
                    left join leave_requests r
                      on r.employee_email = b.employee_email
                     and r.leave_type_id = b.leave_type_id
                     and r.status = 'pending'
                     and {start_year} = b.year
                    group by b.id, b.pending
                    having abs(b.pending - coalesce(sum(r.total_days), 0)) > :tolerance
                    limit 20
                    """
                ),
                {"tolerance": BALANCE_TOLERANCE},
            ).fetchall()
            add(
                "leave_pending_drift",
                "fail" if pending_drift else "ok",
                {"rows": [[str(value) for value in row] for row in pending_drift]},
            )

        if "leave_requests" in tables and "employees" in tables:
            orphan_requests = conn.execute(
                text(
                    """
                    select r.id
                    from leave_requests r
                    left join employees e on e.email = r.employee_email
                    where e.id is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "leave_request_orphan_employee",
                "fail" if orphan_requests else "ok",
                {"sample_ids": [row[0] for row in orphan_requests]},
            )

    return report


def _year_expression(engine: Engine, column: str) -> str:
    if engine.dialect.name == "sqlite":
        return f"cast(strftime('%Y', {column}) as integer)"
    return f"cast(extract(year from {column}) as integer)"


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
