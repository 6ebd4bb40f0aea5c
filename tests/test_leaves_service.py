from __future__ import annotations

import unittest
from datetime import date
from unittest.mock import patch

from sqlalchemy import select

from workledger.errors import ApiError
from workledger.models import (
    AttendanceRecord,
    AttendanceStatus,
    LeaveRequest,
    LeaveRequestStatus,
    LeaveType,
    SalaryRecord,
)
from workledger.schemas import LeaveRequestCreate, LeaveTypeCreate, LeaveTypeUpdate
from workledger.services.leaves import (
    cancel_leave_request,
    create_leave_type,
    initialize_balances,
    list_balances,
    list_leave_requests,
    review_leave_request,
    submit_leave_request,
    update_leave_type,
)

from db_support import add_employee, make_session_factory

EMAIL = "asha@example.com"


class LeaveServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()
        add_employee(self.db, EMAIL, "Asha")
        self.leave_type = create_leave_type(self.db, LeaveTypeCreate(name="Casual Leave", annual_quota=12))
        patcher = patch("workledger.services.leaves.get_leave_sync_skip_weekdays", return_value=(6,))
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self.db.close()

    def _submit(self, start: date, end: date) -> LeaveRequest:
        return submit_leave_request(
            self.db,
            LeaveRequestCreate(
                employee_email=EMAIL,
                leave_type_id=self.leave_type.id,
                start_date=start,
                end_date=end,
                reason="family function",
            ),
        )

    def _balance(self):  # type: ignore[no-untyped-def]
        balances = list_balances(self.db, employee_email=EMAIL, year=2026)
        self.assertEqual(len(balances), 1)
        return balances[0]

    def test_submit_reserves_pending_days(self) -> None:
        leave_request = self._submit(date(2026, 3, 2), date(2026, 3, 4))

        self.assertEqual(leave_request.status, LeaveRequestStatus.PENDING)
        self.assertEqual(leave_request.total_days, 3.0)
        balance = self._balance()
        self.assertEqual(balance.pending, 3.0)
        self.assertEqual(balance.used, 0.0)
        self.assertEqual(balance.available, 9.0)

    def test_approve_moves_pending_to_used_and_syncs_attendance(self) -> None:
        # Friday 2026-03-06 through Monday 2026-03-09, Sunday skipped.
        leave_request = self._submit(date(2026, 3, 6), date(2026, 3, 9))

        reviewed, balance, synced = review_leave_request(
            self.db,
            leave_request.id,
            action="approved",
            reviewer="admin",
            comments="ok",
        )

        self.assertEqual(reviewed.status, LeaveRequestStatus.APPROVED)
        self.assertEqual(reviewed.reviewed_by, "admin")
        self.assertEqual(balance.used, 4.0)
        self.assertEqual(balance.pending, 0.0)
        self.assertEqual(balance.available, 8.0)
        self.assertEqual(synced, 3)
        rows = self.db.scalars(select(AttendanceRecord).where(AttendanceRecord.employee_email == EMAIL)).all()
        self.assertEqual({row.date for row in rows}, {date(2026, 3, 6), date(2026, 3, 7), date(2026, 3, 9)})
        self.assertTrue(all(row.status == AttendanceStatus.CASUAL_LEAVE for row in rows))

    def test_reject_releases_pending_days(self) -> None:
        leave_request = self._submit(date(2026, 3, 2), date(2026, 3, 4))

        reviewed, balance, synced = review_leave_request(self.db, leave_request.id, action="rejected", reviewer="admin")

        self.assertEqual(reviewed.status, LeaveRequestStatus.REJECTED)
        self.assertEqual(balance.pending, 0.0)
        self.assertEqual(balance.used, 0.0)
        self.assertEqual(balance.available, 12.0)
        self.assertEqual(synced, 0)
        self.assertEqual(self.db.scalars(select(AttendanceRecord)).all(), [])

    def test_review_twice_is_rejected(self) -> None:
        leave_request = self._submit(date(2026, 3, 2), date(2026, 3, 2))
        review_leave_request(self.db, leave_request.id, action="approved", reviewer="admin")

        with self.assertRaises(ApiError) as ctx:
            review_leave_request(self.db, leave_request.id, action="rejected", reviewer="admin")

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.code, "LEAVE_ALREADY_REVIEWED")
        self.assertEqual(self._balance().used, 1.0)

    def test_unknown_review_action_is_rejected(self) -> None:
        leave_request = self._submit(date(2026, 3, 2), date(2026, 3, 2))

        with self.assertRaises(ApiError) as ctx:
            review_leave_request(self.db, leave_request.id, action="maybe", reviewer="admin")

        self.assertEqual(ctx.exception.code, "INVALID_REVIEW_ACTION")
        self.assertEqual(self._balance().pending, 1.0)

    def test_insufficient_balance_blocks_submission(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self._submit(date(2026, 3, 1), date(2026, 3, 13))

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.code, "INSUFFICIENT_LEAVE_BALANCE")
        self.assertEqual(self.db.scalars(select(LeaveRequest)).all(), [])

    def test_reversed_date_range_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self._submit(date(2026, 3, 4), date(2026, 3, 2))

        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.code, "INVALID_DATE_RANGE")

    def test_request_spanning_two_years_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            self._submit(date(2026, 12, 30), date(2027, 1, 2))

        self.assertEqual(ctx.exception.status_code, 422)
        self.assertEqual(ctx.exception.code, "LEAVE_SPANS_YEARS")
        self.assertEqual(list_balances(self.db, employee_email=EMAIL), [])

    def test_inactive_employee_cannot_request_leave(self) -> None:
        add_employee(self.db, "former@example.com", "Former", is_active=False)

        with self.assertRaises(ApiError) as ctx:
            submit_leave_request(
                self.db,
                LeaveRequestCreate(
                    employee_email="former@example.com",
                    leave_type_id=self.leave_type.id,
                    start_date=date(2026, 3, 2),
                    end_date=date(2026, 3, 2),
                ),
            )

        self.assertEqual(ctx.exception.code, "EMPLOYEE_INACTIVE")

    def test_cancel_releases_pending_days(self) -> None:
        leave_request = self._submit(date(2026, 3, 2), date(2026, 3, 3))

        cancelled, balance = cancel_leave_request(self.db, leave_request.id, cancelled_by="admin")

        self.assertEqual(cancelled.status, LeaveRequestStatus.CANCELLED)
        self.assertEqual(balance.pending, 0.0)
        self.assertEqual(balance.available, 12.0)

    def test_approval_blocked_when_salary_month_locked(self) -> None:
        leave_request = self._submit(date(2026, 3, 2), date(2026, 3, 3))
        self.db.add(SalaryRecord(employee_email=EMAIL, employee_name="Asha", month="2026-03", locked=True))
        self.db.commit()

        with self.assertRaises(ApiError) as ctx:
            review_leave_request(self.db, leave_request.id, action="approved", reviewer="admin")

        self.assertEqual(ctx.exception.code, "SALARY_LOCKED")
        self.db.rollback()
        self.assertEqual(self._balance().pending, 2.0)
        self.assertEqual(self.db.get(LeaveRequest, leave_request.id).status, LeaveRequestStatus.PENDING)

    def test_initialize_balances_is_idempotent(self) -> None:
        add_employee(self.db, "ravi@example.com", "Ravi")

        self.assertEqual(initialize_balances(self.db, 2027), 2)
        self.assertEqual(initialize_balances(self.db, 2027), 0)
        balance = list_balances(self.db, employee_email="ravi@example.com", year=2027)[0]
        self.assertEqual(balance.total_allocated, 12.0)
        self.assertEqual(balance.available, 12.0)

    def test_list_leave_requests_filters_by_status(self) -> None:
        first = self._submit(date(2026, 3, 2), date(2026, 3, 2))
        self._submit(date(2026, 3, 10), date(2026, 3, 10))
        review_leave_request(self.db, first.id, action="rejected", reviewer="admin")

        pending = list_leave_requests(self.db, status=LeaveRequestStatus.PENDING)

        self.assertEqual([item.start_date for item in pending], [date(2026, 3, 10)])

    def test_duplicate_leave_type_name_is_rejected(self) -> None:
        other = create_leave_type(self.db, LeaveTypeCreate(name="Sick Leave", annual_quota=6))

        with self.assertRaises(ApiError) as ctx:
            create_leave_type(self.db, LeaveTypeCreate(name="Casual Leave"))
        self.assertEqual(ctx.exception.code, "LEAVE_TYPE_EXISTS")

        with self.assertRaises(ApiError) as ctx:
            update_leave_type(self.db, other.id, LeaveTypeUpdate(name="Casual Leave"))
        self.assertEqual(ctx.exception.status_code, 409)

        updated = update_leave_type(self.db, other.id, LeaveTypeUpdate(annual_quota=8))
        self.assertEqual(updated.annual_quota, 8)
        self.assertEqual(self.db.get(LeaveType, other.id).name, "Sick Leave")


if __name__ == "__main__":
    unittest.main()
