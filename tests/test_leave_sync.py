from __future__ import annotations

import unittest
from datetime import date

from sqlalchemy import select

from workledger.models import AttendanceRecord, AttendanceSource, AttendanceStatus, LeaveRequest, LeaveRequestStatus, LeaveType
from workledger.services.leave_sync import leave_sync_dates, resolve_attendance_status, sync_leave_to_attendance

from db_support import add_employee, make_session_factory


class LeaveSyncDateTests(unittest.TestCase):
    def test_sunday_is_skipped_by_default(self) -> None:
        # Thursday 2026-02-05 through Monday 2026-02-09.
        days = leave_sync_dates(date(2026, 2, 5), date(2026, 2, 9))
        self.assertEqual(len(days), 4)
        self.assertNotIn(date(2026, 2, 8), days)

    def test_custom_skip_weekdays(self) -> None:
        days = leave_sync_dates(date(2026, 2, 5), date(2026, 2, 9), skip_weekdays=(5, 6))
        self.assertEqual(days, [date(2026, 2, 5), date(2026, 2, 6), date(2026, 2, 9)])

    def test_reversed_range_is_empty(self) -> None:
        self.assertEqual(leave_sync_dates(date(2026, 2, 9), date(2026, 2, 5)), [])


class ResolveAttendanceStatusTests(unittest.TestCase):
    def test_explicit_mapping_wins_over_name(self) -> None:
        leave_type = LeaveType(name="Sick Leave", attendance_status=AttendanceStatus.HALF_DAY)
        self.assertEqual(resolve_attendance_status(leave_type), AttendanceStatus.HALF_DAY)

    def test_name_keywords(self) -> None:
        self.assertEqual(resolve_attendance_status(LeaveType(name="Sick Leave")), AttendanceStatus.SICK_LEAVE)
        self.assertEqual(resolve_attendance_status(LeaveType(name="Casual")), AttendanceStatus.CASUAL_LEAVE)
        self.assertEqual(resolve_attendance_status(LeaveType(name="WFH")), AttendanceStatus.WORK_FROM_HOME)
        self.assertEqual(resolve_attendance_status(LeaveType(name="Earned Leave")), AttendanceStatus.LEAVE)
        self.assertEqual(resolve_attendance_status(None), AttendanceStatus.LEAVE)


class SyncLeaveToAttendanceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()
        add_employee(self.db, "asha@example.com", "Asha")
        self.leave_type = LeaveType(name="Sick Leave", annual_quota=12)
        self.db.add(self.leave_type)
        self.db.commit()

    def tearDown(self) -> None:
        self.db.close()

    def test_sync_creates_and_overwrites_days(self) -> None:
        self.db.add(
            AttendanceRecord(
                employee_email="asha@example.com",
                date=date(2026, 2, 6),
                status=AttendanceStatus.ABSENT,
                source=AttendanceSource.MANUAL,
            )
        )
        leave_request = LeaveRequest(
            employee_email="asha@example.com",
            leave_type_id=self.leave_type.id,
            start_date=date(2026, 2, 5),
            end_date=date(2026, 2, 9),
            total_days=5.0,
            status=LeaveRequestStatus.APPROVED,
        )
        self.db.add(leave_request)
        self.db.commit()

        touched = sync_leave_to_attendance(self.db, leave_request, self.leave_type, marked_by="admin")
        self.db.commit()

        self.assertEqual(len(touched), 4)
        rows = self.db.scalars(
            select(AttendanceRecord).where(AttendanceRecord.employee_email == "asha@example.com")
        ).all()
        self.assertEqual(len(rows), 4)
        for row in rows:
            self.assertEqual(row.status, AttendanceStatus.SICK_LEAVE)
            self.assertEqual(row.source, AttendanceSource.LEAVE_SYNC)
            self.assertEqual(row.remarks, "Leave Approved: Sick Leave")
        self.assertNotIn(date(2026, 2, 8), {row.date for row in rows})


if __name__ == "__main__":
    unittest.main()
