from __future__ import annotations

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from workledger.db import get_db
from workledger.main import app
from workledger.routers.salary import XLSX_MEDIA_TYPE
from workledger.security import hash_password, register_login_success, require_admin
from workledger.settings import Settings

from db_support import make_session_factory, override_get_db

SUPER_ADMIN_CLAIMS = {
    "sub": "admin",
    "username": "admin",
    "role": "admin",
    "iat": 0,
    "exp": 9999999999,
    "jti": "test-token",
    "is_super_admin": True,
    "permissions": {},
}


class ApiEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        app.dependency_overrides[get_db] = override_get_db(self.session_factory)
        app.dependency_overrides[require_admin] = lambda: SUPER_ADMIN_CLAIMS
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _create_employee(self, email: str = "asha@example.com", full_name: str = "Asha") -> dict:
        response = self.client.post("/api/employees", json={"email": email, "full_name": full_name})
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_duplicate_employee_uses_error_envelope(self) -> None:
        self._create_employee()

        response = self.client.post(
            "/api/employees",
            json={"email": "ASHA@example.com", "full_name": "Asha Again"},
            headers={"X-Request-Id": "req-123"},
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.headers["X-Request-Id"], "req-123")
        body = response.json()
        self.assertEqual(body["error"]["code"], "EMPLOYEE_EXISTS")
        self.assertEqual(body["error"]["request_id"], "req-123")

    def test_employee_deactivation_hides_from_default_list(self) -> None:
        employee = self._create_employee()

        response = self.client.patch(f"/api/employees/{employee['id']}/active", json={"is_active": False})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["is_active"])

        listed = self.client.get("/api/employees").json()
        listed_all = self.client.get("/api/employees", params={"include_inactive": "true"}).json()
        self.assertEqual(listed, [])
        self.assertEqual(len(listed_all), 1)

        audit = self.client.get("/api/audit-logs", params={"entity_type": "employee"}).json()
        self.assertEqual({item["action"] for item in audit}, {"EMPLOYEE_CREATED", "EMPLOYEE_DEACTIVATED"})

    def test_missing_token_is_rejected(self) -> None:
        del app.dependency_overrides[require_admin]

        response = self.client.get("/api/employees")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_scoped_admin_login_limits_writes(self) -> None:
        del app.dependency_overrides[require_admin]
        settings = Settings(
            jwt_secret="api-test-secret",
            admin_pass_hash="",
            admin_accounts=[
                {
                    "username": "hr",
                    "pass_hash": hash_password("hr-pass"),
                    "permissions": {"leaves": True, "salary": {"read": True}},
                }
            ],
        )

        with patch("workledger.security.get_settings", return_value=settings):
            login = self.client.post("/api/auth/login", json={"username": "hr", "password": "hr-pass"})
            self.assertEqual(login.status_code, 200)
            headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

            me = self.client.get("/api/auth/me", headers=headers)
            leave_type = self.client.post(
                "/api/leave-types",
                json={"name": "Casual Leave", "annual_quota": 12},
                headers=headers,
            )
            preview = self.client.post(
                "/api/salary/preview",
                json={"per_day_rate": 500, "present_days": 20, "leave_days": 2, "absent_days": 1},
                headers=headers,
            )
            calculate = self.client.post("/api/salary/calculate", json={"month": "2026-03"}, headers=headers)
            employee = self.client.post(
                "/api/employees",
                json={"email": "ravi@example.com", "full_name": "Ravi"},
                headers=headers,
            )

        self.assertFalse(me.json()["is_super_admin"])
        self.assertEqual(me.json()["permissions"]["salary"], {"read": True, "write": False})
        self.assertEqual(leave_type.status_code, 201)
        self.assertEqual(preview.status_code, 200)
        self.assertEqual(preview.json(), {"earned": 11000.0, "deduction": 500.0, "net": 10500.0})
        self.assertEqual(calculate.status_code, 403)
        self.assertEqual(calculate.json()["error"]["code"], "FORBIDDEN")
        self.assertEqual(employee.status_code, 403)

    def test_wrong_password_is_rejected(self) -> None:
        self.addCleanup(register_login_success, "testclient")
        settings = Settings(jwt_secret="api-test-secret", admin_pass_hash=hash_password("right-pass"))

        with patch("workledger.security.get_settings", return_value=settings):
            response = self.client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_CREDENTIALS")

    def test_invalid_month_is_validation_error(self) -> None:
        response = self.client.post("/api/salary/calculate", json={"month": "2026-3"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_leave_request_approval_flow(self) -> None:
        self._create_employee()
        leave_type = self.client.post("/api/leave-types", json={"name": "Earned Leave", "annual_quota": 10}).json()

        created = self.client.post(
            "/api/leave-requests",
            json={
                "employee_email": "asha@example.com",
                "leave_type_id": leave_type["id"],
                "start_date": "2026-03-02",
                "end_date": "2026-03-03",
            },
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "pending")

        reviewed = self.client.post(
            f"/api/leave-requests/{created.json()['id']}/review",
            json={"action": "approved", "comments": "enjoy"},
        )
        self.assertEqual(reviewed.status_code, 200)
        body = reviewed.json()
        self.assertEqual(body["request"]["status"], "approved")
        self.assertEqual(body["balance"]["used"], 2.0)
        self.assertEqual(body["balance"]["available"], 8.0)
        self.assertEqual(body["attendance_days_synced"], 2)

        again = self.client.post(f"/api/leave-requests/{created.json()['id']}/review", json={"action": "rejected"})
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["error"]["code"], "LEAVE_ALREADY_REVIEWED")

        records = self.client.get("/api/attendance/records", params={"employee_email": "asha@example.com"}).json()
        self.assertEqual({item["status"] for item in records}, {"leave"})
        self.assertEqual({item["source"] for item in records}, {"leave_sync"})

    def test_leave_request_rules_surface_in_error_envelope(self) -> None:
        self._create_employee()
        leave_type = self.client.post("/api/leave-types", json={"name": "Earned Leave", "annual_quota": 10}).json()

        def submit(start: str, end: str):  # type: ignore[no-untyped-def]
            return self.client.post(
                "/api/leave-requests",
                json={
                    "employee_email": "asha@example.com",
                    "leave_type_id": leave_type["id"],
                    "start_date": start,
                    "end_date": end,
                },
            )

        spanning = submit("2026-12-30", "2027-01-02")
        self.assertEqual(spanning.status_code, 422)
        self.assertEqual(spanning.json()["error"]["code"], "LEAVE_SPANS_YEARS")

        too_long = submit("2026-03-02", "2026-03-13")
        self.assertEqual(too_long.status_code, 409)
        error = too_long.json()["error"]
        self.assertEqual(error["code"], "INSUFFICIENT_LEAVE_BALANCE")
        self.assertEqual(error["details"], {"requested": 12.0, "available": 10.0})

        balances = self.client.get("/api/leave-balances", params={"employee_email": "asha@example.com"}).json()
        self.assertTrue(all(item["pending"] == 0.0 for item in balances))

    def test_monthly_summary_and_salary_export(self) -> None:
        self._create_employee()
        self.client.put(
            "/api/salary/policies",
            json={"employee_email": "asha@example.com", "basic_salary": 31000},
        )
        marked = self.client.put(
            "/api/attendance/records",
            json={"employee_email": "asha@example.com", "date": "2026-03-02", "status": "present"},
        )
        self.assertEqual(marked.status_code, 200)

        summary = self.client.get("/api/attendance/monthly-summary", params={"year": 2026, "month": 3})
        self.assertEqual(summary.status_code, 200)
        counts = summary.json()["employees"][0]["counts"]
        self.assertEqual(counts["present"], 1)
        self.assertEqual(counts["not_marked_days"], 30)

        calculated = self.client.post("/api/salary/calculate", json={"month": "2026-03"})
        self.assertEqual(calculated.status_code, 200)
        self.assertEqual(calculated.json()["results"][0]["gross_salary"], 1000.0)

        export = self.client.get("/api/salary/export.xlsx", params={"month": "2026-03"})
        self.assertEqual(export.status_code, 200)
        self.assertEqual(export.headers["content-type"], XLSX_MEDIA_TYPE)
        self.assertIn("salary-register-2026-03.xlsx", export.headers["content-disposition"])
        self.assertTrue(export.content.startswith(b"PK"))

    def test_unknown_salary_record_is_not_found(self) -> None:
        response = self.client.get("/api/salary/records/999")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "SALARY_RECORD_NOT_FOUND")

    def test_health_reports_schema_guard_not_run(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn("SCHEMA_GUARD_NOT_RUN", body["schema_guard"]["issues"])


if __name__ == "__main__":
    unittest.main()
