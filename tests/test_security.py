from __future__ import annotations

import unittest
from unittest.mock import patch

from workledger.errors import ApiError
from workledger.security import (
    AdminIdentity,
    authenticate_admin,
    create_access_token,
    decode_token,
    ensure_login_attempt_allowed,
    has_permission,
    hash_password,
    normalize_permissions,
    register_login_failure,
    register_login_success,
)
from workledger.settings import Settings


def _test_settings(**overrides) -> Settings:  # type: ignore[no-untyped-def]
    values = {
        "jwt_secret": "unit-test-secret",
        "admin_user": "admin",
        "admin_pass_hash": "",
    }
    values.update(overrides)
    return Settings(**values)


class AccessTokenTests(unittest.TestCase):
    def test_token_roundtrip_keeps_permissions(self) -> None:
        identity = AdminIdentity(
            username="payroll",
            is_super_admin=False,
            permissions=normalize_permissions({"salary": {"read": True, "write": True}}),
        )
        with patch("workledger.security.get_settings", return_value=_test_settings()):
            token, expires_in, claims = create_access_token(identity)
            payload = decode_token(token)

        self.assertEqual(expires_in, 30 * 60)
        self.assertEqual(payload["sub"], "payroll")
        self.assertEqual(payload["jti"], claims["jti"])
        self.assertFalse(payload["is_super_admin"])
        self.assertTrue(payload["permissions"]["salary"]["write"])
        self.assertFalse(payload["permissions"]["leaves"]["read"])

    def test_token_signed_with_other_secret_is_rejected(self) -> None:
        identity = AdminIdentity(username="admin", is_super_admin=True, permissions={})
        with patch("workledger.security.get_settings", return_value=_test_settings(jwt_secret="other")):
            token, _, _ = create_access_token(identity)

        with patch("workledger.security.get_settings", return_value=_test_settings()):
            with self.assertRaises(ApiError) as ctx:
                decode_token(token)

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.code, "INVALID_TOKEN")


class PermissionTests(unittest.TestCase):
    def test_boolean_permissions_grant_read_and_write(self) -> None:
        permissions = normalize_permissions({"leaves": True, "unknown": True, "salary": {"write": True}})

        self.assertEqual(permissions["leaves"], {"read": True, "write": True})
        self.assertEqual(permissions["salary"], {"read": True, "write": True})
        self.assertEqual(permissions["audit"], {"read": False, "write": False})
        self.assertNotIn("unknown", permissions)

    def test_has_permission_distinguishes_read_and_write(self) -> None:
        claims = {"permissions": {"attendance": {"read": True, "write": False}}}

        self.assertTrue(has_permission(claims, "attendance"))
        self.assertFalse(has_permission(claims, "attendance", write=True))
        self.assertFalse(has_permission(claims, "salary"))
        self.assertTrue(has_permission({"is_super_admin": True}, "salary", write=True))
        self.assertFalse(has_permission({"is_super_admin": True}, "not-a-permission"))


class AuthenticateAdminTests(unittest.TestCase):
    def test_env_admin_is_super_admin(self) -> None:
        password_hash = hash_password("s3cret-pass")
        with patch(
            "workledger.security.get_settings",
            return_value=_test_settings(admin_pass_hash=f"'{password_hash}'"),
        ):
            identity = authenticate_admin("admin", "s3cret-pass")
            self.assertIsNone(authenticate_admin("admin", "wrong"))
            self.assertIsNone(authenticate_admin("root", "s3cret-pass"))

        self.assertIsNotNone(identity)
        self.assertTrue(identity.is_super_admin)
        self.assertTrue(identity.permissions["audit"]["write"])

    def test_scoped_account_gets_only_its_permissions(self) -> None:
        settings = _test_settings(
            admin_accounts=[
                {
                    "username": "hr",
                    "pass_hash": hash_password("hr-pass"),
                    "permissions": {"leaves": True, "attendance": {"read": True}},
                }
            ]
        )
        with patch("workledger.security.get_settings", return_value=settings):
            identity = authenticate_admin("hr", "hr-pass")
            self.assertIsNone(authenticate_admin("hr", "admin-pass"))

        self.assertIsNotNone(identity)
        self.assertFalse(identity.is_super_admin)
        self.assertEqual(identity.permissions["leaves"], {"read": True, "write": True})
        self.assertEqual(identity.permissions["attendance"], {"read": True, "write": False})
        self.assertEqual(identity.permissions["salary"], {"read": False, "write": False})

    def test_missing_hash_never_authenticates(self) -> None:
        with patch("workledger.security.get_settings", return_value=_test_settings()):
            self.assertIsNone(authenticate_admin("admin", ""))

    def test_failed_logins_are_throttled_per_ip(self) -> None:
        ip = "203.0.113.50"
        self.addCleanup(register_login_success, ip)
        for _ in range(10):
            register_login_failure(ip)

        with self.assertRaises(ApiError) as ctx:
            ensure_login_attempt_allowed(ip)
        self.assertEqual(ctx.exception.status_code, 429)

        register_login_success(ip)
        ensure_login_attempt_allowed(ip)


if __name__ == "__main__":
    unittest.main()
