from __future__ import annotations

import hmac
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from workledger.errors import ApiError
from workledger.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

_LOCK = threading.Lock()
_FAILED_ATTEMPTS: dict[str, deque[datetime]] = defaultdict(deque)
_MAX_ATTEMPTS = 10
_ATTEMPT_WINDOW = timedelta(minutes=10)

ADMIN_PERMISSION_KEYS: tuple[str, ...] = (
    "employees",
    "attendance",
    "leaves",
    "salary",
    "settings",
    "audit",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _cleanup_attempts(ip: str, now: datetime) -> None:
    queue = _FAILED_ATTEMPTS[ip]
    threshold = now - _ATTEMPT_WINDOW
    while queue and queue[0] < threshold:
        queue.popleft()
    if not queue:
        _FAILED_ATTEMPTS.pop(ip, None)


def ensure_login_attempt_allowed(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        queue = _FAILED_ATTEMPTS.get(ip, deque())
        if len(queue) >= _MAX_ATTEMPTS:
            raise ApiError(
                status_code=429,
                code="TOO_MANY_ATTEMPTS",
                message="Too many failed login attempts. Please try again later.",
            )


def register_login_failure(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        _FAILED_ATTEMPTS[ip].append(now)


def register_login_success(ip: str) -> None:
    with _LOCK:
        _FAILED_ATTEMPTS.pop(ip, None)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        return False


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def full_permissions() -> dict[str, dict[str, bool]]:
    return {key: {"read": True, "write": True} for key in ADMIN_PERMISSION_KEYS}


def normalize_permissions(raw: Mapping[str, Any] | None) -> dict[str, dict[str, bool]]:
    normalized = {key: {"read": False, "write": False} for key in ADMIN_PERMISSION_KEYS}
    if not isinstance(raw, Mapping):
        return normalized

    for key, value in raw.items():
        if key not in normalized:
            continue
        if isinstance(value, Mapping):
            read = bool(value.get("read"))
            write = bool(value.get("write"))
        else:
            read = bool(value)
            write = bool(value)
        if write:
            read = True
        normalized[key] = {"read": read, "write": write}
    return normalized


def has_permission(claims: Mapping[str, Any], permission: str, *, write: bool = False) -> bool:
    if permission not in ADMIN_PERMISSION_KEYS:
        return False
    if bool(claims.get("is_super_admin")):
        return True

    permissions = normalize_permissions(claims.get("permissions"))  # type: ignore[arg-type]
    permission_value = permissions[permission]
    if write:
        return permission_value["write"]
    return permission_value["read"] or permission_value["write"]


@dataclass(frozen=True)
class AdminIdentity:
    username: str
    is_super_admin: bool
    permissions: dict[str, dict[str, bool]]


def _matches(password: str, raw_hash: str) -> bool:
    password_hash = _strip_quotes((raw_hash or "").strip())
    return bool(password_hash) and verify_password(password, password_hash)


def authenticate_admin(username: str, password: str) -> AdminIdentity | None:
    """Resolve a login against the env super admin first, then the scoped ``ADMIN_ACCOUNTS``."""
    settings = get_settings()
    super_username = _strip_quotes((settings.admin_user or "").strip())
    if super_username and hmac.compare_digest(username, super_username):
        if not _matches(password, settings.admin_pass_hash):
            return None
        return AdminIdentity(username=username, is_super_admin=True, permissions=full_permissions())

    for account in settings.admin_accounts:
        if not hmac.compare_digest(username, account.username.strip()):
            continue
        if not _matches(password, account.pass_hash):
            return None
        return AdminIdentity(
            username=username,
            is_super_admin=False,
            permissions=normalize_permissions(account.permissions),
        )
    return None


def create_access_token(identity: AdminIdentity) -> tuple[str, int, dict[str, Any]]:
    settings = get_settings()
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims = {
        "sub": identity.username,
        "username": identity.username,
        "role": "admin",
        "is_super_admin": identity.is_super_admin,
        "permissions": identity.permissions,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in, claims


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")

    if payload.get("role") != "admin":
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")

    return payload


def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    payload = decode_token(credentials.credentials)

    request.state.actor = "admin"
    request.state.actor_id = str(payload.get("username") or payload.get("sub") or "admin")
    return payload


def require_admin_permission(permission: str, *, write: bool = False) -> Callable[..., dict[str, Any]]:
    if permission not in ADMIN_PERMISSION_KEYS:
        raise ValueError(f"Unknown admin permission: {permission}")

    def _dependency(claims: dict[str, Any] = Depends(require_admin)) -> dict[str, Any]:
        if not has_permission(claims, permission, write=write):
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return claims

    return _dependency
