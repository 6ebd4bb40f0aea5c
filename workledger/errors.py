from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """A handled failure rendered as the ``{"error": {...}}`` envelope.

    ``details`` carries machine-readable context for the admin panel, e.g. the
    locked month or the remaining leave balance.
    """

    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def not_found(entity: str) -> ApiError:
    label = entity.replace("_", " ").capitalize()
    return ApiError(status_code=404, code=f"{entity.upper()}_NOT_FOUND", message=f"{label} not found.")


def salary_locked(month: str) -> ApiError:
    return ApiError(
        status_code=409,
        code="SALARY_LOCKED",
        message=f"Salary for {month} is locked.",
        details={"month": month},
    )


def insufficient_leave_balance(requested: float, available: float) -> ApiError:
    return ApiError(
        status_code=409,
        code="INSUFFICIENT_LEAVE_BALANCE",
        message=f"You need {requested:g} days but only have {available:g} available.",
        details={"requested": requested, "available": available},
    )


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": getattr(request.state, "request_id", None) or "unknown",
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})
