"""Domain-specific exceptions.

Each error carries a stable ``code`` that doubles as the i18n key of its
user-facing message, plus optional formatting params.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    code = "error.internal"
    status_code = 500

    def __init__(self, message: str | None = None, *, code: str | None = None, **params: Any) -> None:
        super().__init__(message or code or self.code)
        if code is not None:
            self.code = code
        self.params = params


class ValidationFailed(ServiceError):
    code = "error.validation"
    status_code = 400


class PendingRequestExists(ServiceError):
    code = "upgrade.pending_exists"
    status_code = 400


class UpgradeNotAllowed(ServiceError):
    code = "upgrade.not_allowed"
    status_code = 400


class AuthorizationError(ServiceError):
    code = "auth.forbidden"
    status_code = 403


class SessionInvalid(AuthorizationError):
    code = "auth.session_invalid"
    status_code = 401


class InstitutionSuspended(AuthorizationError):
    code = "auth.institution_banned"


class NotStudentOwner(AuthorizationError):
    code = "auth.not_owner"


class StudentNotFound(ServiceError):
    code = "student.not_found"
    status_code = 404


class RequestNotFound(ServiceError):
    code = "upgrade.request_not_found"
    status_code = 404


__all__ = [
    "AuthorizationError",
    "InstitutionSuspended",
    "NotStudentOwner",
    "PendingRequestExists",
    "RequestNotFound",
    "ServiceError",
    "SessionInvalid",
    "StudentNotFound",
    "UpgradeNotAllowed",
    "ValidationFailed",
]
