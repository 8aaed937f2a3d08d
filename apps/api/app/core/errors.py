from __future__ import annotations

from fastapi import HTTPException


class DomainError(HTTPException):
    """
    Base for every error the finance core raises.

    Each subclass carries a stable ``kind`` (for clients) and an HTTP status; the
    human-readable reason travels as ``detail`` like any other HTTPException.
    """

    status_code = 400
    kind = "error"

    def __init__(self, reason: str, headers: dict[str, str] | None = None):
        super().__init__(status_code=self.status_code, detail=reason, headers=headers)
        self.reason = reason


class ValidationFailed(DomainError):
    status_code = 422
    kind = "validation"


class InvalidPeriod(ValidationFailed):
    kind = "invalid_period"


class Forbidden(DomainError):
    status_code = 403
    kind = "forbidden"


class EmailMismatch(Forbidden):
    kind = "email_mismatch"


class NotFound(DomainError):
    status_code = 404
    kind = "not_found"


class InvalidToken(NotFound):
    kind = "invalid_token"


class Conflict(DomainError):
    status_code = 409
    kind = "conflict"


class DuplicateMember(Conflict):
    kind = "duplicate_member"


class AlreadyMember(Conflict):
    kind = "already_member"


class DuplicatePending(Conflict):
    kind = "duplicate_pending"


class LastOwnerViolation(Conflict):
    kind = "last_owner_violation"


class InvalidState(Conflict):
    kind = "invalid_state"


class Expired(DomainError):
    status_code = 410
    kind = "expired"


class Unavailable(DomainError):
    """Retryable: an external lookup timed out or failed."""

    status_code = 503
    kind = "unavailable"

    def __init__(self, reason: str, retry_after_seconds: int = 1):
        super().__init__(reason, headers={"Retry-After": str(retry_after_seconds)})
