"""
Application errors.

Every error carries a machine-stable ``kind`` and the HTTP status the API
answers with; ``main.py`` turns them into ``{"error": kind, "message": ...}``.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind='{self.kind}', message='{self.message}')"


class ValidationError(AppError):
    status_code = 400
    kind = "validation_error"


class ConflictError(AppError):
    status_code = 409
    kind = "conflict"


class AlreadyClaimedError(ConflictError):
    kind = "already_claimed"


class InvalidTransitionError(ConflictError):
    kind = "invalid_transition"


class ActiveComplaintError(ConflictError):
    # The public API reports a duplicate active complaint as a bad request.
    status_code = 400
    kind = "active_complaint_exists"


class ForbiddenError(AppError):
    status_code = 403
    kind = "forbidden"


class RoleRequiredError(ForbiddenError):
    kind = "insufficient_role"


class AuthenticationError(AppError):
    status_code = 401
    kind = "unauthenticated"


class NotFoundError(AppError):
    status_code = 404
    kind = "not_found"


class TransientStoreError(AppError):
    """The database call failed; the caller may retry."""

    status_code = 500
    kind = "store_unavailable"
