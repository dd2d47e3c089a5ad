"""
Error taxonomy for the admin API.

Every error renders as {"error": ..., "details": ...} with the status code of
its class (see the handlers registered in main.py).
"""

from typing import Any, Dict, Optional


class AdminError(Exception):
    status_code = 500
    default_error = "Internal server error"

    def __init__(self, error: Optional[str] = None, details: Optional[str] = None):
        self.error = error or self.default_error
        self.details = details
        super().__init__(self.error)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "details": self.details}


class ValidationError(AdminError):
    status_code = 400
    default_error = "Invalid request"


class UnauthorizedError(AdminError):
    status_code = 401
    default_error = "Authentication required"


class ForbiddenError(AdminError):
    status_code = 403
    default_error = "Forbidden"


class NotFoundError(AdminError):
    status_code = 404
    default_error = "Not found"


class ConflictError(AdminError):
    status_code = 409
    default_error = "Conflict"


class UpstreamError(AdminError):
    """A database or identity-provider call failed."""

    status_code = 500
    default_error = "Upstream service failure"
