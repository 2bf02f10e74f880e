"""
Error types raised by the porting service.

Every error carries a stable ``kind`` and the HTTP status the API answers with,
so routes and the app-level error handler render them the same way.
"""
from typing import List, Optional


class PortingError(Exception):
    """Base class for porting errors"""

    kind = "porting_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def to_dict(self) -> dict:
        body = {
            "success": False,
            "error": self.message,
            "kind": self.kind,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PortingError):
    """Malformed or incomplete input. Nothing was persisted."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, details=errors)

    @property
    def errors(self) -> List[str]:
        return self.details


class NotFoundError(PortingError):
    kind = "not_found"
    status_code = 404


class ConflictError(PortingError):
    """An active porting attempt already exists, or a concurrent write won."""

    kind = "conflict"
    status_code = 409


class IllegalTransitionError(PortingError):
    kind = "illegal_transition"
    status_code = 409


class InvalidStatusError(IllegalTransitionError):
    kind = "invalid_status"
    status_code = 400


class ActivationError(PortingError):
    """The ported number could not be materialized in the number registry."""

    kind = "activation_failed"
    status_code = 502

