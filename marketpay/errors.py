from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 400,
}


class PaymentError(Exception):
    """
    Base class for every request-scoped failure of the payment core.
    Rendered to clients as {"error": kind, "message": message}.
    """

    kind: ErrorKind

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class NotFoundError(PaymentError):
    """Order or payment does not exist."""

    kind = ErrorKind.NOT_FOUND


class ForbiddenError(PaymentError):
    """Caller is not the order owner or lacks the admin role."""

    kind = ErrorKind.FORBIDDEN


class UnauthorizedError(PaymentError):
    """Missing or invalid credentials (bearer token, webhook secret)."""

    kind = ErrorKind.UNAUTHORIZED


class ConflictError(PaymentError):
    """Request clashes with the current payment state."""

    kind = ErrorKind.CONFLICT


class ValidationError(PaymentError):
    """Malformed payload."""

    kind = ErrorKind.VALIDATION
