"""Custom exception classes for the files gateway."""

from typing import Any


class GatewayException(Exception):
    """
    Base exception class for all gateway errors.

    Carries the HTTP status it is rendered with and a stable machine code.
    """
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(GatewayException):
    """
    Raised when input is malformed. Never reaches the backend.
    """
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationRequiredError(GatewayException):
    """
    Raised when an operation requires an identity and none was supplied.
    """
    status_code = 401
    code = "UNAUTHORIZED"


class PaymentRequiredError(GatewayException):
    """
    Raised when the caller has no upload quota left.
    """
    status_code = 402
    code = "PAYMENT_REQUIRED"


class ForbiddenError(GatewayException):
    """
    Raised when an identity is present but insufficient.
    """
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(GatewayException):
    """
    Raised when a record is absent or deliberately hidden from the caller.
    """
    status_code = 404
    code = "NOT_FOUND"


class PreconditionFailedError(GatewayException):
    """
    Raised when a record exists but a derived artifact is not ready yet.
    """
    status_code = 412
    code = "PRECONDITION_FAILED"


class RpcError(GatewayException):
    """
    Base class for failures of a single request/reply exchange.
    """
    status_code = 502
    code = "RPC_ERROR"


class RpcTimeoutError(RpcError):
    """
    Raised when no reply arrived within the route's timeout.
    """
    status_code = 504
    code = "TIMEOUT"


class TransportError(RpcError):
    """
    Raised when the messaging transport could not be reached.
    """
    status_code = 503
    code = "SERVICE_UNAVAILABLE"


class RemoteError(RpcError):
    """
    Structured failure reported by the backend.

    `remote_code` is kept exactly as the peer sent it; the HTTP status is
    derived from it when it names a 4xx/5xx status.
    """
    code = "REMOTE_ERROR"

    def __init__(self, remote_code: Any, message: str = "", name: str = None):
        super().__init__(message)
        self.remote_code = remote_code
        self.name = name

    @property
    def status_code(self) -> int:
        try:
            value = int(self.remote_code)
        except (TypeError, ValueError):
            return 500
        if 400 <= value <= 599:
            return value
        return 500

    def __str__(self) -> str:
        return f"{self.remote_code}: {self.message}"
