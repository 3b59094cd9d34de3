"""
Remote Error Taxonomy.

Every failure coming out of the remote access layer is classified into one
of a fixed set of kinds. Gateways return failures as GatewayResult values
built from these errors; stores convert them into ErrorInfo records and
publish them, so presentation code never sees raw transport exceptions.

Usage:
    from notesync.core.exceptions import classify_exception, error_from_status

    try:
        response = await client.request("GET", "/notes")
    except Exception as exc:
        error = classify_exception(exc)

    error = error_from_status(404)          # NotFoundError
    info = ErrorInfo.from_error(error)      # what the stores publish
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import pydantic


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    SERVER = "server"
    RATE_LIMIT = "rate_limit"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class RemoteError(Exception):
    """Base exception for all classified failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_code: str = "UNKNOWN_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(code={self.code!r}, message={self.message!r})>"


class ValidationError(RemoteError):
    """Client-side or server-rejected input."""

    kind = ErrorKind.VALIDATION
    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Validation failed",
        code: str | None = None,
        field_errors: dict[str, list[str]] | None = None,
        details: Any = None,
    ) -> None:
        self.field_errors = field_errors or {}
        super().__init__(message, code=code, details=details)

    @property
    def has_field_errors(self) -> bool:
        return bool(self.field_errors)

    @property
    def all_errors(self) -> str:
        """Message followed by one line per field error."""
        if not self.field_errors:
            return self.message
        lines = [self.message]
        for name, errors in self.field_errors.items():
            lines.append(f"{name}: {', '.join(errors)}")
        return "\n".join(lines)


class AuthenticationError(RemoteError):
    kind = ErrorKind.AUTHENTICATION
    default_code = "AUTH_ERROR"

    def __init__(self, message: str = "Authentication failed", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class UnauthorizedError(RemoteError):
    kind = ErrorKind.UNAUTHORIZED
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class ForbiddenError(RemoteError):
    kind = ErrorKind.FORBIDDEN
    default_code = "FORBIDDEN"

    def __init__(self, message: str = "Permission denied", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class NotFoundError(RemoteError):
    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class NetworkError(RemoteError):
    kind = ErrorKind.NETWORK
    default_code = "NETWORK_ERROR"

    def __init__(self, message: str = "Network connection failed", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class NetworkTimeoutError(NetworkError):
    kind = ErrorKind.TIMEOUT
    default_code = "TIMEOUT_ERROR"

    def __init__(self, message: str = "Request timed out", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class NetworkConnectionError(NetworkError):
    kind = ErrorKind.CONNECTION
    default_code = "CONNECTION_ERROR"

    def __init__(self, message: str = "Could not connect to server", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class ServerError(RemoteError):
    kind = ErrorKind.SERVER
    default_code = "SERVER_ERROR"

    def __init__(
        self,
        message: str = "Internal server error. Please try again.",
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, code=code, details=details)


class RateLimitError(RemoteError):
    kind = ErrorKind.RATE_LIMIT
    default_code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, code=code, details=details)


class ConflictError(RemoteError):
    """Duplicate email or username, or another uniqueness clash."""

    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


class UnknownError(RemoteError):
    kind = ErrorKind.UNKNOWN
    default_code = "UNKNOWN_ERROR"

    def __init__(self, message: str = "An unknown error occurred", code: str | None = None, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)


# =============================================================================
# Factories
# =============================================================================


STATUS_MESSAGES: dict[int, str] = {
    400: "Bad request. Please check your input.",
    401: "Authentication required. Please login.",
    403: "Access forbidden. You don't have permission.",
    404: "Resource not found.",
    409: "Resource already exists.",
    422: "Validation failed. Please check your input.",
    429: "Too many requests. Please try again later.",
    500: "Internal server error. Please try again.",
    502: "Bad gateway. Please try again later.",
    503: "Service unavailable. Please try again later.",
    504: "Gateway timeout. Please try again later.",
}


def error_from_status(
    status_code: int,
    message: str | None = None,
    details: Any = None,
    retry_after: int | None = None,
    field_errors: dict[str, list[str]] | None = None,
) -> RemoteError:
    """
    Classify an HTTP error status.

    Args:
        status_code: HTTP status of the failed response
        message: Server-provided message, if any
        details: Raw error payload for display/debugging
        retry_after: Seconds from the Retry-After header (429 only)
        field_errors: Per-field validation messages (400/422 only)

    Returns:
        The RemoteError subclass matching the status
    """
    text = message or STATUS_MESSAGES.get(status_code, "An error occurred. Please try again.")

    if status_code in (400, 422):
        return ValidationError(text, field_errors=field_errors, details=details)
    if status_code == 401:
        return UnauthorizedError(text, details=details)
    if status_code == 403:
        return ForbiddenError(text, details=details)
    if status_code == 404:
        return NotFoundError(text, details=details)
    if status_code == 409:
        return ConflictError(text, details=details)
    if status_code == 429:
        return RateLimitError(text, retry_after=retry_after, details=details)
    return ServerError(text, status_code=status_code, details=details)


_CODE_FACTORIES: dict[str, type[RemoteError]] = {
    "NETWORK_ERROR": NetworkError,
    "CONNECTION_ERROR": NetworkConnectionError,
    "TIMEOUT_ERROR": NetworkTimeoutError,
    "AUTH_ERROR": AuthenticationError,
    "INVALID_CREDENTIALS": AuthenticationError,
    "UNAUTHORIZED": UnauthorizedError,
    "UNAUTHORIZED_ERROR": UnauthorizedError,
    "INVALID_PASSWORD": UnauthorizedError,
    "FORBIDDEN": ForbiddenError,
    "FORBIDDEN_ERROR": ForbiddenError,
    "NOT_FOUND": NotFoundError,
    "NOT_FOUND_ERROR": NotFoundError,
    "NOTE_NOT_FOUND": NotFoundError,
    "USER_NOT_FOUND": NotFoundError,
    "VALIDATION_ERROR": ValidationError,
    "NOTE_VALIDATION_ERROR": ValidationError,
    "INVALID_EMAIL": ValidationError,
    "PASSWORD_TOO_SHORT": ValidationError,
    "USERNAME_TOO_SHORT": ValidationError,
    "WEAK_PASSWORD": ValidationError,
    "TAG_LIMIT_EXCEEDED": ValidationError,
    "EMAIL_EXISTS": ConflictError,
    "USERNAME_EXISTS": ConflictError,
    "CONFLICT": ConflictError,
    "RATE_LIMIT_EXCEEDED": RateLimitError,
    "SERVER_ERROR": ServerError,
    "MAINTENANCE_MODE": ServerError,
}


def error_from_code(code: str, message: str | None = None, details: Any = None) -> RemoteError:
    """
    Classify a machine-readable error code from a response envelope.

    Unrecognized codes become UnknownError and keep the code as given.

    Args:
        code: Error code (case-insensitive)
        message: Human-readable message, if any
        details: Raw error payload

    Returns:
        The RemoteError subclass matching the code
    """
    normalized = code.upper()
    error_cls = _CODE_FACTORIES.get(normalized, UnknownError)
    if message is None:
        return error_cls(code=normalized, details=details)
    return error_cls(message, code=normalized, details=details)


_KIND_CLASSES: dict[ErrorKind, type[RemoteError]] = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.AUTHENTICATION: AuthenticationError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.FORBIDDEN: ForbiddenError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.TIMEOUT: NetworkTimeoutError,
    ErrorKind.CONNECTION: NetworkConnectionError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.UNKNOWN: UnknownError,
}


def error_from_kind(kind: ErrorKind, message: str, code: str | None = None) -> RemoteError:
    """Build the error class registered for a kind."""
    return _KIND_CLASSES[kind](message, code=code)


def classify_exception(exc: BaseException) -> RemoteError:
    """
    Map any exception raised while talking to the service onto the taxonomy.

    Args:
        exc: The raised exception

    Returns:
        A RemoteError (the same object if exc already is one)
    """
    if isinstance(exc, RemoteError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return NetworkTimeoutError(details=str(exc))
    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError)):
        return NetworkConnectionError(details=str(exc))
    if isinstance(exc, httpx.HTTPStatusError):
        return error_from_status(exc.response.status_code, details=str(exc))
    if isinstance(exc, httpx.HTTPError):
        return NetworkError(details=str(exc))
    if isinstance(exc, (pydantic.ValidationError, ValueError, KeyError, TypeError)):
        return UnknownError("Failed to parse data", code="PARSE_ERROR", details=str(exc))
    return UnknownError(details=str(exc))


# =============================================================================
# Published error record
# =============================================================================


@dataclass(frozen=True)
class ErrorInfo:
    """
    Error as published by the stores.

    One uniform shape regardless of origin: local validation, a failed
    gateway result, or a transport exception.
    """

    kind: ErrorKind
    message: str
    codes: tuple[str, ...] = ()
    field_errors: dict[str, list[str]] = field(default_factory=dict)
    status_code: int | None = None
    retry_after: int | None = None

    @property
    def code(self) -> str | None:
        """First machine-readable code, if any."""
        return self.codes[0] if self.codes else None

    @classmethod
    def from_error(cls, error: RemoteError, codes: list[str] | None = None) -> "ErrorInfo":
        """
        Build the published record from a classified error.

        Args:
            error: Classified error
            codes: Explicit code list (e.g. every code from a response
                envelope); defaults to the error's own code
        """
        return cls(
            kind=error.kind,
            message=error.message,
            codes=tuple(codes) if codes else (error.code,),
            field_errors=dict(getattr(error, "field_errors", {}) or {}),
            status_code=getattr(error, "status_code", None),
            retry_after=getattr(error, "retry_after", None),
        )
