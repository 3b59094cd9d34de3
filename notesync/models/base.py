"""
Base Models.

The success/failure envelope every gateway call returns, and the page
shape used by paginated listings.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from notesync.core.exceptions import (
    ErrorInfo,
    ErrorKind,
    RateLimitError,
    RemoteError,
    ServerError,
    UnknownError,
    ValidationError,
    error_from_code,
    error_from_kind,
)

DataT = TypeVar("DataT")
ItemT = TypeVar("ItemT")


class GatewayResult(BaseModel, Generic[DataT]):
    """
    Tagged success/failure union returned by every gateway operation.

    A failed result carries the classified kind alongside the message
    and the machine-readable codes, so it can be turned back into a
    RemoteError without re-parsing anything.
    """

    success: bool
    message: str = ""
    data: DataT | None = None
    errors: list[str] = Field(default_factory=list)
    field_errors: dict[str, list[str]] = Field(default_factory=dict)
    kind: ErrorKind | None = None
    status_code: int | None = None
    retry_after: int | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def ok(cls, data: Any = None, message: str = "") -> "GatewayResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls,
        message: str,
        errors: list[str] | None = None,
        kind: ErrorKind | None = None,
        field_errors: dict[str, list[str]] | None = None,
    ) -> "GatewayResult":
        return cls(
            success=False,
            message=message,
            errors=errors or [],
            kind=kind,
            field_errors=field_errors or {},
        )

    @classmethod
    def from_error(cls, error: RemoteError) -> "GatewayResult":
        """Wrap a classified error as a failed result."""
        return cls(
            success=False,
            message=error.message,
            errors=[error.code],
            kind=error.kind,
            field_errors=dict(getattr(error, "field_errors", {}) or {}),
            status_code=getattr(error, "status_code", None),
            retry_after=getattr(error, "retry_after", None),
        )

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def first_error(self) -> str | None:
        return self.errors[0] if self.errors else None

    def to_error(self) -> RemoteError:
        """
        Reconstitute the classified error of a failed result.

        Results that carry no kind are classified from their first code,
        falling back to UnknownError.
        """
        message = self.message or "An error occurred"
        if self.kind is not None:
            error = error_from_kind(self.kind, message, code=self.first_error)
        elif self.first_error is not None:
            error = error_from_code(self.first_error, message)
        else:
            error = UnknownError(message)

        if isinstance(error, ValidationError) and self.field_errors:
            error.field_errors = dict(self.field_errors)
        if isinstance(error, ServerError):
            error.status_code = self.status_code
        if isinstance(error, RateLimitError):
            error.retry_after = self.retry_after
        return error

    def to_error_info(self) -> ErrorInfo:
        """Published error record for a failed result."""
        return ErrorInfo.from_error(self.to_error(), codes=self.errors)


class Page(BaseModel, Generic[ItemT]):
    """One page of a paginated listing."""

    items: list[ItemT]
    total_count: int = Field(ge=0)
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_pages: int = Field(ge=0)
    has_next: bool
    has_previous: bool

    @classmethod
    def empty(cls, page_size: int = 20) -> "Page":
        return cls(
            items=[],
            total_count=0,
            page=1,
            page_size=page_size,
            total_pages=0,
            has_next=False,
            has_previous=False,
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    def __len__(self) -> int:
        return len(self.items)
