"""
Base Store.

Common plumbing for the stores: snapshot publishing, gateway call
wrapping and required-field checks.

Usage:
    from notesync.stores.base import BaseStore

    class SessionStore(BaseStore[SessionSnapshot]):
        def __init__(self, gateway: AuthGateway) -> None:
            super().__init__("session")
            self._gateway = gateway

        @property
        def snapshot(self) -> SessionSnapshot:
            ...

        async def fetch_profile(self) -> bool:
            result = await self._call("fetch_profile", self._gateway.fetch_profile())
            ...
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any, Generic, TypeVar

from notesync.core.exceptions import ErrorInfo, ValidationError, classify_exception
from notesync.core.logging import get_logger
from notesync.models.base import GatewayResult
from notesync.stores.channel import NotificationChannel

SnapshotT = TypeVar("SnapshotT")


class BaseStore(ABC, Generic[SnapshotT]):
    """
    Base class for the stores.

    Provides:
    - A `changes` channel carrying full snapshots
    - Logging context
    - Conversion of gateway exceptions into failed results

    Subclasses should:
    - Call super().__init__(name) in their __init__
    - Implement the `snapshot` property
    - Call _publish() after every state transition
    """

    def __init__(self, name: str) -> None:
        self.changes: NotificationChannel[SnapshotT] = NotificationChannel(name)
        self._logger = get_logger(self.__class__.__module__)

    @property
    @abstractmethod
    def snapshot(self) -> SnapshotT:
        """Frozen copy of the current state."""

    def _publish(self) -> None:
        self.changes.publish(self.snapshot)

    async def _call(self, operation: str, coro: Awaitable[GatewayResult]) -> GatewayResult:
        """
        Await a gateway call, turning any exception into a failed result.

        Anything a gateway raises is classified like any other failure.

        Args:
            operation: Description of the operation for logging
            coro: Gateway coroutine to await

        Returns:
            The gateway's result, or a failed result built from the exception
        """
        try:
            return await coro
        except Exception as e:
            error = classify_exception(e)
            self._logger.warning(
                "Gateway raised",
                extra={"operation": operation, "error": str(e), "kind": error.kind.value},
            )
            return GatewayResult.from_error(error)

    @staticmethod
    def _missing_fields(fields: dict[str, Any], verbatim: frozenset[str] = frozenset()) -> ErrorInfo | None:
        """
        Check that required fields are present and not empty.

        Args:
            fields: Field name to submitted value
            verbatim: Fields checked as given, without stripping whitespace

        Returns:
            A VALIDATION_ERROR record naming the empty fields, or None
        """
        missing = [
            name for name, value in fields.items()
            if value is None
            or (isinstance(value, str) and not (value if name in verbatim else value.strip()))
        ]
        if not missing:
            return None

        error = ValidationError(
            "Please fill in all required fields",
            code="VALIDATION_ERROR",
            field_errors={name: ["This field is required"] for name in missing},
        )
        return ErrorInfo.from_error(error)
