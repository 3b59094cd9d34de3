"""
Session Store.

Single authority for who is signed in. Tracks the session phase, owns the
current identity, validates credential forms and reacts to identity and
session-validity changes pushed by the auth gateway.

Phases:
    uninitialized -> authenticating           initialize()
    authenticating -> authenticated | unauthenticated
    authenticated / unauthenticated -> authenticating   login(), register()
    authenticating -> authenticated | failed
    authenticated / failed -> authenticating -> unauthenticated   logout()

Out-of-band gateway notifications switch between authenticated and
unauthenticated directly.
"""

from dataclasses import dataclass
from enum import Enum

from notesync.core.exceptions import (
    ErrorInfo,
    ErrorKind,
    UnauthorizedError,
    ValidationError,
)
from notesync.gateways.base import AuthGateway
from notesync.models.base import GatewayResult
from notesync.models.user import ProfileUpdate, RegisterRequest, User
from notesync.stores import validators
from notesync.stores.base import BaseStore
from notesync.stores.channel import Subscription

# Passwords are only checked for being empty, never stripped.
PASSWORD_FIELDS = frozenset({"password", "current_password", "new_password"})


class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSnapshot:
    """Published state of the Session Store."""

    phase: SessionPhase = SessionPhase.UNINITIALIZED
    user: User | None = None
    error: ErrorInfo | None = None
    initialized: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.phase == SessionPhase.AUTHENTICATED and self.user is not None

    @property
    def is_loading(self) -> bool:
        return self.phase == SessionPhase.AUTHENTICATING

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None


class SessionStore(BaseStore[SessionSnapshot]):
    """
    Owns the session state machine.

    Operations return True on success and False on failure; failures are
    never raised, they are published as a `failed` snapshot carrying an
    ErrorInfo.
    """

    def __init__(self, gateway: AuthGateway) -> None:
        super().__init__("session")
        self._gateway = gateway
        self._phase = SessionPhase.UNINITIALIZED
        self._user: User | None = None
        self._error: ErrorInfo | None = None
        self._initialized = False
        self._subscriptions: list[Subscription] = []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self._phase,
            user=self._user,
            error=self._error,
            initialized=self._initialized,
        )

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def error(self) -> ErrorInfo | None:
        return self._error

    @property
    def error_message(self) -> str | None:
        return self._error.message if self._error else None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_authenticated(self) -> bool:
        return self.snapshot.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._phase == SessionPhase.AUTHENTICATING

    @property
    def has_error(self) -> bool:
        return self._error is not None

    @property
    def user_id(self) -> str | None:
        return self._user.id if self._user else None

    @property
    def user_email(self) -> str | None:
        return self._user.email if self._user else None

    @property
    def user_display_name(self) -> str | None:
        return self._user.display_name if self._user else None

    @property
    def user_full_name(self) -> str | None:
        return self._user.full_name if self._user else None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Subscribe to the gateway and restore any persisted session."""
        if self._phase == SessionPhase.AUTHENTICATING:
            return
        if not self._subscriptions:
            self._subscriptions = [
                self._gateway.identity_changes.subscribe(self._on_identity_changed),
                self._gateway.validity_changes.subscribe(self._on_validity_changed),
            ]

        self._begin()
        try:
            await self._gateway.initialize()
        except Exception as e:
            self._logger.warning("Session restore failed", extra={"error": str(e)})
        self._initialized = True
        self._adopt_gateway_state()
        self._logger.info(
            "Session initialized",
            extra={"phase": self._phase.value, "user_id": self.user_id},
        )

    async def check_auth_status(self) -> None:
        """
        Re-derive the phase from the gateway.

        Runs a full initialize() the first time; afterwards only reads the
        gateway's identity snapshot. A failed session keeps its error until
        clear_error().
        """
        if not self._initialized:
            await self.initialize()
            return
        if self._phase == SessionPhase.AUTHENTICATING:
            return
        self._adopt_gateway_state()

    def dispose(self) -> None:
        """Stop listening to the gateway and drop all subscribers. Idempotent."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        self.changes.clear()

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self, email: str, password: str) -> bool:
        if self._phase == SessionPhase.AUTHENTICATING:
            self._logger.debug("Login rejected, another operation is in flight")
            return False

        rejected = self._missing_fields({"email": email, "password": password}, PASSWORD_FIELDS)
        if rejected is None:
            rejected = self._check_email(email)
        if rejected is not None:
            self._fail(rejected)
            return False

        self._begin()
        result = await self._call("login", self._gateway.login(email.strip(), password))
        return self._finish_authentication("login", result)

    async def register(self, request: RegisterRequest) -> bool:
        if self._phase == SessionPhase.AUTHENTICATING:
            self._logger.debug("Registration rejected, another operation is in flight")
            return False

        rejected = self._missing_fields({
            "email": request.email,
            "username": request.username,
            "password": request.password,
        }, PASSWORD_FIELDS)
        if rejected is None:
            rejected = self._check_email(request.email)
        if rejected is not None:
            self._fail(rejected)
            return False

        self._begin()
        result = await self._call("register", self._gateway.register(request))
        return self._finish_authentication("register", result)

    async def logout(self) -> None:
        """Sign out. Local state is cleared even if the gateway fails."""
        if self._phase == SessionPhase.AUTHENTICATING:
            return

        self._begin()
        try:
            await self._gateway.logout()
        except Exception as e:
            self._logger.warning("Gateway logout failed", extra={"error": str(e)})
        finally:
            self._user = None
            self._error = None
            self._phase = SessionPhase.UNAUTHENTICATED
            self._publish()
        self._logger.info("Logged out")

    # -------------------------------------------------------------------------
    # Profile and account
    # -------------------------------------------------------------------------

    async def fetch_profile(self) -> bool:
        if not self._require_authenticated():
            return False

        result = await self._call("fetch_profile", self._gateway.fetch_profile())
        if not result.success:
            self._fail(result.to_error_info())
            return False
        if result.data is not None:
            self._user = result.data
        self._publish()
        return True

    async def update_profile(self, update: ProfileUpdate) -> bool:
        if not self._require_authenticated():
            return False

        field_errors: dict[str, list[str]] = {}
        if update.username is not None:
            message = validators.validate_username(update.username)
            if message:
                field_errors["username"] = [message]
        for field_name, label in (("first_name", "First name"), ("last_name", "Last name")):
            message = validators.validate_name(getattr(update, field_name), label)
            if message:
                field_errors[field_name] = [message]
        if field_errors:
            first = next(iter(field_errors.values()))[0]
            self._fail(ErrorInfo.from_error(
                ValidationError(first, code="VALIDATION_ERROR", field_errors=field_errors)
            ))
            return False

        result = await self._call("update_profile", self._gateway.update_profile(update))
        if not result.success:
            self._fail(result.to_error_info())
            return False
        if result.data is not None:
            self._user = result.data
        self._publish()
        self._logger.info("Profile updated", extra={"user_id": self.user_id})
        return True

    async def change_password(self, current_password: str, new_password: str) -> bool:
        if not self._require_authenticated():
            return False

        rejected = self._missing_fields({
            "current_password": current_password,
            "new_password": new_password,
        }, PASSWORD_FIELDS)
        if rejected is None:
            message = validators.validate_password(new_password, is_new_password=True)
            if message:
                rejected = ErrorInfo.from_error(ValidationError(
                    message, code="WEAK_PASSWORD", field_errors={"new_password": [message]},
                ))
        if rejected is not None:
            self._fail(rejected)
            return False

        result = await self._call(
            "change_password",
            self._gateway.change_password(current_password, new_password),
        )
        if not result.success:
            self._fail(self._password_error(result, "Current password is incorrect"))
            return False

        self._logger.info("Password changed", extra={"user_id": self.user_id})
        return True

    async def delete_account(self, password: str) -> bool:
        if not self._require_authenticated():
            return False

        rejected = self._missing_fields({"password": password}, PASSWORD_FIELDS)
        if rejected is not None:
            self._fail(rejected)
            return False

        user_id = self.user_id
        result = await self._call("delete_account", self._gateway.delete_account(password))
        if not result.success:
            self._fail(self._password_error(result, "Password is incorrect"))
            return False

        self._user = None
        self._error = None
        self._phase = SessionPhase.UNAUTHENTICATED
        self._publish()
        self._logger.info("Account deleted", extra={"user_id": user_id})
        return True

    def clear_error(self) -> None:
        """Leave the failed phase, back to wherever the identity says."""
        if self._phase != SessionPhase.FAILED:
            return
        self._error = None
        self._phase = SessionPhase.AUTHENTICATED if self._user else SessionPhase.UNAUTHENTICATED
        self._publish()

    # -------------------------------------------------------------------------
    # Form validators
    # -------------------------------------------------------------------------

    @staticmethod
    def validate_email(email: str | None) -> str | None:
        return validators.validate_email(email)

    @staticmethod
    def validate_password(password: str | None, is_new_password: bool = False) -> str | None:
        return validators.validate_password(password, is_new_password=is_new_password)

    @staticmethod
    def validate_username(username: str | None) -> str | None:
        return validators.validate_username(username)

    @staticmethod
    def validate_name(name: str | None, field_name: str) -> str | None:
        return validators.validate_name(name, field_name)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _begin(self) -> None:
        self._phase = SessionPhase.AUTHENTICATING
        self._error = None
        self._publish()

    def _finish_authentication(self, operation: str, result: GatewayResult) -> bool:
        if not result.success:
            self._fail(result.to_error_info())
            self._logger.warning(
                "Authentication failed",
                extra={"operation": operation, "codes": list(result.errors)},
            )
            return False

        self._user = result.data if result.data is not None else self._gateway.get_current_identity()
        if self._user is None:
            self._fail(ErrorInfo(kind=ErrorKind.UNKNOWN, message="No user returned", codes=("UNKNOWN_ERROR",)))
            return False

        self._error = None
        self._phase = SessionPhase.AUTHENTICATED
        self._publish()
        self._logger.info("Authenticated", extra={"operation": operation, "user_id": self._user.id})
        return True

    def _fail(self, error: ErrorInfo) -> None:
        """Enter failed, keeping the previous identity for display."""
        self._error = error
        self._phase = SessionPhase.FAILED
        self._publish()

    def _require_authenticated(self) -> bool:
        if self._phase == SessionPhase.AUTHENTICATED and self._user is not None:
            return True
        self._fail(ErrorInfo.from_error(UnauthorizedError("You must be signed in")))
        return False

    @staticmethod
    def _check_email(email: str) -> ErrorInfo | None:
        message = validators.validate_email(email.strip())
        if message is None:
            return None
        return ErrorInfo.from_error(ValidationError(
            message, code="INVALID_EMAIL", field_errors={"email": [message]},
        ))

    @staticmethod
    def _password_error(result: GatewayResult, message: str) -> ErrorInfo:
        if result.kind == ErrorKind.UNAUTHORIZED:
            return ErrorInfo(kind=ErrorKind.UNAUTHORIZED, message=message, codes=("INVALID_PASSWORD",))
        return result.to_error_info()

    def _adopt_gateway_state(self) -> None:
        user = self._gateway.get_current_identity()
        signed_in = user is not None and self._gateway.is_session_valid()
        self._user = user if signed_in else None
        # A failed phase is only left through clear_error().
        if self._phase != SessionPhase.FAILED:
            self._phase = SessionPhase.AUTHENTICATED if signed_in else SessionPhase.UNAUTHENTICATED
            self._error = None
        self._publish()

    def _apply_external(self, phase: SessionPhase, user: User | None) -> None:
        if phase == self._phase and user == self._user:
            return
        self._phase = phase
        self._user = user
        self._error = None
        self._publish()

    def _on_identity_changed(self, user: User | None) -> None:
        # In-flight operations settle the phase themselves.
        if self._phase in (SessionPhase.AUTHENTICATING, SessionPhase.UNINITIALIZED):
            return
        if user is not None and self._gateway.is_session_valid():
            self._apply_external(SessionPhase.AUTHENTICATED, user)
        elif user is None:
            self._apply_external(SessionPhase.UNAUTHENTICATED, None)

    def _on_validity_changed(self, valid: bool) -> None:
        if self._phase in (SessionPhase.AUTHENTICATING, SessionPhase.UNINITIALIZED):
            return
        if not valid:
            self._logger.info("Session invalidated by gateway")
            self._apply_external(SessionPhase.UNAUTHENTICATED, None)
            return
        user = self._gateway.get_current_identity()
        if user is not None:
            self._apply_external(SessionPhase.AUTHENTICATED, user)
