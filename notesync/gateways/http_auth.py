"""
HTTP Auth Gateway.

AuthGateway implementation backed by the notes service auth endpoints.
Tokens and the cached identity are kept in a CredentialStore so a
session survives restarts when the store is persistent.

Endpoints:
    POST   /auth/login
    POST   /auth/register
    POST   /auth/refresh
    POST   /auth/logout
    GET    /auth/profile
    PUT    /auth/profile
    PUT    /auth/change-password
    DELETE /auth/delete-account
"""

from datetime import datetime

from notesync.core.logging import get_logger, log_with_source
from notesync.core.utils import ensure_utc, utc_now
from notesync.gateways.base import AuthGateway, CredentialStore
from notesync.gateways.client import APIClient
from notesync.models.base import GatewayResult
from notesync.models.user import (
    AuthTokens,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    User,
)

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user_data"
EXPIRES_AT_KEY = "expires_at"


class HttpAuthGateway(AuthGateway):
    """Auth gateway talking to the REST API through APIClient."""

    def __init__(self, client: APIClient, credentials: CredentialStore) -> None:
        super().__init__()
        self._client = client
        self._credentials = credentials
        self._user: User | None = None
        self._expires_at: datetime | None = None

    # -------------------------------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Restore the cached session.

        An expired access token is refreshed once; if that fails the
        cached session is discarded.
        """
        await self._load_from_storage()

        if self._user is not None and not self.is_session_valid():
            refreshed = await self.refresh_token()
            if not refreshed:
                await self._clear_auth_data()
                return

        self._emit_identity(self._user, self.is_session_valid())

    async def login(self, email: str, password: str) -> GatewayResult:
        payload = LoginRequest(email=email.strip(), password=password).model_dump()
        return await self._authenticate("/auth/login", payload)

    async def register(self, request: RegisterRequest) -> GatewayResult:
        return await self._authenticate("/auth/register", request.model_dump())

    async def refresh_token(self) -> bool:
        """Exchange the refresh token for a new token pair."""
        refresh_token = await self._credentials.read(REFRESH_TOKEN_KEY)
        if not refresh_token:
            return False

        result = await self._client.call(
            "POST",
            "/auth/refresh",
            parse=AuthTokens.model_validate,
            json={"refresh_token": refresh_token},
        )
        if not result.success or result.data is None:
            log_with_source(logger, "gateway", "warning", "Token refresh failed", errors=result.errors)
            return False

        await self._save_auth_data(result.data)
        return True

    async def logout(self) -> None:
        """Tell the service, then clear local data whatever the outcome."""
        try:
            result = await self._client.call("POST", "/auth/logout")
            if not result.success:
                log_with_source(
                    logger, "gateway", "warning", "Server logout failed", errors=result.errors,
                )
        finally:
            await self._clear_auth_data()

    def get_current_identity(self) -> User | None:
        return self._user

    def is_session_valid(self) -> bool:
        if self._user is None or self._expires_at is None:
            return False
        return utc_now() < self._expires_at

    # -------------------------------------------------------------------------
    # Profile and account
    # -------------------------------------------------------------------------

    async def fetch_profile(self) -> GatewayResult:
        result = await self._client.call("GET", "/auth/profile", parse=User.model_validate)
        if result.success and result.data is not None:
            await self._replace_user(result.data)
        return result

    async def update_profile(self, update: ProfileUpdate) -> GatewayResult:
        result = await self._client.call(
            "PUT",
            "/auth/profile",
            parse=User.model_validate,
            json=update.model_dump(exclude_unset=True),
        )
        if result.success and result.data is not None:
            await self._replace_user(result.data)
        return result

    async def change_password(self, current_password: str, new_password: str) -> GatewayResult:
        return await self._client.call(
            "PUT",
            "/auth/change-password",
            json={"current_password": current_password, "new_password": new_password},
        )

    async def delete_account(self, password: str) -> GatewayResult:
        result = await self._client.call(
            "DELETE", "/auth/delete-account", json={"password": password},
        )
        if result.success:
            await self.logout()
        return result

    async def aclose(self) -> None:
        await super().aclose()
        await self._client.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _authenticate(self, path: str, payload: dict) -> GatewayResult:
        result = await self._client.call("POST", path, parse=AuthTokens.model_validate, json=payload)
        if not result.success or result.data is None:
            return result

        tokens: AuthTokens = result.data
        await self._save_auth_data(tokens)
        return GatewayResult.ok(tokens.user, message=result.message)

    async def _save_auth_data(self, tokens: AuthTokens) -> None:
        await self._credentials.write(ACCESS_TOKEN_KEY, tokens.access_token)
        await self._credentials.write(REFRESH_TOKEN_KEY, tokens.refresh_token)
        await self._credentials.write(EXPIRES_AT_KEY, tokens.expires_at.isoformat())
        await self._credentials.write(USER_KEY, tokens.user.model_dump_json())

        self._client.set_access_token(tokens.access_token)
        self._user = tokens.user
        self._expires_at = tokens.expires_at
        self._emit_identity(self._user, True)

    async def _replace_user(self, user: User) -> None:
        self._user = user
        await self._credentials.write(USER_KEY, user.model_dump_json())
        self.identity_changes.publish(user)

    async def _load_from_storage(self) -> None:
        user_data = await self._credentials.read(USER_KEY)
        if not user_data:
            return
        try:
            self._user = User.model_validate_json(user_data)
            expires_at = await self._credentials.read(EXPIRES_AT_KEY)
            self._expires_at = ensure_utc(datetime.fromisoformat(expires_at)) if expires_at else None
        except ValueError as e:
            log_with_source(logger, "gateway", "warning", "Discarding unreadable cached session", error=str(e))
            self._user = None
            self._expires_at = None
            return
        self._client.set_access_token(await self._credentials.read(ACCESS_TOKEN_KEY))

    async def _clear_auth_data(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY, EXPIRES_AT_KEY):
            await self._credentials.delete(key)

        self._client.set_access_token(None)
        self._user = None
        self._expires_at = None
        self._emit_identity(None, False)
