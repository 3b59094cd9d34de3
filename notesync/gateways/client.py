"""
HTTP Client for the Notes Service.

Provides the async HTTP client shared by the HTTP gateways.
All requests include X-Client-ID for log routing on the server side,
plus the bearer token once a session exists.

call() wraps a request in the response envelope the service uses
({success, message, data, errors}) and always returns a GatewayResult:
HTTP error statuses, envelope failures, transport exceptions and
unparseable payloads are all classified into the error taxonomy.
"""

from collections.abc import Callable
from typing import Any

import httpx

from notesync.core.config import get_api_base_url, get_app_config, get_settings
from notesync.core.exceptions import (
    classify_exception,
    error_from_code,
    error_from_status,
)
from notesync.core.logging import get_logger, log_with_source
from notesync.models.base import GatewayResult

logger = get_logger(__name__)


def _get_client_config() -> tuple[str, float, str, str]:
    """Load base URL, timeout, client id and API key from configuration."""
    base_url, timeout = get_api_base_url()
    client_id = get_app_config().application.api.client_id
    return base_url, timeout, client_id, get_settings().api_key


def _parse_retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _error_payload(body: Any) -> tuple[str | None, list[str], dict[str, list[str]]]:
    """Extract message, codes and field errors from an error body."""
    if not isinstance(body, dict):
        return None, [], {}

    message = body.get("message")
    codes = [str(code) for code in body.get("errors") or [] if code]
    field_errors = body.get("field_errors") or {}

    error = body.get("error")
    if isinstance(error, dict):
        message = message or error.get("message")
        if error.get("code"):
            codes.insert(0, str(error["code"]))
    elif isinstance(body.get("detail"), str):
        message = message or body["detail"]

    return message, codes, field_errors


class APIClient:
    """
    HTTP client for notes service communication.

    Features:
    - Base URL and timeout from config/settings/application.yaml
    - X-Client-ID header for log routing, X-API-Key when configured
    - Bearer token management for authenticated calls
    - Structured logging of requests/responses
    - Envelope parsing into GatewayResult

    Usage:
        client = APIClient()
        result = await client.call("GET", "/notes", parse=Page[Note].model_validate)
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            base_url: Service base URL. If None, reads from config/settings/application.yaml.
            timeout: Request timeout in seconds. If None, reads from config/settings/application.yaml.
            transport: Optional httpx transport (used by tests).
        """
        try:
            config_base_url, config_timeout, client_id, api_key = _get_client_config()
        except Exception as e:
            if base_url is None:
                raise RuntimeError(
                    "Could not determine service URL from config/settings/application.yaml"
                ) from e
            config_base_url = base_url
            config_timeout = timeout if timeout is not None else 30.0
            client_id, api_key = "cli", ""

        self.base_url = (base_url or config_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config_timeout
        self.client_id = client_id
        self._api_key = api_key
        self._transport = transport
        self._access_token: str | None = None
        self._client: httpx.AsyncClient | None = None

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def set_access_token(self, token: str | None) -> None:
        """Set or clear the bearer token sent with every request."""
        self._access_token = token

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"X-Client-ID": self.client_id}
            if self._api_key:
                headers["X-API-Key"] = self._api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an HTTP request to the service.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path relative to the base URL (e.g., /notes)
            **kwargs: Additional arguments for httpx

        Returns:
            httpx.Response

        Raises:
            httpx.HTTPError: On request failure
        """
        client = await self._get_client()

        if self._access_token:
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Authorization"] = f"Bearer {self._access_token}"
            kwargs["headers"] = headers

        log_with_source(logger, "gateway", "debug", "API request", method=method, path=path)

        try:
            response = await client.request(method, path, **kwargs)

            log_with_source(
                logger,
                "gateway",
                "debug",
                "API response",
                method=method,
                path=path,
                status_code=response.status_code,
            )

            return response

        except httpx.HTTPError as e:
            log_with_source(
                logger,
                "gateway",
                "error",
                "API request failed",
                method=method,
                path=path,
                error=str(e),
            )
            raise

    async def call(
        self,
        method: str,
        path: str,
        parse: Callable[[Any], Any] | None = None,
        **kwargs: Any,
    ) -> GatewayResult:
        """
        Make a request and decode the response envelope.

        Args:
            method: HTTP method
            path: API path
            parse: Converts the envelope's data field; None keeps no data
            **kwargs: Additional arguments for httpx

        Returns:
            GatewayResult, never raises for remote failures
        """
        try:
            response = await self.request(method, path, **kwargs)
        except Exception as exc:
            return GatewayResult.from_error(classify_exception(exc))

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = None

        if response.status_code >= 400:
            message, codes, field_errors = _error_payload(body)
            error = error_from_status(
                response.status_code,
                message=message,
                details=body,
                retry_after=_parse_retry_after(response),
                field_errors=field_errors,
            )
            result = GatewayResult.from_error(error)
            if codes:
                result = result.model_copy(update={"errors": codes})
            return result

        if isinstance(body, dict) and body.get("success") is False:
            message, codes, field_errors = _error_payload(body)
            error = error_from_code(codes[0] if codes else "UNKNOWN_ERROR", message)
            return GatewayResult(
                success=False,
                message=error.message,
                errors=codes or [error.code],
                kind=error.kind,
                field_errors=field_errors,
            )

        data = body.get("data") if isinstance(body, dict) and "success" in body else body
        message = body.get("message", "") if isinstance(body, dict) else ""
        if parse is None:
            return GatewayResult.ok(message=message or "")

        try:
            parsed = parse(data)
        except Exception as exc:
            error = classify_exception(exc)
            log_with_source(
                logger,
                "gateway",
                "warning",
                "Unparseable response payload",
                method=method,
                path=path,
                error=error.message,
            )
            return GatewayResult.from_error(error)
        return GatewayResult.ok(parsed, message=message or "")
