"""Shared HTTP plumbing for the upstream API clients."""

import time
from typing import Any

import httpx

from leavebridge.core.logging import get_logger, log_external_call
from leavebridge.utils.exceptions import ApiError, NotFoundError

logger = get_logger(__name__)

STATUS_MESSAGES: dict[int, str] = {
    400: "The request was rejected as invalid",
    401: "Authentication failed, check the configured credentials",
    403: "Access denied, the credentials lack permission for this resource",
    404: "The requested resource was not found",
    409: "The request conflicts with the current state of the resource",
    422: "The request payload could not be processed",
    429: "Rate limit exceeded, try again later",
    500: "The service reported an internal error",
    502: "The service is unreachable (bad gateway)",
    503: "The service is temporarily unavailable",
    504: "The service timed out",
}


def describe_status(status_code: int) -> str:
    """Get a user-facing message for an HTTP error status."""
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    if status_code >= 500:
        return "The service reported a server error"
    return "The request failed"


class BaseApiClient:
    """Async HTTP client with error mapping and call logging.

    The underlying ``httpx.AsyncClient`` is created lazily unless one is
    injected; an injected client is never closed by this class.
    """

    SERVICE = "Upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        self._get_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def _before_request(self) -> None:
        """Hook run before every request (throttling)."""

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        """Send a request and decode its JSON body.

        Empty and non-JSON bodies decode to ``{}``.

        Raises:
            NotFoundError: On HTTP 404
            ApiError: On any other non-2xx status or transport failure
        """
        await self._before_request()
        headers = await self._headers()
        url = f"{self.base_url}{path}"
        operation = f"{method} {path}"

        start = time.perf_counter()
        try:
            response = await self._get_client().request(
                method, url, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            log_external_call(
                logger, self.SERVICE, operation, duration_ms, success=False, error=str(e)
            )
            raise ApiError(self.SERVICE, f"Request failed: {e}") from e

        duration_ms = (time.perf_counter() - start) * 1000
        success = response.is_success
        log_external_call(
            logger,
            self.SERVICE,
            operation,
            duration_ms,
            success=success,
            status_code=response.status_code,
        )

        if not success:
            self._raise_for_status(response)

        return self._decode(response)

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        message = describe_status(status)
        detail = response.text[:200].strip()
        if detail:
            message = f"{message}: {detail}"
        if status == 404:
            raise NotFoundError(self.SERVICE, message)
        raise ApiError(self.SERVICE, message, status_code=status)

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        if isinstance(data, dict):
            return data
        return {"items": data}
