"""HTTP client for the engagement system.

Authenticates with OAuth2 client credentials. The access token is cached
and refreshed shortly before it expires.
"""

import time
from collections.abc import Callable
from typing import Any

import httpx

from leavebridge.clients.base import BaseApiClient, describe_status
from leavebridge.config.settings import Settings
from leavebridge.core.logging import get_logger
from leavebridge.sync.protocols import RequestIdentifier
from leavebridge.sync.types import (
    AbsencePolicy,
    AbsencePolicySync,
    BalanceItem,
    EngagementRequest,
    EngagementUser,
    SyncItem,
)
from leavebridge.utils.exceptions import ApiError, ConfigurationError, NotFoundError

logger = get_logger(__name__)

TOKEN_REFRESH_MARGIN_SECONDS = 30.0

USERS_PATH = "/api/admin/users/v4/users"
POLICIES_PATH = "/api/hr/v4/integration/absence-policies"
REQUESTS_PATH = "/api/hr/v4/integration/absence-requests"
BALANCES_PATH = "/api/hr/v4/integration/balances/sync"


class EngagementSystemClient(BaseApiClient):
    """Client for the engagement system's admin and HR integration APIs.

    Bulk sync calls never notify end users; ``approve`` and ``reject`` do.
    """

    SERVICE = "EngagementSystem"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        organization: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(base_url, timeout=timeout, http_client=http_client)
        self._client_id = client_id
        self._client_secret = client_secret
        self.organization = organization
        self._clock = clock
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/auth/realms/{self.organization}/protocol/openid-connect/token"

    async def _get_access_token(self) -> str:
        if (
            self._access_token is not None
            and self._clock() < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS
        ):
            return self._access_token

        try:
            response = await self._get_client().post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        except httpx.HTTPError as e:
            raise ApiError(self.SERVICE, f"Token request failed: {e}") from e

        if not response.is_success:
            raise ApiError(
                self.SERVICE,
                f"Authentication failed: {describe_status(response.status_code)}",
                status_code=response.status_code,
            )

        data = response.json()
        self._access_token = data["access_token"]
        self._token_expires_at = self._clock() + float(data.get("expires_in", 300))
        logger.debug("Obtained engagement access token", expires_in=data.get("expires_in"))
        return self._access_token

    async def _headers(self) -> dict[str, str]:
        token = await self._get_access_token()
        return {"Accept": "application/json", "Authorization": f"Bearer {token}"}

    # =========================================================================
    # Users
    # =========================================================================

    async def search_users(
        self,
        *,
        attribute_name: str | None = None,
        attribute_value: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> list[EngagementUser]:
        params: dict[str, Any] = {}
        if attribute_name:
            params["attribute_technical_name"] = attribute_name
        if attribute_value:
            params["attribute_value"] = attribute_value
        if page:
            params["page_number"] = page
        if limit:
            params["page_limit"] = limit
        data = await self._request("GET", USERS_PATH, params=params)
        return [EngagementUser.model_validate(u) for u in data.get("users") or []]

    async def find_user_by_attribute(
        self, attribute_name: str, attribute_value: str
    ) -> EngagementUser | None:
        try:
            users = await self.search_users(
                attribute_name=attribute_name, attribute_value=attribute_value, limit=1
            )
        except ApiError as e:
            logger.error(
                "User lookup by attribute failed",
                attribute_name=attribute_name,
                attribute_value=attribute_value,
                error=str(e),
            )
            return None
        return users[0] if users else None

    async def get_user(self, user_id: str) -> EngagementUser | None:
        try:
            data = await self._request("GET", f"{USERS_PATH}/{user_id}")
        except NotFoundError:
            return None
        if not data:
            return None
        return EngagementUser.model_validate(data)

    # =========================================================================
    # Absence requests
    # =========================================================================

    async def get_request_by_external_id(self, external_id: str) -> EngagementRequest | None:
        try:
            data = await self._request(
                "GET", REQUESTS_PATH, params={"external_id": external_id}
            )
        except NotFoundError:
            return None

        # Either the request itself or a one-element listing
        if "items" in data:
            items = data["items"] or []
            return EngagementRequest.model_validate(items[0]) if items else None
        if not data.get("id"):
            return None
        return EngagementRequest.model_validate(data)

    async def approve(self, approver_id: str, identifier: RequestIdentifier) -> None:
        await self._request(
            "POST",
            f"{REQUESTS_PATH}/approve",
            json={"approver": approver_id, "identifier": identifier},
        )

    async def reject(self, approver_id: str, identifier: RequestIdentifier) -> None:
        await self._request(
            "POST",
            f"{REQUESTS_PATH}/reject",
            json={"approver": approver_id, "identifier": identifier},
        )

    async def set_request_error(self, identifier: RequestIdentifier) -> None:
        await self._request("POST", f"{REQUESTS_PATH}/error", json={"identifier": identifier})

    async def patch_external_id(self, request_id: str, new_external_id: str) -> None:
        await self._request(
            "POST",
            f"{REQUESTS_PATH}/{request_id}/patch-external-id",
            json={"external_id": new_external_id},
        )

    # =========================================================================
    # Bulk-replace sync
    # =========================================================================

    async def start_sync(self) -> str:
        data = await self._request("POST", f"{REQUESTS_PATH}/sync/start", json={})
        sync_id = data.get("sync_id")
        if not sync_id:
            raise ApiError(self.SERVICE, "Sync start returned no sync_id")
        return str(sync_id)

    async def push_sync_batch(self, session_id: str, items: list[SyncItem]) -> None:
        await self._request(
            "POST",
            f"{REQUESTS_PATH}/sync/{session_id}",
            json={"items": [item.to_payload() for item in items]},
        )

    async def complete_sync(self, session_id: str) -> None:
        await self._request("POST", f"{REQUESTS_PATH}/sync/{session_id}/complete")

    async def cancel_sync(self, session_id: str) -> None:
        await self._request("POST", f"{REQUESTS_PATH}/sync/{session_id}/cancel")

    # =========================================================================
    # Policies and balances
    # =========================================================================

    async def get_absence_policies(self, external_id: str | None = None) -> list[AbsencePolicy]:
        params = {"external_id": external_id} if external_id else None
        data = await self._request("GET", POLICIES_PATH, params=params)
        return [AbsencePolicy.model_validate(p) for p in data.get("items") or []]

    async def sync_absence_policy(self, policy: AbsencePolicySync) -> AbsencePolicy:
        data = await self._request(
            "POST", POLICIES_PATH, json=policy.model_dump(mode="json", exclude_none=True)
        )
        return AbsencePolicy.model_validate(data)

    async def assign_policy(self, policy_id: str, user_ids: list[str]) -> None:
        await self._request(
            "POST", f"{POLICIES_PATH}/{policy_id}/assignments", json={"user_ids": user_ids}
        )

    async def sync_balances(self, items: list[BalanceItem]) -> None:
        await self._request(
            "POST",
            BALANCES_PATH,
            json={"items": [item.model_dump(mode="json", exclude_none=True) for item in items]},
        )

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self) -> bool:
        """Check connectivity by listing a single user."""
        try:
            await self._request("GET", USERS_PATH, params={"page_limit": 1})
        except ApiError as e:
            logger.warning("Engagement system health check failed", error=str(e))
            return False
        return True


def create_engagement_client(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> EngagementSystemClient:
    """Create an engagement system client from settings.

    Args:
        settings: Application settings with OAuth credentials
        http_client: Optional pre-configured httpx client (tests)

    Returns:
        Configured EngagementSystemClient

    Raises:
        ConfigurationError: If credentials or the base URL are missing
    """
    secret = settings.engagement_client_secret
    if not (
        settings.engagement_client_id
        and secret is not None
        and secret.get_secret_value()
        and settings.engagement_base_url
        and settings.engagement_organization
    ):
        raise ConfigurationError(
            "ENGAGEMENT_CLIENT_ID, ENGAGEMENT_CLIENT_SECRET, ENGAGEMENT_BASE_URL "
            "and ENGAGEMENT_ORGANIZATION are required"
        )

    return EngagementSystemClient(
        client_id=settings.engagement_client_id,
        client_secret=secret.get_secret_value(),
        base_url=settings.engagement_base_url,
        organization=settings.engagement_organization,
        timeout=settings.http_timeout_seconds,
        http_client=http_client,
    )
