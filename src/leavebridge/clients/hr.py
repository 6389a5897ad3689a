"""HTTP client for the HR system (leave system of record)."""

from typing import Any

import httpx

from leavebridge.clients.base import BaseApiClient
from leavebridge.clients.rate_limit import RateLimitConfig, TokenBucket
from leavebridge.config.settings import Settings
from leavebridge.core.logging import get_logger
from leavebridge.sync.types import HRAbsence, HREmployee, HRLeaveReason, HRLeaveRequest
from leavebridge.utils.exceptions import ApiError, ConfigurationError, NotFoundError

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.breathehr.com/v1"
PAGE_SIZE = 100


class HRSystemClient(BaseApiClient):
    """Client for the HR system REST API.

    Authenticates with a static API key, walks paginated listings until a
    short page, and throttles every request through a token bucket.

    Example:
        async with HRSystemClient(api_key="...") as hr:
            employees = await hr.list_employees()
    """

    SERVICE = "HRSystem"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 30.0,
        rate_limiter: TokenBucket | None = None,
        http_client: httpx.AsyncClient | None = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        super().__init__(base_url, timeout=timeout, http_client=http_client)
        self._api_key = api_key
        self._rate_limiter = rate_limiter
        self.page_size = page_size

    async def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "X-API-KEY": self._api_key}

    async def _before_request(self) -> None:
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()

    async def _paginate(
        self, path: str, key: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch every page of a listing; stops at the first short page."""
        results: list[dict[str, Any]] = []
        page = 1
        while True:
            query = dict(params or {})
            query.update({"page": page, "per_page": self.page_size})
            data = await self._request("GET", path, params=query)
            items = data.get(key) or []
            results.extend(items)
            if len(items) < self.page_size:
                return results
            page += 1

    # =========================================================================
    # Employees
    # =========================================================================

    async def list_employees(self) -> list[HREmployee]:
        rows = await self._paginate("/employees", "employees")
        return [HREmployee.model_validate(row) for row in rows]

    async def get_employee(self, employee_id: int) -> HREmployee | None:
        try:
            data = await self._request("GET", f"/employees/{employee_id}")
        except NotFoundError:
            return None
        rows = data.get("employees") or []
        if not rows:
            return None
        return HREmployee.model_validate(rows[0])

    # =========================================================================
    # Leave
    # =========================================================================

    async def list_absences(self, employee_id: int) -> list[HRAbsence]:
        rows = await self._paginate(f"/employees/{employee_id}/absences", "absences")
        return [HRAbsence.model_validate(row) for row in rows]

    async def list_leave_requests(self, employee_id: int) -> list[HRLeaveRequest]:
        rows = await self._paginate(f"/employees/{employee_id}/leave_requests", "leave_requests")
        return [HRLeaveRequest.model_validate(row) for row in rows]

    async def create_leave_request(
        self,
        employee_id: int,
        start_date: str,
        end_date: str,
        *,
        half_start: bool = False,
        half_end: bool = False,
        notes: str | None = None,
        leave_reason_id: int | None = None,
    ) -> HRLeaveRequest:
        body: dict[str, Any] = {
            "start_date": start_date,
            "end_date": end_date,
            "half_start": half_start,
            "half_end": half_end,
        }
        if notes:
            body["notes"] = notes
        if leave_reason_id is not None:
            body["leave_reason_id"] = leave_reason_id

        data = await self._request(
            "POST",
            f"/employees/{employee_id}/leave_requests",
            json={"leave_request": body},
        )
        rows = data.get("leave_requests") or []
        if not rows:
            raise ApiError(self.SERVICE, "No leave request returned after creation")

        logger.info(
            "Created HR leave request",
            employee_id=employee_id,
            leave_request_id=rows[0].get("id"),
            start_date=start_date,
            end_date=end_date,
        )
        return HRLeaveRequest.model_validate(rows[0])

    async def cancel_leave_request(self, leave_request_id: int) -> None:
        await self._request("POST", f"/leave_requests/{leave_request_id}/cancel")

    async def cancel_absence(self, absence_id: int) -> None:
        await self._request("POST", f"/absences/{absence_id}/cancel")
        logger.info("Cancelled HR absence", absence_id=absence_id)

    async def list_leave_reasons(self) -> list[HRLeaveReason]:
        data = await self._request("GET", "/other_leave_reasons")
        return [HRLeaveReason.model_validate(row) for row in data.get("other_leave_reasons") or []]

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self) -> bool:
        """Check connectivity by fetching a single employee."""
        try:
            await self._request("GET", "/employees", params={"page": 1, "per_page": 1})
        except ApiError as e:
            logger.warning("HR system health check failed", error=str(e))
            return False
        return True


def create_hr_client(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> HRSystemClient:
    """Create an HR client from settings.

    Args:
        settings: Application settings with the HR API key
        http_client: Optional pre-configured httpx client (tests)

    Returns:
        Configured HRSystemClient

    Raises:
        ConfigurationError: If no API key is configured
    """
    if settings.hr_api_key is None or not settings.hr_api_key.get_secret_value():
        raise ConfigurationError("HR_API_KEY is required")

    limiter = TokenBucket(
        "hr_api",
        RateLimitConfig.per_minute(settings.hr_rate_limit_per_minute),
    )
    return HRSystemClient(
        api_key=settings.hr_api_key.get_secret_value(),
        base_url=settings.hr_base_url,
        timeout=settings.http_timeout_seconds,
        rate_limiter=limiter,
        http_client=http_client,
    )
