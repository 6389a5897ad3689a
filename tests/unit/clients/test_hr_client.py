"""Unit tests for the HR system client."""

import json

import httpx
import pytest

from leavebridge.clients import HRSystemClient, RateLimitConfig, TokenBucket, create_hr_client
from leavebridge.config.settings import Settings
from leavebridge.utils.exceptions import ApiError, ConfigurationError, NotFoundError

BASE_URL = "https://hr.example.com/v1"


# =============================================================================
# Fixtures
# =============================================================================


class Recorder:
    """Mock transport handler that records requests and replays routes."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response | list[httpx.Response]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "no route"})
        if isinstance(route, list):
            return route.pop(0)
        return route


def make_client(recorder: Recorder, **kwargs) -> HRSystemClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return HRSystemClient("secret-key", BASE_URL, http_client=http_client, **kwargs)


def employees_page(*ids: int) -> httpx.Response:
    return httpx.Response(
        200, json={"employees": [{"id": i, "employee_ref": f"E{i}"} for i in ids]}
    )


# =============================================================================
# Request Tests
# =============================================================================


class TestRequests:
    """Tests for authentication and pagination."""

    @pytest.mark.asyncio
    async def test_sends_api_key(self):
        """Test the API key header is sent on every request."""
        recorder = Recorder({("GET", "/v1/employees"): employees_page(1)})
        client = make_client(recorder)

        await client.list_employees()

        assert recorder.requests[0].headers["X-API-KEY"] == "secret-key"

    @pytest.mark.asyncio
    async def test_paginates_until_short_page(self):
        """Test listing walks pages until one comes back short."""
        recorder = Recorder(
            {("GET", "/v1/employees"): [employees_page(1, 2), employees_page(3)]}
        )
        client = make_client(recorder, page_size=2)

        employees = await client.list_employees()

        assert [e.id for e in employees] == [1, 2, 3]
        assert [r.url.params["page"] for r in recorder.requests] == ["1", "2"]
        assert recorder.requests[0].url.params["per_page"] == "2"

    @pytest.mark.asyncio
    async def test_exact_page_boundary_fetches_empty_page(self):
        recorder = Recorder(
            {("GET", "/v1/employees"): [employees_page(1, 2), employees_page()]}
        )
        client = make_client(recorder, page_size=2)

        employees = await client.list_employees()

        assert len(employees) == 2
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_lists_leave_for_employee(self):
        recorder = Recorder(
            {
                ("GET", "/v1/employees/7/absences"): httpx.Response(
                    200,
                    json={"absences": [{"id": 900, "start_date": "2025-01-10", "deducted": "2"}]},
                ),
                ("GET", "/v1/employees/7/leave_requests"): httpx.Response(
                    200, json={"leave_requests": [{"id": 100, "start_half_day": "true"}]}
                ),
            }
        )
        client = make_client(recorder)

        absences = await client.list_absences(7)
        requests = await client.list_leave_requests(7)

        assert absences[0].deducted == 2.0
        assert requests[0].half_start is True

    @pytest.mark.asyncio
    async def test_rate_limiter_consumes_tokens(self):
        """Test every request takes a token from the bucket."""
        bucket = TokenBucket("hr_api", RateLimitConfig(tokens_per_second=0.001, max_tokens=5))
        recorder = Recorder({("GET", "/v1/employees"): employees_page(1)})
        client = make_client(recorder, rate_limiter=bucket)

        await client.list_employees()

        assert bucket.available_tokens == pytest.approx(4, abs=0.01)


# =============================================================================
# Operation Tests
# =============================================================================


class TestOperations:
    """Tests for individual operations."""

    @pytest.mark.asyncio
    async def test_get_employee(self):
        recorder = Recorder({("GET", "/v1/employees/1"): employees_page(1)})
        client = make_client(recorder)

        employee = await client.get_employee(1)

        assert employee is not None
        assert employee.employee_ref == "E1"

    @pytest.mark.asyncio
    async def test_get_missing_employee_returns_none(self):
        client = make_client(Recorder({}))

        assert await client.get_employee(404) is None

    @pytest.mark.asyncio
    async def test_create_leave_request_body(self):
        """Test the create payload is wrapped and omits unset optionals."""
        recorder = Recorder(
            {
                ("POST", "/v1/employees/1/leave_requests"): httpx.Response(
                    201, json={"leave_requests": [{"id": 555, "status": "pending"}]}
                )
            }
        )
        client = make_client(recorder)

        created = await client.create_leave_request(
            1, "2025-03-03", "2025-03-05", half_start=True, leave_reason_id=7
        )

        assert created.id == 555
        body = json.loads(recorder.requests[0].content)
        assert body == {
            "leave_request": {
                "start_date": "2025-03-03",
                "end_date": "2025-03-05",
                "half_start": True,
                "half_end": False,
                "leave_reason_id": 7,
            }
        }

    @pytest.mark.asyncio
    async def test_create_without_result_raises(self):
        recorder = Recorder(
            {("POST", "/v1/employees/1/leave_requests"): httpx.Response(200, json={})}
        )
        client = make_client(recorder)

        with pytest.raises(ApiError, match="No leave request"):
            await client.create_leave_request(1, "2025-03-03", "2025-03-05")

    @pytest.mark.asyncio
    async def test_cancel_missing_absence_raises_not_found(self):
        client = make_client(Recorder({}))

        with pytest.raises(NotFoundError):
            await client.cancel_absence(900)

    @pytest.mark.asyncio
    async def test_cancel_absence(self):
        recorder = Recorder({("POST", "/v1/absences/900/cancel"): httpx.Response(204)})
        client = make_client(recorder)

        await client.cancel_absence(900)

        assert recorder.requests[0].method == "POST"

    @pytest.mark.asyncio
    async def test_list_leave_reasons(self):
        recorder = Recorder(
            {
                ("GET", "/v1/other_leave_reasons"): httpx.Response(
                    200, json={"other_leave_reasons": [{"id": 7, "name": "Sick"}]}
                )
            }
        )
        client = make_client(recorder)

        reasons = await client.list_leave_reasons()

        assert [(r.id, r.name) for r in reasons] == [(7, "Sick")]


# =============================================================================
# Error Handling Tests
# =============================================================================


class TestErrors:
    """Tests for error mapping."""

    @pytest.mark.asyncio
    async def test_unauthorized_message(self):
        """Test a 401 carries a credentials hint and the status code."""
        recorder = Recorder({("GET", "/v1/employees"): httpx.Response(401, text="bad key")})
        client = make_client(recorder)

        with pytest.raises(ApiError) as exc_info:
            await client.list_employees()

        assert exc_info.value.status_code == 401
        assert "credentials" in str(exc_info.value)
        assert "bad key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error(self):
        recorder = Recorder({("GET", "/v1/employees"): httpx.Response(500)})
        client = make_client(recorder)

        with pytest.raises(ApiError) as exc_info:
            await client.list_employees()

        assert exc_info.value.status_code == 500
        assert exc_info.value.service == "HRSystem"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_api_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = HRSystemClient(
            "key",
            BASE_URL,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(ApiError, match="Request failed"):
            await client.list_employees()

    @pytest.mark.asyncio
    async def test_health_check(self):
        healthy = make_client(Recorder({("GET", "/v1/employees"): employees_page(1)}))
        unhealthy = make_client(Recorder({("GET", "/v1/employees"): httpx.Response(503)}))

        assert await healthy.health_check() is True
        assert await unhealthy.health_check() is False


# =============================================================================
# Factory Tests
# =============================================================================


class TestCreateHRClient:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            create_hr_client(Settings(_env_file=None, hr_api_key=None))

    def test_from_settings(self, test_settings: Settings):
        client = create_hr_client(test_settings)

        assert client.base_url == "https://hr.example.com/v1"
        assert client._rate_limiter is not None
