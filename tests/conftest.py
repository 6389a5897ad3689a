"""Pytest fixtures for LeaveBridge tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from leavebridge.api.app import create_app
from leavebridge.api.dependencies import (
    ServiceClients,
    get_run_log_dependency,
    get_service_clients,
    get_sync_engine,
)
from leavebridge.config.settings import Settings
from leavebridge.sync import RunLog, StaticApproverResolver, SyncEngine, UserMapping
from leavebridge.sync.fakes import InMemoryEngagementClient, InMemoryHRClient
from leavebridge.sync.types import (
    AbsencePolicy,
    EngagementUser,
    HREmployee,
    HRHolidayAllowance,
)

# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with credentials for both systems."""
    return Settings(
        _env_file=None,
        hr_api_key=SecretStr("test-hr-key"),
        hr_base_url="https://hr.example.com/v1",
        engagement_client_id="test-client",
        engagement_client_secret=SecretStr("test-secret"),
        engagement_base_url="https://engage.example.com/",
        engagement_organization="acme",
        ENVIRONMENT="test",
        log_level="DEBUG",
    )


# =============================================================================
# In-memory systems
# =============================================================================


@pytest.fixture
def hr_client() -> InMemoryHRClient:
    """Empty in-memory HR system."""
    return InMemoryHRClient()


@pytest.fixture
def engagement_client() -> InMemoryEngagementClient:
    """In-memory engagement system with the default annual leave policy."""
    client = InMemoryEngagementClient()
    client.add_policy(
        AbsencePolicy(id="policy-annual", name="Annual Leave", external_id="annual_leave")
    )
    return client


def seed_employee(
    hr: InMemoryHRClient,
    engagement: InMemoryEngagementClient,
    employee_id: int,
    ref: str,
    user_id: str,
    allowance_days: float = 25.0,
    **user_attributes: str,
) -> UserMapping:
    """Create a matching HR employee and engagement user."""
    hr.add_employee(
        HREmployee(
            id=employee_id,
            first_name="Test",
            last_name=f"Employee {employee_id}",
            employee_ref=ref,
            holiday_allowance=HRHolidayAllowance(
                name="Annual", units="days", amount=allowance_days
            ),
        )
    )
    engagement.add_user(
        EngagementUser(id=user_id, attributes={"exthrref": ref, **user_attributes})
    )
    return UserMapping(engagement_user_id=user_id, hr_employee_id=employee_id, shared_ref=ref)


@pytest.fixture
def seed(hr_client: InMemoryHRClient, engagement_client: InMemoryEngagementClient):
    """Factory seeding mapped employees into both in-memory systems."""

    def _seed(employee_id: int, ref: str, user_id: str, **kwargs) -> UserMapping:
        return seed_employee(hr_client, engagement_client, employee_id, ref, user_id, **kwargs)

    return _seed


@pytest.fixture
def mapping(seed) -> UserMapping:
    """One mapped employee: HR employee 1 <-> engagement user-1."""
    return seed(1, "E001", "user-1")


@pytest.fixture
def run_log() -> RunLog:
    """Run log isolated from the process-wide one."""
    return RunLog()


@pytest.fixture
def engine(
    hr_client: InMemoryHRClient,
    engagement_client: InMemoryEngagementClient,
    run_log: RunLog,
) -> SyncEngine:
    """Sync engine over the in-memory systems, approving as the absentee."""
    return SyncEngine(
        hr_client,
        engagement_client,
        approver_resolver=StaticApproverResolver(),
        run_log=run_log,
    )


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def test_app(
    test_settings: Settings,
    hr_client: InMemoryHRClient,
    engagement_client: InMemoryEngagementClient,
    engine: SyncEngine,
    run_log: RunLog,
) -> FastAPI:
    """Create a FastAPI test application wired to the in-memory systems."""
    app = create_app(settings=test_settings)
    app.dependency_overrides[get_service_clients] = lambda: ServiceClients(
        hr=hr_client, engagement=engagement_client
    )
    app.dependency_overrides[get_sync_engine] = lambda: engine
    app.dependency_overrides[get_run_log_dependency] = lambda: run_log
    return app


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing.

    Provides an httpx.AsyncClient configured to call the test application
    directly without network overhead.
    """
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client
