"""Unit tests for approver resolution."""

import pytest

from leavebridge.sync.approvers import (
    ApproverConfig,
    ManagerApproverResolver,
    StaticApproverResolver,
)
from leavebridge.sync.fakes import InMemoryEngagementClient
from leavebridge.sync.types import EngagementUser
from leavebridge.utils.exceptions import ApiError


class TestStaticApproverResolver:
    """Tests for the static resolver."""

    @pytest.mark.asyncio
    async def test_defaults_to_absentee(self) -> None:
        assert await StaticApproverResolver().resolve("user-1") == "user-1"

    @pytest.mark.asyncio
    async def test_uses_configured_approver(self) -> None:
        resolver = StaticApproverResolver(ApproverConfig(default_approver_id="hr-admin"))

        assert await resolver.resolve("user-1") == "hr-admin"


class TestManagerApproverResolver:
    """Tests for manager lookup from profile attributes."""

    @pytest.mark.asyncio
    async def test_reads_manager_attribute(
        self, engagement_client: InMemoryEngagementClient
    ) -> None:
        """Should use the manager recorded on the profile."""
        engagement_client.add_user(EngagementUser(id="user-1", attributes={"manager": "mgr-1"}))
        resolver = ManagerApproverResolver(engagement_client)

        assert await resolver.resolve("user-1") == "mgr-1"

    @pytest.mark.asyncio
    async def test_attribute_order(self, engagement_client: InMemoryEngagementClient) -> None:
        """Should probe attributes in configured order."""
        engagement_client.add_user(
            EngagementUser(id="user-1", attributes={"supervisor": "sup", "line_manager": "lm"})
        )
        resolver = ManagerApproverResolver(engagement_client)

        assert await resolver.resolve("user-1") == "lm"

    @pytest.mark.asyncio
    async def test_caches_per_absentee(self, engagement_client: InMemoryEngagementClient) -> None:
        """Should read each profile once per resolver."""
        engagement_client.add_user(EngagementUser(id="user-1", attributes={"manager": "mgr-1"}))
        resolver = ManagerApproverResolver(engagement_client)

        await resolver.resolve("user-1")
        await resolver.resolve("user-1")

        assert engagement_client.calls_named("get_user") == [("user-1",)]

    @pytest.mark.asyncio
    async def test_self_management_uses_default(
        self, engagement_client: InMemoryEngagementClient
    ) -> None:
        """Should not record the absentee as their own approver when a default exists."""
        engagement_client.add_user(EngagementUser(id="user-1", attributes={"manager": "user-1"}))
        resolver = ManagerApproverResolver(
            engagement_client, ApproverConfig(default_approver_id="hr-admin")
        )

        assert await resolver.resolve("user-1") == "hr-admin"

    @pytest.mark.asyncio
    async def test_no_manager_no_default_uses_absentee(
        self, engagement_client: InMemoryEngagementClient
    ) -> None:
        engagement_client.add_user(EngagementUser(id="user-1"))
        resolver = ManagerApproverResolver(engagement_client)

        assert await resolver.resolve("user-1") == "user-1"

    @pytest.mark.asyncio
    async def test_missing_profile(self, engagement_client: InMemoryEngagementClient) -> None:
        resolver = ManagerApproverResolver(
            engagement_client, ApproverConfig(default_approver_id="hr-admin")
        )

        assert await resolver.resolve("ghost") == "hr-admin"

    @pytest.mark.asyncio
    async def test_lookup_failure_falls_back(
        self, engagement_client: InMemoryEngagementClient
    ) -> None:
        """Should fall back instead of raising when the profile read fails."""
        engagement_client.failures["get_user"] = ApiError("EngagementSystem", "boom", 500)
        resolver = ManagerApproverResolver(engagement_client)

        assert await resolver.resolve("user-1") == "user-1"
