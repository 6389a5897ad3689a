"""Unit tests for absence policy sync."""

import pytest

from leavebridge.sync import PolicySynchronizer, UserMapping
from leavebridge.sync.fakes import InMemoryEngagementClient, InMemoryHRClient
from leavebridge.sync.types import AbsencePolicy, HRLeaveReason


@pytest.fixture
def synchronizer(
    hr_client: InMemoryHRClient, engagement_client: InMemoryEngagementClient
) -> PolicySynchronizer:
    hr_client.leave_reasons.extend(
        [HRLeaveReason(id=7, name="Sick"), HRLeaveReason(id=8, name="Parental")]
    )
    return PolicySynchronizer(hr_client, engagement_client)


class TestPolicySync:
    """Tests for upserting and assigning policies."""

    @pytest.mark.asyncio
    async def test_syncs_default_and_leave_reasons(
        self,
        synchronizer: PolicySynchronizer,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should upsert one policy per reason plus the default and assign them all."""
        result = await synchronizer.sync([mapping])

        assert [p.external_id for p in result.synced_policies] == ["annual_leave", "7", "8"]
        assert result.synced_policies[0].id == "policy-annual"
        assert result.assigned_users == 1
        for policy in result.synced_policies:
            assert engagement_client.assignments[policy.id] == {"user-1"}

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(
        self,
        synchronizer: PolicySynchronizer,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        await synchronizer.sync([mapping])
        await synchronizer.sync([mapping])

        assert len(engagement_client.policies) == 3

    @pytest.mark.asyncio
    async def test_reports_stale_numeric_policies(
        self,
        synchronizer: PolicySynchronizer,
        engagement_client: InMemoryEngagementClient,
    ) -> None:
        """Should report removed leave reasons but not hand-made policies."""
        engagement_client.add_policy(AbsencePolicy(id="old", name="Old", external_id="99"))
        engagement_client.add_policy(
            AbsencePolicy(id="manual", name="Manual", external_id="legacy")
        )

        result = await synchronizer.sync([])

        assert [p.id for p in result.stale_policies] == ["old"]
        data = result.to_dict()
        assert data["stale_policies"][0]["external_id"] == "99"
        assert "stale_note" in data

    @pytest.mark.asyncio
    async def test_no_mappings_skips_assignment(
        self,
        synchronizer: PolicySynchronizer,
        engagement_client: InMemoryEngagementClient,
    ) -> None:
        result = await synchronizer.sync([])

        assert result.assigned_users == 0
        assert engagement_client.calls_named("assign_policy") == []
        assert "stale_policies" not in result.to_dict()
