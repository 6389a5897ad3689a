"""Unit tests for the Notification Trigger."""

import pytest

from leavebridge.sync.fakes import InMemoryEngagementClient
from leavebridge.sync.notifier import NotificationAction, NotificationTrigger
from leavebridge.sync.reconciler import ReconciliationOutcome
from leavebridge.sync.types import (
    HRAbsence,
    HRLeaveRequest,
    PolicyIdentifier,
    RequestStatus,
    SyncDate,
    SyncItem,
    UserMapping,
)
from leavebridge.utils.exceptions import ApiError

KEY = ("2025-01-10", "2025-01-12")


def sync_item(external_id: str, status: RequestStatus) -> SyncItem:
    """Helper to create a projected item for the test date range."""
    return SyncItem(
        external_id=external_id,
        absentee="user-1",
        policy=PolicyIdentifier(external_id="annual_leave"),
        status=status,
        starts_from=SyncDate(date=f"{KEY[0]}T00:00:00"),
        ends_at=SyncDate(date=f"{KEY[1]}T00:00:00"),
    )


def backing_absence(absence_id: int = 900) -> HRAbsence:
    return HRAbsence(id=absence_id, start_date=KEY[0], end_date=KEY[1])


@pytest.fixture
def trigger(engagement_client: InMemoryEngagementClient) -> NotificationTrigger:
    return NotificationTrigger(engagement_client)


# =============================================================================
# Projected Item Tests
# =============================================================================


class TestNotify:
    """Tests for notifying projected items before a bulk sync."""

    @pytest.mark.asyncio
    async def test_approves_pending_downstream(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should issue an approve call for a request still pending downstream."""
        engagement_client.add_request("100", absentee="user-1")
        items = [sync_item("100", RequestStatus.APPROVED)]

        outcome = await trigger.notify(items, mapping)

        assert outcome.approved == 1
        assert outcome.checked == 1
        assert engagement_client.calls_named("approve") == [("user-1", {"external_id": "100"})]
        assert engagement_client.notifications == [("approved", "100", "user-1")]
        assert outcome.actions[0].action == NotificationAction.APPROVED

    @pytest.mark.asyncio
    async def test_rejects_pending_downstream(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        engagement_client.add_request("100", absentee="user-1")

        outcome = await trigger.notify([sync_item("100", RequestStatus.REJECTED)], mapping)

        assert outcome.rejected == 1
        assert engagement_client.calls_named("reject") == [("user-1", {"external_id": "100"})]

    @pytest.mark.asyncio
    async def test_skips_already_decided(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should not notify twice for a request already decided downstream."""
        engagement_client.add_request("100", status=RequestStatus.APPROVED)

        outcome = await trigger.notify([sync_item("100", RequestStatus.APPROVED)], mapping)

        assert outcome.skipped == 1
        assert engagement_client.calls_named("approve") == []

    @pytest.mark.asyncio
    async def test_skips_missing_downstream(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should leave HR-originated requests to the bulk sync."""
        outcome = await trigger.notify([sync_item("100", RequestStatus.APPROVED)], mapping)

        assert outcome.skipped == 1
        assert engagement_client.calls_named("approve") == []

    @pytest.mark.asyncio
    async def test_ignores_pending_items(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        outcome = await trigger.notify([sync_item("100", RequestStatus.PENDING)], mapping)

        assert outcome.checked == 0
        assert engagement_client.calls_named("get_request_by_external_id") == []

    @pytest.mark.asyncio
    async def test_lookup_failure_counts_error(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should record a failed lookup and keep going."""
        engagement_client.failures["get_request_by_external_id"] = ApiError(
            "EngagementSystem", "unavailable", 503
        )

        outcome = await trigger.notify(
            [sync_item("100", RequestStatus.APPROVED), sync_item("101", RequestStatus.REJECTED)],
            mapping,
        )

        assert outcome.errors == 2
        assert [a.action for a in outcome.actions] == [NotificationAction.FAILED] * 2

    @pytest.mark.asyncio
    async def test_approve_failure_skips_reconciliation(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        engagement_client.add_request("100")
        engagement_client.failures["approve"] = ApiError("EngagementSystem", "boom", 500)
        item = sync_item("100", RequestStatus.APPROVED)

        outcome = await trigger.notify([item], mapping, [backing_absence()])

        assert outcome.errors == 1
        assert outcome.reconciliations == []
        assert item.external_id == "100"

    @pytest.mark.asyncio
    async def test_reconciles_after_approve(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should move the item and downstream request onto the absence id."""
        downstream = engagement_client.add_request("100")
        item = sync_item("100", RequestStatus.APPROVED)

        outcome = await trigger.notify([item], mapping, [backing_absence()])

        assert outcome.approved == 1
        assert item.external_id == "900"
        assert engagement_client.requests[downstream.id].external_id == "900"
        assert outcome.reconciliations[0].outcome == ReconciliationOutcome.RECONCILED

    @pytest.mark.asyncio
    async def test_follows_moved_identity_when_approved(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should find a request already moved to the absence id and not notify again."""
        engagement_client.add_request("900", status=RequestStatus.APPROVED)
        item = sync_item("100", RequestStatus.APPROVED)

        outcome = await trigger.notify([item], mapping, [backing_absence()])

        assert item.external_id == "900"
        assert outcome.skipped == 1
        assert engagement_client.calls_named("approve") == []

    @pytest.mark.asyncio
    async def test_follows_moved_identity_when_pending(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        engagement_client.add_request("900")
        item = sync_item("100", RequestStatus.APPROVED)

        outcome = await trigger.notify([item], mapping, [backing_absence()])

        assert item.external_id == "900"
        assert outcome.approved == 1
        assert engagement_client.calls_named("approve") == [("user-1", {"external_id": "900"})]


# =============================================================================
# Approval Check Tests
# =============================================================================


class TestCheckRequests:
    """Tests for the approval check over raw HR requests."""

    @pytest.mark.asyncio
    async def test_defers_then_reconciles(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should notify once, then reconcile when the absence appears."""
        downstream = engagement_client.add_request("100")
        request = HRLeaveRequest(
            id=100, start_date=KEY[0], end_date=KEY[1], status="approved", action="request"
        )

        first = await trigger.check_requests([request], [], mapping)
        second = await trigger.check_requests([request], [backing_absence()], mapping)

        assert first.approved == 1
        assert first.reconciliations[0].outcome == ReconciliationOutcome.DEFERRED
        assert second.skipped == 1
        assert second.reconciliations[0].outcome == ReconciliationOutcome.RECONCILED
        assert engagement_client.requests[downstream.id].external_id == "900"
        assert len(engagement_client.calls_named("approve")) == 1

    @pytest.mark.asyncio
    async def test_counts_pending(
        self, trigger: NotificationTrigger, mapping: UserMapping
    ) -> None:
        requests = [
            HRLeaveRequest(id=1, start_date=KEY[0], end_date=KEY[1], status="pending"),
            HRLeaveRequest(id=2, start_date=KEY[0], end_date=KEY[1], action="cancel"),
        ]

        outcome = await trigger.check_requests(requests, [], mapping)

        assert outcome.still_pending == 1
        assert outcome.checked == 0

    @pytest.mark.asyncio
    async def test_skips_without_downstream(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        request = HRLeaveRequest(id=100, start_date=KEY[0], end_date=KEY[1], status="rejected")

        outcome = await trigger.check_requests([request], [], mapping)

        assert outcome.skipped == 1
        assert engagement_client.calls_named("reject") == []

    @pytest.mark.asyncio
    async def test_approves_pending_absence(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        """Should approve a request keyed by absence id as a safety net."""
        engagement_client.add_request("900")

        outcome = await trigger.check_requests([], [backing_absence()], mapping)

        assert outcome.approved == 1
        assert engagement_client.calls_named("approve") == [("user-1", {"external_id": "900"})]

    @pytest.mark.asyncio
    async def test_ignores_cancelled_absence(
        self,
        trigger: NotificationTrigger,
        engagement_client: InMemoryEngagementClient,
        mapping: UserMapping,
    ) -> None:
        engagement_client.add_request("900")
        cancelled = HRAbsence(id=900, start_date=KEY[0], end_date=KEY[1], cancelled=True)

        outcome = await trigger.check_requests([], [cancelled], mapping)

        assert outcome.approved == 0
        assert engagement_client.calls_named("get_request_by_external_id") == []
