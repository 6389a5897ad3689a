"""Notification Trigger.

The engagement system's bulk sync is silent: a request that moves from
PENDING to APPROVED through a full replace never notifies its owner. Only
the per-item approve/reject calls do. The trigger therefore issues those
calls for every newly decided request before the bulk sync runs, so the
replace that follows only confirms state the user was already told about.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from leavebridge.sync.approvers import ApproverResolver, StaticApproverResolver
from leavebridge.sync.protocols import EngagementClient
from leavebridge.sync.reconciler import (
    IdentityReconciler,
    ReconciliationResult,
    find_backing_absence,
)
from leavebridge.sync.types import (
    Decision,
    EngagementRequest,
    HRAbsence,
    HRLeaveRequest,
    RequestStatus,
    SyncItem,
    UserMapping,
)
from leavebridge.sync.unifier import is_leave_request, parse_decision
from leavebridge.utils.exceptions import ApiError

logger = structlog.get_logger()


# =============================================================================
# Results
# =============================================================================


class NotificationAction(str, Enum):
    """What the trigger did for one item."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


@dataclass
class NotificationRecord:
    """One decision the trigger looked at."""

    external_id: str
    upstream_status: str
    downstream_status: str | None
    action: NotificationAction
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "external_id": self.external_id,
            "upstream_status": self.upstream_status,
            "downstream_status": self.downstream_status,
            "action": self.action.value,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class NotificationOutcome:
    """Counters and actions from one notification pass."""

    approved: int = 0
    rejected: int = 0
    skipped: int = 0
    errors: int = 0
    checked: int = 0
    still_pending: int = 0
    actions: list[NotificationRecord] = field(default_factory=list)
    reconciliations: list[ReconciliationResult] = field(default_factory=list)

    def merge(self, other: "NotificationOutcome") -> None:
        """Fold another outcome into this one."""
        self.approved += other.approved
        self.rejected += other.rejected
        self.skipped += other.skipped
        self.errors += other.errors
        self.checked += other.checked
        self.still_pending += other.still_pending
        self.actions.extend(other.actions)
        self.reconciliations.extend(other.reconciliations)


# =============================================================================
# Trigger
# =============================================================================


class NotificationTrigger:
    """Issues notify-capable approve/reject calls for decided leave.

    Example:
        trigger = NotificationTrigger(engagement_client)
        outcome = await trigger.notify(items, mapping, absences)
        # items now carry the external ids to push
    """

    def __init__(
        self,
        engagement_client: EngagementClient,
        approver_resolver: ApproverResolver | None = None,
        reconciler: IdentityReconciler | None = None,
    ) -> None:
        self._engagement = engagement_client
        self.approver_resolver = approver_resolver or StaticApproverResolver()
        self.reconciler = reconciler or IdentityReconciler(engagement_client)

    async def notify(
        self,
        items: Sequence[SyncItem],
        mapping: UserMapping,
        absences: Sequence[HRAbsence] = (),
    ) -> NotificationOutcome:
        """Notify every decided item of one employee ahead of a bulk sync.

        Items are updated in place when the downstream identity moved from
        the request id to the absence id, so the push that follows updates
        the existing entry.

        Args:
            items: Projected sync items of one employee
            mapping: The employee's user mapping
            absences: The employee's HR absences, for reconciliation

        Returns:
            Notification outcome
        """
        outcome = NotificationOutcome()

        for item in items:
            if item.status == RequestStatus.APPROVED:
                decision = Decision.APPROVED
            elif item.status == RequestStatus.REJECTED:
                decision = Decision.REJECTED
            else:
                continue

            outcome.checked += 1
            found, downstream = await self._lookup(item.external_id, decision, outcome)
            if not found:
                continue

            if downstream is None and decision is Decision.APPROVED:
                # Already moved onto the absence id by an earlier run?
                backing = find_backing_absence(item.identity_key, absences)
                if backing is not None and str(backing.id) != item.external_id:
                    found, moved = await self._lookup(str(backing.id), decision, outcome)
                    if not found:
                        continue
                    if moved is not None:
                        item.external_id = str(backing.id)
                        downstream = moved

            if downstream is None:
                outcome.skipped += 1
                continue

            if downstream.status != RequestStatus.PENDING:
                outcome.skipped += 1
                if downstream.status == RequestStatus.APPROVED and decision is Decision.APPROVED:
                    await self._reconcile_item(item, downstream, absences, outcome)
                continue

            decided = await self._decide(
                mapping, decision, item.external_id, downstream, outcome
            )
            if decided and decision is Decision.APPROVED:
                await self._reconcile_item(item, downstream, absences, outcome)

        return outcome

    async def check_requests(
        self,
        requests: Sequence[HRLeaveRequest],
        absences: Sequence[HRAbsence],
        mapping: UserMapping,
    ) -> NotificationOutcome:
        """Notify decided HR leave requests of one employee.

        Walks leave requests keyed by request id, then, as a safety net,
        non-cancelled absences keyed by absence id (approve only).

        Args:
            requests: The employee's HR leave requests
            absences: The employee's HR absences
            mapping: The employee's user mapping

        Returns:
            Notification outcome
        """
        outcome = NotificationOutcome()

        for request in requests:
            if not is_leave_request(request):
                continue

            decision = parse_decision(request.status, request.action)
            if decision is Decision.PENDING:
                outcome.still_pending += 1
                continue
            if decision not in (Decision.APPROVED, Decision.REJECTED):
                continue

            outcome.checked += 1
            external_id = str(request.id)
            found, downstream = await self._lookup(external_id, decision, outcome)
            if not found:
                continue
            if downstream is None:
                # Not created from the engagement side, the bulk sync owns it
                outcome.skipped += 1
                continue

            if downstream.status != RequestStatus.PENDING:
                outcome.skipped += 1
                if downstream.status == RequestStatus.APPROVED and decision is Decision.APPROVED:
                    outcome.reconciliations.append(
                        await self.reconciler.reconcile(downstream.id, request, absences)
                    )
                continue

            decided = await self._decide(mapping, decision, external_id, downstream, outcome)
            if decided and decision is Decision.APPROVED:
                outcome.reconciliations.append(
                    await self.reconciler.reconcile(downstream.id, request, absences)
                )

        for absence in absences:
            if absence.is_cancelled:
                continue
            external_id = str(absence.id)
            _, downstream = await self._lookup(external_id, Decision.APPROVED, outcome)
            if downstream is None or downstream.status != RequestStatus.PENDING:
                continue
            await self._decide(mapping, Decision.APPROVED, external_id, downstream, outcome)

        return outcome

    async def _lookup(
        self,
        external_id: str,
        decision: Decision,
        outcome: NotificationOutcome,
    ) -> tuple[bool, EngagementRequest | None]:
        """Fetch a downstream request; the flag is False when the lookup failed."""
        try:
            return True, await self._engagement.get_request_by_external_id(external_id)
        except ApiError as e:
            logger.warning(
                "Downstream lookup failed",
                external_id=external_id,
                error=str(e),
            )
            outcome.errors += 1
            outcome.actions.append(
                NotificationRecord(
                    external_id=external_id,
                    upstream_status=decision.value,
                    downstream_status=None,
                    action=NotificationAction.FAILED,
                    error=str(e),
                )
            )
            return False, None

    async def _decide(
        self,
        mapping: UserMapping,
        decision: Decision,
        external_id: str,
        downstream: EngagementRequest,
        outcome: NotificationOutcome,
    ) -> bool:
        approver = await self.approver_resolver.resolve(mapping.engagement_user_id)
        identifier = {"external_id": external_id}

        try:
            if decision is Decision.APPROVED:
                await self._engagement.approve(approver, identifier)
            else:
                await self._engagement.reject(approver, identifier)
        except ApiError as e:
            logger.error(
                "Decision call failed",
                external_id=external_id,
                decision=decision.value,
                engagement_request_id=downstream.id,
                error=str(e),
            )
            outcome.errors += 1
            outcome.actions.append(
                NotificationRecord(
                    external_id=external_id,
                    upstream_status=decision.value,
                    downstream_status=downstream.status.value,
                    action=NotificationAction.FAILED,
                    error=str(e),
                )
            )
            return False

        if decision is Decision.APPROVED:
            outcome.approved += 1
            action = NotificationAction.APPROVED
        else:
            outcome.rejected += 1
            action = NotificationAction.REJECTED

        logger.info(
            "Notified decision",
            external_id=external_id,
            engagement_request_id=downstream.id,
            decision=decision.value,
            approver_id=approver,
        )
        outcome.actions.append(
            NotificationRecord(
                external_id=external_id,
                upstream_status=decision.value,
                downstream_status=downstream.status.value,
                action=action,
            )
        )
        return True

    async def _reconcile_item(
        self,
        item: SyncItem,
        downstream: EngagementRequest,
        absences: Sequence[HRAbsence],
        outcome: NotificationOutcome,
    ) -> None:
        result = await self.reconciler.reconcile_key(
            downstream.id, item.external_id, item.identity_key, absences
        )
        outcome.reconciliations.append(result)
        if result.new_external_id is not None:
            item.external_id = result.new_external_id
