"""Identity Reconciler.

A leave created from the engagement side is stored downstream under the
HR leave request id. Once the HR system approves it, the same leave shows
up as an absence with a different id, which is what the bulk sync keys on.
The reconciler rewrites the downstream external id to the absence id so
the next full replace updates the existing entry instead of duplicating it.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from leavebridge.sync.protocols import EngagementClient
from leavebridge.sync.types import HRAbsence, HRLeaveRequest
from leavebridge.utils.exceptions import ApiError

logger = structlog.get_logger()


class ReconciliationOutcome(str, Enum):
    """Outcome of one reconciliation attempt."""

    RECONCILED = "reconciled"
    DEFERRED = "deferred"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ReconciliationResult:
    """Result of reconciling one downstream request."""

    outcome: ReconciliationOutcome
    engagement_request_id: str
    previous_external_id: str
    absence_id: int | None = None
    error: str | None = None

    @property
    def new_external_id(self) -> str | None:
        """External id now in effect downstream, None if unchanged."""
        if self.outcome is ReconciliationOutcome.RECONCILED and self.absence_id is not None:
            return str(self.absence_id)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "engagement_request_id": self.engagement_request_id,
            "previous_external_id": self.previous_external_id,
            "absence_id": self.absence_id,
            "error": self.error,
        }


def find_backing_absence(
    identity_key: tuple[str, str],
    absences: Sequence[HRAbsence],
) -> HRAbsence | None:
    """Find the first non-cancelled absence covering the same date range."""
    for absence in absences:
        if not absence.is_cancelled and absence.identity_key == identity_key:
            return absence
    return None


class IdentityReconciler:
    """Moves downstream requests from request ids onto absence ids.

    Failures are never raised: a failed or deferred reconciliation is
    retried by the next run.
    """

    def __init__(self, engagement_client: EngagementClient) -> None:
        self._engagement = engagement_client

    async def reconcile(
        self,
        engagement_request_id: str,
        leave_request: HRLeaveRequest,
        absences: Sequence[HRAbsence],
    ) -> ReconciliationResult:
        """Reconcile a downstream request created for an HR leave request.

        Args:
            engagement_request_id: Downstream request id (not its external id)
            leave_request: The approved HR leave request
            absences: The employee's current absences

        Returns:
            Reconciliation result
        """
        return await self.reconcile_key(
            engagement_request_id,
            str(leave_request.id),
            leave_request.identity_key,
            absences,
        )

    async def reconcile_key(
        self,
        engagement_request_id: str,
        current_external_id: str,
        identity_key: tuple[str, str],
        absences: Sequence[HRAbsence],
    ) -> ReconciliationResult:
        """Reconcile by date range against the current external id."""
        absence = find_backing_absence(identity_key, absences)

        if absence is None:
            logger.info(
                "No absence yet for approved request, deferring reconciliation",
                engagement_request_id=engagement_request_id,
                external_id=current_external_id,
                identity_key=identity_key,
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.DEFERRED,
                engagement_request_id=engagement_request_id,
                previous_external_id=current_external_id,
            )

        if str(absence.id) == current_external_id:
            return ReconciliationResult(
                outcome=ReconciliationOutcome.SKIPPED,
                engagement_request_id=engagement_request_id,
                previous_external_id=current_external_id,
                absence_id=absence.id,
            )

        try:
            await self._engagement.patch_external_id(engagement_request_id, str(absence.id))
        except ApiError as e:
            logger.warning(
                "Could not update external id, will retry next run",
                engagement_request_id=engagement_request_id,
                external_id=current_external_id,
                absence_id=absence.id,
                error=str(e),
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.FAILED,
                engagement_request_id=engagement_request_id,
                previous_external_id=current_external_id,
                absence_id=absence.id,
                error=str(e),
            )

        logger.info(
            "Reconciled external id",
            engagement_request_id=engagement_request_id,
            previous_external_id=current_external_id,
            absence_id=absence.id,
        )
        return ReconciliationResult(
            outcome=ReconciliationOutcome.RECONCILED,
            engagement_request_id=engagement_request_id,
            previous_external_id=current_external_id,
            absence_id=absence.id,
        )
