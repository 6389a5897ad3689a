"""Status Projector: canonical leave records to engagement sync items."""

from collections.abc import Iterable
from datetime import date

import structlog
from pydantic import BaseModel

from leavebridge.sync.types import (
    AbsencePolicy,
    CanonicalLeaveRecord,
    Duration,
    HalfDayPosition,
    PolicyIdentifier,
    RequestStatus,
    SyncDate,
    SyncItem,
    TimeUnit,
)

logger = structlog.get_logger()


class ProjectorConfig(BaseModel):
    """Configuration for the status projector."""

    default_policy_external_id: str = "annual_leave"


def to_local_datetime(value: str) -> str | None:
    """Turn ``YYYY-MM-DD`` into a timezone-less ``YYYY-MM-DDT00:00:00``.

    Returns None for a missing or malformed date.
    """
    try:
        parsed = date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return None
    return f"{parsed.isoformat()}T00:00:00"


class StatusProjector:
    """Projects canonical records into engagement system sync items.

    Projection is pure: the policy index is fixed when the projector is
    built, once per run.

    Example:
        policies = await engagement.get_absence_policies()
        projector = StatusProjector.from_policies(policies)
        item = projector.project(record, absentee_id="user-1")
    """

    def __init__(
        self,
        policy_external_ids: Iterable[str] = (),
        config: ProjectorConfig | None = None,
    ) -> None:
        self.config = config or ProjectorConfig()
        self.policy_external_ids = frozenset(policy_external_ids)

    @classmethod
    def from_policies(
        cls,
        policies: Iterable[AbsencePolicy],
        config: ProjectorConfig | None = None,
    ) -> "StatusProjector":
        return cls((p.external_id for p in policies if p.external_id), config)

    def resolve_policy(self, policy_ref: str | None) -> str:
        """Get the policy external id for a record's leave reason."""
        if policy_ref and policy_ref in self.policy_external_ids:
            return policy_ref
        return self.config.default_policy_external_id

    def project(self, record: CanonicalLeaveRecord, absentee_id: str) -> SyncItem | None:
        """Project one record, None if its dates are unusable."""
        starts = to_local_datetime(record.start_date)
        ends = to_local_datetime(record.end_date)
        if starts is None or ends is None:
            logger.warning(
                "Skipping leave record with invalid dates",
                external_id=record.external_id,
                start_date=record.start_date,
                end_date=record.end_date,
            )
            return None

        duration = None
        if record.duration_days:
            duration = Duration(amount=record.duration_days, unit=TimeUnit.DAYS)

        return SyncItem(
            id=None,
            external_id=record.external_id,
            approver=None,
            absentee=absentee_id,
            duration=duration,
            policy=PolicyIdentifier(external_id=self.resolve_policy(record.policy_ref)),
            requestor_comment=record.comment or None,
            status=RequestStatus(record.status.value),
            last_updated=record.last_updated,
            starts_from=SyncDate(
                date=starts,
                type=HalfDayPosition.SECOND_HALF if record.half_day_start else None,
            ),
            ends_at=SyncDate(
                date=ends,
                type=HalfDayPosition.FIRST_HALF if record.half_day_end else None,
            ),
        )

    def project_all(
        self, records: Iterable[CanonicalLeaveRecord], absentee_id: str
    ) -> list[SyncItem]:
        """Project many records, dropping the ones that cannot be projected."""
        items = []
        for record in records:
            item = self.project(record, absentee_id)
            if item is not None:
                items.append(item)
        return items
