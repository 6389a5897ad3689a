"""Absence policy sync: HR leave reasons become engagement policies."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.types import AbsencePolicy, AbsencePolicySync, TimeUnit, UserMapping

logger = structlog.get_logger()

DEFAULT_POLICY_NAME = "Annual Leave"


@dataclass
class PolicySyncResult:
    """Result of one policy sync."""

    synced_policies: list[AbsencePolicy] = field(default_factory=list)
    assigned_users: int = 0
    stale_policies: list[AbsencePolicy] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "synced_policies": [f"{p.name} ({p.id})" for p in self.synced_policies],
            "assigned_users": self.assigned_users,
        }
        if self.stale_policies:
            data["stale_policies"] = [
                {"id": p.id, "name": p.name, "external_id": p.external_id}
                for p in self.stale_policies
            ]
            data["stale_note"] = (
                "These policies were removed from the HR system but cannot be "
                "deleted through the engagement API. Remove them manually."
            )
        return data


def _policy(name: str, external_id: str) -> AbsencePolicySync:
    return AbsencePolicySync(
        name=name,
        half_days_allowed=True,
        time_unit=TimeUnit.DAYS,
        time_units=[TimeUnit.DAYS],
        external_id=external_id,
    )


class PolicySynchronizer:
    """Upserts the default policy plus one policy per HR leave reason."""

    def __init__(
        self,
        hr_client: HRClient,
        engagement_client: EngagementClient,
        default_policy_external_id: str = "annual_leave",
    ) -> None:
        self._hr = hr_client
        self._engagement = engagement_client
        self.default_policy_external_id = default_policy_external_id

    async def sync(self, mappings: Sequence[UserMapping]) -> PolicySyncResult:
        """Upsert policies, assign them to every mapped user, report stale ones.

        Policies removed from the HR system cannot be deleted downstream;
        they are only reported.
        """
        result = PolicySyncResult()

        default = await self._engagement.sync_absence_policy(
            _policy(DEFAULT_POLICY_NAME, self.default_policy_external_id)
        )
        result.synced_policies.append(default)
        valid_external_ids = {self.default_policy_external_id}

        reasons = await self._hr.list_leave_reasons()
        logger.info("Syncing leave reasons as policies", reasons=len(reasons))

        for reason in reasons:
            external_id = str(reason.id)
            valid_external_ids.add(external_id)
            synced = await self._engagement.sync_absence_policy(_policy(reason.name, external_id))
            result.synced_policies.append(synced)
            logger.debug("Synced policy", name=reason.name, policy_id=synced.id)

        user_ids = [m.engagement_user_id for m in mappings]
        if user_ids:
            for policy in result.synced_policies:
                await self._engagement.assign_policy(policy.id, user_ids)
        result.assigned_users = len(user_ids)

        for policy in await self._engagement.get_absence_policies():
            external_id = policy.external_id
            if external_id and external_id.isdigit() and external_id not in valid_external_ids:
                result.stale_policies.append(policy)

        if result.stale_policies:
            logger.warning(
                "Stale policies found downstream",
                stale=[p.external_id for p in result.stale_policies],
            )

        logger.info(
            "Policy sync complete",
            synced=len(result.synced_policies),
            assigned_users=result.assigned_users,
        )
        return result
