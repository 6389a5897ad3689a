"""Leave balance sync from the HR system to the engagement system."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.types import (
    Balance,
    BalanceItem,
    HRAbsence,
    HREmployee,
    PolicyIdentifier,
    TimeUnit,
    UserMapping,
)
from leavebridge.utils.exceptions import ApiError, SyncError

logger = structlog.get_logger()


@dataclass
class BalanceSyncResult:
    """Result of one balance sync."""

    synced: int = 0
    errors: int = 0
    total_users: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "synced": self.synced,
            "errors": self.errors,
            "total_users": self.total_users,
        }


def compute_balance(employee: HREmployee, absences: Sequence[HRAbsence]) -> Balance:
    """Compute an employee's balance under the default policy.

    Taken leave is the deducted amount of every absence that was not
    cancelled; absences carry no approval status of their own.
    """
    allowance = employee.holiday_allowance
    total = allowance.amount if allowance else 0.0
    taken = sum(a.deducted or 0.0 for a in absences if not a.is_cancelled)
    unit = TimeUnit.HOURS if allowance and allowance.units.lower() == "hours" else TimeUnit.DAYS
    return Balance(
        total=total,
        taken=taken,
        available=max(0.0, total - taken),
        unlimited=False,
        time_unit=unit,
    )


class BalanceSynchronizer:
    """Pushes each mapped employee's balance for the default policy."""

    def __init__(
        self,
        hr_client: HRClient,
        engagement_client: EngagementClient,
        default_policy_external_id: str = "annual_leave",
        batch_size: int = 100,
    ) -> None:
        self._hr = hr_client
        self._engagement = engagement_client
        self.default_policy_external_id = default_policy_external_id
        self.batch_size = batch_size

    async def sync(self, mappings: Sequence[UserMapping]) -> BalanceSyncResult:
        """Compute and push balances for every mapping.

        Raises:
            SyncError: If the default policy does not exist downstream
        """
        policies = await self._engagement.get_absence_policies(self.default_policy_external_id)
        if not policies:
            raise SyncError(
                f"Policy {self.default_policy_external_id!r} not found downstream. "
                "Run policy sync first."
            )

        result = BalanceSyncResult(total_users=len(mappings))
        items: list[BalanceItem] = []

        for mapping in mappings:
            try:
                employee = await self._hr.get_employee(mapping.hr_employee_id)
                if employee is None:
                    logger.warning(
                        "Employee not found in HR system",
                        hr_employee_id=mapping.hr_employee_id,
                    )
                    result.errors += 1
                    continue

                absences = await self._hr.list_absences(mapping.hr_employee_id)
            except ApiError as e:
                logger.error(
                    "Failed to fetch balance data",
                    hr_employee_id=mapping.hr_employee_id,
                    error=str(e),
                )
                result.errors += 1
                continue

            balance = compute_balance(employee, absences)
            items.append(
                BalanceItem(
                    user_id=mapping.engagement_user_id,
                    policy=PolicyIdentifier(external_id=self.default_policy_external_id),
                    balance=balance,
                )
            )
            result.synced += 1
            logger.debug(
                "Computed balance",
                hr_employee_id=mapping.hr_employee_id,
                total=balance.total,
                taken=balance.taken,
                available=balance.available,
                time_unit=balance.time_unit.value,
            )

        for start in range(0, len(items), self.batch_size):
            await self._engagement.sync_balances(items[start : start + self.batch_size])

        logger.info(
            "Balance sync complete",
            synced=result.synced,
            errors=result.errors,
            total_users=result.total_users,
        )
        return result
