"""User Mapping Directory.

Binds engagement system users to HR employees through a shared reference:
the HR employee's ``employee_ref`` equals a custom attribute on the
engagement user. The full mapping set is rebuilt from a scan of all HR
employees whenever the cache expires; it is never patched in place.
"""

import time
from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field

from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.types import UserMapping

logger = structlog.get_logger()


class MappingConfig(BaseModel):
    """Configuration for the user mapping directory."""

    ttl_seconds: int = Field(default=300, ge=0)
    shared_ref_attribute: str = Field(
        default="exthrref",
        description="Technical name of the engagement user attribute holding the HR ref",
    )


class UserMappingDirectory:
    """TTL-cached directory of engagement user <-> HR employee mappings.

    Example:
        directory = UserMappingDirectory(hr_client, engagement_client)
        mappings = await directory.get_all_mappings()
        employee_id = await directory.get_hr_employee_id(user_id)
    """

    def __init__(
        self,
        hr_client: HRClient,
        engagement_client: EngagementClient,
        config: MappingConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or MappingConfig()
        self._hr = hr_client
        self._engagement = engagement_client
        self._clock = clock

        self._mappings: tuple[UserMapping, ...] = ()
        self._by_engagement_user: dict[str, UserMapping] = {}
        self._by_hr_employee: dict[int, UserMapping] = {}
        self._by_ref: dict[str, UserMapping] = {}
        self._last_refresh: float | None = None

    @property
    def is_stale(self) -> bool:
        """Check if the cache must be rebuilt before the next lookup."""
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh > self.config.ttl_seconds

    async def refresh(self) -> tuple[UserMapping, ...]:
        """Rebuild every mapping from a full scan of HR employees.

        Employees without a ref, or whose ref matches no engagement user,
        are left unmapped. When two employees resolve to the same
        engagement user (or share a ref) the first one wins.

        Returns:
            The new mapping set
        """
        logger.info("Refreshing user mappings")

        employees = await self._hr.list_employees()
        mappings: list[UserMapping] = []
        by_user: dict[str, UserMapping] = {}
        by_employee: dict[int, UserMapping] = {}
        by_ref: dict[str, UserMapping] = {}

        for employee in employees:
            ref = employee.employee_ref
            if not ref:
                logger.debug(
                    "Skipping employee without ref",
                    hr_employee_id=employee.id,
                )
                continue

            if employee.id in by_employee or ref in by_ref:
                logger.warning(
                    "Duplicate HR employee or ref, keeping first mapping",
                    hr_employee_id=employee.id,
                    shared_ref=ref,
                )
                continue

            user = await self._engagement.find_user_by_attribute(
                self.config.shared_ref_attribute, ref
            )
            if user is None:
                logger.debug("No engagement user for ref", shared_ref=ref, hr_employee_id=employee.id)
                continue

            if user.id in by_user:
                logger.warning(
                    "Engagement user already mapped, keeping first mapping",
                    engagement_user_id=user.id,
                    hr_employee_id=employee.id,
                    mapped_hr_employee_id=by_user[user.id].hr_employee_id,
                )
                continue

            mapping = UserMapping(
                engagement_user_id=user.id,
                hr_employee_id=employee.id,
                shared_ref=ref,
            )
            mappings.append(mapping)
            by_user[user.id] = mapping
            by_employee[employee.id] = mapping
            by_ref[ref] = mapping

        # Swap in the complete set at once
        self._mappings = tuple(mappings)
        self._by_engagement_user = by_user
        self._by_hr_employee = by_employee
        self._by_ref = by_ref
        self._last_refresh = self._clock()

        logger.info(
            "User mappings refreshed",
            employees_scanned=len(employees),
            mapped=len(mappings),
        )
        return self._mappings

    async def _ensure_fresh(self) -> None:
        if self.is_stale:
            await self.refresh()

    def invalidate(self) -> None:
        """Force a rebuild on the next lookup."""
        self._last_refresh = None

    async def get_all_mappings(self) -> tuple[UserMapping, ...]:
        """Get every current mapping."""
        await self._ensure_fresh()
        return self._mappings

    async def get_hr_employee_id(self, engagement_user_id: str) -> int | None:
        """Look up the HR employee ID for an engagement user."""
        await self._ensure_fresh()
        mapping = self._by_engagement_user.get(engagement_user_id)
        return mapping.hr_employee_id if mapping else None

    async def get_engagement_user_id(self, hr_employee_id: int) -> str | None:
        """Look up the engagement user ID for an HR employee."""
        await self._ensure_fresh()
        mapping = self._by_hr_employee.get(hr_employee_id)
        return mapping.engagement_user_id if mapping else None

    async def get_by_ref(self, shared_ref: str) -> UserMapping | None:
        """Look up a mapping by shared reference."""
        await self._ensure_fresh()
        return self._by_ref.get(shared_ref)
