"""Approver resolution for notification-emitting decision calls.

The engagement system records who approved or rejected a request, and the
notification names them. The HR system does not report its approver in a
form the engagement system understands, so the approver is resolved here.
"""

from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, Field

from leavebridge.config.settings import DEFAULT_MANAGER_ATTRIBUTES
from leavebridge.sync.protocols import EngagementClient
from leavebridge.utils.exceptions import ApiError

logger = structlog.get_logger()


class ApproverConfig(BaseModel):
    """Configuration for approver resolution."""

    default_approver_id: str | None = None
    manager_attribute_names: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MANAGER_ATTRIBUTES)
    )


@runtime_checkable
class ApproverResolver(Protocol):
    """Resolves the engagement user recorded as approver for an absentee."""

    async def resolve(self, absentee_id: str) -> str:
        """Get the approver id for a decision on the absentee's request."""
        ...


class StaticApproverResolver:
    """Always the configured default approver, or the absentee themself."""

    def __init__(self, config: ApproverConfig | None = None) -> None:
        self.config = config or ApproverConfig()

    async def resolve(self, absentee_id: str) -> str:
        return self.config.default_approver_id or absentee_id


class ManagerApproverResolver:
    """Reads the absentee's manager from engagement profile attributes.

    Attributes are probed in configured order. The result is cached per
    absentee for the lifetime of the resolver (one run). When no manager is
    found, or the manager is the absentee, the default approver is used,
    and the absentee only when no default is configured.
    """

    def __init__(
        self,
        engagement_client: EngagementClient,
        config: ApproverConfig | None = None,
    ) -> None:
        self.config = config or ApproverConfig()
        self._engagement = engagement_client
        self._cache: dict[str, str] = {}

    async def resolve(self, absentee_id: str) -> str:
        cached = self._cache.get(absentee_id)
        if cached is not None:
            return cached

        approver = await self._lookup_manager(absentee_id)
        if approver is None or approver == absentee_id:
            approver = self.config.default_approver_id or absentee_id

        self._cache[absentee_id] = approver
        return approver

    async def _lookup_manager(self, absentee_id: str) -> str | None:
        try:
            user = await self._engagement.get_user(absentee_id)
        except ApiError as e:
            logger.warning(
                "Could not read absentee profile for approver",
                absentee_id=absentee_id,
                error=str(e),
            )
            return None

        if user is None:
            return None

        for name in self.config.manager_attribute_names:
            value = user.attributes.get(name)
            if value:
                return str(value).strip() or None
        return None
