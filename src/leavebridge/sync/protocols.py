"""Capability interfaces the sync engine consumes.

The engine never talks HTTP itself. It is handed an ``HRClient`` and an
``EngagementClient`` (real HTTP clients from ``leavebridge.clients`` in
production, in-memory fakes from ``leavebridge.sync.fakes`` in tests).
"""

from typing import Protocol, runtime_checkable

from leavebridge.sync.types import (
    AbsencePolicy,
    AbsencePolicySync,
    BalanceItem,
    EngagementRequest,
    EngagementUser,
    HRAbsence,
    HREmployee,
    HRLeaveReason,
    HRLeaveRequest,
    SyncItem,
)

RequestIdentifier = dict[str, str]
"""Identifier for a downstream request: ``{"external_id": ...}`` or
``{"absence_request_id": ...}``."""


@runtime_checkable
class HRClient(Protocol):
    """Protocol for the HR system (system of record for leave decisions)."""

    async def list_employees(self) -> list[HREmployee]:
        """Fetch every employee (all pages)."""
        ...

    async def get_employee(self, employee_id: int) -> HREmployee | None:
        """Fetch a single employee, None if it does not exist."""
        ...

    async def list_absences(self, employee_id: int) -> list[HRAbsence]:
        """Fetch every absence of an employee (all pages)."""
        ...

    async def list_leave_requests(self, employee_id: int) -> list[HRLeaveRequest]:
        """Fetch every leave request of an employee (all pages)."""
        ...

    async def create_leave_request(
        self,
        employee_id: int,
        start_date: str,
        end_date: str,
        *,
        half_start: bool = False,
        half_end: bool = False,
        notes: str | None = None,
        leave_reason_id: int | None = None,
    ) -> HRLeaveRequest:
        """Create a leave request and return it.

        Args:
            employee_id: HR employee identifier
            start_date: First day, YYYY-MM-DD
            end_date: Last day, YYYY-MM-DD
            half_start: Leave starts at midday
            half_end: Leave ends at midday
            notes: Free-text comment from the requester
            leave_reason_id: HR leave reason, None for annual leave

        Returns:
            The created leave request
        """
        ...

    async def cancel_leave_request(self, leave_request_id: int) -> None:
        """Cancel a leave request."""
        ...

    async def cancel_absence(self, absence_id: int) -> None:
        """Cancel an absence."""
        ...

    async def list_leave_reasons(self) -> list[HRLeaveReason]:
        """Fetch the configured "other leave reasons"."""
        ...


@runtime_checkable
class EngagementClient(Protocol):
    """Protocol for the engagement system.

    Its bulk sync calls are notification-silent. Only ``approve`` and
    ``reject`` notify the end user.
    """

    async def find_user_by_attribute(
        self, attribute_name: str, attribute_value: str
    ) -> EngagementUser | None:
        """Find the user whose custom attribute has the given value."""
        ...

    async def get_user(self, user_id: str) -> EngagementUser | None:
        """Fetch a user profile, None if it does not exist."""
        ...

    async def get_request_by_external_id(self, external_id: str) -> EngagementRequest | None:
        """Look up an absence request by external id, None if not found."""
        ...

    async def approve(self, approver_id: str, identifier: RequestIdentifier) -> None:
        """Approve a request (emits a user notification)."""
        ...

    async def reject(self, approver_id: str, identifier: RequestIdentifier) -> None:
        """Reject a request (emits a user notification)."""
        ...

    async def set_request_error(self, identifier: RequestIdentifier) -> None:
        """Move a request to the ERROR state."""
        ...

    async def patch_external_id(self, request_id: str, new_external_id: str) -> None:
        """Rewrite the external id of a request."""
        ...

    async def start_sync(self) -> str:
        """Open a bulk-replace sync session and return its id."""
        ...

    async def push_sync_batch(self, session_id: str, items: list[SyncItem]) -> None:
        """Push one batch of items into an open session."""
        ...

    async def complete_sync(self, session_id: str) -> None:
        """Finalize a session; pushed items replace all existing requests."""
        ...

    async def cancel_sync(self, session_id: str) -> None:
        """Abandon a session without changing downstream state."""
        ...

    async def get_absence_policies(self, external_id: str | None = None) -> list[AbsencePolicy]:
        """List absence policies, optionally filtered by external id."""
        ...

    async def sync_absence_policy(self, policy: AbsencePolicySync) -> AbsencePolicy:
        """Create or update a policy keyed by its external id."""
        ...

    async def assign_policy(self, policy_id: str, user_ids: list[str]) -> None:
        """Assign a policy to users."""
        ...

    async def sync_balances(self, items: list[BalanceItem]) -> None:
        """Push leave balances."""
        ...
