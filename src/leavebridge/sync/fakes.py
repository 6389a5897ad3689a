"""In-memory HR and engagement clients.

These simulate both systems for unit testing and local development
without real connections. Every call is recorded in order on ``calls`` so
tests can assert on sequencing (for example, approve before any push).
Failures are injected per operation name through ``failures``.
"""

from itertools import count
from typing import Any

from leavebridge.sync.protocols import RequestIdentifier
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
    RequestStatus,
    SyncItem,
)
from leavebridge.utils.exceptions import ApiError, NotFoundError

Call = tuple[str, tuple[Any, ...]]


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[Call] = []
        self.failures: dict[str, Exception] = {}
        self.healthy = True

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    async def health_check(self) -> bool:
        self._record("health_check")
        return self.healthy

    def call_names(self) -> list[str]:
        """Get the names of all recorded calls, in order (for testing)."""
        return [name for name, _ in self.calls]

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        """Get the arguments of every call to one operation (for testing)."""
        return [args for call_name, args in self.calls if call_name == name]


class InMemoryHRClient(_Recorder):
    """In-memory HR system.

    Example:
        hr = InMemoryHRClient()
        hr.add_employee(HREmployee(id=1, employee_ref="E1"))
        hr.add_leave_request(1, HRLeaveRequest(id=100, start_date="2025-01-10", ...))
    """

    def __init__(self, *, failing_employees: set[int] | None = None) -> None:
        super().__init__()
        self.employees: dict[int, HREmployee] = {}
        self.absences: dict[int, list[HRAbsence]] = {}
        self.leave_requests: dict[int, list[HRLeaveRequest]] = {}
        self.leave_reasons: list[HRLeaveReason] = []
        self.failing_employees = failing_employees or set()
        self._ids = count(50_000)

    def add_employee(self, employee: HREmployee) -> HREmployee:
        """Add an employee (for testing)."""
        self.employees[employee.id] = employee
        return employee

    def add_absence(self, employee_id: int, absence: HRAbsence) -> HRAbsence:
        """Add an absence for an employee (for testing)."""
        self.absences.setdefault(employee_id, []).append(absence)
        return absence

    def add_leave_request(self, employee_id: int, request: HRLeaveRequest) -> HRLeaveRequest:
        """Add a leave request for an employee (for testing)."""
        if request.employee_id is None:
            request.employee_id = employee_id
        self.leave_requests.setdefault(employee_id, []).append(request)
        return request

    def _check_employee(self, employee_id: int) -> None:
        if employee_id in self.failing_employees:
            raise ApiError("HRSystem", f"Simulated failure for employee {employee_id}", 500)

    async def list_employees(self) -> list[HREmployee]:
        self._record("list_employees")
        return list(self.employees.values())

    async def get_employee(self, employee_id: int) -> HREmployee | None:
        self._record("get_employee", employee_id)
        return self.employees.get(employee_id)

    async def list_absences(self, employee_id: int) -> list[HRAbsence]:
        self._record("list_absences", employee_id)
        self._check_employee(employee_id)
        return list(self.absences.get(employee_id, []))

    async def list_leave_requests(self, employee_id: int) -> list[HRLeaveRequest]:
        self._record("list_leave_requests", employee_id)
        self._check_employee(employee_id)
        return list(self.leave_requests.get(employee_id, []))

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
        self._record(
            "create_leave_request",
            employee_id,
            start_date,
            end_date,
            half_start,
            half_end,
            notes,
            leave_reason_id,
        )
        request = HRLeaveRequest(
            id=next(self._ids),
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            half_start=half_start,
            half_end=half_end,
            notes=notes,
            leave_reason_id=leave_reason_id,
            status="pending",
            action="request",
        )
        self.leave_requests.setdefault(employee_id, []).append(request)
        return request

    async def cancel_leave_request(self, leave_request_id: int) -> None:
        self._record("cancel_leave_request", leave_request_id)
        for requests in self.leave_requests.values():
            for request in requests:
                if request.id == leave_request_id:
                    request.status = "cancelled"
                    return
        raise NotFoundError("HRSystem", f"Leave request {leave_request_id} not found")

    async def cancel_absence(self, absence_id: int) -> None:
        self._record("cancel_absence", absence_id)
        for absences in self.absences.values():
            for absence in absences:
                if absence.id == absence_id:
                    absence.cancelled = True
                    return
        raise NotFoundError("HRSystem", f"Absence {absence_id} not found")

    async def list_leave_reasons(self) -> list[HRLeaveReason]:
        self._record("list_leave_reasons")
        return list(self.leave_reasons)


class InMemoryEngagementClient(_Recorder):
    """In-memory engagement system.

    Bulk sync calls are silent; ``approve``/``reject`` append to
    ``notifications``, which is what an end user would see.
    ``complete_sync`` replaces the whole request set with the session's
    pushed items, keeping the downstream id of any request whose external
    id survives.
    """

    def __init__(self) -> None:
        super().__init__()
        self.users: dict[str, EngagementUser] = {}
        self.requests: dict[str, EngagementRequest] = {}
        self.policies: dict[str, AbsencePolicy] = {}
        self.assignments: dict[str, set[str]] = {}
        self.balances: list[BalanceItem] = []
        self.notifications: list[tuple[str, str, str]] = []
        self.sessions: dict[str, list[SyncItem]] = {}
        self.completed_sessions: list[str] = []
        self._ids = count(1)

    # -------------------------------------------------------------------------
    # Seeding (for testing)
    # -------------------------------------------------------------------------

    def add_user(self, user: EngagementUser) -> EngagementUser:
        """Add a user (for testing)."""
        self.users[user.id] = user
        return user

    def add_request(
        self,
        external_id: str,
        *,
        absentee: str | None = None,
        status: RequestStatus = RequestStatus.PENDING,
        policy_id: str | None = None,
    ) -> EngagementRequest:
        """Add a downstream absence request (for testing)."""
        request = EngagementRequest(
            id=f"req-{next(self._ids)}",
            external_id=external_id,
            absentee=absentee,
            status=status,
            policy_id=policy_id,
        )
        self.requests[request.id] = request
        return request

    def add_policy(self, policy: AbsencePolicy) -> AbsencePolicy:
        """Add an absence policy (for testing)."""
        self.policies[policy.id] = policy
        return policy

    def request_for(self, external_id: str) -> EngagementRequest | None:
        """Find a stored request by external id (for testing)."""
        for request in self.requests.values():
            if request.external_id == external_id:
                return request
        return None

    def _resolve(self, identifier: RequestIdentifier) -> EngagementRequest:
        if "absence_request_id" in identifier:
            request = self.requests.get(identifier["absence_request_id"])
        else:
            request = self.request_for(identifier.get("external_id", ""))
        if request is None:
            raise NotFoundError("EngagementSystem", f"Absence request {identifier} not found")
        return request

    # -------------------------------------------------------------------------
    # Users and requests
    # -------------------------------------------------------------------------

    async def find_user_by_attribute(
        self, attribute_name: str, attribute_value: str
    ) -> EngagementUser | None:
        self._record("find_user_by_attribute", attribute_name, attribute_value)
        for user in self.users.values():
            if str(user.attributes.get(attribute_name, "")) == attribute_value:
                return user
        return None

    async def get_user(self, user_id: str) -> EngagementUser | None:
        self._record("get_user", user_id)
        return self.users.get(user_id)

    async def get_request_by_external_id(self, external_id: str) -> EngagementRequest | None:
        self._record("get_request_by_external_id", external_id)
        request = self.request_for(external_id)
        return request.model_copy() if request else None

    async def approve(self, approver_id: str, identifier: RequestIdentifier) -> None:
        self._record("approve", approver_id, dict(identifier))
        request = self._resolve(identifier)
        request.status = RequestStatus.APPROVED
        request.approver = approver_id
        self.notifications.append(("approved", request.external_id or request.id, approver_id))

    async def reject(self, approver_id: str, identifier: RequestIdentifier) -> None:
        self._record("reject", approver_id, dict(identifier))
        request = self._resolve(identifier)
        request.status = RequestStatus.REJECTED
        request.approver = approver_id
        self.notifications.append(("rejected", request.external_id or request.id, approver_id))

    async def set_request_error(self, identifier: RequestIdentifier) -> None:
        self._record("set_request_error", dict(identifier))
        self._resolve(identifier).status = RequestStatus.ERROR

    async def patch_external_id(self, request_id: str, new_external_id: str) -> None:
        self._record("patch_external_id", request_id, new_external_id)
        request = self.requests.get(request_id)
        if request is None:
            raise NotFoundError("EngagementSystem", f"Absence request {request_id} not found")
        request.external_id = new_external_id

    # -------------------------------------------------------------------------
    # Bulk sync sessions
    # -------------------------------------------------------------------------

    async def start_sync(self) -> str:
        self._record("start_sync")
        session_id = f"session-{next(self._ids)}"
        self.sessions[session_id] = []
        return session_id

    async def push_sync_batch(self, session_id: str, items: list[SyncItem]) -> None:
        self._record("push_sync_batch", session_id, len(items))
        if session_id not in self.sessions:
            raise ApiError("EngagementSystem", f"Unknown sync session {session_id}", 404)
        self.sessions[session_id].extend(items)

    async def complete_sync(self, session_id: str) -> None:
        self._record("complete_sync", session_id)
        items = self.sessions.pop(session_id, None)
        if items is None:
            raise ApiError("EngagementSystem", f"Unknown sync session {session_id}", 404)

        existing = {r.external_id: r for r in self.requests.values() if r.external_id}
        replaced: dict[str, EngagementRequest] = {}
        for item in items:
            previous = existing.get(item.external_id)
            request_id = previous.id if previous else f"req-{next(self._ids)}"
            replaced[request_id] = EngagementRequest(
                id=request_id,
                external_id=item.external_id,
                absentee=item.absentee,
                approver=previous.approver if previous else None,
                status=item.status,
                policy_id=item.policy.id or item.policy.external_id,
            )
        self.requests = replaced
        self.completed_sessions.append(session_id)

    async def cancel_sync(self, session_id: str) -> None:
        self._record("cancel_sync", session_id)
        self.sessions.pop(session_id, None)

    # -------------------------------------------------------------------------
    # Policies and balances
    # -------------------------------------------------------------------------

    async def get_absence_policies(self, external_id: str | None = None) -> list[AbsencePolicy]:
        self._record("get_absence_policies", external_id)
        policies = list(self.policies.values())
        if external_id is not None:
            policies = [p for p in policies if p.external_id == external_id]
        return policies

    async def sync_absence_policy(self, policy: AbsencePolicySync) -> AbsencePolicy:
        self._record("sync_absence_policy", policy.external_id)
        for stored in self.policies.values():
            if policy.external_id is not None and stored.external_id == policy.external_id:
                stored.name = policy.name
                stored.half_days_allowed = policy.half_days_allowed
                stored.time_unit = policy.time_unit
                return stored
        created = AbsencePolicy(
            id=f"policy-{next(self._ids)}",
            name=policy.name,
            external_id=policy.external_id,
            half_days_allowed=policy.half_days_allowed,
            time_unit=policy.time_unit,
        )
        self.policies[created.id] = created
        return created

    async def assign_policy(self, policy_id: str, user_ids: list[str]) -> None:
        self._record("assign_policy", policy_id, tuple(user_ids))
        self.assignments.setdefault(policy_id, set()).update(user_ids)

    async def sync_balances(self, items: list[BalanceItem]) -> None:
        self._record("sync_balances", len(items))
        self.balances.extend(items)
