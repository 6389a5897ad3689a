"""Types and data models for the leave synchronization engine.

Upstream (HR system) and downstream (engagement system) payloads are
pydantic models that keep unknown fields, since neither API documents its
schema completely. Engine-internal records are dataclasses.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Enums
# =============================================================================


class LeaveStatus(str, Enum):
    """Canonical status of one logical leave event."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_decided(self) -> bool:
        """Check if this status is an approve/reject decision."""
        return self in {LeaveStatus.APPROVED, LeaveStatus.REJECTED}


class RequestStatus(str, Enum):
    """Status vocabulary of the engagement system."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    ERROR = "ERROR"


class HalfDayPosition(str, Enum):
    """Which half of a day an absence boundary covers."""

    FIRST_HALF = "FIRST_HALF"
    SECOND_HALF = "SECOND_HALF"


class Decision(str, Enum):
    """Decision state parsed from an HR leave request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class SyncSessionState(str, Enum):
    """State of a bulk-replace sync session."""

    STARTED = "started"
    PUSHING = "pushing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in {
            SyncSessionState.COMPLETED,
            SyncSessionState.CANCELLED,
            SyncSessionState.FAILED,
        }


class TimeUnit(str, Enum):
    """Unit for durations, balances and policies."""

    DAYS = "DAYS"
    HOURS = "HOURS"


# =============================================================================
# HR system payloads
# =============================================================================


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class HRModel(BaseModel):
    """Base for HR payloads; unknown fields are kept as attributes."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def field_value(self, name: str) -> Any:
        """Get a declared or extra field by name, None if absent."""
        return getattr(self, name, None)


class HRHolidayAllowance(HRModel):
    """Holiday allowance attached to an HR employee."""

    id: int | None = None
    name: str = ""
    units: str = "days"
    amount: float = 0.0


class HREmployee(HRModel):
    """Employee record from the HR system."""

    id: int
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    employee_ref: str | None = None
    holiday_allowance: HRHolidayAllowance | None = None

    @field_validator("employee_ref", mode="before")
    @classmethod
    def _coerce_ref(cls, value: Any) -> str | None:
        if value is None:
            return None
        ref = str(value).strip()
        return ref or None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class HRLeaveRequest(HRModel):
    """A leave request in the HR system (pending or decided)."""

    id: int
    employee_id: int | None = None
    start_date: str | None = None
    end_date: str | None = None
    half_start: bool = False
    half_end: bool = False
    status: str | None = None
    action: str | None = None
    notes: str | None = None
    leave_reason_id: int | None = None
    updated_at: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _merge_half_day_aliases(cls, data: Any) -> Any:
        # The HR API reports half days under either name
        if isinstance(data, dict):
            data = dict(data)
            if "half_start" not in data and "start_half_day" in data:
                data["half_start"] = data["start_half_day"]
            if "half_end" not in data and "end_half_day" in data:
                data["half_end"] = data["end_half_day"]
        return data

    @field_validator("half_start", "half_end", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> bool:
        return _as_bool(value)

    @property
    def identity_key(self) -> tuple[str, str]:
        return (self.start_date or "", self.end_date or "")


class HRAbsence(HRModel):
    """An approved (or cancelled) absence in the HR system."""

    id: int
    start_date: str | None = None
    end_date: str | None = None
    half_start: bool = False
    half_end: bool = False
    deducted: float | None = None
    status: str | None = None
    cancelled: bool = False
    leave_reason: str | None = None
    leave_reason_id: int | None = None
    other_leave_reason_id: int | None = None
    notes: str | None = None
    updated_at: str | None = None

    @field_validator("half_start", "half_end", "cancelled", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> bool:
        return _as_bool(value)

    @field_validator("deducted", mode="before")
    @classmethod
    def _coerce_deducted(cls, value: Any) -> float | None:
        if value in (None, ""):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled or (self.status or "").lower() in {"cancelled", "canceled"}

    @property
    def is_approved(self) -> bool:
        return (self.status or "").lower() == "approved"

    @property
    def identity_key(self) -> tuple[str, str]:
        return (self.start_date or "", self.end_date or "")

    @property
    def reason_id(self) -> int | None:
        return self.leave_reason_id or self.other_leave_reason_id


class HRLeaveReason(HRModel):
    """An "other leave reason" configured in the HR system."""

    id: int
    name: str


# =============================================================================
# Engagement system payloads
# =============================================================================


class EngagementModel(BaseModel):
    """Base for engagement system payloads."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class EngagementUser(EngagementModel):
    """User profile in the engagement system."""

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    external_id: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class EngagementRequest(EngagementModel):
    """Absence request as stored by the engagement system."""

    id: str
    external_id: str | None = None
    absentee: str | None = None
    approver: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    policy_id: str | None = None


class AbsencePolicy(EngagementModel):
    """Absence policy configured in the engagement system."""

    id: str
    name: str = ""
    external_id: str | None = None
    half_days_allowed: bool = True
    time_unit: TimeUnit = TimeUnit.DAYS


class AbsencePolicySync(EngagementModel):
    """Policy upsert payload."""

    name: str
    half_days_allowed: bool = True
    time_unit: TimeUnit = TimeUnit.DAYS
    time_units: list[TimeUnit] = Field(default_factory=lambda: [TimeUnit.DAYS])
    external_id: str | None = None


class PolicyIdentifier(EngagementModel):
    """Reference to a policy by id or external id."""

    id: str | None = None
    external_id: str | None = None


class SyncDate(EngagementModel):
    """Local datetime (no timezone) plus optional half-day position."""

    date: str
    type: HalfDayPosition | None = None


class Duration(EngagementModel):
    """Duration of an absence."""

    amount: float
    unit: TimeUnit = TimeUnit.DAYS


class SyncItem(EngagementModel):
    """One absence request pushed through the bulk-replace sync."""

    id: str | None = None
    external_id: str
    approver: str | None = None
    absentee: str
    duration: Duration | None = None
    policy: PolicyIdentifier
    requestor_comment: str | None = None
    status: RequestStatus
    last_updated: str | None = None
    starts_from: SyncDate
    ends_at: SyncDate

    @property
    def identity_key(self) -> tuple[str, str]:
        """Date range of the item, matching the HR identity key."""
        return (self.starts_from.date[:10], self.ends_at.date[:10])

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the sync API.

        Nullable top-level fields are sent as explicit nulls; optional
        nested fields (half-day type, duration) are omitted when unset.
        """
        payload = self.model_dump(mode="json", exclude_none=True)
        for key in ("id", "approver", "requestor_comment", "last_updated"):
            payload.setdefault(key, None)
        return payload


class Balance(EngagementModel):
    """Leave balance figures for one user and policy."""

    total: float
    available: float
    taken: float
    unlimited: bool = False
    time_unit: TimeUnit = TimeUnit.DAYS


class BalanceItem(EngagementModel):
    """Balance sync payload item."""

    user_id: str
    policy: PolicyIdentifier
    balance: Balance


# =============================================================================
# Engine records
# =============================================================================


@dataclass(frozen=True)
class UserMapping:
    """Binding between an engagement user and an HR employee."""

    engagement_user_id: str
    hr_employee_id: int
    shared_ref: str


@dataclass
class CanonicalLeaveRecord:
    """Unified view of one logical leave event for one employee.

    The HR system assigns a request id while a leave is pending and a
    different absence id once it is approved; ``identity_key`` (the date
    range) is what ties the two together.
    """

    identity_key: tuple[str, str]
    external_id: str
    status: LeaveStatus
    half_day_start: bool = False
    half_day_end: bool = False
    comment: str | None = None
    policy_ref: str | None = None
    last_updated: str | None = None
    source_request_id: int | None = None
    source_absence_id: int | None = None
    duration_days: float | None = None

    @property
    def start_date(self) -> str:
        return self.identity_key[0]

    @property
    def end_date(self) -> str:
        return self.identity_key[1]


@dataclass
class SyncSession:
    """An open or finished bulk-replace sync session."""

    session_id: str
    state: SyncSessionState = SyncSessionState.STARTED
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    items_pushed: int = 0
    batches_pushed: int = 0

    @property
    def is_open(self) -> bool:
        return not self.state.is_terminal
