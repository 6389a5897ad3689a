"""Leave Record Unifier.

The HR system keeps leave in two collections: leave requests (pending or
decided, keyed by request id) and absences (materialized approved leave,
keyed by absence id). The same logical leave appears in both once it is
approved. The unifier merges them into one canonical record per date
range, so downstream never sees the same leave twice.
"""

from collections.abc import Callable, Sequence

import structlog
from pydantic import BaseModel, Field

from leavebridge.config.settings import DEFAULT_REJECTION_REASON_FIELDS
from leavebridge.sync.types import (
    CanonicalLeaveRecord,
    Decision,
    HRAbsence,
    HRLeaveRequest,
    LeaveStatus,
)

logger = structlog.get_logger()

_APPROVED_STATUSES = {"approved"}
_APPROVED_ACTIONS = {"approve", "approved"}
_REJECTED_STATUSES = {"rejected", "declined", "denied"}
_REJECTED_ACTIONS = {"reject", "decline", "declined", "denied"}
_CANCELLED_STATUSES = {"cancelled", "canceled"}
_CANCELLED_ACTIONS = {"cancel"}
_PENDING_STATUSES = {"", "pending", "requested"}


def parse_decision(status: str | None, action: str | None) -> Decision:
    """Derive a decision from an HR request's status and action strings.

    Args:
        status: Upstream status, any case
        action: Upstream action, any case

    Returns:
        Parsed decision, UNKNOWN if nothing matches
    """
    status_value = (status or "").strip().lower()
    action_value = (action or "").strip().lower()

    if status_value in _APPROVED_STATUSES or action_value in _APPROVED_ACTIONS:
        return Decision.APPROVED
    if status_value in _REJECTED_STATUSES or action_value in _REJECTED_ACTIONS:
        return Decision.REJECTED
    if status_value in _CANCELLED_STATUSES or action_value in _CANCELLED_ACTIONS:
        return Decision.CANCELLED
    if status_value in _PENDING_STATUSES:
        return Decision.PENDING
    return Decision.UNKNOWN


def is_leave_request(request: HRLeaveRequest) -> bool:
    """Check if a request asks for leave (not for cancelling one).

    Requests normally carry action ``request``; some payloads carry the
    decision verb in ``action`` instead, which still denotes a leave request.
    """
    action = (request.action or "").strip().lower()
    return action not in _CANCELLED_ACTIONS


# =============================================================================
# Rejection reasons
# =============================================================================

ReasonExtractor = Callable[[HRLeaveRequest], str | None]


def field_extractor(field_name: str) -> ReasonExtractor:
    """Build an extractor reading one (possibly undeclared) request field."""

    def extract(request: HRLeaveRequest) -> str | None:
        value = request.field_value(field_name)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    extract.__name__ = f"extract_{field_name}"
    return extract


class RejectionReasonExtractor:
    """Ordered chain of extractors; the first non-empty result wins.

    The HR API does not document where a rejection reason lives, so the
    chain probes a configurable list of candidate fields.
    """

    def __init__(self, extractors: Sequence[ReasonExtractor]) -> None:
        self.extractors = list(extractors)

    @classmethod
    def from_fields(cls, field_names: Sequence[str]) -> "RejectionReasonExtractor":
        return cls([field_extractor(name) for name in field_names])

    def extract(self, request: HRLeaveRequest) -> str | None:
        for extractor in self.extractors:
            reason = extractor(request)
            if reason:
                return reason
        return None


# =============================================================================
# Unifier
# =============================================================================


class UnifierConfig(BaseModel):
    """Configuration for the leave record unifier."""

    rejection_reason_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REJECTION_REASON_FIELDS)
    )


def _comment_with_reason(notes: str | None, reason: str | None) -> str | None:
    if not reason:
        return notes
    annotation = f"Rejection reason: {reason}"
    return f"{notes}\n{annotation}" if notes else annotation


class LeaveRecordUnifier:
    """Merges HR leave requests and absences into canonical records.

    Example:
        unifier = LeaveRecordUnifier()
        records = unifier.unify(requests, absences)
    """

    def __init__(
        self,
        config: UnifierConfig | None = None,
        reason_extractor: RejectionReasonExtractor | None = None,
    ) -> None:
        self.config = config or UnifierConfig()
        self.reason_extractor = reason_extractor or RejectionReasonExtractor.from_fields(
            self.config.rejection_reason_fields
        )

    def unify(
        self,
        requests: Sequence[HRLeaveRequest],
        absences: Sequence[HRAbsence],
    ) -> list[CanonicalLeaveRecord]:
        """Produce one canonical record per distinct date range.

        Args:
            requests: The employee's leave requests, in upstream order
            absences: The employee's absences, in upstream order

        Returns:
            Records ordered by identity key
        """
        requests_by_key: dict[tuple[str, str], HRLeaveRequest] = {}
        for request in requests:
            if not is_leave_request(request):
                continue
            key = request.identity_key
            if key in requests_by_key:
                logger.warning(
                    "Duplicate leave request date range, keeping first",
                    identity_key=key,
                    kept_request_id=requests_by_key[key].id,
                    dropped_request_id=request.id,
                )
                continue
            requests_by_key[key] = request

        records: dict[tuple[str, str], CanonicalLeaveRecord] = {}
        consumed: set[tuple[str, str]] = set()

        for absence in absences:
            if absence.is_cancelled:
                continue
            key = absence.identity_key
            if key in records:
                logger.warning(
                    "Duplicate absence date range, keeping first",
                    identity_key=key,
                    kept_external_id=records[key].external_id,
                    dropped_absence_id=absence.id,
                )
                continue

            request = requests_by_key.get(key)
            if request is not None:
                consumed.add(key)
            records[key] = self._from_absence(absence, request)

        for absence in absences:
            if not absence.is_cancelled:
                continue
            key = absence.identity_key
            if key in records:
                logger.debug(
                    "Cancelled absence shadowed by active record",
                    identity_key=key,
                    absence_id=absence.id,
                )
                continue
            request = requests_by_key.get(key)
            if request is not None:
                if parse_decision(request.status, request.action) is Decision.PENDING:
                    logger.debug(
                        "Cancelled absence shadowed by pending request",
                        identity_key=key,
                        absence_id=absence.id,
                        request_id=request.id,
                    )
                    continue
                # The decided request ended in this cancellation
                consumed.add(key)
            records[key] = self._from_absence(absence, None, status=LeaveStatus.CANCELLED)

        for key, request in requests_by_key.items():
            if key in consumed:
                continue
            record = self._from_request(request)
            if record is not None:
                records[key] = record

        return [records[key] for key in sorted(records)]

    def _from_absence(
        self,
        absence: HRAbsence,
        request: HRLeaveRequest | None,
        status: LeaveStatus = LeaveStatus.APPROVED,
    ) -> CanonicalLeaveRecord:
        reason_id = absence.reason_id
        return CanonicalLeaveRecord(
            identity_key=absence.identity_key,
            external_id=str(request.id) if request is not None else str(absence.id),
            status=status,
            half_day_start=absence.half_start,
            half_day_end=absence.half_end,
            comment=absence.notes,
            policy_ref=str(reason_id) if reason_id is not None else None,
            last_updated=absence.updated_at,
            source_request_id=request.id if request is not None else None,
            source_absence_id=absence.id,
            duration_days=absence.deducted,
        )

    def _from_request(self, request: HRLeaveRequest) -> CanonicalLeaveRecord | None:
        decision = parse_decision(request.status, request.action)
        comment = request.notes

        if decision is Decision.PENDING:
            status = LeaveStatus.PENDING
        elif decision is Decision.REJECTED:
            status = LeaveStatus.REJECTED
            comment = _comment_with_reason(request.notes, self.reason_extractor.extract(request))
        elif decision is Decision.APPROVED:
            # Decided upstream but the absence is not materialized yet
            status = LeaveStatus.APPROVED
        else:
            logger.debug(
                "Dropping leave request without a syncable decision",
                request_id=request.id,
                status=request.status,
                decision=decision.value,
            )
            return None

        return CanonicalLeaveRecord(
            identity_key=request.identity_key,
            external_id=str(request.id),
            status=status,
            half_day_start=request.half_start,
            half_day_end=request.half_end,
            comment=comment,
            policy_ref=str(request.leave_reason_id) if request.leave_reason_id else None,
            last_updated=request.updated_at,
            source_request_id=request.id,
        )
