"""Inbound absence requests raised on the engagement side.

Employees can request leave in the engagement system. Its webhook reports
the new request; the handler creates the matching HR leave request, links
the two by external id, and acknowledges the request downstream. The HR
system then runs its own approval flow, which the notification trigger
propagates back later.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

from leavebridge.sync.mapping import UserMappingDirectory
from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.run_log import RunLog, RunLogEntry
from leavebridge.sync.types import HalfDayPosition
from leavebridge.utils.exceptions import ApiError, MappingError, SyncError

logger = structlog.get_logger()

CREATED_EVENT_TYPES = frozenset(
    {
        "hr.absence-request.created",
        "absence_request.created",
        "absence_request_created",
    }
)
CANCELLED_EVENT_TYPES = frozenset(
    {
        "hr.absence-request.cancelled",
        "absence_request.cancelled",
        "absence_request_cancelled",
    }
)


# =============================================================================
# Payloads
# =============================================================================


class WebhookDate(BaseModel):
    """Date boundary of an inbound absence request."""

    model_config = ConfigDict(extra="allow")

    date: str
    type: HalfDayPosition | None = None

    @property
    def day(self) -> str:
        """The calendar day as ``YYYY-MM-DD``."""
        return date.fromisoformat(self.date.strip()[:10]).isoformat()


class AbsenceCreatedData(BaseModel):
    """Data of an absence-request created event."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    absence_request_id: str
    user_id: str
    starts_from: WebhookDate
    ends_at: WebhookDate
    policy_id: str | None = None
    policy_external_id: str | None = None
    requestor_comment: str | None = None


class AbsenceCancelledData(BaseModel):
    """Data of an absence-request cancelled event."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    absence_request_id: str | None = None
    user_id: str | None = None
    external_id: str | None = None


def event_type_of(payload: dict[str, Any]) -> str:
    return str(payload.get("event_type") or payload.get("type") or "")


def event_data_of(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


def parse_leave_reason_id(policy_external_id: str | None) -> int | None:
    """Leave reason id from a policy external id, None for non-numeric ids."""
    if not policy_external_id:
        return None
    try:
        return int(policy_external_id.strip())
    except ValueError:
        return None


# =============================================================================
# Results
# =============================================================================


class InboundStatus(str, Enum):
    """Status of inbound event handling."""

    SUCCESS = "ok"
    IGNORED = "ignored"
    FAILED = "failed"


class InboundAction(str, Enum):
    """Action taken for an inbound event."""

    LEAVE_REQUEST_CREATED = "leave_request_created"
    ABSENCE_CANCELLED = "absence_cancelled"
    NO_ACTION = "no_action"


@dataclass
class InboundResult:
    """Result of handling one inbound event."""

    event_type: str
    status: InboundStatus = InboundStatus.SUCCESS
    action: InboundAction = InboundAction.NO_ACTION
    absence_request_id: str | None = None
    hr_employee_id: int | None = None
    hr_leave_request_id: int | None = None
    hr_absence_id: int | None = None
    error_message: str | None = None
    processed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event_type": self.event_type,
            "status": self.status.value,
            "action": self.action.value,
            "absence_request_id": self.absence_request_id,
            "hr_employee_id": self.hr_employee_id,
            "hr_leave_request_id": self.hr_leave_request_id,
            "hr_absence_id": self.hr_absence_id,
            "error_message": self.error_message,
            "processed_at": self.processed_at.isoformat(),
        }


# =============================================================================
# Handler
# =============================================================================


class InboundRequestHandler:
    """Routes engagement-side absence request events into the HR system.

    Example:
        handler = InboundRequestHandler(hr_client, engagement_client, directory)
        result = await handler.handle(payload)
        if result.status == InboundStatus.FAILED:
            ...
    """

    def __init__(
        self,
        hr_client: HRClient,
        engagement_client: EngagementClient,
        mapping_directory: UserMappingDirectory,
        run_log: RunLog | None = None,
    ) -> None:
        self._hr = hr_client
        self._engagement = engagement_client
        self._directory = mapping_directory
        self._run_log = run_log

    async def handle(self, payload: dict[str, Any]) -> InboundResult:
        """Handle one webhook payload.

        Args:
            payload: Raw webhook body

        Returns:
            InboundResult; FAILED results already set the downstream request
            to ERROR where possible
        """
        event_type = event_type_of(payload)
        data = event_data_of(payload)
        raw_request_id = data.get("absence_request_id")
        result = InboundResult(
            event_type=event_type,
            absence_request_id=str(raw_request_id) if raw_request_id is not None else None,
        )

        logger.info(
            "Processing inbound event",
            event_type=event_type,
            absence_request_id=result.absence_request_id,
        )

        try:
            if event_type in CREATED_EVENT_TYPES:
                await self._handle_created(AbsenceCreatedData.model_validate(data), result)
            elif event_type in CANCELLED_EVENT_TYPES:
                await self._handle_cancelled(AbsenceCancelledData.model_validate(data), result)
            else:
                result.status = InboundStatus.IGNORED
                logger.info("Ignoring unknown inbound event type", event_type=event_type)
        except Exception as e:
            result.status = InboundStatus.FAILED
            result.error_message = str(e)
            logger.exception(
                "Failed to process inbound event",
                event_type=event_type,
                absence_request_id=result.absence_request_id,
            )
            await self._mark_error(result.absence_request_id)

        logger.info(
            "AUDIT: inbound_event_processed",
            audit_event_type="inbound.event_processed",
            event_type=event_type,
            absence_request_id=result.absence_request_id,
            status=result.status.value,
            action=result.action.value,
            hr_leave_request_id=result.hr_leave_request_id,
        )

        if self._run_log is not None:
            outcome = result.status.value
            if result.status is InboundStatus.IGNORED:
                outcome = f'ignored: unknown event_type "{event_type}"'
            self._run_log.record(
                RunLogEntry(
                    kind="webhook",
                    method="POST",
                    payload=payload,
                    result=None if result.status is InboundStatus.FAILED else outcome,
                    error=result.error_message,
                )
            )

        return result

    async def _handle_created(self, data: AbsenceCreatedData, result: InboundResult) -> None:
        employee_id = await self._directory.get_hr_employee_id(data.user_id)
        if employee_id is None:
            raise MappingError(f"No HR employee mapping for engagement user {data.user_id}")
        result.hr_employee_id = employee_id

        leave_request = await self._hr.create_leave_request(
            employee_id,
            data.starts_from.day,
            data.ends_at.day,
            half_start=data.starts_from.type == HalfDayPosition.SECOND_HALF,
            half_end=data.ends_at.type == HalfDayPosition.FIRST_HALF,
            notes=data.requestor_comment or None,
            leave_reason_id=parse_leave_reason_id(data.policy_external_id),
        )
        result.hr_leave_request_id = leave_request.id
        logger.info(
            "Created HR leave request",
            hr_leave_request_id=leave_request.id,
            hr_employee_id=employee_id,
            absence_request_id=data.absence_request_id,
        )

        await self._engagement.patch_external_id(data.absence_request_id, str(leave_request.id))

        # Acknowledge downstream; the HR system runs its own approval flow
        await self._engagement.approve(
            data.user_id, {"absence_request_id": data.absence_request_id}
        )
        result.action = InboundAction.LEAVE_REQUEST_CREATED

    async def _handle_cancelled(self, data: AbsenceCancelledData, result: InboundResult) -> None:
        if not data.external_id:
            logger.warning(
                "No external id on cancelled absence request, nothing to cancel",
                absence_request_id=data.absence_request_id,
            )
            return

        try:
            absence_id = int(data.external_id.strip())
        except ValueError:
            raise SyncError(f"Invalid HR absence id: {data.external_id}") from None

        await self._hr.cancel_absence(absence_id)
        result.hr_absence_id = absence_id
        result.action = InboundAction.ABSENCE_CANCELLED
        logger.info(
            "Cancelled HR absence",
            hr_absence_id=absence_id,
            absence_request_id=data.absence_request_id,
        )

    async def _mark_error(self, absence_request_id: str | None) -> None:
        if not absence_request_id:
            return
        try:
            await self._engagement.set_request_error({"absence_request_id": absence_request_id})
        except ApiError as e:
            logger.error(
                "Failed to set request error state",
                absence_request_id=absence_request_id,
                error=str(e),
            )
