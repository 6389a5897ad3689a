"""Sync Engine: orchestrates leave synchronization runs.

A full sync walks every mapped employee, unifies their HR leave into
canonical records, projects them into sync items, fires notify-capable
decision calls for newly decided items, and only then replaces the whole
downstream request set through one bulk sync session.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field

from leavebridge.config.settings import Settings, get_settings
from leavebridge.core.logging import LogContext
from leavebridge.sync.approvers import ApproverConfig, ApproverResolver, ManagerApproverResolver
from leavebridge.sync.balances import BalanceSynchronizer, BalanceSyncResult
from leavebridge.sync.inbound import InboundRequestHandler, InboundResult
from leavebridge.sync.mapping import MappingConfig, UserMappingDirectory
from leavebridge.sync.notifier import (
    NotificationOutcome,
    NotificationRecord,
    NotificationTrigger,
)
from leavebridge.sync.policies import PolicySynchronizer, PolicySyncResult
from leavebridge.sync.projector import ProjectorConfig, StatusProjector
from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.reconciler import ReconciliationResult
from leavebridge.sync.run_log import RunLog, RunLogEntry, get_run_log
from leavebridge.sync.session import SessionConfig, SyncSessionManager
from leavebridge.sync.types import SyncItem, UserMapping
from leavebridge.sync.unifier import LeaveRecordUnifier, UnifierConfig
from leavebridge.utils.exceptions import ApiError, SyncAlreadyRunningError, SyncSessionError

logger = structlog.get_logger()


# =============================================================================
# Configuration
# =============================================================================


class EngineConfig(BaseModel):
    """Configuration for the sync engine and its components."""

    mapping: MappingConfig = Field(default_factory=MappingConfig)
    unifier: UnifierConfig = Field(default_factory=UnifierConfig)
    projector: ProjectorConfig = Field(default_factory=ProjectorConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    approver: ApproverConfig = Field(default_factory=ApproverConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            mapping=MappingConfig(
                ttl_seconds=settings.mapping_cache_ttl_seconds,
                shared_ref_attribute=settings.shared_ref_attribute,
            ),
            unifier=UnifierConfig(rejection_reason_fields=settings.rejection_reason_fields),
            projector=ProjectorConfig(
                default_policy_external_id=settings.default_policy_external_id,
            ),
            session=SessionConfig(batch_size=settings.sync_batch_size),
            approver=ApproverConfig(
                default_approver_id=settings.default_approver_id,
                manager_attribute_names=settings.manager_attribute_names,
            ),
        )


# =============================================================================
# Results
# =============================================================================


@dataclass
class ErrorRecord:
    """One error collected during a run."""

    code: str
    message: str
    hr_employee_id: int | None = None
    external_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.hr_employee_id is not None:
            data["hr_employee_id"] = self.hr_employee_id
        if self.external_id is not None:
            data["external_id"] = self.external_id
        return data


def _record_employee_failure(
    result: "FullSyncResult | ApprovalCheckResult",
    code: str,
    error: Exception,
    mapping: UserMapping,
) -> None:
    """Count a per-employee failure; the run carries on with the next employee."""
    result.errors += 1
    result.error_details.append(
        ErrorRecord(code=code, message=str(error), hr_employee_id=mapping.hr_employee_id)
    )


def _notification_errors(outcome: NotificationOutcome, hr_employee_id: int) -> list[ErrorRecord]:
    return [
        ErrorRecord(
            code="notification_failed",
            message=action.error or "",
            hr_employee_id=hr_employee_id,
            external_id=action.external_id,
        )
        for action in outcome.actions
        if action.error
    ]


@dataclass
class FullSyncResult:
    """Result of a full absence sync."""

    run_id: UUID = field(default_factory=uuid4)
    status: str = "ok"
    synced: int = 0
    approved_count: int = 0
    rejected_count: int = 0
    errors: int = 0
    session_id: str | None = None
    employees: int = 0
    error_details: list[ErrorRecord] = field(default_factory=list)
    notifications: list[NotificationRecord] = field(default_factory=list)
    reconciliations: list[ReconciliationResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "ok"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": str(self.run_id),
            "status": self.status,
            "session_id": self.session_id,
            "synced": self.synced,
            "approved_count": self.approved_count,
            "rejected_count": self.rejected_count,
            "errors": self.errors,
            "employees": self.employees,
            "error_details": [e.to_dict() for e in self.error_details],
            "notifications": [n.to_dict() for n in self.notifications],
            "reconciliations": [r.to_dict() for r in self.reconciliations],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class ApprovalCheckResult:
    """Result of an approval check."""

    run_id: UUID = field(default_factory=uuid4)
    approved: int = 0
    rejected: int = 0
    skipped: int = 0
    errors: int = 0
    checked: int = 0
    still_pending: int = 0
    actions: list[NotificationRecord] = field(default_factory=list)
    reconciliations: list[ReconciliationResult] = field(default_factory=list)
    error_details: list[ErrorRecord] = field(default_factory=list)

    def add(self, outcome: NotificationOutcome) -> None:
        self.approved += outcome.approved
        self.rejected += outcome.rejected
        self.skipped += outcome.skipped
        self.errors += outcome.errors
        self.checked += outcome.checked
        self.still_pending += outcome.still_pending
        self.actions.extend(outcome.actions)
        self.reconciliations.extend(outcome.reconciliations)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": str(self.run_id),
            "status": "ok",
            "approved": self.approved,
            "rejected": self.rejected,
            "skipped": self.skipped,
            "errors": self.errors,
            "checked": self.checked,
            "still_pending": self.still_pending,
            "actions": [a.to_dict() for a in self.actions],
            "reconciliations": [r.to_dict() for r in self.reconciliations],
            "error_details": [e.to_dict() for e in self.error_details],
        }


@dataclass
class SyncAllResult:
    """Combined result of policies, balances and absences."""

    policies: PolicySyncResult | None = None
    balances: BalanceSyncResult | None = None
    absences: FullSyncResult | None = None
    step_errors: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        results: dict[str, Any] = {}
        for step, value in (
            ("policies", self.policies),
            ("balances", self.balances),
            ("absences", self.absences),
        ):
            if step in self.step_errors:
                results[step] = {"error": self.step_errors[step]}
            elif value is not None:
                results[step] = value.to_dict()
        return {
            "status": "ok",
            "timestamp": self.timestamp.isoformat(),
            "results": results,
        }


# =============================================================================
# Engine
# =============================================================================


class SyncEngine:
    """Runs full syncs, approval checks and the auxiliary syncs.

    Example:
        engine = SyncEngine(hr_client, engagement_client)
        result = await engine.run_full_sync()
        if result.status == "failed":
            print(result.error_details)
    """

    def __init__(
        self,
        hr_client: HRClient,
        engagement_client: EngagementClient,
        config: EngineConfig | None = None,
        mapping_directory: UserMappingDirectory | None = None,
        approver_resolver: ApproverResolver | None = None,
        run_log: RunLog | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._hr = hr_client
        self._engagement = engagement_client
        self.mapping_directory = mapping_directory or UserMappingDirectory(
            hr_client, engagement_client, self.config.mapping
        )
        self.unifier = LeaveRecordUnifier(self.config.unifier)
        self.sessions = SyncSessionManager(engagement_client, self.config.session)
        self.run_log = run_log if run_log is not None else get_run_log()
        self._approver_resolver = approver_resolver
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _new_trigger(self) -> NotificationTrigger:
        # Manager lookups are cached per run
        resolver = self._approver_resolver or ManagerApproverResolver(
            self._engagement, self.config.approver
        )
        return NotificationTrigger(self._engagement, approver_resolver=resolver)

    async def _mappings(self, mappings: Sequence[UserMapping] | None) -> Sequence[UserMapping]:
        if mappings is not None:
            return mappings
        return await self.mapping_directory.get_all_mappings()

    # -------------------------------------------------------------------------
    # Full sync
    # -------------------------------------------------------------------------

    async def run_full_sync(
        self, mappings: Sequence[UserMapping] | None = None
    ) -> FullSyncResult:
        """Run a full, notify-before-replace absence sync.

        Args:
            mappings: Mappings to sync, all current mappings if None

        Returns:
            FullSyncResult; status "failed" when the sync session failed

        Raises:
            SyncAlreadyRunningError: If this engine is already running one
        """
        if self._running:
            raise SyncAlreadyRunningError("A full sync is already running on this engine")

        self._running = True
        result = FullSyncResult()
        try:
            with LogContext(run_id=str(result.run_id)):
                await self._full_sync(result, mappings)
        finally:
            self._running = False
            result.finished_at = datetime.now(UTC)

        logger.info(
            "AUDIT: full_sync_completed",
            audit_event_type="sync.full_sync",
            run_id=str(result.run_id),
            status=result.status,
            session_id=result.session_id,
            synced=result.synced,
            approved=result.approved_count,
            rejected=result.rejected_count,
            errors=result.errors,
        )
        self.run_log.record(
            RunLogEntry(
                kind="full_sync",
                result=result.status,
                error=result.error_details[-1].message if result.status == "failed" else None,
                details={
                    "run_id": str(result.run_id),
                    "synced": result.synced,
                    "errors": result.errors,
                },
            )
        )
        return result

    async def _full_sync(
        self, result: FullSyncResult, mappings: Sequence[UserMapping] | None
    ) -> None:
        mappings = await self._mappings(mappings)
        result.employees = len(mappings)
        logger.info("Starting full sync", employees=len(mappings))

        try:
            policies = await self._engagement.get_absence_policies()
        except ApiError as e:
            logger.error("Could not load absence policies, aborting sync", error=str(e))
            result.status = "failed"
            result.errors += 1
            result.error_details.append(ErrorRecord(code="policy_fetch_failed", message=str(e)))
            return

        projector = StatusProjector.from_policies(policies, self.config.projector)
        trigger = self._new_trigger()
        items: list[SyncItem] = []

        for mapping in mappings:
            with LogContext(hr_employee_id=mapping.hr_employee_id):
                try:
                    requests = await self._hr.list_leave_requests(mapping.hr_employee_id)
                    absences = await self._hr.list_absences(mapping.hr_employee_id)
                except Exception as e:
                    logger.exception("Failed to fetch leave for employee")
                    _record_employee_failure(result, "upstream_fetch_failed", e, mapping)
                    continue

                try:
                    records = self.unifier.unify(requests, absences)
                    employee_items = projector.project_all(records, mapping.engagement_user_id)
                except Exception as e:
                    logger.exception("Failed to build sync items for employee")
                    _record_employee_failure(result, "employee_sync_failed", e, mapping)
                    continue

                try:
                    outcome = await trigger.notify(employee_items, mapping, absences)
                except Exception as e:
                    # Items are still pushed with their best-known status
                    logger.exception("Notification pass failed for employee")
                    _record_employee_failure(result, "employee_sync_failed", e, mapping)
                    outcome = NotificationOutcome()

                result.approved_count += outcome.approved
                result.rejected_count += outcome.rejected
                result.errors += outcome.errors
                result.notifications.extend(outcome.actions)
                result.reconciliations.extend(outcome.reconciliations)
                result.error_details.extend(
                    _notification_errors(outcome, mapping.hr_employee_id)
                )
                items.extend(employee_items)

                logger.debug(
                    "Employee leave collected",
                    records=len(records),
                    items=len(employee_items),
                )

        try:
            async with self.sessions.open() as session:
                result.session_id = session.session_id
                await self.sessions.push(items)
                await self.sessions.complete()
        except SyncSessionError as e:
            result.status = "failed"
            result.errors += 1
            result.session_id = e.session_id
            result.error_details.append(
                ErrorRecord(code=f"session_{e.stage}_failed", message=str(e))
            )
            return

        result.synced = len(items)

    # -------------------------------------------------------------------------
    # Approval check
    # -------------------------------------------------------------------------

    async def run_approval_check(
        self, mappings: Sequence[UserMapping] | None = None
    ) -> ApprovalCheckResult:
        """Propagate HR decisions as notifying approve/reject calls.

        Lighter than a full sync: no bulk session is opened.

        Args:
            mappings: Mappings to check, all current mappings if None

        Returns:
            ApprovalCheckResult
        """
        result = ApprovalCheckResult()
        trigger = self._new_trigger()

        with LogContext(run_id=str(result.run_id)):
            mappings = await self._mappings(mappings)
            logger.info("Starting approval check", employees=len(mappings))

            for mapping in mappings:
                with LogContext(hr_employee_id=mapping.hr_employee_id):
                    try:
                        absences = await self._hr.list_absences(mapping.hr_employee_id)
                        requests = await self._hr.list_leave_requests(mapping.hr_employee_id)
                    except Exception as e:
                        logger.exception("Failed to fetch leave for employee")
                        _record_employee_failure(result, "upstream_fetch_failed", e, mapping)
                        continue

                    try:
                        outcome = await trigger.check_requests(requests, absences, mapping)
                    except Exception as e:
                        logger.exception("Approval check failed for employee")
                        _record_employee_failure(result, "employee_sync_failed", e, mapping)
                        continue

                    result.add(outcome)
                    result.error_details.extend(
                        _notification_errors(outcome, mapping.hr_employee_id)
                    )

        logger.info(
            "AUDIT: approval_check_completed",
            audit_event_type="sync.approval_check",
            run_id=str(result.run_id),
            approved=result.approved,
            rejected=result.rejected,
            skipped=result.skipped,
            still_pending=result.still_pending,
            errors=result.errors,
        )
        self.run_log.record(
            RunLogEntry(
                kind="approval_check",
                result="ok",
                details={
                    "run_id": str(result.run_id),
                    "approved": result.approved,
                    "rejected": result.rejected,
                    "errors": result.errors,
                },
            )
        )
        return result

    # -------------------------------------------------------------------------
    # Policies, balances, everything
    # -------------------------------------------------------------------------

    async def sync_policies(
        self, mappings: Sequence[UserMapping] | None = None
    ) -> PolicySyncResult:
        synchronizer = PolicySynchronizer(
            self._hr,
            self._engagement,
            default_policy_external_id=self.config.projector.default_policy_external_id,
        )
        return await synchronizer.sync(await self._mappings(mappings))

    async def sync_balances(
        self, mappings: Sequence[UserMapping] | None = None
    ) -> BalanceSyncResult:
        synchronizer = BalanceSynchronizer(
            self._hr,
            self._engagement,
            default_policy_external_id=self.config.projector.default_policy_external_id,
            batch_size=self.config.session.batch_size,
        )
        return await synchronizer.sync(await self._mappings(mappings))

    async def run_all(self) -> SyncAllResult:
        """Run policies, balances, then absences.

        A failing step is recorded and the remaining steps still run.
        """
        result = SyncAllResult()
        mappings = await self._mappings(None)

        try:
            result.policies = await self.sync_policies(mappings)
        except Exception as e:
            logger.exception("Policy sync failed")
            result.step_errors["policies"] = str(e)

        try:
            result.balances = await self.sync_balances(mappings)
        except Exception as e:
            logger.exception("Balance sync failed")
            result.step_errors["balances"] = str(e)

        try:
            result.absences = await self.run_full_sync(mappings)
        except Exception as e:
            logger.exception("Absence sync failed")
            result.step_errors["absences"] = str(e)

        return result

    async def handle_inbound(self, payload: dict[str, Any]) -> InboundResult:
        """Handle an engagement-side absence request webhook."""
        handler = InboundRequestHandler(
            self._hr,
            self._engagement,
            self.mapping_directory,
            run_log=self.run_log,
        )
        return await handler.handle(payload)


# =============================================================================
# Factory Function
# =============================================================================


def create_sync_engine(
    hr_client: HRClient,
    engagement_client: EngagementClient,
    settings: Settings | None = None,
    approver_resolver: ApproverResolver | None = None,
    run_log: RunLog | None = None,
) -> SyncEngine:
    """Create a sync engine configured from settings.

    Args:
        hr_client: HR system client
        engagement_client: Engagement system client
        settings: Settings to configure from, the cached settings if None
        approver_resolver: Approver resolution, per-run manager lookup if None
        run_log: Run log, the process-wide one if None

    Returns:
        Configured SyncEngine instance.
    """
    settings = settings or get_settings()
    return SyncEngine(
        hr_client,
        engagement_client,
        config=EngineConfig.from_settings(settings),
        approver_resolver=approver_resolver,
        run_log=run_log,
    )
