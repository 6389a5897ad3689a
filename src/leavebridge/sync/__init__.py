"""Leave synchronization engine between an HR system and an engagement system.

This module provides:
- UserMappingDirectory: TTL-cached engagement user <-> HR employee mappings
- LeaveRecordUnifier: Merges HR leave requests and absences into canonical records
- StatusProjector: Projects canonical records into engagement sync items
- NotificationTrigger: Issues notifying approve/reject calls before bulk syncs
- SyncSessionManager: Bulk-replace sync session lifecycle
- IdentityReconciler: Moves downstream requests from request ids to absence ids
- SyncEngine: Orchestrates full syncs, approval checks, policies and balances

Example usage:
    from leavebridge.sync import create_sync_engine

    engine = create_sync_engine(hr_client, engagement_client)

    # Notify decisions, then replace downstream state
    result = await engine.run_full_sync()

    # Lightweight polling for fresh HR decisions
    check = await engine.run_approval_check()
"""

from leavebridge.sync.approvers import (
    ApproverConfig,
    ApproverResolver,
    ManagerApproverResolver,
    StaticApproverResolver,
)
from leavebridge.sync.balances import BalanceSynchronizer, BalanceSyncResult, compute_balance
from leavebridge.sync.engine import (
    ApprovalCheckResult,
    EngineConfig,
    ErrorRecord,
    FullSyncResult,
    SyncAllResult,
    SyncEngine,
    create_sync_engine,
)
from leavebridge.sync.inbound import (
    InboundAction,
    InboundRequestHandler,
    InboundResult,
    InboundStatus,
)
from leavebridge.sync.mapping import MappingConfig, UserMappingDirectory
from leavebridge.sync.notifier import (
    NotificationAction,
    NotificationOutcome,
    NotificationRecord,
    NotificationTrigger,
)
from leavebridge.sync.policies import PolicySynchronizer, PolicySyncResult
from leavebridge.sync.projector import ProjectorConfig, StatusProjector
from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.reconciler import (
    IdentityReconciler,
    ReconciliationOutcome,
    ReconciliationResult,
)
from leavebridge.sync.run_log import RunLog, RunLogEntry, get_run_log
from leavebridge.sync.session import SessionConfig, SyncSessionManager
from leavebridge.sync.types import (
    CanonicalLeaveRecord,
    Decision,
    LeaveStatus,
    SyncItem,
    SyncSession,
    SyncSessionState,
    UserMapping,
)
from leavebridge.sync.unifier import (
    LeaveRecordUnifier,
    RejectionReasonExtractor,
    UnifierConfig,
    parse_decision,
)

__all__ = [
    # Approvers
    "ApproverConfig",
    "ApproverResolver",
    "ManagerApproverResolver",
    "StaticApproverResolver",
    # Balances and policies
    "BalanceSynchronizer",
    "BalanceSyncResult",
    "compute_balance",
    "PolicySynchronizer",
    "PolicySyncResult",
    # Engine
    "ApprovalCheckResult",
    "EngineConfig",
    "ErrorRecord",
    "FullSyncResult",
    "SyncAllResult",
    "SyncEngine",
    "create_sync_engine",
    # Inbound
    "InboundAction",
    "InboundRequestHandler",
    "InboundResult",
    "InboundStatus",
    # Mapping
    "MappingConfig",
    "UserMappingDirectory",
    # Notifications
    "NotificationAction",
    "NotificationOutcome",
    "NotificationRecord",
    "NotificationTrigger",
    # Projection and unification
    "LeaveRecordUnifier",
    "ProjectorConfig",
    "RejectionReasonExtractor",
    "StatusProjector",
    "UnifierConfig",
    "parse_decision",
    # Protocols
    "EngagementClient",
    "HRClient",
    # Reconciliation
    "IdentityReconciler",
    "ReconciliationOutcome",
    "ReconciliationResult",
    # Run log
    "RunLog",
    "RunLogEntry",
    "get_run_log",
    # Sessions
    "SessionConfig",
    "SyncSessionManager",
    # Types
    "CanonicalLeaveRecord",
    "Decision",
    "LeaveStatus",
    "SyncItem",
    "SyncSession",
    "SyncSessionState",
    "UserMapping",
]
