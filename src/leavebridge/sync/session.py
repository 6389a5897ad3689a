"""Sync Session Manager.

Wraps the engagement system's bulk-replace lifecycle (start, push batches,
complete or cancel). Completing a session replaces every downstream
request with exactly the pushed set, so a session must either complete
with everything pushed or be cancelled.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import NoReturn

import structlog
from pydantic import BaseModel, Field

from leavebridge.sync.protocols import EngagementClient
from leavebridge.sync.types import SyncItem, SyncSession, SyncSessionState
from leavebridge.utils.exceptions import (
    ApiError,
    InvalidSessionTransitionError,
    SessionAlreadyOpenError,
    SyncSessionError,
)

logger = structlog.get_logger()

_TRANSITIONS: dict[SyncSessionState, set[SyncSessionState]] = {
    SyncSessionState.STARTED: {
        SyncSessionState.PUSHING,
        SyncSessionState.COMPLETED,
        SyncSessionState.CANCELLED,
        SyncSessionState.FAILED,
    },
    SyncSessionState.PUSHING: {
        SyncSessionState.PUSHING,
        SyncSessionState.COMPLETED,
        SyncSessionState.CANCELLED,
        SyncSessionState.FAILED,
    },
}


class SessionConfig(BaseModel):
    """Configuration for bulk sync sessions."""

    batch_size: int = Field(default=100, ge=1, le=1000)


def chunked(items: Sequence[SyncItem], size: int) -> list[list[SyncItem]]:
    """Split items into consecutive batches of at most ``size``."""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class SyncSessionManager:
    """Owns at most one open bulk sync session at a time.

    Example:
        async with manager.open() as session:
            await manager.push(items)
            await manager.complete()
    """

    def __init__(
        self,
        engagement_client: EngagementClient,
        config: SessionConfig | None = None,
    ) -> None:
        self.config = config or SessionConfig()
        self._engagement = engagement_client
        self._session: SyncSession | None = None

    @property
    def session(self) -> SyncSession | None:
        """The current (or last) session."""
        return self._session

    @property
    def has_open_session(self) -> bool:
        return self._session is not None and self._session.is_open

    def _transition(self, new_state: SyncSessionState) -> None:
        session = self._require_session()
        allowed = _TRANSITIONS.get(session.state, set())
        if new_state not in allowed:
            raise InvalidSessionTransitionError(
                f"Cannot move sync session {session.session_id} "
                f"from {session.state.value} to {new_state.value}"
            )
        session.state = new_state
        if new_state.is_terminal:
            session.finished_at = datetime.now(UTC)

    def _require_session(self) -> SyncSession:
        if self._session is None:
            raise InvalidSessionTransitionError("No sync session has been started")
        return self._session

    async def start(self) -> SyncSession:
        """Open a new session.

        Raises:
            SessionAlreadyOpenError: If a session is already open
            SyncSessionError: If the engagement system rejects the start
        """
        if self.has_open_session:
            raise SessionAlreadyOpenError(
                f"Sync session {self._session.session_id} is still open"
            )

        try:
            session_id = await self._engagement.start_sync()
        except ApiError as e:
            logger.error("Failed to start sync session", error=str(e))
            raise SyncSessionError(str(e), stage="start") from e

        self._session = SyncSession(session_id=session_id)
        logger.info("Sync session started", session_id=session_id)
        return self._session

    async def push(self, items: Sequence[SyncItem]) -> int:
        """Push items in batches of the configured size.

        Returns:
            Number of batches sent

        Raises:
            SyncSessionError: If a batch is rejected; the session is
                cancelled and marked failed
        """
        session = self._require_session()
        self._transition(SyncSessionState.PUSHING)

        batches = chunked(items, self.config.batch_size)
        for index, batch in enumerate(batches, start=1):
            try:
                await self._engagement.push_sync_batch(session.session_id, batch)
            except ApiError as e:
                await self._fail("push", e)
            session.items_pushed += len(batch)
            session.batches_pushed += 1
            logger.debug(
                "Pushed sync batch",
                session_id=session.session_id,
                batch=index,
                batches=len(batches),
                batch_size=len(batch),
            )

        return len(batches)

    async def complete(self) -> SyncSession:
        """Finalize the session; downstream becomes exactly the pushed items."""
        session = self._require_session()
        if not session.is_open:
            raise InvalidSessionTransitionError(
                f"Sync session {session.session_id} is already {session.state.value}"
            )

        try:
            await self._engagement.complete_sync(session.session_id)
        except ApiError as e:
            await self._fail("complete", e)

        self._transition(SyncSessionState.COMPLETED)
        logger.info(
            "Sync session completed",
            session_id=session.session_id,
            items_pushed=session.items_pushed,
            batches_pushed=session.batches_pushed,
        )
        return session

    async def cancel(self) -> None:
        """Cancel the open session, best effort. No-op without one."""
        if not self.has_open_session:
            return

        session = self._session
        try:
            await self._engagement.cancel_sync(session.session_id)
        except ApiError as e:
            logger.warning(
                "Failed to cancel sync session",
                session_id=session.session_id,
                error=str(e),
            )
        self._transition(SyncSessionState.CANCELLED)
        logger.info("Sync session cancelled", session_id=session.session_id)

    async def _fail(self, stage: str, error: ApiError) -> NoReturn:
        session = self._require_session()
        logger.error(
            "Sync session call failed",
            session_id=session.session_id,
            stage=stage,
            error=str(error),
        )
        try:
            await self._engagement.cancel_sync(session.session_id)
        except ApiError as e:
            logger.warning(
                "Failed to cancel sync session",
                session_id=session.session_id,
                error=str(e),
            )
        self._transition(SyncSessionState.FAILED)
        raise SyncSessionError(str(error), stage=stage, session_id=session.session_id) from error

    @asynccontextmanager
    async def open(self) -> AsyncIterator[SyncSession]:
        """Start a session that is cancelled unless completed in the block."""
        session = await self.start()
        try:
            yield session
        except BaseException:
            await self.cancel()
            raise
        if session.is_open:
            logger.warning("Sync session left open, cancelling", session_id=session.session_id)
            await self.cancel()
