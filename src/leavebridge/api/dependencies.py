"""FastAPI dependencies for API endpoints.

Clients and the engine are created lazily from ``app.state.settings`` on
first use and kept on ``app.state``. Tests override ``get_service_clients``
or ``get_sync_engine`` with in-memory fakes.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from leavebridge.clients import create_engagement_client, create_hr_client
from leavebridge.config.settings import Settings
from leavebridge.sync import SyncEngine, create_sync_engine
from leavebridge.sync.protocols import EngagementClient, HRClient
from leavebridge.sync.run_log import RunLog, get_run_log

__all__ = [
    "ServiceClients",
    "get_app_settings",
    "get_run_log_dependency",
    "get_service_clients",
    "get_sync_engine",
]


@dataclass
class ServiceClients:
    """The two upstream clients shared by all requests."""

    hr: HRClient
    engagement: EngagementClient


def get_app_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return request.app.state.settings


def get_service_clients(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ServiceClients:
    """Get the upstream clients, creating them on first use.

    Raises:
        ConfigurationError: If credentials are missing
    """
    clients = getattr(request.app.state, "service_clients", None)
    if clients is None:
        settings.require_valid()
        clients = ServiceClients(
            hr=create_hr_client(settings),
            engagement=create_engagement_client(settings),
        )
        request.app.state.service_clients = clients
    return clients


def get_sync_engine(
    request: Request,
    clients: Annotated[ServiceClients, Depends(get_service_clients)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> SyncEngine:
    """Get the sync engine, creating it on first use.

    One engine per process, so its mapping cache and running-sync guard
    are shared across requests.
    """
    engine = getattr(request.app.state, "sync_engine", None)
    if engine is None:
        engine = create_sync_engine(clients.hr, clients.engagement, settings=settings)
        request.app.state.sync_engine = engine
    return engine


def get_run_log_dependency() -> RunLog:
    """Get the process-wide run log."""
    return get_run_log()
