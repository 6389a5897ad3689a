"""HTTP clients for the HR system and the engagement system.

Both clients implement the capability protocols in
``leavebridge.sync.protocols``.
"""

from leavebridge.clients.base import BaseApiClient, describe_status
from leavebridge.clients.engagement import EngagementSystemClient, create_engagement_client
from leavebridge.clients.hr import HRSystemClient, create_hr_client
from leavebridge.clients.rate_limit import RateLimitConfig, TokenBucket

__all__ = [
    "BaseApiClient",
    "EngagementSystemClient",
    "HRSystemClient",
    "RateLimitConfig",
    "TokenBucket",
    "create_engagement_client",
    "create_hr_client",
    "describe_status",
]
