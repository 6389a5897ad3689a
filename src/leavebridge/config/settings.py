"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from leavebridge.utils.exceptions import ConfigurationError

DEFAULT_REJECTION_REASON_FIELDS = [
    "rejection_reason",
    "decline_reason",
    "denial_reason",
    "reason",
    "manager_notes",
    "approver_notes",
    "response_notes",
    "comments",
]

DEFAULT_MANAGER_ATTRIBUTES = ["manager", "line_manager", "supervisor"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # HR system (leave system of record)
    hr_api_key: SecretStr | None = None
    hr_base_url: str = "https://api.breathehr.com/v1"
    hr_rate_limit_per_minute: int = Field(default=60, ge=1)

    # Engagement system (OAuth2 client credentials)
    engagement_client_id: str | None = None
    engagement_client_secret: SecretStr | None = None
    engagement_base_url: str | None = None
    engagement_organization: str | None = None
    engagement_webhook_secret: SecretStr | None = None

    # Sync behaviour
    sync_batch_size: int = Field(default=100, ge=1, le=1000)
    mapping_cache_ttl_seconds: int = Field(default=300, ge=0)
    shared_ref_attribute: str = "exthrref"
    default_policy_external_id: str = "annual_leave"
    default_approver_id: str | None = None
    manager_attribute_names: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MANAGER_ATTRIBUTES)
    )
    rejection_reason_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REJECTION_REASON_FIELDS)
    )

    # Application Configuration
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("engagement_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.rstrip("/")

    def validate_required(self) -> list[str]:
        """Validate that credentials for both systems are present.

        Returns:
            Empty list if valid, otherwise list of error messages.
        """
        errors = []

        if self.hr_api_key is None or not self.hr_api_key.get_secret_value():
            errors.append("HR_API_KEY is required")

        required = {
            "ENGAGEMENT_CLIENT_ID": self.engagement_client_id,
            "ENGAGEMENT_BASE_URL": self.engagement_base_url,
            "ENGAGEMENT_ORGANIZATION": self.engagement_organization,
        }
        for name, value in required.items():
            if not value:
                errors.append(f"{name} is required")

        secret = self.engagement_client_secret
        if secret is None or not secret.get_secret_value():
            errors.append("ENGAGEMENT_CLIENT_SECRET is required")

        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError if any required setting is missing."""
        errors = self.validate_required()
        if errors:
            raise ConfigurationError("; ".join(errors))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
