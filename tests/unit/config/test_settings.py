"""Unit tests for application settings."""

import pytest
from pydantic import SecretStr, ValidationError

from leavebridge.config.settings import DEFAULT_MANAGER_ATTRIBUTES, Settings
from leavebridge.sync import EngineConfig
from leavebridge.utils.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    """Remove settings variables that could leak in from the environment."""
    for name in (
        "HR_API_KEY",
        "HR_BASE_URL",
        "ENGAGEMENT_CLIENT_ID",
        "ENGAGEMENT_CLIENT_SECRET",
        "ENGAGEMENT_BASE_URL",
        "ENGAGEMENT_ORGANIZATION",
        "SYNC_BATCH_SIZE",
        "MANAGER_ATTRIBUTE_NAMES",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.sync_batch_size == 100
        assert settings.mapping_cache_ttl_seconds == 300
        assert settings.shared_ref_attribute == "exthrref"
        assert settings.default_policy_external_id == "annual_leave"
        assert settings.manager_attribute_names == DEFAULT_MANAGER_ATTRIBUTES
        assert settings.hr_rate_limit_per_minute == 60

    def test_strips_trailing_slash(self, test_settings: Settings):
        assert test_settings.engagement_base_url == "https://engage.example.com"

    @pytest.mark.parametrize("batch_size", [0, 1001])
    def test_batch_size_bounds(self, clean_env, batch_size: int):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, sync_batch_size=batch_size)


class TestEnvironment:
    """Tests for loading from environment variables."""

    def test_loads_from_env(self, clean_env):
        """Test settings are read case-insensitively from the environment."""
        clean_env.setenv("HR_API_KEY", "env-key")
        clean_env.setenv("SYNC_BATCH_SIZE", "25")
        clean_env.setenv("MANAGER_ATTRIBUTE_NAMES", '["boss"]')

        settings = Settings(_env_file=None)

        assert settings.hr_api_key.get_secret_value() == "env-key"
        assert settings.sync_batch_size == 25
        assert settings.manager_attribute_names == ["boss"]

    def test_secrets_are_masked(self, test_settings: Settings):
        assert "test-secret" not in repr(test_settings)


class TestValidation:
    """Tests for required credential validation."""

    def test_complete_settings_are_valid(self, test_settings: Settings):
        assert test_settings.validate_required() == []
        test_settings.require_valid()

    def test_reports_every_missing_value(self, clean_env):
        errors = Settings(_env_file=None).validate_required()

        assert errors == [
            "HR_API_KEY is required",
            "ENGAGEMENT_CLIENT_ID is required",
            "ENGAGEMENT_BASE_URL is required",
            "ENGAGEMENT_ORGANIZATION is required",
            "ENGAGEMENT_CLIENT_SECRET is required",
        ]

    def test_empty_secret_is_missing(self, test_settings: Settings):
        settings = test_settings.model_copy(update={"hr_api_key": SecretStr("")})

        with pytest.raises(ConfigurationError, match="HR_API_KEY"):
            settings.require_valid()


class TestEngineConfig:
    def test_from_settings(self, test_settings: Settings):
        """Test engine components pick up their settings."""
        settings = test_settings.model_copy(
            update={
                "sync_batch_size": 10,
                "mapping_cache_ttl_seconds": 60,
                "shared_ref_attribute": "payroll_ref",
                "default_approver_id": "hr-admin",
                "rejection_reason_fields": ["why"],
            }
        )

        config = EngineConfig.from_settings(settings)

        assert config.session.batch_size == 10
        assert config.mapping.ttl_seconds == 60
        assert config.mapping.shared_ref_attribute == "payroll_ref"
        assert config.approver.default_approver_id == "hr-admin"
        assert config.unifier.rejection_reason_fields == ["why"]
