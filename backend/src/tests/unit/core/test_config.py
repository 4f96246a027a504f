"""Unit tests for Settings field validators."""

import pytest
from pydantic import ValidationError

from cas.core.config import Settings


class TestAdminEmails:
    def test_comma_separated_string(self) -> None:
        settings = Settings(ADMIN_EMAILS="Admin@Example.com, ops@example.com,,")
        assert settings.admin_emails == ["admin@example.com", "ops@example.com"]

    def test_blank_string_means_none(self) -> None:
        settings = Settings(ADMIN_EMAILS="  ")
        assert settings.admin_emails == []

    def test_list_is_normalised(self) -> None:
        settings = Settings(ADMIN_EMAILS=[" Root@Example.com "])
        assert settings.admin_emails == ["root@example.com"]

    def test_environment_variable(self, monkeypatch) -> None:
        monkeypatch.setenv("ADMIN_EMAILS", "a@example.com,b@example.com")
        assert Settings().admin_emails == ["a@example.com", "b@example.com"]


class TestValidators:
    def test_log_level_uppercased(self) -> None:
        assert Settings(CAS_LOG_LEVEL="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Log level must be one of"):
            Settings(CAS_LOG_LEVEL="verbose")

    def test_invalid_environment_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Environment must be one of"):
            Settings(CAS_ENVIRONMENT="qa")

    @pytest.mark.parametrize("field", ["CAS_STORE_TIMEOUT_SECONDS", "CAS_PERMISSION_CACHE_TTL"])
    def test_non_positive_durations_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError, match="must be greater than zero"):
            Settings(**{field: 0})

    def test_redis_enabled_follows_url(self) -> None:
        assert Settings(CAS_REDIS_URL=None).redis_enabled is False
        assert Settings(CAS_REDIS_URL="redis://localhost:6379/0").redis_enabled is True

    def test_relative_plugins_root_is_resolved(self) -> None:
        settings = Settings(CAS_PLUGINS_ROOT="plugins")
        assert settings.plugins_root.endswith("plugins")
        assert settings.plugins_root.startswith("/")
