"""Tests for configuration validation with Pydantic"""

import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from payroll_client.domain.config import (
    ApiConfig,
    AppConfig,
    AuthConfig,
    RetryConfig,
    SettingsConfig,
)
from payroll_client.infrastructure.config.config_manager import ConfigManager, ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Keep host environment and stray config files out of the tests"""
    for name in ConfigManager.ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestApiConfigValidation:
    """Tests for ApiConfig validation."""

    def test_defaults(self):
        """Test default API settings"""
        config = ApiConfig()
        assert config.base_url == "http://localhost:5001/api"
        assert config.timeout == 15.0

    def test_timeout_must_be_positive(self):
        """Test timeout lower bound"""
        with pytest.raises(ValidationError, match="timeout"):
            ApiConfig(timeout=0)

    def test_timeout_upper_bound(self):
        """Test timeout upper bound"""
        with pytest.raises(ValidationError, match="timeout"):
            ApiConfig(timeout=301)


class TestRetryConfigValidation:
    """Tests for RetryConfig validation."""

    def test_defaults(self):
        """Test default retry configuration"""
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 10.0
        assert config.retryable_status_codes == [408, 429, 500, 502, 503, 504]
        assert config.jitter == 0.5

    def test_max_retries_bounds(self):
        """Test max_retries range"""
        assert RetryConfig(max_retries=0).max_retries == 0
        with pytest.raises(ValidationError, match="max_retries"):
            RetryConfig(max_retries=-1)
        with pytest.raises(ValidationError, match="max_retries"):
            RetryConfig(max_retries=11)

    def test_max_delay_below_base_delay(self):
        """Test delay bounds are consistent"""
        with pytest.raises(ValidationError, match="max_delay"):
            RetryConfig(base_delay=5.0, max_delay=2.0)

    def test_invalid_status_code(self):
        """Test status codes outside the HTTP range are rejected"""
        with pytest.raises(ValidationError, match="status code"):
            RetryConfig(retryable_status_codes=[503, 700])

    def test_jitter_range(self):
        """Test jitter spread range"""
        assert RetryConfig(jitter=0).jitter == 0
        with pytest.raises(ValidationError, match="jitter"):
            RetryConfig(jitter=1.5)


class TestAuthAndSettingsConfig:
    """Tests for AuthConfig and SettingsConfig."""

    def test_auth_defaults(self):
        config = AuthConfig()
        assert config.login_path == "/login"
        assert config.unauthorized_path == "/unauthorized"
        assert config.credentials_file.endswith("credentials.json")

    def test_in_memory_credentials(self):
        assert AuthConfig(credentials_file=None).credentials_file is None

    def test_settings_backend(self):
        assert SettingsConfig().backend == "file"
        assert SettingsConfig(backend="remote").backend == "remote"
        with pytest.raises(ValidationError, match="backend"):
            SettingsConfig(backend="redis")


class TestAppConfigValidation:
    """Tests for AppConfig validation."""

    def test_valid_app_config(self):
        """Test valid application configuration"""
        config = AppConfig()
        assert config.retry.max_retries == 3
        assert config.settings.backend == "file"

    def test_unknown_field_rejected(self):
        """Test unknown fields are rejected"""
        with pytest.raises(ValidationError, match="extra"):
            AppConfig(unknown_field="value")

    def test_nested_validation(self):
        """Test nested validation works"""
        with pytest.raises(ValidationError, match="jitter"):
            AppConfig(retry={"jitter": 5.0})

    def test_assignment_is_validated(self):
        """Test validate_assignment on the root model"""
        config = AppConfig()
        with pytest.raises(ValidationError):
            config.retry = {"max_retries": 99}


class TestConfigManagerValidation:
    """Tests for ConfigManager validation."""

    def test_load_valid_config_from_file(self):
        """Test loading valid configuration from file"""
        config_data = {
            "api": {"base_url": "https://payroll.example.com/api"},
            "retry": {"max_retries": 5, "base_delay": 0.5},
        }

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            yaml.dump(config_data, f)
            config_path = f.name

        try:
            manager = ConfigManager(config_path=config_path)
            assert manager.config.api.base_url == "https://payroll.example.com/api"
            assert manager.config.api.timeout == 15.0
            assert manager.config.retry.max_retries == 5
            assert manager.config.retry.max_delay == 10.0
        finally:
            Path(config_path).unlink()

    def test_load_invalid_config_raises_error(self, tmp_path):
        """Test loading invalid configuration raises error"""
        config_path = tmp_path / "bad.yml"
        config_path.write_text(yaml.dump({"retry": {"max_retries": 50}}), encoding="utf-8")

        with pytest.raises(ConfigurationError, match="retry.max_retries"):
            ConfigManager(config_path=config_path)

    def test_non_mapping_file_rejected(self, tmp_path):
        """Test a YAML list at the top level is rejected"""
        config_path = tmp_path / "list.yml"
        config_path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigManager(config_path=config_path)

    def test_unparseable_yaml_uses_defaults(self, tmp_path):
        """Test broken YAML falls back to defaults"""
        config_path = tmp_path / "broken.yml"
        config_path.write_text("api: [unclosed\n", encoding="utf-8")

        manager = ConfigManager(config_path=config_path)
        assert manager.config == AppConfig()

    def test_default_config_is_valid(self):
        """Test default configuration is valid"""
        manager = ConfigManager()
        assert manager.config_path is None
        assert isinstance(manager.config, AppConfig)

    def test_config_file_found_in_parent_directory(self, tmp_path, monkeypatch):
        """Test .payroll-client.yml lookup walks up from the working directory"""
        (tmp_path / ".payroll-client.yml").write_text(
            yaml.dump({"settings": {"backend": "memory"}}), encoding="utf-8"
        )
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        manager = ConfigManager()
        assert manager.config_path.resolve() == (tmp_path / ".payroll-client.yml").resolve()
        assert manager.get_settings_config().backend == "memory"

    def test_get_typed_config_sections(self):
        """Test getter methods return typed models"""
        manager = ConfigManager()

        assert isinstance(manager.get_api_config(), ApiConfig)
        assert isinstance(manager.get_retry_config(), RetryConfig)
        assert isinstance(manager.get_auth_config(), AuthConfig)
        assert isinstance(manager.get_settings_config(), SettingsConfig)

    def test_env_overrides_work(self, monkeypatch):
        """Test environment variable overrides"""
        monkeypatch.setenv("PAYROLL_API_URL", "https://hr.example.com/api")
        monkeypatch.setenv("PAYROLL_API_TIMEOUT", "30")
        monkeypatch.setenv("PAYROLL_MAX_RETRIES", "1")
        monkeypatch.setenv("PAYROLL_SETTINGS_BACKEND", "remote")

        manager = ConfigManager()
        assert manager.config.api.base_url == "https://hr.example.com/api"
        assert manager.config.api.timeout == 30.0
        assert manager.config.retry.max_retries == 1
        assert manager.config.settings.backend == "remote"

    def test_invalid_env_override(self, monkeypatch):
        """Test env values go through validation"""
        monkeypatch.setenv("PAYROLL_MAX_RETRIES", "lots")
        with pytest.raises(ConfigurationError, match="max_retries"):
            ConfigManager()

    def test_dot_notation_get(self):
        """Test get() with nested keys"""
        manager = ConfigManager()
        assert manager.get("api.timeout") == 15.0
        assert manager.get("auth")["login_path"] == "/login"
        assert manager.get("api.missing", "fallback") == "fallback"
        assert manager.get("retry.max_retries.deeper") is None
