"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from payroll_client.domain.config.api import ApiConfig
from payroll_client.domain.config.auth import AuthConfig
from payroll_client.domain.config.retry import RetryConfig
from payroll_client.domain.config.settings import SettingsConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        api: Payroll API connection configuration
        retry: Retry logic configuration
        auth: Credentials and redirect configuration
        settings: User settings store configuration
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    settings: SettingsConfig = Field(default_factory=SettingsConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "api": {
                    "base_url": "https://payroll.example.com/api",
                    "timeout": 15.0,
                },
                "retry": {
                    "max_retries": 3,
                    "base_delay": 1.0,
                    "max_delay": 10.0,
                    "retryable_status_codes": [408, 429, 500, 502, 503, 504],
                    "jitter": 0.5,
                },
                "auth": {
                    "login_path": "/login",
                    "unauthorized_path": "/unauthorized",
                    "credentials_file": "~/.payroll-client/credentials.json",
                },
                "settings": {
                    "backend": "file",
                    "settings_file": "~/.payroll-client/settings.json",
                },
            }
        },
    )
