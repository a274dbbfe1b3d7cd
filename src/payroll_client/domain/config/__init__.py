"""Configuration models with Pydantic validation."""

from payroll_client.domain.config.api import ApiConfig
from payroll_client.domain.config.app import AppConfig
from payroll_client.domain.config.auth import AuthConfig
from payroll_client.domain.config.retry import RetryConfig
from payroll_client.domain.config.settings import SettingsConfig

__all__ = [
    "AppConfig",
    "ApiConfig",
    "AuthConfig",
    "RetryConfig",
    "SettingsConfig",
]
