"""User settings stores

Settings are loaded and saved through a small interface so the storage medium
(memory, local file, the API) can be swapped without touching callers.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from payroll_client.domain.config.settings import SettingsConfig
from payroll_client.domain.models.settings import UserSettings

if TYPE_CHECKING:
    from payroll_client.infrastructure.http_client import ApiClient

logger = logging.getLogger(__name__)

SETTINGS_ENDPOINT = "/auth/settings"


def merge_settings(base: Dict[str, Any], partial: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge a partial update into a settings dict"""
    result = copy.deepcopy(base)
    for key, value in partial.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_settings(result[key], value)
        else:
            result[key] = value
    return result


class SettingsStore(ABC):
    """Loads and saves UserSettings"""

    @abstractmethod
    def load(self) -> UserSettings:
        """Return the current settings (defaults if nothing is stored)"""
        pass

    @abstractmethod
    def _persist(self, settings: UserSettings) -> UserSettings:
        pass

    def save(self, partial: Dict[str, Any]) -> UserSettings:
        """Merge a partial update over the current settings and persist it

        Args:
            partial: Fields to change, nested dicts merged recursively

        Returns:
            The updated settings

        Raises:
            pydantic.ValidationError: If the merged settings are invalid
        """
        merged = merge_settings(self.load().model_dump(), partial)
        settings = UserSettings.model_validate(merged)
        return self._persist(settings)


class InMemorySettingsStore(SettingsStore):
    """Settings store for tests and ephemeral sessions"""

    def __init__(self, initial: Optional[UserSettings] = None):
        self._settings = initial or UserSettings()

    def load(self) -> UserSettings:
        return self._settings.model_copy(deep=True)

    def _persist(self, settings: UserSettings) -> UserSettings:
        self._settings = settings
        return settings.model_copy(deep=True)


class JsonFileSettingsStore(SettingsStore):
    """Settings store backed by a local JSON file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> UserSettings:
        if not self.path.exists():
            return UserSettings()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
            return UserSettings.model_validate(merge_settings(UserSettings().model_dump(), data))
        except Exception as e:
            logger.warning(f"Failed to load settings from {self.path}: {e}")
            logger.info("Using default settings")
            return UserSettings()

    def _persist(self, settings: UserSettings) -> UserSettings:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(settings.model_dump(), f, indent=2)
        logger.debug(f"Saved settings to {self.path}")
        return settings


class RemoteSettingsStore(SettingsStore):
    """Settings store kept on the server under /auth/settings"""

    def __init__(self, api_client: "ApiClient"):
        self.api_client = api_client

    @staticmethod
    def _unwrap(payload: Any) -> Dict[str, Any]:
        # The API wraps the document as {"settings": {...}} or {"data": {...}}
        if isinstance(payload, dict):
            for key in ("settings", "data"):
                if isinstance(payload.get(key), dict):
                    return payload[key]
            return payload
        return {}

    def load(self) -> UserSettings:
        payload = self.api_client.get(SETTINGS_ENDPOINT)
        return UserSettings.model_validate(
            merge_settings(UserSettings().model_dump(), self._unwrap(payload))
        )

    def _persist(self, settings: UserSettings) -> UserSettings:
        payload = self.api_client.put(SETTINGS_ENDPOINT, json=settings.model_dump())
        stored = self._unwrap(payload)
        if not stored:
            return settings
        return UserSettings.model_validate(merge_settings(settings.model_dump(), stored))


def create_settings_store(
    config: SettingsConfig, api_client: Optional["ApiClient"] = None
) -> SettingsStore:
    """Create the settings store selected by configuration

    Raises:
        ValueError: If the remote backend is selected without an API client
    """
    if config.backend == "memory":
        return InMemorySettingsStore()
    if config.backend == "remote":
        if api_client is None:
            raise ValueError("Remote settings backend requires an API client")
        return RemoteSettingsStore(api_client)
    return JsonFileSettingsStore(config.settings_file)
