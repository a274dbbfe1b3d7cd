"""User settings storage configuration model."""

from typing import Literal

from pydantic import BaseModel


class SettingsConfig(BaseModel):
    """Configuration for the user settings store.

    Attributes:
        backend: Storage medium (file, memory, remote)
        settings_file: JSON file used by the file backend
    """

    backend: Literal["file", "memory", "remote"] = "file"
    settings_file: str = "~/.payroll-client/settings.json"
