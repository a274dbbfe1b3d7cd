"""User settings model"""

from pydantic import BaseModel, ConfigDict, Field


class NotificationSettings(BaseModel):
    """Which notifications the user receives"""

    email: bool = True
    payroll: bool = True
    system: bool = False


class UserSettings(BaseModel):
    """Per-user application settings.

    Attributes:
        currency: ISO currency code used for display
        timezone: IANA timezone name
        notifications: Notification preferences
    """

    currency: str = Field("INR", min_length=3, max_length=3)
    timezone: str = "UTC"
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    model_config = ConfigDict(extra="ignore")
