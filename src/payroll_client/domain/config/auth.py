"""Authentication configuration model."""

from typing import Optional

from pydantic import BaseModel


class AuthConfig(BaseModel):
    """Configuration for credentials and route redirects.

    Attributes:
        login_path: Where unauthenticated or expired sessions are sent
        unauthorized_path: Where role mismatches are sent
        credentials_file: JSON file holding the token and user (None = in memory)
    """

    login_path: str = "/login"
    unauthorized_path: str = "/unauthorized"
    credentials_file: Optional[str] = "~/.payroll-client/credentials.json"
