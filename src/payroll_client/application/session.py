"""Session controller reacting to the API's session-invalid signal"""

import logging
from typing import Optional

import requests

from payroll_client.infrastructure.auth.token_manager import TokenManager
from payroll_client.infrastructure.http_client import ApiClient

logger = logging.getLogger(__name__)


class SessionController:
    """Interprets session-invalid signals: drop credentials, remember the redirect

    The network layer only emits the signal; deciding what to do about it
    lives here.
    """

    def __init__(self, api_client: ApiClient, token_manager: TokenManager, login_path: str = "/login"):
        self.token_manager = token_manager
        self.login_path = login_path
        self.pending_redirect: Optional[str] = None
        api_client.on_session_invalid(self.handle_session_invalid)

    def handle_session_invalid(self, error: requests.HTTPError) -> None:
        logger.warning(f"Session is no longer valid: {error}")
        self.token_manager.clear_auth()
        self.pending_redirect = self.login_path

    def consume_redirect(self) -> Optional[str]:
        """Return the pending redirect once, then forget it"""
        redirect, self.pending_redirect = self.pending_redirect, None
        return redirect
