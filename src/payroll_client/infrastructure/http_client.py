"""Shared HTTP client for the payroll API (requests + retry/backoff).

We keep HTTP logic centralized so every call gets the same auth header,
session handling and retry policy.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests

from payroll_client.infrastructure.auth.token_manager import TokenManager
from payroll_client.infrastructure.retry import (
    OnGiveUp,
    OnRetryScheduled,
    RequestExecutor,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/auth/login"

SessionListener = Callable[[requests.HTTPError], None]


class ApiClient:
    """Thin wrapper around requests.Session for the payroll REST API"""

    def __init__(
        self,
        base_url: str,
        token_manager: Optional[TokenManager] = None,
        executor: Optional[RequestExecutor] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize API client

        Args:
            base_url: API root URL, e.g. http://localhost:5001/api
            token_manager: Source of the bearer token
            executor: Request executor used by request_with_retry
            timeout: Per-attempt timeout in seconds
            session: Preconfigured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.token_manager = token_manager or TokenManager()
        self.executor = executor or RequestExecutor()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Content-Type", "application/json")
        self._session_listeners: List[SessionListener] = []

    def on_session_invalid(self, listener: SessionListener) -> None:
        """Subscribe to the session-invalid signal emitted on HTTP 401"""
        self._session_listeners.append(listener)

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        token = self.token_manager.get_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def _emit_session_invalid(self, error: requests.HTTPError) -> None:
        for listener in list(self._session_listeners):
            listener(error)

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Perform a single attempt

        Args:
            method: HTTP method
            path: Path relative to base_url
            json: JSON body for POST/PUT
            params: Query parameters

        Returns:
            Decoded JSON body (None for empty responses)

        Raises:
            requests.HTTPError: On 4xx/5xx responses
            requests.exceptions.InvalidJSONError: On a body that is not JSON
            requests.RequestException: On network failures
        """
        url = self._url(path)
        logger.debug(f"HTTP {method.upper()} {url}")
        resp = self.session.request(
            method.upper(),
            url,
            json=json,
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
        )
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            if resp.status_code == 401 and not path.rstrip("/").endswith(LOGIN_ENDPOINT):
                logger.info("API rejected credentials, signalling invalid session")
                self._emit_session_invalid(e)
            raise
        if not resp.content:
            return None
        try:
            return resp.json()
        except requests.exceptions.JSONDecodeError as e:
            raise requests.exceptions.InvalidJSONError(
                f"Invalid JSON in response from {url}: {e}", response=resp
            ) from e

    def request_with_retry(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        on_retry_scheduled: Optional[OnRetryScheduled] = None,
        on_give_up: Optional[OnGiveUp] = None,
        cancel_event: Optional[threading.Event] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Perform a request through the retry executor"""
        return self.executor.execute(
            lambda: self.request(method, path, json=json, params=params),
            on_retry_scheduled=on_retry_scheduled,
            on_give_up=on_give_up,
            cancel_event=cancel_event,
            policy=policy,
        )

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, **retry_options: Any) -> Any:
        return self.request_with_retry("GET", path, params=params, **retry_options)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None, **retry_options: Any) -> Any:
        return self.request_with_retry("POST", path, json=json, **retry_options)

    def put(self, path: str, json: Optional[Dict[str, Any]] = None, **retry_options: Any) -> Any:
        return self.request_with_retry("PUT", path, json=json, **retry_options)
