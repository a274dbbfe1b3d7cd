"""Service exposing payroll API operations behind the access gate"""

import logging
import threading
from typing import Any, Dict, List, Optional

from payroll_client.application.access_gate import AccessGate
from payroll_client.domain.models.access import (
    ANY_AUTHENTICATED,
    RedirectTo,
    RequiresRole,
    Role,
    RouteRequirement,
)
from payroll_client.domain.models.user import User
from payroll_client.infrastructure.errors import AccessDeniedError
from payroll_client.infrastructure.http_client import ApiClient
from payroll_client.infrastructure.retry import OnRetryScheduled, RetryPolicy

logger = logging.getLogger(__name__)

ADMIN_ONLY = RequiresRole.of(Role.ADMIN)
EMPLOYEE_ONLY = RequiresRole.of(Role.EMPLOYEE)

# Login and payroll runs are not idempotent
NO_RETRY = RetryPolicy(max_retries=0)


def _data(payload: Any, key: Optional[str] = None) -> Any:
    """Unwrap the API's {"success": ..., "data": ...} envelope"""
    if not isinstance(payload, dict):
        return payload
    if key is not None and key in payload:
        return payload[key]
    return payload.get("data", payload)


class PayrollService:
    """Payroll API operations; each protected call consults the access gate first"""

    def __init__(
        self,
        api_client: ApiClient,
        gate: AccessGate,
        on_retry_scheduled: Optional[OnRetryScheduled] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize payroll service

        Args:
            api_client: Payroll API client
            gate: Access gate for protected operations
            on_retry_scheduled: Progress callback passed to every retried read
            cancel_event: Aborts in-flight retry loops when set
        """
        self.api_client = api_client
        self.gate = gate
        self.on_retry_scheduled = on_retry_scheduled
        self.cancel_event = cancel_event

    def _require(self, requirement: RouteRequirement) -> None:
        decision = self.gate.check(requirement)
        if isinstance(decision, RedirectTo):
            raise AccessDeniedError(decision)

    def _read(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.api_client.get(
            path,
            params=params,
            on_retry_scheduled=self.on_retry_scheduled,
            cancel_event=self.cancel_event,
        )

    def _write(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self.api_client.request_with_retry(
            method, path, json=payload, cancel_event=self.cancel_event, policy=NO_RETRY
        )

    def login(self, email: str, password: str) -> User:
        """Authenticate and store the returned token and user

        Returns:
            The logged-in user
        """
        payload = self._write("POST", "/auth/login", {"email": email, "password": password})
        token = payload.get("token") if isinstance(payload, dict) else None
        user_data = payload.get("user") if isinstance(payload, dict) else None
        if not token or not user_data:
            raise ValueError("Login response did not include a token and user")
        self.api_client.token_manager.set_auth(token, user_data)
        user = User.from_dict(user_data)
        logger.info(f"Logged in as {user.email} ({user.role})")
        return user

    def register(self, name: str, email: str, password: str, role: str = Role.EMPLOYEE.value) -> Optional[User]:
        payload = self._write(
            "POST",
            "/auth/register",
            {"name": name, "email": email, "password": password, "role": role},
        )
        return User.from_dict(_data(payload, "user"))

    def logout(self) -> None:
        self.api_client.token_manager.clear_auth()
        logger.info("Logged out")

    def my_payroll(self) -> Dict[str, Any]:
        self._require(EMPLOYEE_ONLY)
        return _data(self._read("/payroll/my-payroll"))

    def list_employees(self) -> List[Dict[str, Any]]:
        self._require(ADMIN_ONLY)
        return _data(self._read("/employee"), "employees") or []

    def employee_payroll(self, employee_id: str) -> Dict[str, Any]:
        self._require(ADMIN_ONLY)
        return _data(self._read(f"/payroll/{employee_id}"))

    def run_payroll(self, month: int, year: int) -> Dict[str, Any]:
        self._require(ADMIN_ONLY)
        logger.info(f"Running payroll for {month:02d}/{year}")
        return _data(self._write("POST", "/payroll/run", {"month": month, "year": year}))

    def run_individual_payroll(self, employee_id: str, month: int, year: int) -> Dict[str, Any]:
        self._require(ADMIN_ONLY)
        logger.info(f"Running payroll for employee {employee_id}, {month:02d}/{year}")
        return _data(
            self._write("POST", f"/payroll/run/{employee_id}", {"month": month, "year": year})
        )

    def dashboard_stats(self) -> Dict[str, Any]:
        self._require(ADMIN_ONLY)
        return _data(self._read("/dashboard/stats"))

    def dashboard_report(self, year: int) -> Dict[str, Any]:
        self._require(ADMIN_ONLY)
        return _data(self._read("/dashboard/reports", params={"type": "monthly", "year": year}))

    def update_profile(self, **fields: Any) -> Optional[User]:
        self._require(ANY_AUTHENTICATED)
        payload = self._write("PUT", "/auth/profile", fields)
        user = User.from_dict(_data(payload, "user"))
        if user is not None:
            self.api_client.token_manager.set_user(user)
        return user

    def change_password(self, current_password: str, new_password: str) -> None:
        self._require(ANY_AUTHENTICATED)
        self._write(
            "PUT",
            "/auth/change-password",
            {"currentPassword": current_password, "newPassword": new_password},
        )
