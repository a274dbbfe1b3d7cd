"""Client errors and user-facing error messages.

Mirrors how the web frontend categorizes request failures so the CLI can show
the same messages the browser would.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests

if TYPE_CHECKING:
    from payroll_client.domain.models.access import RedirectTo

logger = logging.getLogger(__name__)


class PayrollClientError(Exception):
    """Base class for payroll client errors."""

    pass


class RequestCancelledError(PayrollClientError):
    """The caller aborted the request; never retried."""

    cancelled = True

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)


class AccessDeniedError(PayrollClientError):
    """The access gate refused an operation."""

    def __init__(self, decision: "RedirectTo"):
        self.decision = decision
        super().__init__(f"Access denied ({decision.reason.value}), redirect to {decision.path}")


class ErrorType(str, Enum):
    """UI-level error categories"""

    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH = "auth"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    UNKNOWN = "unknown"


def response_of(error: BaseException) -> Optional[Any]:
    """Return the HTTP response attached to an error, if any."""
    return getattr(error, "response", None)


def status_code_of(error: BaseException) -> Optional[int]:
    """Return the HTTP status code attached to an error, if any."""
    response = response_of(error)
    if response is not None:
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def _server_payload(error: BaseException) -> Dict[str, Any]:
    response = response_of(error)
    if response is None:
        return {}
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def categorize_error(error: Optional[BaseException]) -> ErrorType:
    """Categorize an error for display

    Args:
        error: Exception raised by a request

    Returns:
        ErrorType category
    """
    if error is None or getattr(error, "cancelled", False):
        return ErrorType.UNKNOWN

    if isinstance(error, (requests.Timeout, TimeoutError)):
        return ErrorType.TIMEOUT

    status = status_code_of(error)
    if status is None:
        if isinstance(error, (requests.ConnectionError, ConnectionError)):
            return ErrorType.NETWORK
        return ErrorType.UNKNOWN

    if status in (401, 403):
        return ErrorType.AUTH
    if status in (400, 422):
        return ErrorType.VALIDATION
    if status == 409:
        return ErrorType.CONFLICT
    if status == 404:
        return ErrorType.NOT_FOUND
    if status == 429:
        return ErrorType.RATE_LIMIT
    if status >= 500:
        return ErrorType.SERVER
    return ErrorType.UNKNOWN


def get_error_message(error: Optional[BaseException]) -> str:
    """Build a user-friendly message for an error

    Server-provided messages are preferred for auth, validation, conflict and
    not-found errors.

    Args:
        error: Exception raised by a request

    Returns:
        Message suitable for display
    """
    if error is None:
        return "An unexpected error occurred"

    error_type = categorize_error(error)
    payload = _server_payload(error)
    server_message = payload.get("message")
    server_errors = payload.get("errors")

    if error_type == ErrorType.NETWORK:
        return "Unable to connect to the server. Please check your internet connection and try again."
    if error_type == ErrorType.TIMEOUT:
        return "The request timed out. Please check your connection and try again."
    if error_type == ErrorType.AUTH:
        if status_code_of(error) == 401:
            return server_message or "Your session has expired. Please log in again."
        return server_message or "You do not have permission to perform this action."
    if error_type == ErrorType.VALIDATION:
        if isinstance(server_errors, list) and server_errors:
            return ", ".join(str(e) for e in server_errors)
        return server_message or "Please check your input and try again."
    if error_type == ErrorType.CONFLICT:
        return server_message or "This resource already exists. Please use different values."
    if error_type == ErrorType.NOT_FOUND:
        return server_message or "The requested resource was not found."
    if error_type == ErrorType.RATE_LIMIT:
        return "Too many requests. Please wait a moment and try again."
    if error_type == ErrorType.SERVER:
        return "The server encountered an error. Please try again later."
    return server_message or "An unexpected error occurred. Please try again."


def get_field_errors(error: BaseException) -> Dict[str, str]:
    """Extract field-level validation errors from a server response

    Args:
        error: Exception raised by a request

    Returns:
        Mapping of field name to message; list-style errors go under "general"
    """
    payload = _server_payload(error)
    errors = payload.get("errors")
    if isinstance(errors, list):
        return {"general": ", ".join(str(e) for e in errors)}
    if isinstance(errors, dict):
        return {str(k): str(v) for k, v in errors.items()}
    if payload.get("message"):
        return {"general": str(payload["message"])}
    return {}
