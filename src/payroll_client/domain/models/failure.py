"""Failure models - classification of a failed request attempt"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    """What kind of failure an attempt ended with"""

    NETWORK = "network"  # No response received
    HTTP = "http"  # Response received with an error status
    CANCELLATION = "cancellation"  # Explicitly aborted by the caller
    UNKNOWN = "unknown"  # Anything else (validation, programming errors)


class ErrorCategory(str, Enum):
    """Retry taxonomy of a failure"""

    TRANSIENT_NETWORK = "transient_network"
    TRANSIENT_SERVER = "transient_server"
    FATAL_CLIENT = "fatal_client"
    CANCELLATION = "cancellation"


@dataclass(frozen=True)
class FailureClassification:
    """Classified outcome of a failed attempt"""

    kind: FailureKind
    retryable: bool
    status_code: Optional[int] = None

    @property
    def category(self) -> ErrorCategory:
        """Map the classification onto the retry taxonomy"""
        if self.kind == FailureKind.CANCELLATION:
            return ErrorCategory.CANCELLATION
        if self.kind == FailureKind.NETWORK:
            return ErrorCategory.TRANSIENT_NETWORK
        if self.retryable:
            return ErrorCategory.TRANSIENT_SERVER
        return ErrorCategory.FATAL_CLIENT
