"""Retry configuration model."""

from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator


class RetryConfig(BaseModel):
    """Configuration for retry logic.
    
    Attributes:
        max_retries: Retry attempts after the initial try (0 = no retry)
        base_delay: Backoff base delay in seconds
        max_delay: Backoff cap in seconds
        retryable_status_codes: HTTP statuses treated as transient
        jitter: Random jitter spread (0.0-1.0), factor drawn from [1-jitter, 1+jitter]
    """

    max_retries: int = Field(3, ge=0, le=10)
    base_delay: float = Field(1.0, ge=0.0)  # Allow 0 for tests
    max_delay: float = Field(10.0, gt=0.0)
    retryable_status_codes: List[int] = Field(
        default_factory=lambda: [408, 429, 500, 502, 503, 504]
    )
    jitter: float = Field(0.5, ge=0.0, le=1.0)

    @field_validator("retryable_status_codes")
    @classmethod
    def _check_status_codes(cls, value: List[int]) -> List[int]:
        for code in value:
            if not 100 <= code <= 599:
                raise ValueError(f"invalid HTTP status code: {code}")
        return value

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryConfig":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self
