"""Request retry utilities using tenacity.

Classifies failed attempts as transient or fatal, computes capped exponential
backoff with jitter and drives the attempt loop for both blocking and asyncio
callers.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, Optional

import requests
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    sleep_using_event,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from payroll_client.domain.config.retry import RetryConfig
from payroll_client.domain.models.failure import FailureClassification, FailureKind
from payroll_client.infrastructure.errors import RequestCancelledError, response_of, status_code_of

logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})

OnRetryScheduled = Callable[[int, int, float, BaseException], None]
OnGiveUp = Callable[[BaseException], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry policy; one execution uses one snapshot.

    Delays are in seconds.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    retryable_status_codes: FrozenSet[int] = field(default=DEFAULT_RETRYABLE_STATUS_CODES)
    jitter: float = 0.5  # factor drawn from [0.5, 1.5] by default

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")
        object.__setattr__(self, "retryable_status_codes", frozenset(self.retryable_status_codes))

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1


def retry_policy_from_config(config: RetryConfig) -> RetryPolicy:
    """Build a policy from the validated retry config section."""
    return RetryPolicy(
        max_retries=config.max_retries,
        base_delay=config.base_delay,
        max_delay=config.max_delay,
        retryable_status_codes=frozenset(config.retryable_status_codes),
        jitter=config.jitter,
    )


def retry_policy_from_dict(config: Dict[str, Any]) -> RetryPolicy:
    """Parse a retry policy from a loose dict, supporting legacy aliases.

    `max_attempts` counts total tries and `retry_delay` is the old name of
    `base_delay`. Unparseable values fall back to defaults and out-of-range
    values are clamped.
    """
    defaults = RetryPolicy()

    max_retries = config.get("max_retries")
    if max_retries is None and config.get("max_attempts") is not None:
        try:
            max_retries = int(config["max_attempts"]) - 1
        except (TypeError, ValueError):
            max_retries = None
    base_delay = config.get("base_delay")
    if base_delay is None:
        base_delay = config.get("retry_delay")

    max_retries_i = _coerce(max_retries, int, defaults.max_retries)
    base_delay_f = _coerce(base_delay, float, defaults.base_delay)
    max_delay_f = _coerce(config.get("max_delay"), float, defaults.max_delay)
    jitter_f = _coerce(config.get("jitter"), float, defaults.jitter)

    codes: Iterable[int] = config.get("retryable_status_codes") or defaults.retryable_status_codes
    try:
        codes = frozenset(int(c) for c in codes)
    except (TypeError, ValueError):
        codes = defaults.retryable_status_codes

    max_retries_i = max(max_retries_i, 0)
    base_delay_f = max(base_delay_f, 0.0)
    max_delay_f = max(max_delay_f, base_delay_f)
    jitter_f = min(max(jitter_f, 0.0), 1.0)

    return RetryPolicy(
        max_retries=max_retries_i,
        base_delay=base_delay_f,
        max_delay=max_delay_f,
        retryable_status_codes=codes,
        jitter=jitter_f,
    )


def _coerce(value: Any, cast: Callable[[Any], Any], default: Any) -> Any:
    if value is None:
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def is_cancellation(exception: BaseException) -> bool:
    """Check if an error represents an explicit abort."""
    if isinstance(exception, (RequestCancelledError, asyncio.CancelledError)):
        return True
    return getattr(exception, "cancelled", False) is True


def classify_failure(
    exception: BaseException,
    retryable_status_codes: FrozenSet[int] = DEFAULT_RETRYABLE_STATUS_CODES,
) -> FailureClassification:
    """Classify a failed attempt.

    Args:
        exception: Error raised by the attempt
        retryable_status_codes: HTTP statuses treated as transient

    Returns:
        FailureClassification
    """
    if is_cancellation(exception):
        return FailureClassification(FailureKind.CANCELLATION, retryable=False)

    status_code = status_code_of(exception)
    if status_code is not None:
        return FailureClassification(
            FailureKind.HTTP,
            retryable=status_code in retryable_status_codes,
            status_code=status_code,
        )

    # No response received at all
    if isinstance(exception, requests.RequestException) and response_of(exception) is None:
        return FailureClassification(FailureKind.NETWORK, retryable=True)
    if isinstance(exception, (ConnectionError, TimeoutError)):
        return FailureClassification(FailureKind.NETWORK, retryable=True)

    return FailureClassification(FailureKind.UNKNOWN, retryable=False)


def compute_backoff(attempt_number: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff before jitter: base * 2^(n-1), capped at max_delay.

    Args:
        attempt_number: 1-indexed retry number (first retry = 1)
        base_delay: Base delay in seconds
        max_delay: Cap in seconds
    """
    if attempt_number < 1:
        attempt_number = 1
    # Cap the exponent so large attempt numbers don't overflow
    exponent = min(attempt_number - 1, 64)
    return min(max_delay, base_delay * (2 ** exponent))


class wait_capped_jitter(wait_base):
    """Capped exponential backoff with multiplicative jitter."""

    def __init__(
        self,
        base_delay: float,
        max_delay: float,
        jitter: float,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.rng = rng or random.Random()

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = compute_backoff(retry_state.attempt_number, self.base_delay, self.max_delay)
        if self.jitter > 0:
            delay *= self.rng.uniform(1.0 - self.jitter, 1.0 + self.jitter)
        return min(delay, self.max_delay)


class RequestExecutor:
    """Executes a zero-argument request callable with a retry policy.

    Holds no state between invocations; concurrent executions are independent.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
        async_sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize executor

        Args:
            policy: Retry policy (defaults to RetryPolicy())
            sleep: Blocking sleep used between attempts (default: tenacity's)
            async_sleep: Awaitable sleep used by execute_async (default: asyncio.sleep)
            rng: Random source for jitter
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._async_sleep = async_sleep
        self._rng = rng

    def execute(
        self,
        operation: Callable[[], Any],
        on_retry_scheduled: Optional[OnRetryScheduled] = None,
        on_give_up: Optional[OnGiveUp] = None,
        cancel_event: Optional[threading.Event] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Run a blocking operation, retrying transient failures.

        Args:
            operation: Callable performing one attempt
            on_retry_scheduled: Called as (attempt, max_retries, delay, cause) before each backoff
            on_give_up: Called with the final error before it is re-raised
            cancel_event: Setting it aborts the pending backoff and any further attempt
            policy: Per-call policy override

        Returns:
            The operation's result

        Raises:
            The last error raised by the operation, unchanged, or
            RequestCancelledError if cancel_event was set
        """
        policy = policy or self.policy
        kwargs = self._retrying_kwargs(policy, on_retry_scheduled)
        attempt = operation

        if cancel_event is not None:
            kwargs["sleep"] = sleep_using_event(cancel_event)

            def attempt() -> Any:
                if cancel_event.is_set():
                    raise RequestCancelledError()
                try:
                    return operation()
                except Exception as exc:
                    # Aborted while in flight: no backoff may follow this failure
                    if cancel_event.is_set():
                        raise RequestCancelledError() from exc
                    raise

        elif self._sleep is not None:
            kwargs["sleep"] = self._sleep

        try:
            return Retrying(**kwargs)(attempt)
        except Exception as exc:
            self._give_up(exc, policy, on_give_up)
            raise

    async def execute_async(
        self,
        operation: Callable[[], Awaitable[Any]],
        on_retry_scheduled: Optional[OnRetryScheduled] = None,
        on_give_up: Optional[OnGiveUp] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> Any:
        """Await a coroutine-producing operation, retrying transient failures.

        Backoff suspends cooperatively. Cancelling the surrounding task
        interrupts the pending sleep and no further attempt is scheduled.
        """
        policy = policy or self.policy
        kwargs = self._retrying_kwargs(policy, on_retry_scheduled)
        if self._async_sleep is not None:
            kwargs["sleep"] = self._async_sleep

        try:
            return await AsyncRetrying(**kwargs)(operation)
        except (Exception, asyncio.CancelledError) as exc:
            self._give_up(exc, policy, on_give_up)
            raise

    def _retrying_kwargs(
        self, policy: RetryPolicy, on_retry_scheduled: Optional[OnRetryScheduled]
    ) -> Dict[str, Any]:
        def _retry_condition(exception: BaseException) -> bool:
            return classify_failure(exception, policy.retryable_status_codes).retryable

        def _before_sleep(retry_state: RetryCallState) -> None:
            if retry_state.outcome is None or retry_state.next_action is None:
                return
            cause = retry_state.outcome.exception()
            attempt = retry_state.attempt_number
            delay = retry_state.next_action.sleep
            logger.warning(
                f"Request failed (attempt {attempt}/{policy.total_attempts}): {cause}. "
                f"Retrying in {delay:.2f}s..."
            )
            if on_retry_scheduled is not None:
                on_retry_scheduled(attempt, policy.max_retries, delay, cause)

        return {
            "stop": stop_after_attempt(policy.total_attempts),
            "wait": wait_capped_jitter(policy.base_delay, policy.max_delay, policy.jitter, self._rng),
            "retry": retry_if_exception(_retry_condition),
            "reraise": True,
            "before_sleep": _before_sleep,
        }

    @staticmethod
    def _give_up(
        exception: BaseException, policy: RetryPolicy, on_give_up: Optional[OnGiveUp]
    ) -> None:
        classification = classify_failure(exception, policy.retryable_status_codes)
        if classification.kind == FailureKind.CANCELLATION:
            logger.debug(f"Request cancelled: {exception}")
        elif classification.retryable:
            logger.error(f"Request failed after {policy.total_attempts} attempts: {exception}")
        else:
            logger.error(f"Request failed with non-retryable error: {exception}")
        if on_give_up is not None:
            on_give_up(exception)


def with_retry(
    operation: Callable[[], Any],
    policy: Optional[RetryPolicy] = None,
    on_retry_scheduled: Optional[OnRetryScheduled] = None,
    on_give_up: Optional[OnGiveUp] = None,
) -> Any:
    """Run a blocking operation once through a fresh RequestExecutor."""
    return RequestExecutor(policy).execute(
        operation, on_retry_scheduled=on_retry_scheduled, on_give_up=on_give_up
    )
