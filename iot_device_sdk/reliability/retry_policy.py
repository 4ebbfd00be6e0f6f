"""
Retry policies.

A retry policy is made of two things:
- an error filter that decides, based on the error received, whether the
  operation should be retried at all
- an algorithm that computes how long to wait before the next attempt

Policies are stateless and may be swapped on a client at any time. A swap
only affects operations started after it.
"""

import inspect
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..config.constants import (
    DEFAULT_BACKOFF_C,
    DEFAULT_BACKOFF_C_MAX,
    DEFAULT_BACKOFF_C_MIN,
    DEFAULT_JITTER_DOWN,
    DEFAULT_JITTER_UP,
    THROTTLED_BACKOFF_C,
    THROTTLED_BACKOFF_C_MAX,
    THROTTLED_BACKOFF_C_MIN,
)
from ..errors import ArgumentError
from .error_classifier import ErrorClassifier


class RetryPolicy(ABC):
    """Interface implemented by every retry policy."""

    @abstractmethod
    def should_retry(self, error: BaseException) -> bool:
        """Return True if the operation that raised ``error`` may be retried."""

    @abstractmethod
    def next_retry_timeout(self, retry_count: int, is_throttled: bool = False) -> float:
        """
        Compute the delay before the next attempt.

        Args:
            retry_count: Number of retries already performed (0 for the first retry)
            is_throttled: Whether the service is throttling this client

        Returns:
            Seconds to wait. A negative value means "do not retry".
        """


@dataclass
class BackoffParameters:
    """Constants of the exponential backoff formula, in seconds."""
    c: float = DEFAULT_BACKOFF_C             # Initial retry interval
    c_min: float = DEFAULT_BACKOFF_C_MIN     # Minimal interval between retries
    c_max: float = DEFAULT_BACKOFF_C_MAX     # Maximal interval between retries
    ju: float = DEFAULT_JITTER_UP            # Jitter up factor
    jd: float = DEFAULT_JITTER_DOWN          # Jitter down factor


def _throttled_parameters() -> BackoffParameters:
    return BackoffParameters(
        c=THROTTLED_BACKOFF_C,
        c_min=THROTTLED_BACKOFF_C_MIN,
        c_max=THROTTLED_BACKOFF_C_MAX
    )


@dataclass
class ExponentialBackoffWithJitter(RetryPolicy):
    """
    Exponential backoff with jitter.

    The delay for the xth retry is::

        F(x) = min(c_min + (2^(x-1) - 1) * rand(c * (1 - jd), c * (1 - ju)), c_max)

    When ``immediate_first_retry`` is set, the first retry of a
    non-throttled operation happens without waiting.
    """
    immediate_first_retry: bool = True
    error_filter: Callable[[BaseException], bool] = ErrorClassifier.is_retryable
    normal_parameters: BackoffParameters = field(default_factory=BackoffParameters)
    throttled_parameters: BackoffParameters = field(default_factory=_throttled_parameters)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def should_retry(self, error: BaseException) -> bool:
        return bool(self.error_filter(error))

    def next_retry_timeout(self, retry_count: int, is_throttled: bool = False) -> float:
        if self.immediate_first_retry and retry_count == 0 and not is_throttled:
            return 0.0

        params = self.throttled_parameters if is_throttled else self.normal_parameters
        min_random_factor = params.c * (1 - params.jd)
        max_random_factor = params.c * (1 - params.ju)
        jitter = self.rng.uniform(min_random_factor, max_random_factor)
        # retry_count is 0-based, the formula counts retries from 1
        x = retry_count + 1
        return min(params.c_min + (2 ** (x - 1) - 1) * jitter, params.c_max)


class NoRetry(RetryPolicy):
    """Policy that never retries."""

    def should_retry(self, error: BaseException) -> bool:
        return False

    def next_retry_timeout(self, retry_count: int, is_throttled: bool = False) -> float:
        return -1


def validate_retry_policy(policy: Optional[Any]) -> RetryPolicy:
    """
    Check that ``policy`` can be used as a retry policy.

    Any object exposing callable ``should_retry`` and ``next_retry_timeout``
    attributes is accepted. ``next_retry_timeout`` must take the retry count;
    the throttled flag is optional and only passed when it is accepted.

    Raises:
        ArgumentError: If the policy is missing or incomplete
    """
    if policy is None:
        raise ArgumentError("policy cannot be None")
    if not callable(getattr(policy, "should_retry", None)) or \
            not callable(getattr(policy, "next_retry_timeout", None)):
        raise ArgumentError(
            "A retry policy must have a should_retry method and a next_retry_timeout method."
        )
    if _positional_capacity(policy.next_retry_timeout) == 0:
        raise ArgumentError("next_retry_timeout must accept the retry count")
    return policy


def _positional_capacity(fn: Callable[..., Any]) -> Optional[int]:
    """Number of positional arguments ``fn`` takes, None when unbounded or unknown."""
    try:
        parameters = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return None

    count = 0
    for parameter in parameters:
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY,
                              inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def accepts_throttled_flag(policy: RetryPolicy) -> bool:
    """Return True if ``policy.next_retry_timeout`` takes ``is_throttled`` after the retry count."""
    capacity = _positional_capacity(policy.next_retry_timeout)
    return capacity is None or capacity >= 2
