from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from .error_classifier import ErrorClassifier
from .retry_policy import RetryPolicy, accepts_throttled_flag

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryOperation:
    """
    Executes a single operation and retries it while the policy allows.

    One instance is created per invoked operation. The policy is captured
    at construction, so swapping the policy on the owning client does not
    affect an operation already in flight.

    Retries are bounded by ``max_timeout``: once that many seconds have
    elapsed since the first attempt, the last error is raised even if the
    policy would retry. Attempts are strictly sequential.
    """

    def __init__(
        self,
        operation_name: str,
        policy: RetryPolicy,
        max_timeout: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.operation_name = operation_name
        self._policy = policy
        self._pass_throttled = accepts_throttled_flag(policy)
        self._max_timeout = max_timeout
        self._clock = clock
        self._sleep = sleep
        self.attempts = 0

    async def retry(self, action: Callable[[], Awaitable[T]]) -> T:
        """
        Execute ``action`` with retry logic.

        Args:
            action: Zero-argument coroutine function performing one attempt

        Returns:
            Result from the first successful attempt

        Raises:
            The last error if the policy refuses to retry or the deadline elapsed
        """
        start = self._clock()
        retry_count = 0

        while True:
            self.attempts += 1
            try:
                result = await action()
            except Exception as error:  # noqa: BLE001
                delay = self._next_delay(error, retry_count, start)
                if delay is None:
                    raise

                logger.warning(
                    f"Retrying {self.operation_name} after {type(error).__name__}",
                    extra={
                        "operation": self.operation_name,
                        "attempt": self.attempts,
                        "error_type": type(error).__name__,
                        "error_message": str(error)[:200],
                        "delay": delay,
                    }
                )
                await self._sleep(delay)
                retry_count += 1
                continue

            if retry_count > 0:
                logger.info(
                    f"{self.operation_name} succeeded after {retry_count} retries",
                    extra={"operation": self.operation_name, "attempts": self.attempts}
                )
            return result

    def _next_delay(self, error: Exception, retry_count: int, start: float) -> Optional[float]:
        """Return the delay before the next attempt, or None to stop."""
        elapsed = self._clock() - start
        if elapsed >= self._max_timeout:
            logger.debug(
                f"{self.operation_name} past its deadline after {self.attempts} attempts",
                extra={"operation": self.operation_name, "elapsed": elapsed}
            )
            return None

        if not self._policy.should_retry(error):
            return None

        if self._pass_throttled:
            is_throttled = ErrorClassifier.classify_error(error).is_throttled
            delay = self._policy.next_retry_timeout(retry_count, is_throttled)
        else:
            delay = self._policy.next_retry_timeout(retry_count)
        if delay < 0:
            return None

        # Never schedule an attempt past the deadline
        return min(delay, self._max_timeout - elapsed)
