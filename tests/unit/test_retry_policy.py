"""Unit tests for retry policies and error classification."""

import asyncio
import random

import pytest

from iot_device_sdk.errors import (
    ArgumentError,
    DeviceNotFoundError,
    FormatError,
    InternalServerError,
    NotConnectedError,
    OperationTimeoutError,
    ServiceUnavailableError,
    ThrottlingError,
    UnauthorizedError,
)
from iot_device_sdk.reliability import (
    BackoffParameters,
    ErrorCategory,
    ErrorClassifier,
    ExponentialBackoffWithJitter,
    NoRetry,
    accepts_throttled_flag,
    validate_retry_policy,
)


class TestExponentialBackoffWithJitter:
    """Test the default retry policy."""

    @pytest.mark.parametrize("error", [
        NotConnectedError("link detached"),
        InternalServerError("500"),
        ServiceUnavailableError("503"),
        ThrottlingError("429"),
        OperationTimeoutError("no response"),
    ])
    def test_retries_transient_errors(self, error):
        """Transient transport errors are retried."""
        assert ExponentialBackoffWithJitter().should_retry(error) is True

    @pytest.mark.parametrize("error", [
        UnauthorizedError("bad token"),
        DeviceNotFoundError("gone"),
        FormatError("bad body"),
        ArgumentError("bad arg"),
        ValueError("something else"),
    ])
    def test_does_not_retry_terminal_errors(self, error):
        """Terminal and unknown errors are not retried."""
        assert ExponentialBackoffWithJitter().should_retry(error) is False

    def test_custom_error_filter(self):
        """A custom error filter replaces the default classification."""
        policy = ExponentialBackoffWithJitter(error_filter=lambda err: isinstance(err, KeyError))
        assert policy.should_retry(KeyError("x"))
        assert not policy.should_retry(NotConnectedError())

    def test_immediate_first_retry(self):
        """The first retry happens without delay by default."""
        assert ExponentialBackoffWithJitter().next_retry_timeout(0) == 0

    def test_first_retry_waits_when_not_immediate(self):
        policy = ExponentialBackoffWithJitter(immediate_first_retry=False)
        # 2^0 - 1 == 0, so only the minimum applies
        assert policy.next_retry_timeout(0) == pytest.approx(0.1)

    def test_throttled_first_retry_is_not_immediate(self):
        """Throttling always waits, using the throttled parameters."""
        delay = ExponentialBackoffWithJitter().next_retry_timeout(0, is_throttled=True)
        assert delay == pytest.approx(10.0)

    def test_delay_grows_exponentially_within_jitter(self):
        """Delays stay inside the jitter window of the formula."""
        params = BackoffParameters()
        policy = ExponentialBackoffWithJitter(rng=random.Random(7))

        for retry_count in range(1, 6):
            x = retry_count + 1
            low = params.c_min + (2 ** (x - 1) - 1) * params.c * (1 - params.jd)
            high = params.c_min + (2 ** (x - 1) - 1) * params.c * (1 - params.ju)
            delay = policy.next_retry_timeout(retry_count)
            assert min(low, params.c_max) - 1e-9 <= delay <= min(high, params.c_max) + 1e-9

    def test_delay_is_capped(self):
        """The delay never exceeds c_max."""
        policy = ExponentialBackoffWithJitter()
        assert policy.next_retry_timeout(30) == 10.0
        assert policy.next_retry_timeout(30, is_throttled=True) == 60.0


class TestNoRetry:
    """Test the no-retry policy."""

    def test_never_retries(self):
        policy = NoRetry()
        assert policy.should_retry(NotConnectedError()) is False
        assert policy.next_retry_timeout(0) == -1


class TestValidateRetryPolicy:
    """Test retry policy validation."""

    def test_accepts_duck_typed_policy(self):
        class Custom:
            def should_retry(self, error):
                return True

            def next_retry_timeout(self, retry_count, is_throttled=False):
                return 0

        policy = Custom()
        assert validate_retry_policy(policy) is policy

    def test_accepts_retry_count_only_policy(self):
        class CountOnly:
            def should_retry(self, error):
                return True

            def next_retry_timeout(self, retry_count):
                return 0

        policy = CountOnly()
        assert validate_retry_policy(policy) is policy
        assert not accepts_throttled_flag(policy)
        assert accepts_throttled_flag(NoRetry())

    def test_rejects_policy_without_retry_count(self):
        class NoArgs:
            def should_retry(self, error):
                return True

            def next_retry_timeout(self):
                return 0

        with pytest.raises(ArgumentError):
            validate_retry_policy(NoArgs())

    def test_rejects_none(self):
        with pytest.raises(ArgumentError):
            validate_retry_policy(None)

    def test_rejects_incomplete_policy(self):
        class HalfPolicy:
            def should_retry(self, error):
                return True

        with pytest.raises(ArgumentError):
            validate_retry_policy(HalfPolicy())

    def test_rejects_non_callable_attributes(self):
        class Broken:
            should_retry = True
            next_retry_timeout = 5

        with pytest.raises(ArgumentError):
            validate_retry_policy(Broken())


class TestErrorClassifier:
    """Test error classification."""

    def test_classifies_by_class_name(self):
        classification = ErrorClassifier.classify_error(ThrottlingError("slow down"))
        assert classification.category == ErrorCategory.THROTTLING
        assert classification.is_retryable
        assert classification.is_throttled

    def test_classifies_subclasses(self):
        """Subclasses inherit the classification of their parent."""
        class AmqpThrottled(ThrottlingError):
            pass

        assert ErrorClassifier.classify_error(AmqpThrottled()).category == ErrorCategory.THROTTLING

    def test_builtin_network_errors_are_retryable(self):
        assert ErrorClassifier.is_retryable(ConnectionResetError("reset"))
        assert ErrorClassifier.is_retryable(asyncio.TimeoutError())

    def test_classifies_by_message(self):
        classification = ErrorClassifier.classify_error(RuntimeError("Server busy, try later"))
        assert classification.category == ErrorCategory.SERVER_ERROR
        assert classification.is_retryable

    def test_unknown_errors_are_not_retryable(self):
        classification = ErrorClassifier.classify_error(RuntimeError("boom"))
        assert classification.category == ErrorCategory.UNKNOWN
        assert not classification.is_retryable
