"""Reliability layer for retries and error classification.

This layer handles:
- Retry policies (exponential backoff with jitter, no retry)
- Bounded retry execution of single operations
- Classification of transport errors into retryable / terminal
"""

from .retry import RetryOperation
from .retry_policy import (
    BackoffParameters,
    ExponentialBackoffWithJitter,
    NoRetry,
    RetryPolicy,
    accepts_throttled_flag,
    validate_retry_policy,
)
from .error_classifier import ErrorClassifier, ErrorCategory, ErrorClassification

__all__ = [
    "RetryOperation",
    "RetryPolicy",
    "BackoffParameters",
    "ExponentialBackoffWithJitter",
    "NoRetry",
    "validate_retry_policy",
    "accepts_throttled_flag",
    "ErrorClassifier",
    "ErrorCategory",
    "ErrorClassification",
]
