"""
Error classification for retry decisions.

This module maps transport and service errors to a category and a
retryable flag. It is the error filter used by the default retry policy:
an operation is retried only if its error classifies as retryable.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class ErrorCategory(Enum):
    """Standard error categories."""
    AUTHENTICATION = "authentication"
    THROTTLING = "throttling"
    VALIDATION = "validation"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    QUOTA = "quota"
    CONFLICT = "conflict"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


@dataclass
class ErrorClassification:
    """Detailed error classification."""
    category: ErrorCategory
    is_retryable: bool
    user_message: Optional[str] = None

    @property
    def is_throttled(self) -> bool:
        return self.category == ErrorCategory.THROTTLING


class ErrorClassifier:
    """Classifies errors raised by transports."""

    # Keyed by exception class name so that transport packages can raise
    # their own classes with the same names.
    ERROR_MAPPINGS: Dict[str, Dict] = {
        'ArgumentError': {
            'category': ErrorCategory.VALIDATION,
            'retryable': False,
            'message': 'Invalid argument'
        },
        'FormatError': {
            'category': ErrorCategory.VALIDATION,
            'retryable': False,
            'message': 'Badly formatted value'
        },
        'MessageTooLargeError': {
            'category': ErrorCategory.VALIDATION,
            'retryable': False,
            'message': 'Message exceeds the maximum allowed size'
        },
        'UnauthorizedError': {
            'category': ErrorCategory.AUTHENTICATION,
            'retryable': False,
            'message': 'Credentials were refused by the service'
        },
        'DeviceNotFoundError': {
            'category': ErrorCategory.NOT_FOUND,
            'retryable': False,
            'message': 'Device is not registered'
        },
        'IotHubNotFoundError': {
            'category': ErrorCategory.NOT_FOUND,
            'retryable': False,
            'message': 'Hub could not be found'
        },
        'IotHubQuotaExceededError': {
            'category': ErrorCategory.QUOTA,
            'retryable': False,
            'message': 'Hub message quota exceeded'
        },
        'DeviceMaximumQueueDepthExceededError': {
            'category': ErrorCategory.QUOTA,
            'retryable': False,
            'message': 'Device queue is full'
        },
        'DeviceMessageLockLostError': {
            'category': ErrorCategory.CONFLICT,
            'retryable': False,
            'message': 'Message lock expired'
        },
        'InvalidEtagError': {
            'category': ErrorCategory.CONFLICT,
            'retryable': False,
            'message': 'Stale etag'
        },
        'PreconditionFailedError': {
            'category': ErrorCategory.CONFLICT,
            'retryable': False,
            'message': 'Precondition failed'
        },
        'InvalidOperationError': {
            'category': ErrorCategory.CONFLICT,
            'retryable': False,
            'message': 'Operation not allowed in the current state'
        },
        'NotImplementedFeatureError': {
            'category': ErrorCategory.UNSUPPORTED,
            'retryable': False,
            'message': 'Operation not supported by the transport'
        },
        'NotConnectedError': {
            'category': ErrorCategory.NETWORK,
            'retryable': True,
            'message': 'Transport is not connected'
        },
        'InternalServerError': {
            'category': ErrorCategory.SERVER_ERROR,
            'retryable': True,
            'message': 'Internal server error, please retry'
        },
        'ServiceUnavailableError': {
            'category': ErrorCategory.SERVER_ERROR,
            'retryable': True,
            'message': 'Service temporarily unavailable'
        },
        'ThrottlingError': {
            'category': ErrorCategory.THROTTLING,
            'retryable': True,
            'message': 'Requests are being throttled'
        },
        'OperationTimeoutError': {
            'category': ErrorCategory.TIMEOUT,
            'retryable': True,
            'message': 'Operation timed out'
        },
    }

    # Error patterns for string matching
    ERROR_PATTERNS = {
        'throttling': {
            'patterns': ['throttl', 'too many requests', 'rate limit'],
            'category': ErrorCategory.THROTTLING,
            'retryable': True
        },
        'authentication': {
            'patterns': ['unauthorized', 'authentication failed', 'not authorized'],
            'category': ErrorCategory.AUTHENTICATION,
            'retryable': False
        },
        'server_error': {
            'patterns': ['server error', 'internal error', 'service unavailable',
                         'server busy'],
            'category': ErrorCategory.SERVER_ERROR,
            'retryable': True
        },
        'network': {
            'patterns': ['connection reset', 'connection refused', 'connection lost',
                         'network error', 'socket closed'],
            'category': ErrorCategory.NETWORK,
            'retryable': True
        },
    }

    @classmethod
    def classify_error(cls, error: BaseException) -> ErrorClassification:
        """
        Classify an error with detailed metadata.

        Args:
            error: The exception to classify

        Returns:
            ErrorClassification with category and retry info
        """
        for klass in type(error).__mro__:
            mapping = cls.ERROR_MAPPINGS.get(klass.__name__)
            if mapping:
                return ErrorClassification(
                    category=mapping['category'],
                    is_retryable=mapping['retryable'],
                    user_message=mapping['message']
                )

        # Builtin families raised directly by socket-level code
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorClassification(ErrorCategory.TIMEOUT, True, 'Operation timed out')
        if isinstance(error, ConnectionError):
            return ErrorClassification(ErrorCategory.NETWORK, True, 'Network connection error')

        return cls._classify_by_message(error)

    @classmethod
    def _classify_by_message(cls, error: BaseException) -> ErrorClassification:
        error_msg = str(error).lower()
        for pattern_info in cls.ERROR_PATTERNS.values():
            if any(pattern in error_msg for pattern in pattern_info['patterns']):
                return ErrorClassification(
                    category=pattern_info['category'],
                    is_retryable=pattern_info['retryable']
                )

        return ErrorClassification(category=ErrorCategory.UNKNOWN, is_retryable=False)

    @classmethod
    def is_retryable(cls, error: BaseException) -> bool:
        return cls.classify_error(error).is_retryable
