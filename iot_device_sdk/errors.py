"""
Error types raised by the device SDK.

Argument errors are raised before any transport interaction and are never
retried. Transport and service errors are raised by transport
implementations; whether they are retried is decided by the active
retry policy (see ``iot_device_sdk.reliability.error_classifier``).
"""

from typing import Any, Optional


class IotHubError(Exception):
    """
    Base exception for all SDK errors.

    Attributes:
        message: Error message
        transport_error: The transport-specific error this one wraps, if any
        response: Transport-specific response object, if any
    """

    def __init__(
        self,
        message: str = "",
        transport_error: Optional[BaseException] = None,
        response: Any = None
    ):
        super().__init__(message)
        self.message = message
        self.transport_error = transport_error
        self.response = response


class ArgumentError(IotHubError, ValueError):
    """Raised when an argument passed by the caller is missing or invalid."""


class NotImplementedFeatureError(IotHubError, NotImplementedError):
    """Raised when the transport does not support the requested operation."""


class InvalidOperationError(IotHubError):
    """Raised when an operation is not allowed in the current state."""


# Transport and service errors

class NotConnectedError(IotHubError):
    """The transport is not connected."""


class UnauthorizedError(IotHubError):
    """The service refused the credentials."""


class DeviceNotFoundError(IotHubError):
    """The device is not registered with the hub."""


class IotHubNotFoundError(IotHubError):
    """The hub could not be found."""


class FormatError(IotHubError):
    """A value did not have the expected format."""


class MessageTooLargeError(IotHubError):
    """The message exceeds the maximum size accepted by the service."""


class IotHubQuotaExceededError(IotHubError):
    """The hub has exhausted its daily message quota."""


class DeviceMaximumQueueDepthExceededError(IotHubError):
    """The cloud-to-device queue for the device is full."""


class DeviceMessageLockLostError(IotHubError):
    """The lock on a cloud-to-device message expired before settlement."""


class InternalServerError(IotHubError):
    """The service hit an internal error."""


class ServiceUnavailableError(IotHubError):
    """The service is temporarily unavailable."""


class ThrottlingError(IotHubError):
    """The service is throttling requests from this client."""


class OperationTimeoutError(IotHubError):
    """The transport did not get a response in time."""


class PreconditionFailedError(IotHubError):
    """A precondition of the request was not met."""


class InvalidEtagError(IotHubError):
    """The etag supplied with the request is stale."""
