"""Transport abstractions."""

from .base import (
    BlobUploader,
    CredentialsProvider,
    DeviceCredentials,
    DeviceTransport,
    TransportCapability,
)

__all__ = [
    "BlobUploader",
    "CredentialsProvider",
    "DeviceCredentials",
    "DeviceTransport",
    "TransportCapability",
]
