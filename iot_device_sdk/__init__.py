"""
IoT Device SDK - device-side client core for a cloud IoT hub.

This package lets a device or an edge module talk to the hub over a
pluggable transport:
- Telemetry, batched telemetry and module output events
- Cloud-to-device messages with explicit settlement
- Direct methods
- Device twin with desired/reported property synchronization

Features:
- Every operation retried under a swappable retry policy with a bounded deadline
- Automatic re-enabling of subscriptions after a transient disconnect
- Token renewal driven by a credentials provider
- Deterministic diagnostic sampling of outgoing messages
"""

__version__ = "0.1.0"

from .config import ClientConfig
# Clients must be imported before the twin package
from .client import DeviceClient, InternalClient, ModuleClient
from .diagnostics import DiagnosticSampler
from .errors import (
    ArgumentError,
    InvalidOperationError,
    IotHubError,
    NotImplementedFeatureError,
)
from .events import EventEmitter, Subscription
from .models import (
    Connected,
    DeviceMethodRequest,
    DeviceMethodResponse,
    DiagnosticPropertyData,
    Disconnected,
    Message,
    MessageAbandoned,
    MessageCompleted,
    MessageEnqueued,
    MessageRejected,
    SharedAccessSignatureUpdated,
    TransportConfigured,
)
from .reliability import ExponentialBackoffWithJitter, NoRetry, RetryOperation, RetryPolicy
from .transport import (
    BlobUploader,
    CredentialsProvider,
    DeviceCredentials,
    DeviceTransport,
    TransportCapability,
)
from .twin import Twin, TwinProperties

__all__ = [
    # Clients
    "DeviceClient",
    "ModuleClient",
    "InternalClient",
    "ClientConfig",

    # Twin
    "Twin",
    "TwinProperties",

    # Retry
    "RetryPolicy",
    "ExponentialBackoffWithJitter",
    "NoRetry",
    "RetryOperation",

    # Transport interfaces
    "DeviceTransport",
    "TransportCapability",
    "CredentialsProvider",
    "DeviceCredentials",
    "BlobUploader",

    # Models
    "Message",
    "DiagnosticPropertyData",
    "DeviceMethodRequest",
    "DeviceMethodResponse",
    "Connected",
    "Disconnected",
    "MessageEnqueued",
    "MessageCompleted",
    "MessageRejected",
    "MessageAbandoned",
    "TransportConfigured",
    "SharedAccessSignatureUpdated",

    # Events and diagnostics
    "EventEmitter",
    "Subscription",
    "DiagnosticSampler",

    # Errors
    "IotHubError",
    "ArgumentError",
    "InvalidOperationError",
    "NotImplementedFeatureError",
]
