"""Data models exchanged between clients, transports and applications."""

from .message import DiagnosticPropertyData, Message
from .method import DeviceMethodRequest, DeviceMethodResponse, MethodMessage
from .results import (
    Connected,
    Disconnected,
    MessageAbandoned,
    MessageCompleted,
    MessageEnqueued,
    MessageRejected,
    OperationResult,
    SharedAccessSignatureUpdated,
    TransportConfigured,
)

__all__ = [
    # Messages
    "Message",
    "DiagnosticPropertyData",

    # Direct methods
    "MethodMessage",
    "DeviceMethodRequest",
    "DeviceMethodResponse",

    # Results
    "OperationResult",
    "Connected",
    "Disconnected",
    "MessageEnqueued",
    "MessageCompleted",
    "MessageRejected",
    "MessageAbandoned",
    "TransportConfigured",
    "SharedAccessSignatureUpdated",
]
