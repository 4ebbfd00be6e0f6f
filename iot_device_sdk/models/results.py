"""Result markers returned by successful transport and client operations.

These are tagged success values, not errors. Each carries the raw
transport-level object (if any) for callers that need protocol details.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class OperationResult:
    """Base class for all result markers."""
    transport_obj: Any = None


@dataclass
class Connected(OperationResult):
    """The transport connected."""


@dataclass
class Disconnected(OperationResult):
    """
    The transport disconnected.

    When emitted through the client ``disconnect`` event, ``reason`` holds
    the error that caused the disconnection (or ``None`` for a clean one).
    """
    reason: Optional[BaseException] = None


@dataclass
class MessageEnqueued(OperationResult):
    """A message was accepted by the service."""


@dataclass
class MessageCompleted(OperationResult):
    """A cloud-to-device message was completed."""


@dataclass
class MessageRejected(OperationResult):
    """A cloud-to-device message was rejected."""


@dataclass
class MessageAbandoned(OperationResult):
    """A cloud-to-device message was abandoned."""


@dataclass
class TransportConfigured(OperationResult):
    """Transport options were applied."""


@dataclass
class SharedAccessSignatureUpdated(OperationResult):
    """The transport took a new shared access signature."""
    need_to_reconnect: bool = False
