"""
Transport interface consumed by device and module clients.

Concrete wire protocols (MQTT, AMQP, HTTP) live outside this package. A
transport declares the optional features it implements through
``capabilities``; the client checks that set instead of probing for
methods. Optional operations that a transport does not implement raise
``NotImplementedFeatureError``.

Transports report asynchronous happenings through ``events``:

- ``message`` ``(Message)``: cloud-to-device message received
- ``input_message`` ``(input_name, Message)``: module input message received
- ``twin_desired_properties_update`` ``(patch)``: desired-properties patch pushed
- ``error`` ``(error)``: informational error, no state change implied
- ``disconnect`` ``(error_or_None)``: connection lost
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from ..errors import NotImplementedFeatureError
from ..events import EventEmitter
from ..models.message import Message
from ..models.method import DeviceMethodResponse, MethodMessage
from ..models.results import (
    Connected,
    Disconnected,
    MessageAbandoned,
    MessageCompleted,
    MessageEnqueued,
    MessageRejected,
    SharedAccessSignatureUpdated,
    TransportConfigured,
)

# Transport event names
MESSAGE_EVENT = "message"
INPUT_MESSAGE_EVENT = "input_message"
TWIN_DESIRED_UPDATE_EVENT = "twin_desired_properties_update"
DISCONNECT_EVENT = "disconnect"
ERROR_EVENT = "error"
NEW_TOKEN_EVENT = "new_token_available"


class TransportCapability(str, Enum):
    """Optional features a transport may implement."""
    C2D = "c2d"
    METHODS = "methods"
    TWIN = "twin"
    BATCHING = "batching"
    SET_OPTIONS = "set_options"
    INPUT_MESSAGES = "input_messages"
    OUTPUT_EVENTS = "output_events"


class DeviceCredentials(BaseModel):
    """Credentials handed out by a credentials provider."""
    host: str
    device_id: str
    module_id: Optional[str] = None
    shared_access_signature: Optional[str] = None
    shared_access_key: Optional[str] = None
    gateway_host_name: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


def _unsupported(operation: str) -> NotImplementedFeatureError:
    return NotImplementedFeatureError(f"{operation} is not supported by this transport")


class DeviceTransport(ABC):
    """
    Abstract base class for device transports.

    Subclasses must set ``capabilities`` to the features they implement and
    override the matching optional methods.
    """

    capabilities: FrozenSet[TransportCapability] = frozenset()

    def __init__(self) -> None:
        self.events = EventEmitter()

    def supports(self, capability: TransportCapability) -> bool:
        return capability in self.capabilities

    # Connection

    @abstractmethod
    async def connect(self) -> Connected:
        """Open the connection."""

    @abstractmethod
    async def disconnect(self) -> Disconnected:
        """Close the connection."""

    @abstractmethod
    async def update_shared_access_signature(self, sas: str) -> SharedAccessSignatureUpdated:
        """Swap the credential used by the connection."""

    # Telemetry and settlement

    @abstractmethod
    async def send_event(self, message: Message) -> MessageEnqueued:
        """Send a device-to-cloud message."""

    async def send_event_batch(self, messages: List[Message]) -> MessageEnqueued:
        raise _unsupported("send_event_batch")

    async def complete(self, message: Message) -> MessageCompleted:
        raise _unsupported("complete")

    async def reject(self, message: Message) -> MessageRejected:
        raise _unsupported("reject")

    async def abandon(self, message: Message) -> MessageAbandoned:
        raise _unsupported("abandon")

    async def set_options(self, options: Dict[str, Any]) -> TransportConfigured:
        raise _unsupported("set_options")

    # Cloud-to-device messages

    async def enable_c2d(self) -> None:
        raise _unsupported("enable_c2d")

    async def disable_c2d(self) -> None:
        raise _unsupported("disable_c2d")

    # Direct methods

    def on_device_method(self, method_name: str,
                         handler: Callable[[MethodMessage], Any]) -> None:
        raise _unsupported("on_device_method")

    async def enable_methods(self) -> None:
        raise _unsupported("enable_methods")

    async def disable_methods(self) -> None:
        raise _unsupported("disable_methods")

    async def send_method_response(self, response: DeviceMethodResponse) -> None:
        raise _unsupported("send_method_response")

    # Twin

    async def get_twin(self) -> Dict[str, Any]:
        """Return ``{"desired": {...}, "reported": {...}}``."""
        raise _unsupported("get_twin")

    async def update_twin_reported_properties(self, patch: Dict[str, Any]) -> None:
        raise _unsupported("update_twin_reported_properties")

    async def enable_twin_desired_properties_updates(self) -> None:
        raise _unsupported("enable_twin_desired_properties_updates")

    async def disable_twin_desired_properties_updates(self) -> None:
        raise _unsupported("disable_twin_desired_properties_updates")

    # Module routing

    async def enable_input_messages(self) -> None:
        raise _unsupported("enable_input_messages")

    async def disable_input_messages(self) -> None:
        raise _unsupported("disable_input_messages")

    async def send_output_event(self, output_name: str, message: Message) -> MessageEnqueued:
        raise _unsupported("send_output_event")

    async def send_output_event_batch(self, output_name: str,
                                      messages: List[Message]) -> MessageEnqueued:
        raise _unsupported("send_output_event_batch")


class CredentialsProvider(ABC):
    """
    Source of device credentials.

    Providers that renew tokens emit ``new_token_available`` with the fresh
    ``DeviceCredentials`` on ``events``.
    """

    def __init__(self) -> None:
        self.events = EventEmitter()

    @abstractmethod
    async def get_device_credentials(self) -> DeviceCredentials:
        """Return the current credentials."""


class BlobUploader(ABC):
    """Uploads files to the storage account linked to the hub."""

    @abstractmethod
    async def upload_to_blob(self, blob_name: str, stream: Any, stream_length: int) -> None:
        """Upload ``stream_length`` bytes read from ``stream`` as ``blob_name``."""

    def update_shared_access_signature(self, sas: str) -> None:
        """Take a renewed credential."""

    def set_options(self, options: Dict[str, Any]) -> None:
        """Apply client options relevant to uploads."""
