"""Client for modules running on a device."""

from typing import Any, Dict, List, Optional

from ..config import ClientConfig
from ..errors import ArgumentError
from ..models.message import Message
from ..models.results import MessageEnqueued
from ..reliability import RetryPolicy
from ..transport.base import (
    INPUT_MESSAGE_EVENT,
    CredentialsProvider,
    DeviceTransport,
    TransportCapability,
)
from .internal import InternalClient


class ModuleClient(InternalClient):
    """
    Client used by a module to talk to the hub or to an edge runtime.

    Adds routed messaging: ``send_output_event`` sends to a named output,
    and the ``input_message`` event delivers ``(input_name, Message)`` for
    messages routed to the module's inputs. Subscribing to
    ``input_message`` enables input messages on the transport.
    """

    LISTENER_FEATURES: Dict[str, str] = {
        **InternalClient.LISTENER_FEATURES,
        INPUT_MESSAGE_EVENT: "input_messages",
    }

    FEATURE_CAPABILITIES = {
        **InternalClient.FEATURE_CAPABILITIES,
        "input_messages": TransportCapability.INPUT_MESSAGES,
    }

    def __init__(
        self,
        transport: DeviceTransport,
        config: Optional[ClientConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        credentials_provider: Optional[CredentialsProvider] = None,
    ):
        super().__init__(transport, config, retry_policy, credentials_provider)
        self._add_feature(
            "input_messages",
            self._transport.enable_input_messages,
            self._transport.disable_input_messages,
        )

    def _attach(self) -> None:
        if self._transport_subscriptions:
            return
        super()._attach()
        self._transport_subscriptions.append(
            self._transport.events.subscribe(INPUT_MESSAGE_EVENT, self._on_transport_input_message)
        )

    def _on_transport_input_message(self, input_name: str, message: Message) -> None:
        self.events.emit(INPUT_MESSAGE_EVENT, input_name, message)

    async def enable_input_messages(self) -> None:
        """Enable input messages regardless of listeners."""
        self._require(TransportCapability.INPUT_MESSAGES)
        await self._features["input_messages"].enable()

    async def disable_input_messages(self) -> None:
        self._require(TransportCapability.INPUT_MESSAGES)
        await self._features["input_messages"].disable()

    @staticmethod
    def _validate_output_name(output_name: Any) -> None:
        if not output_name:
            raise ArgumentError(f"output_name cannot be {output_name!r}")
        if not isinstance(output_name, str):
            raise TypeError(f"output_name must be a string, got {type(output_name).__name__}")

    async def send_output_event(self, output_name: str, message: Message) -> MessageEnqueued:
        self._validate_output_name(output_name)
        if message is None:
            raise ArgumentError("message cannot be None")
        self._require(TransportCapability.OUTPUT_EVENTS)

        self.diagnostic_sampler.add_diagnostic_info_if_necessary(message)
        return await self._retry(
            "send_output_event",
            lambda: self._transport.send_output_event(output_name, message),
        )

    async def send_output_event_batch(self, output_name: str,
                                      messages: List[Message]) -> MessageEnqueued:
        self._validate_output_name(output_name)
        self._validate_batch(messages)
        self._require(TransportCapability.OUTPUT_EVENTS)

        for message in messages:
            self.diagnostic_sampler.add_diagnostic_info_if_necessary(message)
        return await self._retry(
            "send_output_event_batch",
            lambda: self._transport.send_output_event_batch(output_name, messages),
        )
