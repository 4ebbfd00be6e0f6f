"""
Operation orchestration shared by device and module clients.

Every public operation wraps one transport call in a ``RetryOperation``
built from the current retry policy and the configured maximum operation
timeout. Argument errors are raised before the transport is touched.

Optional subscriptions (cloud-to-device messages, direct methods,
desired-property updates, module input messages) are tracked by
``FeatureToggle`` objects. When the transport reports a disconnect with an
error the retry policy accepts, every enabled feature is flagged disabled
and re-enabled in the background; if that fails, the client emits
``disconnect`` with a ``Disconnected`` result carrying the original error.

Public events (``client.events``):

- ``message`` ``(Message)``: cloud-to-device message
- ``error`` ``(error)``: non-fatal error
- ``disconnect`` ``(Disconnected)``: the connection is lost for good
"""

from __future__ import annotations

import inspect
import warnings
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import ClientConfig
from ..diagnostics import DiagnosticSampler
from ..errors import ArgumentError, NotImplementedFeatureError
from ..events import ERROR_EVENT, EventEmitter, Subscription
from ..models.message import Message
from ..models.method import DeviceMethodRequest, DeviceMethodResponse, MethodMessage
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
from ..observability import ClientLogger
from ..reliability import (
    ExponentialBackoffWithJitter,
    RetryOperation,
    RetryPolicy,
    validate_retry_policy,
)
from ..transport.base import (
    DISCONNECT_EVENT,
    MESSAGE_EVENT,
    NEW_TOKEN_EVENT,
    CredentialsProvider,
    DeviceCredentials,
    DeviceTransport,
    TransportCapability,
)
from ..twin import Twin
from .features import BackgroundTasks, FeatureState, FeatureToggle

MethodHandler = Callable[[DeviceMethodRequest, DeviceMethodResponse], Any]


class InternalClient:
    """
    Base class of ``DeviceClient`` and ``ModuleClient``.

    Args:
        transport: Transport implementation, owned by the client
        config: Client configuration (defaults apply when omitted)
        retry_policy: Initial retry policy; exponential backoff with jitter by default
        credentials_provider: Optional source of renewed tokens
    """

    # Client event -> feature enabled while the event has listeners
    LISTENER_FEATURES: Dict[str, str] = {MESSAGE_EVENT: "c2d"}

    FEATURE_CAPABILITIES: Dict[str, TransportCapability] = {
        "c2d": TransportCapability.C2D,
        "methods": TransportCapability.METHODS,
    }

    def __init__(
        self,
        transport: DeviceTransport,
        config: Optional[ClientConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        credentials_provider: Optional[CredentialsProvider] = None,
    ):
        if transport is None:
            raise ArgumentError("transport cannot be None")

        self._transport = transport
        self._config = config or ClientConfig()
        self._max_operation_timeout = self._config.max_operation_timeout
        if retry_policy is None:
            retry_policy = ExponentialBackoffWithJitter(
                immediate_first_retry=self._config.immediate_first_retry
            )
        self._retry_policy = validate_retry_policy(retry_policy)
        self._credentials_provider = credentials_provider

        self.diagnostic_sampler = DiagnosticSampler(self._config.diagnostic_sampling_percentage)
        self._log = ClientLogger("client")
        self._tasks = BackgroundTasks(type(self).__name__)
        self._twin: Optional[Twin] = None
        self._method_handlers: Dict[str, MethodHandler] = {}
        self._transport_subscriptions: List[Subscription] = []

        self.events = EventEmitter(
            on_subscribe=self._on_listener_added,
            on_unsubscribe=self._on_listener_removed,
        )
        self._features: Dict[str, FeatureToggle] = {}
        self._add_feature("c2d", self._transport.enable_c2d, self._transport.disable_c2d)
        self._add_feature("methods", self._transport.enable_methods, self._transport.disable_methods)

        self._attach()

    # Properties

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    @property
    def max_operation_timeout(self) -> float:
        return self._max_operation_timeout

    @property
    def twin(self) -> Optional[Twin]:
        """The twin, once ``get_twin`` has been called."""
        return self._twin

    def feature_state(self, name: str) -> FeatureState:
        return self._features[name].state

    # Plumbing

    def _add_feature(self, name: str, enable: Callable[[], Awaitable[Any]],
                     disable: Callable[[], Awaitable[Any]]) -> FeatureToggle:
        feature = FeatureToggle(
            name,
            enable_fn=lambda: self._retry(f"enable_{name}", enable),
            disable_fn=disable,
        )
        self._features[name] = feature
        return feature

    def _attach(self) -> None:
        """Subscribe to transport and credentials events."""
        if self._transport_subscriptions:
            return
        transport_events = self._transport.events
        self._transport_subscriptions = [
            transport_events.subscribe(MESSAGE_EVENT, self._on_transport_message),
            transport_events.subscribe(ERROR_EVENT, self._on_transport_error),
            transport_events.subscribe(DISCONNECT_EVENT, self._on_transport_disconnect),
        ]
        if self._credentials_provider is not None:
            self._transport_subscriptions.append(
                self._credentials_provider.events.subscribe(NEW_TOKEN_EVENT, self._on_new_token)
            )

    def _detach(self) -> None:
        for subscription in self._transport_subscriptions:
            subscription.unsubscribe()
        self._transport_subscriptions = []

    def _require(self, capability: TransportCapability) -> None:
        if not self._transport.supports(capability):
            raise NotImplementedFeatureError(
                f"{type(self._transport).__name__} does not support {capability.value}"
            )

    async def _retry(self, operation: str, action: Callable[[], Awaitable[Any]]) -> Any:
        op = RetryOperation(operation, self._retry_policy, self._max_operation_timeout)
        async with self._log.track_operation(operation):
            return await op.retry(action)

    # Connection

    async def open(self) -> Connected:
        """
        Connect the transport.

        After a ``close``, features that still have listeners or registered
        method handlers are re-enabled in the background.
        """
        self._attach()
        result = await self._retry("connect", self._transport.connect)
        self._restore_features()
        return result

    def _restore_features(self) -> None:
        for event, name in self.LISTENER_FEATURES.items():
            if self.events.listener_count(event):
                self._enable_in_background(self._features[name])
        if self._method_handlers:
            self._enable_in_background(self._features["methods"])

    async def close(self) -> Disconnected:
        """
        Disconnect and tear the client down.

        Not retried. Background work the client started (feature enables,
        disconnect recovery, token updates) is cancelled; operations awaited
        by the caller are left alone. Listeners and method handlers are kept,
        so ``open`` may be called again afterwards.
        """
        self._detach()
        self._tasks.cancel_all()
        for feature in self._features.values():
            feature.mark_disabled()
        if self._twin is not None:
            self._twin.close()
            self._twin = None

        self._log.debug("Closing transport", operation="disconnect")
        return await self._transport.disconnect()

    async def update_shared_access_signature(self, sas: str) -> SharedAccessSignatureUpdated:
        if not sas:
            raise ArgumentError("sas cannot be empty")
        return await self._retry(
            "update_shared_access_signature",
            lambda: self._transport.update_shared_access_signature(sas),
        )

    async def set_options(self, options: Dict[str, Any]) -> TransportConfigured:
        if not options:
            raise ArgumentError("options cannot be empty")
        self._require(TransportCapability.SET_OPTIONS)

        await self._retry("set_options", lambda: self._transport.set_options(options))
        return TransportConfigured()

    async def set_transport_options(self, options: Dict[str, Any]) -> TransportConfigured:
        """Deprecated: use ``set_options``."""
        warnings.warn(
            "set_transport_options is deprecated, use set_options instead",
            DeprecationWarning,
            stacklevel=2,
        )
        if not options:
            raise ArgumentError("options cannot be empty")
        self._require(TransportCapability.SET_OPTIONS)

        client_options = {"http": {"receivePolicy": options}}
        await self._retry("set_options", lambda: self._transport.set_options(client_options))
        return TransportConfigured()

    def set_retry_policy(self, policy: RetryPolicy) -> None:
        """
        Replace the retry policy.

        Operations already in flight keep the policy they started with.

        Raises:
            ArgumentError: If ``policy`` lacks ``should_retry`` or ``next_retry_timeout``
        """
        self._retry_policy = validate_retry_policy(policy)
        if self._twin is not None:
            self._twin.set_retry_policy(policy)

    # Telemetry

    async def send_event(self, message: Message) -> MessageEnqueued:
        if message is None:
            raise ArgumentError("message cannot be None")
        self.diagnostic_sampler.add_diagnostic_info_if_necessary(message)
        return await self._retry("send_event", lambda: self._transport.send_event(message))

    async def send_event_batch(self, messages: List[Message]) -> MessageEnqueued:
        self._validate_batch(messages)
        self._require(TransportCapability.BATCHING)
        for message in messages:
            self.diagnostic_sampler.add_diagnostic_info_if_necessary(message)
        return await self._retry(
            "send_event_batch", lambda: self._transport.send_event_batch(messages)
        )

    @staticmethod
    def _validate_batch(messages: List[Message]) -> None:
        if not messages:
            raise ArgumentError("messages cannot be empty")
        if not isinstance(messages, list):
            raise TypeError(f"messages must be a list, got {type(messages).__name__}")
        if any(message is None for message in messages):
            raise ArgumentError("messages cannot contain None")

    # Message settlement

    async def complete(self, message: Message) -> MessageCompleted:
        if message is None:
            raise ArgumentError("message cannot be None")
        return await self._retry("complete", lambda: self._transport.complete(message))

    async def reject(self, message: Message) -> MessageRejected:
        if message is None:
            raise ArgumentError("message cannot be None")
        return await self._retry("reject", lambda: self._transport.reject(message))

    async def abandon(self, message: Message) -> MessageAbandoned:
        if message is None:
            raise ArgumentError("message cannot be None")
        return await self._retry("abandon", lambda: self._transport.abandon(message))

    # Cloud-to-device messages

    async def enable_messages(self) -> None:
        """Enable cloud-to-device messages regardless of listeners."""
        self._require(TransportCapability.C2D)
        await self._features["c2d"].enable()

    async def disable_messages(self) -> None:
        self._require(TransportCapability.C2D)
        await self._features["c2d"].disable()

    def _on_transport_message(self, message: Message) -> None:
        self.events.emit(MESSAGE_EVENT, message)

    # Direct methods

    def on_device_method(self, method_name: str, handler: MethodHandler) -> None:
        """
        Register the handler for a direct method.

        The handler is called with ``(DeviceMethodRequest, DeviceMethodResponse)``
        and may be a coroutine function. Only one handler can be registered
        per method name. The first registration enables methods on the
        transport in the background; failure is reported on ``error``.

        Raises:
            ArgumentError: If the name or handler is missing, or the name is taken
            TypeError: If the name is not a string or the handler not callable
        """
        if not method_name:
            raise ArgumentError(f"method_name cannot be {method_name!r}")
        if not isinstance(method_name, str):
            raise TypeError(f"method_name must be a string, got {type(method_name).__name__}")
        if not handler:
            raise ArgumentError(f"handler cannot be {handler!r}")
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        if method_name in self._method_handlers:
            raise ArgumentError(
                f"A handler for method {method_name!r} has already been registered with the client."
            )
        self._require(TransportCapability.METHODS)

        self._enable_in_background(self._features["methods"])
        self._method_handlers[method_name] = handler
        self._transport.on_device_method(
            method_name, lambda method_message: self._dispatch_method(handler, method_message)
        )

    def _dispatch_method(self, handler: MethodHandler, method_message: MethodMessage) -> None:
        request = DeviceMethodRequest(
            method_message.request_id, method_message.method_name, method_message.body
        )
        response = DeviceMethodResponse(method_message.request_id, self._transport)
        self._tasks.spawn(self._run_method_handler(handler, request, response), request.method_name)

    async def _run_method_handler(self, handler: MethodHandler, request: DeviceMethodRequest,
                                  response: DeviceMethodResponse) -> None:
        try:
            result = handler(request, response)
            if inspect.isawaitable(result):
                await result
        except Exception as error:
            self._log.error("Method handler failed", operation=request.method_name, error=error)
            self.events.emit(ERROR_EVENT, error)

    # Twin

    async def get_twin(self) -> Twin:
        """
        Fetch the twin, creating it on first use.

        Returns:
            The client's ``Twin`` with freshly fetched properties
        """
        self._require(TransportCapability.TWIN)
        if self._twin is None:
            self._twin = Twin(
                self._transport,
                self._retry_policy,
                self._max_operation_timeout,
                client_logger=ClientLogger("twin"),
            )
        return await self._twin.get()

    # Listener-driven features

    def _on_listener_added(self, event: str, handler: Callable[..., Any]) -> None:
        name = self.LISTENER_FEATURES.get(event)
        if name is None:
            return
        self._require(self.FEATURE_CAPABILITIES[name])
        self._enable_in_background(self._features[name])

    def _on_listener_removed(self, event: str, handler: Callable[..., Any]) -> None:
        name = self.LISTENER_FEATURES.get(event)
        if name is None or self.events.listener_count(event):
            return
        feature = self._features[name]
        if feature.state in (FeatureState.ENABLED, FeatureState.ENABLING):
            self._tasks.spawn(self._disable_feature(feature), f"disable {name}")

    def _enable_in_background(self, feature: FeatureToggle) -> None:
        if feature.state is FeatureState.DISABLED:
            self._tasks.spawn(self._enable_feature(feature), f"enable {feature.name}")

    async def _enable_feature(self, feature: FeatureToggle) -> None:
        try:
            await feature.enable()
        except Exception as error:
            self.events.emit(ERROR_EVENT, error)

    async def _disable_feature(self, feature: FeatureToggle) -> None:
        try:
            await feature.disable()
        except Exception as error:
            self._log.error(f"Could not disable {feature.name}",
                            operation=f"disable_{feature.name}", error=error)
            self.events.emit(ERROR_EVENT, error)

    # Transport events

    def _recoverable_features(self) -> List[FeatureToggle]:
        features = list(self._features.values())
        if self._twin is not None:
            features.append(self._twin.desired_updates)
        return features

    def _on_transport_disconnect(self, error: Optional[BaseException] = None) -> None:
        if error is None or not self._retry_policy.should_retry(error):
            self._log.debug("Transport disconnected", operation="disconnect",
                            error_type=type(error).__name__ if error else None)
            self.events.emit(DISCONNECT_EVENT, Disconnected(reason=error))
            return

        self._log.warning("Transport disconnected, re-enabling features",
                          operation="disconnect", error_type=type(error).__name__)
        for feature in self._recoverable_features():
            # Cleared first so a disconnect raised by the re-enable itself
            # does not schedule a second recovery for this feature
            if feature.mark_disabled():
                self._tasks.spawn(self._recover_feature(feature, error), f"recover {feature.name}")

    async def _recover_feature(self, feature: FeatureToggle, disconnect_error: BaseException) -> None:
        try:
            await feature.enable()
        except Exception as error:
            self._log.error(f"Could not re-enable {feature.name}",
                            operation=f"enable_{feature.name}", error=error)
            self.events.emit(DISCONNECT_EVENT, Disconnected(reason=disconnect_error))

    def _on_transport_error(self, error: BaseException) -> None:
        self._log.debug("Transport error", error_type=type(error).__name__, error_msg=str(error))
        self.events.emit(ERROR_EVENT, error)

    def _on_new_token(self, credentials: DeviceCredentials) -> None:
        if not credentials.shared_access_signature:
            return
        self._tasks.spawn(
            self._renew_token(credentials.shared_access_signature), "update_shared_access_signature"
        )

    async def _renew_token(self, sas: str) -> None:
        try:
            await self.update_shared_access_signature(sas)
        except Exception as error:
            self.events.emit(ERROR_EVENT, error)
