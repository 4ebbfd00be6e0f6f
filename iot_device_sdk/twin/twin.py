"""
Device twin: local replica of the desired and reported property trees.

Desired-property changes are published on ``Twin.events`` under dotted
names rooted at ``properties.desired``. Merging the patch
``{"x": {"y": 1}}`` fires::

    properties.desired      {"x": {"y": 1}}
    properties.desired.x    {"y": 1}
    properties.desired.x.y  1

Subscribing to a desired-properties event enables desired-property updates
on the transport (first listener) and disables them again when the last
such listener goes away. A listener added for a path that already has a
cached value receives that value once, on the next loop iteration.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..client.features import BackgroundTasks, FeatureState, FeatureToggle
from ..events import ERROR_EVENT, EventEmitter, Subscription
from ..observability import ClientLogger
from ..reliability import RetryOperation, RetryPolicy
from ..transport.base import TWIN_DESIRED_UPDATE_EVENT, DeviceTransport
from .merge import get_at_path, iter_paths, merge_patch

DESIRED_PATH = "properties.desired"
_NOT_FOUND = object()


def is_desired_event(event: str) -> bool:
    return event == DESIRED_PATH or event.startswith(DESIRED_PATH + ".")


@dataclass
class TwinProperties:
    """The two property trees of a twin."""
    desired: Dict[str, Any] = field(default_factory=dict)
    reported: Dict[str, Any] = field(default_factory=dict)


class ReportedPropertiesUpdater:
    """Pushes reported-property patches through the owning twin."""

    def __init__(self, twin: "Twin"):
        self._twin = twin

    async def update(self, patch: Dict[str, Any]) -> None:
        """
        Send ``patch`` to the service and merge it into the local reported tree.

        ``None`` values delete the corresponding keys.
        """
        await self._twin._update_reported_properties(patch)


class Twin:
    """
    Twin of a device or module.

    Obtain it through ``client.get_twin()`` rather than constructing it
    directly; the client keeps one twin per connection and forwards retry
    policy changes to it.
    """

    def __init__(
        self,
        transport: DeviceTransport,
        retry_policy: RetryPolicy,
        max_operation_timeout: float,
        client_logger: Optional[ClientLogger] = None,
    ):
        self._transport = transport
        self._retry_policy = retry_policy
        self._max_operation_timeout = max_operation_timeout
        self._log = client_logger or ClientLogger("twin")
        self._get_lock = asyncio.Lock()
        self._tasks = BackgroundTasks("Twin")

        self.properties = TwinProperties()
        self.reported_updater = ReportedPropertiesUpdater(self)
        self.events = EventEmitter(
            on_subscribe=self._on_listener_added,
            on_unsubscribe=self._on_listener_removed,
        )
        self.desired_updates = FeatureToggle(
            "twin_desired_properties_updates",
            enable_fn=lambda: self._retry(
                "enable_twin_desired_properties_updates",
                self._transport.enable_twin_desired_properties_updates,
            ),
            disable_fn=self._transport.disable_twin_desired_properties_updates,
        )
        self._transport_subscription: Optional[Subscription] = self._transport.events.subscribe(
            TWIN_DESIRED_UPDATE_EVENT, self._on_desired_properties_patch
        )

    def set_retry_policy(self, policy: RetryPolicy) -> None:
        """Use ``policy`` for operations started from now on."""
        self._retry_policy = policy

    async def _retry(self, operation: str, action: Callable[[], Any]) -> Any:
        op = RetryOperation(operation, self._retry_policy, self._max_operation_timeout)
        return await op.retry(action)

    async def get(self) -> "Twin":
        """
        Fetch the full twin from the service.

        Cached properties are cleared before the fetch, so a failed fetch
        leaves both trees empty. Calls on the same twin are serialized.

        Returns:
            The twin itself
        """
        async with self._get_lock:
            self.properties = TwinProperties()
            self._log.debug("Fetching twin", operation="get_twin")

            twin_doc = await self._retry("get_twin", self._transport.get_twin)

            merge_patch(self.properties.desired, twin_doc.get("desired") or {})
            merge_patch(self.properties.reported, twin_doc.get("reported") or {})
            self._fire_change_events(self.properties.desired)
        return self

    async def _update_reported_properties(self, patch: Dict[str, Any]) -> None:
        if not isinstance(patch, dict):
            raise TypeError(f"patch must be a dict, got {type(patch).__name__}")

        await self._retry(
            "update_twin_reported_properties",
            lambda: self._transport.update_twin_reported_properties(patch),
        )
        merge_patch(self.properties.reported, patch)

    async def enable_desired_properties_updates(self) -> None:
        await self.desired_updates.enable()

    async def disable_desired_properties_updates(self) -> None:
        await self.desired_updates.disable()

    def _on_desired_properties_patch(self, patch: Dict[str, Any]) -> None:
        merge_patch(self.properties.desired, patch)
        self._fire_change_events(patch)

    def _fire_change_events(self, desired: Dict[str, Any]) -> None:
        self.events.emit(DESIRED_PATH, desired)
        for path, value in iter_paths(desired):
            self.events.emit(f"{DESIRED_PATH}.{path}", value)

    # Listener hooks

    def _on_listener_added(self, event: str, handler: Callable[..., Any]) -> None:
        if not is_desired_event(event):
            return

        if self.desired_updates.state is FeatureState.DISABLED:
            self._tasks.spawn(self._enable_updates_in_background(), "desired property updates")

        value = self._cached_value(event)
        if value is not _NOT_FOUND:
            asyncio.get_running_loop().call_soon(self.events.deliver, event, handler, value)

    def _on_listener_removed(self, event: str, handler: Callable[..., Any]) -> None:
        if not is_desired_event(event):
            return
        if any(is_desired_event(name) for name in self.events.event_names()):
            return
        if self.desired_updates.enabled:
            self._tasks.spawn(self._disable_updates_in_background(), "desired property updates")

    def _cached_value(self, event: str) -> Any:
        desired = self.properties.desired
        if event == DESIRED_PATH:
            return desired if desired else _NOT_FOUND
        return get_at_path(desired, event[len(DESIRED_PATH) + 1:], _NOT_FOUND)

    async def _enable_updates_in_background(self) -> None:
        try:
            await self.desired_updates.enable()
        except Exception as error:
            self._log.error("Could not enable desired property updates",
                            operation="enable_twin_desired_properties_updates", error=error)
            self.events.emit(ERROR_EVENT, error)

    async def _disable_updates_in_background(self) -> None:
        try:
            await self.desired_updates.disable()
        except Exception as error:
            self._log.error("Could not disable desired property updates",
                            operation="disable_twin_desired_properties_updates", error=error)
            self.events.emit(ERROR_EVENT, error)

    def close(self) -> None:
        """Detach from the transport and drop every listener."""
        if self._transport_subscription is not None:
            self._transport_subscription.unsubscribe()
            self._transport_subscription = None
        self._tasks.cancel_all()
        self.desired_updates.mark_disabled()
        self.events.remove_all()
