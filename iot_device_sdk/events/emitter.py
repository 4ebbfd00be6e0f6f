from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

ERROR_EVENT = "error"

Handler = Callable[..., Any]


class Subscription:
    """Handle returned by ``EventEmitter.subscribe``."""

    def __init__(self, emitter: "EventEmitter", event: str, handler: Handler) -> None:
        self.emitter = emitter
        self.event = event
        self.handler = handler

    @property
    def active(self) -> bool:
        return self.emitter.is_subscribed(self.event, self.handler)

    def unsubscribe(self) -> None:
        self.emitter.unsubscribe(self.event, self.handler)

    def __repr__(self) -> str:
        return f"Subscription(event={self.event!r}, active={self.active})"


class EventEmitter:
    """
    Named events with explicit subscribe / unsubscribe.

    Owners that need to react to listeners coming and going (for example to
    enable a transport feature on the first ``message`` subscriber) pass
    ``on_subscribe`` / ``on_unsubscribe`` hooks. Hooks run after the listener
    list has been updated, so ``listener_count`` already reflects the change.

    Handlers may be plain callables or coroutine functions; coroutines are
    scheduled on the running loop and tracked until they finish.
    """

    def __init__(
        self,
        on_subscribe: Optional[Callable[[str, Handler], None]] = None,
        on_unsubscribe: Optional[Callable[[str, Handler], None]] = None,
    ) -> None:
        self._handlers: Dict[str, List[Handler]] = {}
        self._on_subscribe = on_subscribe
        self._on_unsubscribe = on_unsubscribe
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        if not event or not isinstance(event, str):
            raise TypeError(f"event name must be a non-empty string, got {event!r}")
        if not callable(handler):
            raise TypeError(f"handler for {event!r} must be callable")

        self._handlers.setdefault(event, []).append(handler)
        if self._on_subscribe:
            try:
                self._on_subscribe(event, handler)
            except Exception:
                # Hook refused the listener, roll back without the unsubscribe hook
                self._discard(event, handler)
                raise
        return Subscription(self, event, handler)

    # Alias matching the "on(event, handler)" convention
    on = subscribe

    def _discard(self, event: str, handler: Handler) -> bool:
        handlers = self._handlers.get(event)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del self._handlers[event]
        return True

    def unsubscribe(self, event: str, handler: Handler) -> bool:
        if not self._discard(event, handler):
            return False
        if self._on_unsubscribe:
            self._on_unsubscribe(event, handler)
        return True

    def remove_all(self, event: Optional[str] = None) -> None:
        """Drop listeners without running the unsubscribe hook."""
        if event is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event, None)

    def is_subscribed(self, event: str, handler: Handler) -> bool:
        return handler in self._handlers.get(event, ())

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def event_names(self) -> List[str]:
        return list(self._handlers)

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every handler subscribed to ``event``.

        Returns:
            True if at least one handler was called
        """
        handlers = list(self._handlers.get(event, ()))
        if not handlers:
            if event == ERROR_EVENT and args:
                logger.warning(f"Unhandled error event: {args[0]!r}")
            return False

        for handler in handlers:
            self._call(handler, args)
        return True

    def deliver(self, event: str, handler: Handler, *args: Any) -> bool:
        """Call a single handler, provided it is still subscribed to ``event``."""
        if not self.is_subscribed(event, handler):
            return False
        self._call(handler, args)
        return True

    def _call(self, handler: Handler, args: tuple) -> None:
        result = handler(*args)
        if inspect.isawaitable(result):
            self._track(result)

    def _track(self, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)
        task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Event handler raised {type(error).__name__}: {error}")

    async def drain(self) -> None:
        """Wait for coroutine handlers scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
