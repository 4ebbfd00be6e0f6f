"""
Feature-flag state machine for optional transport subscriptions.

Each optional subscription (cloud-to-device messages, direct methods,
desired-property updates, module input messages) is tracked by one
``FeatureToggle``::

    DISABLED -> ENABLING -> ENABLED -> DISABLING -> DISABLED

A failed enable leaves the toggle DISABLED so a later attempt starts
clean. A failed disable leaves it ENABLED.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Optional, Set

from ..errors import InvalidOperationError

logger = logging.getLogger(__name__)


class FeatureState(Enum):
    DISABLED = "disabled"
    ENABLING = "enabling"
    ENABLED = "enabled"
    DISABLING = "disabling"


class FeatureToggle:
    """Tracks whether one transport subscription is believed active."""

    def __init__(
        self,
        name: str,
        enable_fn: Callable[[], Awaitable[object]],
        disable_fn: Callable[[], Awaitable[object]],
    ):
        self.name = name
        self._enable_fn = enable_fn
        self._disable_fn = disable_fn
        self._state = FeatureState.DISABLED
        self._enabling: Optional[asyncio.Future] = None

    @property
    def state(self) -> FeatureState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is FeatureState.ENABLED

    async def enable(self) -> None:
        """
        Enable the feature.

        Concurrent callers share a single in-flight enable and all see its
        outcome.
        """
        if self._state is FeatureState.ENABLED:
            return
        if self._enabling is not None:
            await asyncio.shield(self._enabling)
            return

        self._state = FeatureState.ENABLING
        pending = asyncio.get_running_loop().create_future()
        self._enabling = pending
        logger.debug(f"Enabling {self.name}")
        try:
            await self._enable_fn()
        except asyncio.CancelledError:
            self._state = FeatureState.DISABLED
            pending.cancel()
            raise
        except Exception as error:
            self._state = FeatureState.DISABLED
            pending.set_exception(error)
            # Joiners re-raise it; mark it retrieved for the no-joiner case
            pending.exception()
            raise
        else:
            self._state = FeatureState.ENABLED
            pending.set_result(None)
            logger.debug(f"{self.name} enabled")
        finally:
            self._enabling = None

    async def disable(self) -> None:
        """Disable the feature, waiting for an in-flight enable first."""
        if self._enabling is not None:
            try:
                await asyncio.shield(self._enabling)
            except Exception:
                return
        if self._state is not FeatureState.ENABLED:
            return

        self._state = FeatureState.DISABLING
        logger.debug(f"Disabling {self.name}")
        try:
            await self._disable_fn()
        except BaseException:
            self._state = FeatureState.ENABLED
            raise
        self._state = FeatureState.DISABLED

    def mark_disabled(self) -> bool:
        """
        Clear the flag without calling the transport.

        Used when the connection dropped and the subscription is known to be
        gone. Returns True if the feature was ENABLED, meaning the caller
        owns re-enabling it.
        """
        was_enabled = self._state is FeatureState.ENABLED
        if self._state is not FeatureState.ENABLING:
            self._state = FeatureState.DISABLED
        return was_enabled

    def __repr__(self) -> str:
        return f"FeatureToggle({self.name!r}, state={self._state.value})"


class BackgroundTasks:
    """
    Tasks a client spawned on its own behalf.

    Feature enables triggered by listener changes, disconnect recovery and
    token-driven updates run here so ``close()`` can cancel them.
    """

    def __init__(self, owner: str):
        self.owner = owner
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise InvalidOperationError(
                f"{self.owner} needs a running event loop to start {name or 'background work'}"
            ) from None

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def __len__(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait for every task spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        current = asyncio.current_task() if self._has_loop() else None
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._tasks.clear()

    @staticmethod
    def _has_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True
