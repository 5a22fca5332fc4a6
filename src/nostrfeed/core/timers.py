"""
Cancellable delayed actions for listener-driven lifecycles.

A [GracePeriod][nostrfeed.core.timers.GracePeriod] runs one coroutine after a
fixed delay unless it is cancelled first. The home feed uses two of them:
one that tears subscriptions down after the last listener leaves, and one
that closes idle relay connections afterwards. Scheduling again replaces
any pending run, so rapid add/remove cycles never stack callbacks.

Examples:
    ```python
    teardown = GracePeriod("teardown", delay=1.0)
    teardown.schedule(multiplexer.stop)
    teardown.cancel()        # a listener came back
    teardown.pending         # False
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from .logger import Logger


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class GracePeriod:
    """A single-slot delayed action backed by an ``asyncio.Task``.

    Args:
        name: Label used in log output.
        delay: Seconds to wait before running the action.

    Note:
        ``schedule()`` must be called from inside a running event loop.
        The action itself is not cancelled once it has started running;
        only the waiting phase is.
    """

    def __init__(self, name: str, delay: float) -> None:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self._name = name
        self._delay = delay
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._logger = Logger("timers")

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """Whether an action is scheduled and still waiting for its delay."""
        return self._task is not None and not self._task.done() and not self._running

    @property
    def running(self) -> bool:
        """Whether the action is executing right now."""
        return self._running

    def schedule(self, action: Callable[[], Awaitable[None]]) -> None:
        """Run *action* after the delay, replacing any pending action."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(
            self._run(action), name=f"grace-{self._name}"
        )
        self._logger.debug("grace_scheduled", timer=self._name, delay_s=self._delay)

    def cancel(self) -> bool:
        """Cancel the pending action. Returns True if one was waiting."""
        if not self.pending:
            return False
        assert self._task is not None  # noqa: S101  # guaranteed by pending
        self._task.cancel()
        self._task = None
        self._logger.debug("grace_cancelled", timer=self._name)
        return True

    async def wait(self) -> None:
        """Wait for the current task (pending or running) to finish."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self, action: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self._delay)
        self._running = True
        try:
            self._logger.debug("grace_expired", timer=self._name)
            await action()
        except Exception as e:  # Intentionally broad: nothing awaits a timer task
            self._logger.error("grace_action_failed", timer=self._name, error=str(e))
        finally:
            self._running = False
