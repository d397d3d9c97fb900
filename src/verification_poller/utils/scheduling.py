"""
Cancellable scheduled calls on the asyncio event loop.

A ScheduledCall waits for a delay and then runs an async callback. Cancelling
before the delay elapses aborts the wait synchronously. Once the callback has
started it always runs to completion; cancelling at that point only marks the
handle, and the callback's owner is responsible for discarding its effects.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class ScheduledCall:
    """
    Handle for a delayed async callback.

    Attributes:
        delay: Delay in seconds before the callback runs
        name: Task name used in logs

    Example:
        >>> async def attempt() -> None:
        ...     ...
        >>> handle = ScheduledCall(2.0, attempt, name="poll:doc-1")
        >>> handle.cancel()
        True
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        *,
        name: str | None = None,
    ) -> None:
        """
        Schedule callback to run after delay seconds.

        Args:
            delay: Delay in seconds (negative values are treated as zero)
            callback: Zero-argument coroutine function
            name: Optional task name

        Raises:
            RuntimeError: If there is no running event loop
        """
        self.delay = max(0.0, delay)
        self.name = name
        self._callback = callback
        self._fired = False
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=name)

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            if self._cancelled:
                return
            raise
        self._fired = True
        await self._callback()

    @property
    def fired(self) -> bool:
        """True once the delay elapsed and the callback started."""
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """
        Cancel the scheduled call.

        Returns:
            True if the handle was pending or running and is now cancelled,
            False if it had already finished or been cancelled

        Note:
            A callback that already started keeps running; only the pending
            wait is aborted.
        """
        if self._cancelled or self._task.done():
            return False
        self._cancelled = True
        if not self._fired:
            self._task.cancel()
        logger.debug(f"Cancelled scheduled call {self.name} (fired={self._fired})")
        return True

    async def wait(self) -> None:
        """
        Wait until the call finishes or is cancelled.

        Raises:
            Exception: Whatever the callback raised
        """
        await asyncio.wait({self._task})
        if not self._task.cancelled():
            self._task.result()
