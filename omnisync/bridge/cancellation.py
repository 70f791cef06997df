"""Timer-bound cancellation for outbound calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from omnisync.utils.errors import RequestTimeoutError

logger = logging.getLogger(__name__)
T = TypeVar("T")


class CancellationToken:
    """Cancels guarded work once a time budget is spent.

    The token arms a ``loop.call_later`` timer on creation. When it fires,
    every task currently running under ``guard`` is cancelled and surfaces
    as a non-retryable RequestTimeoutError; later ``guard`` calls fail
    immediately without starting their work. ``close()`` must be called on
    every exit path to release the timer.

    Example:
        token = CancellationToken(15.0)
        try:
            response = await token.guard(lambda: client.get(url), "fetch")
        finally:
            token.close()
    """

    def __init__(self, timeout: float, loop: asyncio.AbstractEventLoop | None = None):
        self.timeout = timeout
        self._fired = False
        self._tasks: set[asyncio.Task] = set()
        loop = loop or asyncio.get_running_loop()
        self._handle: asyncio.TimerHandle | None = loop.call_later(timeout, self._fire)

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def armed(self) -> bool:
        """True while the timer is pending."""
        return self._handle is not None

    def _fire(self) -> None:
        self._handle = None
        self._fired = True
        if self._tasks:
            logger.debug(f"Cancellation token fired after {self.timeout}s, cancelling {len(self._tasks)} task(s)")
        for task in list(self._tasks):
            task.cancel()

    def _timeout_error(self, operation: str | None) -> RequestTimeoutError:
        return RequestTimeoutError(
            message=f"Time budget of {self.timeout}s exhausted",
            operation=operation,
            timeout=self.timeout,
            retryable=False,
        )

    async def guard(self, work: Callable[[], Awaitable[T]], operation: str | None = None) -> T:
        """Run ``work`` as a task that the token can cancel.

        Raises:
            RequestTimeoutError: If the token fired before or during the work
        """
        if self._fired:
            raise self._timeout_error(operation)

        task = asyncio.ensure_future(work())
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._fired and task.cancelled():
                raise self._timeout_error(operation) from None
            raise
        finally:
            self._tasks.discard(task)

    def close(self) -> None:
        """Disarm the timer. Safe to call more than once."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
