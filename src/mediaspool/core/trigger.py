"""Periodic fire-and-forget triggers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from concurrent.futures import Executor
from typing import Any

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RecurringTrigger:
    """Calls a blocking entry point every ``interval`` seconds.

    Each tick hands the call to an executor and schedules the next tick
    without waiting for it, so slow invocations may overlap.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        target: Callable[[], Any],
        *,
        sleep: SleepFunc = asyncio.sleep,
        executor: Executor | None = None,
    ):
        self.name = name
        self.interval = interval
        self.target = target
        self.sleep = sleep
        self.executor = executor
        self.is_running = False
        self.tick_count = 0
        self.task: asyncio.Task | None = None
        self._pending: set[asyncio.Future] = set()

    def start(self) -> asyncio.Task:
        """Schedule the trigger loop on the running event loop."""
        loop = asyncio.get_running_loop()
        self.task = loop.create_task(self.run(), name=f"trigger:{self.name}")
        return self.task

    def stop(self) -> None:
        """Stop ticking. Invocations already handed off run to completion."""
        self.is_running = False
        if self.task:
            self.task.cancel()

    async def run(self) -> None:
        self.is_running = True
        logger.info("Started %s trigger (every %ss)", self.name, self.interval)
        try:
            while self.is_running:
                self.tick()
                await self.sleep(self.interval)
        except asyncio.CancelledError:
            logger.info("%s trigger cancelled", self.name)
        finally:
            self.is_running = False

    def tick(self) -> asyncio.Future:
        """Fire one invocation without awaiting it."""
        self.tick_count += 1
        logger.debug("%s tick %s", self.name, self.tick_count)
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self.executor, self._invoke)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)
        return future

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def wait_pending(self) -> None:
        """Wait for invocations that are still running."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _invoke(self) -> None:
        try:
            self.target()
        except Exception:
            logger.exception("Unhandled error in %s trigger", self.name)
