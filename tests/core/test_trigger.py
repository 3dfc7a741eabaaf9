"""Recurring trigger tests."""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from mediaspool.core.trigger import RecurringTrigger


class TestRecurringTrigger:
    """Test fire-and-forget scheduling."""

    @pytest.mark.asyncio
    async def test_ticks_then_sleeps(self):
        calls = []
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) == 3:
                trigger.is_running = False
            await asyncio.sleep(0)

        trigger = RecurringTrigger("test", 20, lambda: calls.append(1), sleep=fake_sleep)

        await trigger.run()
        await trigger.wait_pending()

        assert trigger.tick_count == 3
        assert sleeps == [20, 20, 20]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_ticks_do_not_wait_for_previous_invocation(self):
        release = threading.Event()
        started = []

        def slow_target():
            started.append(1)
            release.wait(5)

        executor = ThreadPoolExecutor(max_workers=4)
        trigger = RecurringTrigger("slow", 1, slow_target, executor=executor)
        try:
            for _ in range(3):
                trigger.tick()

            assert trigger.pending_count == 3

            release.set()
            await trigger.wait_pending()

            assert trigger.pending_count == 0
            assert len(started) == 3
        finally:
            release.set()
            executor.shutdown(wait=True)

    @pytest.mark.asyncio
    async def test_target_errors_are_logged(self, caplog):
        def broken():
            raise RuntimeError("boom")

        trigger = RecurringTrigger("broken", 1, broken)

        with caplog.at_level(logging.ERROR):
            assert await trigger.tick() is None

        assert "Unhandled error in broken trigger" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_cancels_loop(self):
        async def fast_sleep(_seconds):
            await asyncio.sleep(0.001)

        trigger = RecurringTrigger("loop", 1, lambda: None, sleep=fast_sleep)
        task = trigger.start()
        await asyncio.sleep(0.01)

        trigger.stop()
        await task
        await trigger.wait_pending()

        assert trigger.is_running is False
        assert trigger.tick_count >= 1
