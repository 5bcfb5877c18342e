"""Tests for fire-and-forget coroutine helpers."""

import asyncio
import logging
import threading

import pytest

from utils.async_helpers import BackgroundTasks, run_coroutine_safe


@pytest.mark.unit
class TestRunCoroutineSafe:
    def test_no_loop_closes_coroutine(self, caplog):
        async def work():
            return 1

        coro = work()
        with caplog.at_level(logging.WARNING):
            assert run_coroutine_safe(coro, None) is None

        assert coro.cr_frame is None
        assert "No event loop available" in caplog.text

    def test_closed_loop(self, caplog):
        loop = asyncio.new_event_loop()
        loop.close()

        async def work():
            return 1

        with caplog.at_level(logging.WARNING):
            assert run_coroutine_safe(work(), loop) is None

        assert "Event loop is closed" in caplog.text

    def test_rejects_non_coroutine(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert run_coroutine_safe("not a coroutine", None) is None  # type: ignore[arg-type]

        assert "Expected a coroutine" in caplog.text

    async def test_schedules_from_other_thread(self):
        loop = asyncio.get_running_loop()

        async def work():
            return 42

        holder = {}
        thread = threading.Thread(
            target=lambda: holder.setdefault("future", run_coroutine_safe(work(), loop))
        )
        thread.start()
        await asyncio.to_thread(thread.join)

        assert await asyncio.wrap_future(holder["future"]) == 42


@pytest.mark.unit
class TestBackgroundTasks:
    async def test_spawn_and_drain(self):
        tasks = BackgroundTasks()
        done = []

        async def work(n):
            await asyncio.sleep(0)
            done.append(n)

        tasks.spawn(work(1), "one")
        tasks.spawn(work(2), "two")
        await tasks.drain()

        assert sorted(done) == [1, 2]
        assert tasks.pending_count == 0

    async def test_failure_is_logged_not_raised(self, caplog):
        tasks = BackgroundTasks()

        async def boom():
            raise RuntimeError("sms down")

        with caplog.at_level(logging.ERROR):
            tasks.spawn(boom(), "notify")
            await tasks.drain()

        assert "Background task notify failed" in caplog.text

    async def test_drain_waits_for_tasks_spawned_meanwhile(self):
        tasks = BackgroundTasks()
        done = []

        async def child():
            done.append("child")

        async def parent():
            tasks.spawn(child(), "child")

        tasks.spawn(parent(), "parent")
        await tasks.drain()

        assert done == ["child"]

    async def test_spawn_from_worker_thread(self):
        tasks = BackgroundTasks()
        tasks.bind_current_loop()
        done = []

        async def work():
            done.append(threading.current_thread() is threading.main_thread())

        await asyncio.to_thread(tasks.spawn, work(), "threaded")
        await tasks.drain()

        assert done == [True]

    def test_spawn_without_loop_uses_background_loop(self):
        tasks = BackgroundTasks()
        ran_on = []

        async def work():
            ran_on.append(threading.current_thread().name)

        tasks.spawn(work(), "orphan")
        assert tasks.uses_worker_loop
        tasks.close()

        assert ran_on == ["background-tasks"]
        assert tasks.pending_count == 0
        assert not tasks.uses_worker_loop

    def test_close_without_worker_loop_is_noop(self):
        tasks = BackgroundTasks()

        tasks.close()

        assert tasks.pending_count == 0

    def test_worker_loop_failures_are_logged(self, caplog):
        tasks = BackgroundTasks()

        async def boom():
            raise RuntimeError("sms down")

        with caplog.at_level(logging.ERROR):
            tasks.spawn(boom(), "notify")
            tasks.close()

        assert "Background task notify failed" in caplog.text

    def test_closed_bound_loop_is_replaced(self):
        loop = asyncio.new_event_loop()
        loop.close()
        tasks = BackgroundTasks(loop)
        done = []

        async def work():
            done.append(1)

        tasks.spawn(work(), "late")
        tasks.close()

        assert done == [1]
