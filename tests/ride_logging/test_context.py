"""Tests for per-task logging context."""

import asyncio
import logging
import threading

import pytest

from ride_logging import ContextFilter, LogContext, log_context, log_ride_context


def make_record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture(autouse=True)
def clean_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.mark.unit
class TestLogContext:
    def test_set_and_get(self):
        LogContext.set(ride_id="r1")
        LogContext.set(driver_id="d1")

        assert LogContext.get() == {"ride_id": "r1", "driver_id": "d1"}

    def test_clear(self):
        LogContext.set(ride_id="r1")
        LogContext.clear()

        assert LogContext.get() == {}

    def test_worker_thread_changes_do_not_leak(self):
        LogContext.set(ride_id="main")

        def worker():
            LogContext.set(ride_id="worker")

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert LogContext.get() == {"ride_id": "main"}

    async def test_concurrent_tasks_are_isolated(self):
        seen = {}

        async def track(ride_id):
            with log_ride_context(ride_id):
                await asyncio.sleep(0)
                seen[ride_id] = LogContext.get()["ride_id"]

        await asyncio.gather(track("a"), track("b"))

        assert seen == {"a": "a", "b": "b"}

    def test_get_returns_copy(self):
        LogContext.get()["ride_id"] = "mutated"

        assert LogContext.get() == {}


@pytest.mark.unit
class TestLogContextManager:
    def test_fields_set_inside_block(self):
        with log_context(ride_id="r1"):
            assert LogContext.get()["ride_id"] == "r1"

        assert "ride_id" not in LogContext.get()

    def test_nested_contexts_restore_outer_values(self):
        with log_context(ride_id="outer", driver_id="d1"):
            with log_context(ride_id="inner"):
                assert LogContext.get() == {"ride_id": "inner", "driver_id": "d1"}
            assert LogContext.get() == {"ride_id": "outer", "driver_id": "d1"}

    def test_context_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with log_context(ride_id="r1"):
                raise RuntimeError("boom")

        assert LogContext.get() == {}

    def test_ride_context_defaults_correlation_to_ride_id(self):
        with log_ride_context("ride-9"):
            assert LogContext.get() == {"ride_id": "ride-9", "correlation_id": "ride-9"}

    def test_ride_context_accepts_explicit_correlation(self):
        with log_ride_context("ride-9", correlation_id="req-1", passenger_id="p1"):
            ctx = LogContext.get()

        assert ctx["correlation_id"] == "req-1"
        assert ctx["passenger_id"] == "p1"


@pytest.mark.unit
class TestContextFilter:
    def test_injects_context_fields(self):
        record = make_record()
        with log_context(ride_id="r1"):
            assert ContextFilter().filter(record) is True

        assert record.ride_id == "r1"

    def test_does_not_override_explicit_extra(self):
        record = make_record()
        record.ride_id = "explicit"
        with log_context(ride_id="r1"):
            ContextFilter().filter(record)

        assert record.ride_id == "explicit"
