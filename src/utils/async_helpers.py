import asyncio
import concurrent.futures
import inspect
import logging
import threading
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


def run_coroutine_safe(
    coro: Coroutine[Any, Any, Any],
    main_event_loop: asyncio.AbstractEventLoop | None = None,
) -> concurrent.futures.Future[Any] | None:
    """Schedule a coroutine to run on an event loop from any thread."""
    if not inspect.iscoroutine(coro):
        logger.warning("Expected a coroutine, got %s", type(coro).__name__)
        return None

    if main_event_loop is not None:
        if main_event_loop.is_closed():
            logger.warning("Event loop is closed, cannot schedule coroutine")
            coro.close()
            return None

        if main_event_loop.is_running():
            return asyncio.run_coroutine_threadsafe(coro, main_event_loop)

    logger.warning("No event loop available to run coroutine")
    coro.close()
    return None


class BackgroundTasks:
    """Fire-and-forget runner for side effects of a single owner.

    Coroutines are scheduled on the owner's event loop, either directly when
    called from that loop or thread-safely from any other thread. An owner
    driven from plain synchronous code gets a private loop on a daemon
    thread, stopped by ``close()``. Failures are logged and never propagate
    to the caller.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._pending: set[asyncio.Future[Any] | concurrent.futures.Future[Any]] = set()
        self._lock = threading.Lock()
        self._loop_lock = threading.Lock()
        self._worker_loop: asyncio.AbstractEventLoop | None = None
        self._worker_thread: threading.Thread | None = None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def uses_worker_loop(self) -> bool:
        return self._worker_loop is not None and self._loop is self._worker_loop

    def bind_current_loop(self) -> None:
        """Adopt the running loop if none was given at construction."""
        if self._loop is not None:
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None and (self._loop is None or running is self._loop):
            self._loop = running
            self._track(running.create_task(self._guard(coro, name), name=name))
            return

        if running is None:
            self._ensure_target_loop()

        future = run_coroutine_safe(self._guard(coro, name), self._loop)
        if future is None:
            logger.warning(f"Dropped background task {name}: no event loop")
            coro.close()
            return
        self._track(future)

    async def drain(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, is done."""
        while True:
            with self._lock:
                pending = list(self._pending)
            if not pending:
                return
            await asyncio.gather(
                *(
                    asyncio.wrap_future(f) if isinstance(f, concurrent.futures.Future) else f
                    for f in pending
                ),
                return_exceptions=True,
            )
            with self._lock:
                self._pending.difference_update(pending)

    def close(self, timeout: float | None = 10.0) -> None:
        """Let work on the private loop finish, then stop it. Borrowed loops are left alone.

        Must not be called from a task running on the private loop.
        """
        with self._loop_lock:
            worker, thread = self._worker_loop, self._worker_thread
            self._worker_loop = self._worker_thread = None
            if worker is None or thread is None:
                return
            if self._loop is worker:
                self._loop = None

        with self._lock:
            pending = [f for f in self._pending if isinstance(f, concurrent.futures.Future)]
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"Stopping background loop with {len(not_done)} unfinished tasks")

        worker.call_soon_threadsafe(worker.stop)
        thread.join(timeout)
        if not worker.is_running():
            worker.close()

    def _ensure_target_loop(self) -> None:
        with self._loop_lock:
            if self._loop is not None and not self._loop.is_closed():
                return
            loop = asyncio.new_event_loop()
            ready = threading.Event()
            loop.call_soon(ready.set)
            thread = threading.Thread(
                target=loop.run_forever, name="background-tasks", daemon=True
            )
            thread.start()
            ready.wait()
            self._worker_loop, self._worker_thread = loop, thread
            self._loop = loop
            logger.debug("No running event loop, side effects use a background loop")

    def _track(self, future: asyncio.Future[Any] | concurrent.futures.Future[Any]) -> None:
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def _discard(self, future: Any) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    async def _guard(coro: Coroutine[Any, Any, Any], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Background task {name} failed")
