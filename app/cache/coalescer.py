"""
Request coalescing to prevent duplicate producer calls.

When multiple concurrent requests ask for the same key, only one
producer call is made and all requesters share the result.
"""
import asyncio
import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress producer call."""
    task: "asyncio.Task[Any]"
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one producer call.

    Pattern:
    - First request for a key schedules the producer as a task
    - Subsequent requests for the same key receive that same task
    - When the task settles, its registration is removed, success or failure
    - Check-then-register is atomic under a lock, so callers on different
      threads can never both start a producer for one key

    Usage:
        coalescer = RequestCoalescer()
        task, started = coalescer.join_or_start("settings", lambda: load_settings())
        value = await coalescer.wait(task)
    """

    def __init__(self):
        self._in_flight: Dict[Hashable, InFlightRequest] = {}
        self._lock = threading.Lock()

    def join_or_start(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[Any]],
    ) -> Tuple["asyncio.Task[Any]", bool]:
        """
        Either join an existing in-flight request or start a new one.

        Must be called from a running event loop; a new task is bound to it.

        Args:
            key: Unique key for this request
            factory: Zero-arg callable returning the coroutine to run

        Returns:
            (task, started) - started is False when an existing task was joined
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            in_flight = self._in_flight.get(key)
            if in_flight is not None:
                in_flight.waiter_count += 1
                logger.debug(
                    f"Coalescing request for {key} "
                    f"(waiters: {in_flight.waiter_count})"
                )
                return in_flight.task, False

            task = loop.create_task(factory())
            self._in_flight[key] = InFlightRequest(task=task)
            logger.debug(f"Initiating fetch for {key}")

        task.add_done_callback(lambda t: self._discard(key, t))
        return task, True

    async def wait(self, task: "asyncio.Task[Any]") -> Any:
        """
        Await a shared task without letting one waiter cancel it for the others.

        Raises whatever the producer raised, unwrapped.
        """
        loop = asyncio.get_running_loop()
        if task.get_loop() is loop:
            return await asyncio.shield(task)

        # Task belongs to another thread's loop: relay its outcome
        relay: concurrent.futures.Future = concurrent.futures.Future()

        def _copy(done: "asyncio.Task[Any]") -> None:
            if done.cancelled():
                relay.cancel()
                return
            # The waiter may have given up (timeout or cancel) before the task settled
            if not relay.set_running_or_notify_cancel():
                return
            if done.exception() is not None:
                relay.set_exception(done.exception())
            else:
                relay.set_result(done.result())

        task.get_loop().call_soon_threadsafe(task.add_done_callback, _copy)
        return await asyncio.wrap_future(relay)

    def _discard(self, key: Hashable, task: "asyncio.Task[Any]") -> None:
        """Remove the registration for key, if it still belongs to task."""
        with self._lock:
            in_flight = self._in_flight.get(key)
            if in_flight is not None and in_flight.task is task:
                del self._in_flight[key]
                elapsed = time.time() - in_flight.started_at
            else:
                elapsed = None

        if task.cancelled():
            logger.debug(f"Fetch cancelled for {key}")
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Fetch failed for {key}: {error!r}")
        elif elapsed is not None:
            logger.debug(f"Fetch complete for {key} in {elapsed:.3f}s")

    def is_in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._in_flight

    def clear(self) -> int:
        """
        Forget all registrations. Outstanding tasks are not cancelled.

        Returns:
            Number of registrations dropped
        """
        with self._lock:
            count = len(self._in_flight)
            self._in_flight.clear()
        return count

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        with self._lock:
            return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        with self._lock:
            return {
                "active_requests": len(self._in_flight),
                "active_keys": [str(k) for k in self._in_flight.keys()],
            }
