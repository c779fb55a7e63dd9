"""Bounded asyncio work queue used by the Throttler and LoadBalancer.

:class:`TaskQueue` admits coroutine factories and runs them under three
independent limits:

1. **concurrency** -- at most *N* tasks run at the same time (an
   ``asyncio.Semaphore``); ``None`` means unbounded.
2. **interval_cap / interval** -- at most *cap* task starts inside any
   sliding window of *interval* seconds.  This is how the Nominatim usage
   policy of one request per second is enforced.
3. **timeout** -- a running task that takes longer than *timeout* seconds
   is abandoned and its caller receives :class:`QueueTimeoutError`.

``size`` counts callers waiting for a slot and ``pending`` counts tasks
that are running.  Their sum is the "load" the LoadBalancer routes on.
Counters are updated inline; there is no event emitter.

Waiters are released in semaphore order, which is FIFO in practice but is
not a contract of this class.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Awaitable, Callable, TypeVar

import structlog

from gittrends_geocoder.models.stats import QueueStats
from gittrends_geocoder.utils.errors import QueueTimeoutError
from gittrends_geocoder.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class TaskQueue:
    """Run awaitables with bounded concurrency, start rate and run time.

    Parameters
    ----------
    concurrency:
        Maximum number of tasks running at once.  ``None`` for unbounded.
    interval_cap:
        Maximum number of task starts per *interval*.  ``None`` disables
        rate limiting.
    interval:
        Length of the rate-limit window in seconds.
    timeout:
        Per-task run-time budget in seconds.  ``None`` for no limit.
    name:
        Label used in logs, errors and stats.
    """

    def __init__(
        self,
        concurrency: int | None = None,
        interval_cap: int | None = None,
        interval: float = 1.0,
        timeout: float | None = None,
        name: str = "queue",
    ) -> None:
        if concurrency is not None and concurrency < 1:
            raise ValueError("concurrency must be a positive integer or None")
        if interval_cap is not None and interval_cap < 1:
            raise ValueError("interval_cap must be a positive integer or None")
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._name = name
        self._concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency) if concurrency else None
        self._interval_cap = interval_cap
        self._interval = interval
        self._timeout = timeout
        # Monotonic start times inside the current rate window.
        self._starts: deque[float] = deque()

        self._size = 0
        self._pending = 0
        self._completed = 0
        self._failed = 0
        self._timeouts = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        """Number of callers waiting for a slot."""
        return self._size

    @property
    def pending(self) -> int:
        """Number of tasks currently running."""
        return self._pending

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def get_stats(self) -> QueueStats:
        return QueueStats(
            name=self._name,
            size=self._size,
            pending=self._pending,
            completed=self._completed,
            failed=self._failed,
            timeouts=self._timeouts,
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def add(self, fn: Callable[[], Awaitable[_T]]) -> _T:
        """Queue *fn* and return its result once it has run.

        *fn* is a zero-argument callable returning an awaitable; it is only
        invoked once a slot is free, so work cancelled while queued never
        starts.  Exceptions raised by *fn* propagate unchanged.
        """
        if self._size + self._pending == 0:
            _logger.debug("queue_active", queue=self._name)

        self._size += 1
        acquired = False
        try:
            if self._semaphore is not None:
                await self._semaphore.acquire()
                acquired = True
            await self._reserve_start()
        except BaseException:
            if acquired:
                self._semaphore.release()  # type: ignore[union-attr]
            self._size -= 1
            self._log_if_idle()
            raise
        self._size -= 1
        self._pending += 1

        try:
            result = await self._run(fn)
        finally:
            self._pending -= 1
            if acquired:
                self._semaphore.release()  # type: ignore[union-attr]
            self._log_if_idle()
        return result

    async def _run(self, fn: Callable[[], Awaitable[_T]]) -> _T:
        try:
            if self._timeout is None:
                result = await fn()
            else:
                result = await asyncio.wait_for(fn(), timeout=self._timeout)
        except asyncio.TimeoutError:
            if self._timeout is None:
                self._failed += 1
                raise
            self._timeouts += 1
            _logger.warning("queue_timeout", queue=self._name, timeout=self._timeout)
            raise QueueTimeoutError(self._timeout, provider_name=self._name) from None
        except Exception:
            self._failed += 1
            raise
        self._completed += 1
        return result

    async def _reserve_start(self) -> None:
        """Block until a start is allowed by the sliding rate window."""
        if self._interval_cap is None:
            return
        loop = asyncio.get_running_loop()
        while True:
            now = loop.time()
            while self._starts and now - self._starts[0] >= self._interval:
                self._starts.popleft()
            if len(self._starts) < self._interval_cap:
                self._starts.append(now)
                return
            await asyncio.sleep(self._starts[0] + self._interval - now)

    def _log_if_idle(self) -> None:
        if self._size + self._pending == 0:
            _logger.debug("queue_idle", queue=self._name)

    def __repr__(self) -> str:
        return (
            f"<TaskQueue {self._name!r} size={self._size} pending={self._pending} "
            f"concurrency={self._concurrency}>"
        )
