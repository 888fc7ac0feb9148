"""
Timer scheduling for delayed node notifications.

Debounced nodes never talk to a clock directly; they are handed a Scheduler.
Two implementations:

- AsyncioScheduler: one-shot timers on the asyncio loop (loop.call_later).
  Timers fire exactly when they expire, no polling.
- ManualScheduler: a virtual clock advanced by hand. Deterministic, used where
  real wall-clock delays are unwanted (tests, simulations, replays).

Usage:
    scheduler = ManualScheduler()
    node = DebouncedEventNode(0, "svc", {}, scheduler=scheduler)
    node.set_node_props({"status": "up"})
    scheduler.advance(0.1)  # notification fires here
"""
import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple


logger = logging.getLogger("entity_graph.scheduler")


class TimerHandle(ABC):
    """A scheduled one-shot callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. No-op if it already ran."""

    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """Source of time and one-shot timers."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds on this scheduler's clock."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Run callback once after delay seconds.

        Args:
            delay: Seconds from now. Negative values are treated as 0.
            callback: Zero-argument callable

        Returns:
            Handle that can cancel the pending call
        """


# =============================================================================
# ASYNCIO
# =============================================================================

class _AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    If no loop is given, the loop running at call time is used, so timers
    can only be armed from inside a coroutine or loop callback.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = self._get_loop().call_later(max(delay, 0.0), callback)
        logger.debug(f"Armed asyncio timer in {delay:.3f}s")
        return _AsyncioTimerHandle(handle)


# =============================================================================
# MANUAL (VIRTUAL CLOCK)
# =============================================================================

class _ManualTimerHandle(TimerHandle):
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler.

    Time only moves when advance() is called. Due callbacks run in due-time
    order; callbacks due at the same instant run in scheduling order.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, _ManualTimerHandle]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of armed, not cancelled timers."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled())

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualTimerHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and run every callback that became due.

        Callbacks scheduled by a running callback are honoured if they fall
        inside the same window.

        Returns:
            Number of callbacks that ran
        """
        if seconds < 0:
            raise ValueError(f"Cannot move clock backwards: {seconds}")

        deadline = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            self._now = when
            handle.callback()
            fired += 1
        self._now = deadline
        return fired
