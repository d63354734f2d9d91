"""Work queue that hands out each key to at most one worker at a time."""

import collections
import logging
import threading
from typing import Deque, Hashable, Optional, Set

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    Thread-safe de-duplicating queue of reconcile keys.

    A key added while waiting is queued once. A key added while a worker is
    processing it is held back and queued again when that worker calls
    ``done``, so one key is never processed concurrently.
    """

    def __init__(self):
        """Initialize the queue."""
        self._queue: Deque[Hashable] = collections.deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._timers: Set[threading.Timer] = set()
        self._shutting_down = False
        self._cond = threading.Condition(threading.Lock())

    def add(self, key: Hashable) -> None:
        """Queue a key unless it is already waiting."""
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                logger.debug(f"{key} is being processed, will requeue when done")
                return
            self._queue.append(key)
            self._cond.notify()

    def add_after(self, key: Hashable, delay: float) -> None:
        """Queue a key after ``delay`` seconds."""
        if delay <= 0:
            self.add(key)
            return

        with self._cond:
            if self._shutting_down:
                return
            timer = threading.Timer(delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers.add(timer)

        timer.start()
        logger.debug(f"Requeue of {key} scheduled in {delay}s")

    def _fire(self, key: Hashable) -> None:
        with self._cond:
            self._timers.discard(threading.current_thread())
        self.add(key)

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """
        Take the next key, blocking until one is available.

        Args:
            timeout: Seconds to wait (None waits until shutdown)

        Returns:
            The key, or None on shutdown or timeout
        """
        with self._cond:
            if not self._cond.wait_for(
                lambda: self._queue or self._shutting_down,
                timeout=timeout
            ):
                return None
            if self._shutting_down:
                return None

            key = self._queue.popleft()
            self._dirty.discard(key)
            self._processing.add(key)
            return key

    def done(self, key: Hashable) -> None:
        """Mark a key as processed, requeueing it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        """Stop handing out keys and cancel pending delayed adds."""
        with self._cond:
            self._shutting_down = True
            timers = list(self._timers)
            self._timers.clear()
            self._cond.notify_all()

        for timer in timers:
            timer.cancel()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    @property
    def pending_delayed(self) -> int:
        """Number of delayed adds that have not fired yet."""
        with self._cond:
            return sum(1 for t in self._timers if not t.finished.is_set())

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
