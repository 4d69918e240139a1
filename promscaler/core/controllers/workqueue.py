"""
Per-key work queue with delayed re-adds, plus per-key exponential backoff.

Semantics follow the rate-limited queues used by Kubernetes controllers:

* a key is queued at most once (``dirty``),
* a key handed to a worker is not handed out again until :meth:`done`;
  re-adds meanwhile are deferred and replayed by :meth:`done`,
* :meth:`add_after` keeps the earliest pending deadline per key,
* :meth:`add_if_idle` never overrides a pending deadline.
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class ShutDown(Exception):
    """Raised by :meth:`DelayingWorkQueue.get` once the queue is shut down."""


class DelayingWorkQueue:
    def __init__(self, *, clock=time.monotonic) -> None:
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: Deque[str] = deque()
        self._dirty: Set[str] = set()
        self._processing: Set[str] = set()
        self._waiting: List[Tuple[float, int, str]] = []
        self._waiting_keys: Dict[str, float] = {}
        self._counter = 0
        self._shutting_down = False

    # ------------------------------------------------------------------

    def add(self, key: str) -> None:
        with self._cond:
            self._add_locked(key)

    def _add_locked(self, key: str) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._waiting_keys.pop(key, None)
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add_if_idle(self, key: str) -> bool:
        """
        Add ``key`` only if it is not queued, processing or waiting on a delay.

        Returns whether the key was added. A pending delayed re-add is left
        untouched so its deadline still applies.
        """
        with self._cond:
            if (
                self._shutting_down
                or key in self._dirty
                or key in self._processing
                or key in self._waiting_keys
            ):
                return False
            self._add_locked(key)
            return True

    def add_after(self, key: str, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            ready_at = self._clock() + delay
            current = self._waiting_keys.get(key)
            if current is not None and current <= ready_at:
                return
            self._waiting_keys[key] = ready_at
            self._counter += 1
            heapq.heappush(self._waiting, (ready_at, self._counter, key))
            self._cond.notify()

    def _promote_ready_locked(self) -> Optional[float]:
        """Move due delayed keys into the queue; return the next deadline."""
        now = self._clock()
        while self._waiting:
            ready_at, _, key = self._waiting[0]
            if self._waiting_keys.get(key) != ready_at:
                heapq.heappop(self._waiting)  # superseded entry
                continue
            if ready_at > now:
                return ready_at
            heapq.heappop(self._waiting)
            self._add_locked(key)
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Block until a key is ready and mark it as processing.

        Returns ``None`` when ``timeout`` elapses first.

        Raises:
            ShutDown: the queue was shut down and drained.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                next_ready = self._promote_ready_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutting_down:
                    raise ShutDown()

                wait_for = None
                now = self._clock()
                if next_ready is not None:
                    wait_for = max(0.0, next_ready - now)
                if deadline is not None:
                    if now >= deadline:
                        return None
                    remaining = deadline - now
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)
                self._cond.wait(wait_for)

    def done(self, key: str) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._waiting.clear()
            self._waiting_keys.clear()
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def pending_delayed(self) -> int:
        with self._cond:
            return len(self._waiting_keys)

    def is_processing(self, key: str) -> bool:
        with self._cond:
            return key in self._processing


class ExponentialBackoff:
    """Per-key ``base * 2**failures`` delay, capped at ``max_delay``."""

    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        if base_delay <= 0 or max_delay <= 0:
            raise ValueError("backoff delays must be positive")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._lock = threading.Lock()
        self._failures: Dict[str, int] = {}

    def when(self, key: str) -> float:
        """Record one more failure for ``key`` and return its delay."""
        with self._lock:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        exponent = min(failures, 64)
        return min(self.base_delay * (2 ** exponent), self.max_delay)

    def forget(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def num_requeues(self, key: str) -> int:
        with self._lock:
            return self._failures.get(key, 0)
