"""
Cancellation and deadline carrier for one reconciliation cycle.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from promscaler.core.errors import CycleCancelled


class CycleContext:
    """
    Shared between the controller and a running cycle.

    The controller calls :meth:`cancel` on shutdown; the cycle calls
    :meth:`check` before each externally visible action and passes
    :meth:`timeout` to its transports.
    """

    def __init__(self, deadline: Optional[float] = None, *, clock=time.monotonic) -> None:
        self._clock = clock
        self._deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: Optional[float], *, clock=time.monotonic) -> "CycleContext":
        if seconds is None or seconds <= 0:
            return cls(clock=clock)
        return cls(deadline=clock() + seconds, clock=clock)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return self._deadline - self._clock()

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        if self._cancelled.is_set():
            raise CycleCancelled("reconcile cycle cancelled")
        if self.expired():
            raise CycleCancelled("reconcile cycle deadline exceeded")

    def timeout(self, default: float) -> float:
        """Transport timeout: ``default`` capped by the remaining budget."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(0.001, min(default, remaining))
