"""
In-memory history of past decisions, keyed by ``namespace/name``.

Used by the scale-down stabilization window. Nothing is persisted; a restart
starts every key from an empty history.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List

from promscaler.core.entities import HistorySample

logger = logging.getLogger(__name__)


class HistoryStore:
    """Thread-safe map of key -> bounded list of :class:`HistorySample`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, List[HistorySample]] = {}

    def get(self, key: str) -> List[HistorySample]:
        """Return a copy of the samples for ``key`` (empty if unknown)."""
        with self._lock:
            return list(self._entries.get(key, ()))

    def append(self, key: str, sample: HistorySample, max_len: int) -> None:
        """
        Append ``sample`` and keep only the newest ``max_len`` entries.

        A non-positive ``max_len`` leaves the key with an empty history.
        """
        with self._lock:
            samples = self._entries.setdefault(key, [])
            samples.append(sample)
            if max_len <= 0:
                samples.clear()
            elif len(samples) > max_len:
                del samples[: len(samples) - max_len]

    def forget(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                logger.debug("HistoryStore dropped key=%s", key)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
