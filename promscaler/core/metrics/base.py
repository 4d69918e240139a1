"""
Metric-source contracts consumed by the reconciliation loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:  # pragma: no cover
    from promscaler.core.controllers.context import CycleContext


class MetricSource(ABC):
    """Evaluates an opaque query expression to a single number."""

    @abstractmethod
    def query(self, ctx: "CycleContext", expression: str) -> float:
        """
        Evaluate ``expression`` and return its scalar value.

        Raises:
            MetricQueryError: if the query fails or does not produce exactly
                one usable value.
        """


MetricSourceFactory = Callable[[str], MetricSource]
