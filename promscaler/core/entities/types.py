"""
Cycle-scoped value types shared by the engine, the history store and the loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from promscaler.core.entities.autoscaler import AutoscalerConfig
from promscaler.core.entities.status import AutoscalerStatus


@dataclass(frozen=True)
class HistorySample:
    """Lightweight record of one past decision."""

    timestamp: float
    desired_count: int


@dataclass(frozen=True)
class Decision:
    """The engine's answer for one reconciliation cycle."""

    desired_count: int
    reason: str
    cooldown_active: bool = False


@dataclass(frozen=True)
class DecisionInput:
    """
    Everything the engine needs for one decision.

    ``now`` is supplied by the caller; the engine never reads a clock.
    """

    current_count: int
    config: AutoscalerConfig
    samples: Mapping[str, float]
    now: float
    last_scale_time: Optional[float] = None
    history: Tuple[HistorySample, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WorkloadState:
    """Live view of the target workload as read by the accessor."""

    instance_count: int
    version: Optional[str] = None


@dataclass
class AutoscalerResource:
    """An autoscaler as handed out by a configuration source."""

    config: AutoscalerConfig
    status: AutoscalerStatus = field(default_factory=AutoscalerStatus)
    deleting: bool = False

    @property
    def key(self) -> str:
        return self.config.key
