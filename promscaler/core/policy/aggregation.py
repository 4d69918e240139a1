"""
Aggregation strategies that fold per-metric projections into one count.

Strategies live in a module-level registry so deployments can plug in their
own folding rule by name. Unknown names resolve to ``max``.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Sequence

from promscaler.core.entities import AggregationStrategy

logger = logging.getLogger(__name__)

Aggregator = Callable[[Sequence[int], Sequence[float]], int]

DEFAULT_AGGREGATION = AggregationStrategy.MAX.value


def aggregate_max(projections: Sequence[int], weights: Sequence[float]) -> int:
    return max(projections)


def aggregate_min(projections: Sequence[int], weights: Sequence[float]) -> int:
    return min(projections)


def aggregate_average(projections: Sequence[int], weights: Sequence[float]) -> int:
    # Integer division: non-exact averages round down.
    return sum(projections) // len(projections)


def aggregate_weighted(projections: Sequence[int], weights: Sequence[float]) -> int:
    total_weight = sum(weights)
    if total_weight == 0:
        return projections[0]
    weighted_sum = sum(value * weight for value, weight in zip(projections, weights))
    return int(weighted_sum / total_weight)


_AGGREGATION_REGISTRY: Dict[str, Aggregator] = {}


def register_aggregation(name: str, aggregator: Aggregator, *, replace: bool = False) -> None:
    """
    Register an aggregation strategy under ``name``.

    Args:
        name: Strategy name, normalised to lower case.
        aggregator: Callable receiving ``(projections, weights)``; both
            sequences are non-empty and of equal length.
        replace: Allow overriding an existing registration.
    """
    key = name.strip().lower()
    if not key:
        raise ValueError("Aggregation name must be a non-empty string.")
    if key in _AGGREGATION_REGISTRY and not replace:
        raise ValueError(f"Aggregation '{key}' already registered.")
    _AGGREGATION_REGISTRY[key] = aggregator


def unregister_aggregation(name: str) -> None:
    """Remove a registration; unknown names are ignored. ``max`` cannot be removed."""
    key = name.strip().lower()
    if key == DEFAULT_AGGREGATION:
        raise ValueError("The default 'max' aggregation cannot be unregistered.")
    _AGGREGATION_REGISTRY.pop(key, None)


def available_aggregations() -> tuple[str, ...]:
    return tuple(sorted(_AGGREGATION_REGISTRY))


def resolve_aggregation(name: str | None) -> tuple[str, Aggregator]:
    """Return ``(effective_name, aggregator)``, falling back to ``max``."""
    key = (name or "").strip().lower()
    aggregator = _AGGREGATION_REGISTRY.get(key)
    if aggregator is None:
        if key:
            logger.debug("Unknown aggregation=%s, falling back to %s", key, DEFAULT_AGGREGATION)
        return DEFAULT_AGGREGATION, _AGGREGATION_REGISTRY[DEFAULT_AGGREGATION]
    return key, aggregator


register_aggregation(AggregationStrategy.MAX.value, aggregate_max)
register_aggregation(AggregationStrategy.MIN.value, aggregate_min)
register_aggregation(AggregationStrategy.AVERAGE.value, aggregate_average)
register_aggregation(AggregationStrategy.WEIGHTED.value, aggregate_weighted)


__all__ = [
    "Aggregator",
    "DEFAULT_AGGREGATION",
    "aggregate_average",
    "aggregate_max",
    "aggregate_min",
    "aggregate_weighted",
    "available_aggregations",
    "register_aggregation",
    "resolve_aggregation",
    "unregister_aggregation",
]
