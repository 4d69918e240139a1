"""
Decision engine turning metric samples into a desired instance count.

The engine is pure: every input, including the current time, arrives in a
:class:`DecisionInput`, so identical inputs always produce identical decisions.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from promscaler.core.entities import BehaviorSpec, Decision, DecisionInput, HistorySample, MetricSpec
from promscaler.core.errors import ConfigurationError
from promscaler.core.policy.aggregation import resolve_aggregation

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LENGTH = 20


class PolicyEngine(ABC):
    """Contract for anything that can compute a :class:`Decision`."""

    @abstractmethod
    def decide(self, decision_input: DecisionInput) -> Decision:
        """Compute the desired instance count for one cycle."""


def project_metric(metric: MetricSpec, sample: float, current: int) -> int:
    """
    Per-metric projection. Both directions are evaluated against ``current``;
    when both thresholds fire the scale-down result wins.
    """
    projected = current
    if metric.scale_up is not None and sample > metric.scale_up.threshold:
        projected = current + metric.scale_up.step
    if metric.scale_down is not None and sample < metric.scale_down.threshold:
        projected = max(1, current - metric.scale_down.step)
    return projected


def rate_limit_step(current: int, percent: Optional[int]) -> Optional[int]:
    """Largest allowed move for one cycle, or ``None`` when unlimited."""
    if percent is None:
        return None
    if percent <= 0:
        return 0
    return max(1, current * percent // 100)


class DefaultPolicyEngine(PolicyEngine):
    """Projection, aggregation, clamp, cooldown, stabilization, rate limit."""

    def decide(self, decision_input: DecisionInput) -> Decision:
        config = decision_input.config
        if not config.metrics:
            raise ConfigurationError(f"autoscaler {config.key} declares no metrics")

        current = decision_input.current_count
        projections, weights, reasons = self._project(config.metrics, decision_input)

        strategy, aggregator = resolve_aggregation(config.aggregation)
        desired = aggregator(projections, weights)
        desired = min(max(desired, config.min_count), config.max_count)

        cooldown_active = False
        behavior = config.behavior
        if behavior is not None:
            desired, cooldown_active = self._apply_cooldown(desired, current, behavior, decision_input)
            desired = self._apply_stabilization(desired, current, behavior, decision_input.now, decision_input.history)
            desired = self._apply_rate_limit(desired, current, behavior)
        desired = max(desired, 1)

        reason = f"metrics=[{'; '.join(reasons)}], aggregation={strategy}"
        logger.debug(
            "Decision key=%s current=%s desired=%s cooldown=%s reason=%s",
            config.key,
            current,
            desired,
            cooldown_active,
            reason,
        )
        return Decision(desired_count=desired, reason=reason, cooldown_active=cooldown_active)

    @staticmethod
    def _project(
        metrics: Sequence[MetricSpec], decision_input: DecisionInput
    ) -> Tuple[List[int], List[float], List[str]]:
        current = decision_input.current_count
        projections: List[int] = []
        weights: List[float] = []
        reasons: List[str] = []
        for metric in metrics:
            sample = decision_input.samples.get(metric.name)
            if sample is None:
                projections.append(current)
                weights.append(1.0)
                reasons.append(f"{metric.name}=<missing> -> {current}")
                continue
            projected = project_metric(metric, sample, current)
            projections.append(projected)
            weights.append(metric.effective_weight)
            reasons.append(f"{metric.name}={sample:.4f} -> {projected}")
        return projections, weights, reasons

    @staticmethod
    def _apply_cooldown(
        desired: int, current: int, behavior: BehaviorSpec, decision_input: DecisionInput
    ) -> Tuple[int, bool]:
        last_scale = decision_input.last_scale_time
        if last_scale is None:
            return desired, False

        elapsed = decision_input.now - last_scale
        active = False
        up = behavior.scale_up_cooldown_seconds
        if desired > current and up is not None and elapsed < up:
            desired, active = current, True
        down = behavior.scale_down_cooldown_seconds
        if desired < current and down is not None and elapsed < down:
            desired, active = current, True
        return desired, active

    @staticmethod
    def _apply_stabilization(
        desired: int,
        current: int,
        behavior: BehaviorSpec,
        now: float,
        history: Sequence[HistorySample],
    ) -> int:
        window = behavior.stabilization_window_seconds
        if not window or desired >= current:
            return desired
        cutoff = now - window
        for sample in history:
            if sample.timestamp > cutoff and sample.desired_count > desired:
                desired = sample.desired_count
        return desired

    @staticmethod
    def _apply_rate_limit(desired: int, current: int, behavior: BehaviorSpec) -> int:
        delta = desired - current
        if delta > 0:
            step = rate_limit_step(current, behavior.max_scale_up_step_percent)
            if step is not None and delta > step:
                delta = step
        elif delta < 0:
            step = rate_limit_step(current, behavior.max_scale_down_step_percent)
            if step is not None and -delta > step:
                delta = -step
        return current + delta
