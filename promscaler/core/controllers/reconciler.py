"""
One reconciliation cycle for one autoscaler key.

The cycle reads the autoscaler and its target, samples every metric, asks
the policy engine for a decision, records it and, unless the autoscaler is
in DryRun mode or already at the desired count, applies it. Every reported
failure updates a condition on the status before the cycle decides whether
to escalate.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from promscaler.core.config import RequeueSettings
from promscaler.core.controllers.context import CycleContext
from promscaler.core.entities import (
    AutoscalerResource,
    ConditionStatus,
    ConditionType,
    Decision,
    DecisionInput,
    HistorySample,
    WorkloadState,
)
from promscaler.core.errors import (
    AutoscalerNotFound,
    ConfigurationError,
    MetricQueryError,
    ScaleError,
    WorkloadConflict,
    WorkloadNotFound,
)
from promscaler.core.events import NORMAL, EventSink
from promscaler.core.history import HistoryStore
from promscaler.core.metrics import MetricSourceFactory
from promscaler.core.policy import DEFAULT_HISTORY_LENGTH, PolicyEngine
from promscaler.core.sources import ConfigurationSource
from promscaler.core.workload import WorkloadAccessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """``requeue_after`` of ``None`` means the key needs no timed re-evaluation."""

    outcome: str
    requeue_after: Optional[float] = None
    decision: Optional[Decision] = None


class AutoscalerReconciler:
    def __init__(
        self,
        *,
        source: ConfigurationSource,
        workloads: WorkloadAccessor,
        metric_sources: MetricSourceFactory,
        engine: PolicyEngine,
        history: HistoryStore,
        events: EventSink,
        requeue: Optional[RequeueSettings] = None,
        history_length: int = DEFAULT_HISTORY_LENGTH,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.workloads = workloads
        self.metric_sources = metric_sources
        self.engine = engine
        self.history = history
        self.events = events
        self.requeue = requeue or RequeueSettings()
        self.history_length = history_length
        self._clock = clock

    def reconcile(self, key: str, ctx: Optional[CycleContext] = None) -> ReconcileResult:
        ctx = ctx or CycleContext()
        ctx.check()

        try:
            resource = self.source.get(key)
        except AutoscalerNotFound:
            logger.debug("Autoscaler vanished key=%s", key)
            return ReconcileResult(outcome="Vanished")

        if resource.deleting:
            logger.debug("Autoscaler is being deleted key=%s", key)
            return ReconcileResult(outcome="Deleting")

        return self._evaluate(resource, ctx)

    def _evaluate(self, resource: AutoscalerResource, ctx: CycleContext) -> ReconcileResult:
        config = resource.config
        status = resource.status
        target = config.target

        try:
            state = self.workloads.get(target)
        except WorkloadNotFound:
            status.set_condition(
                ConditionType.TARGET_FOUND,
                ConditionStatus.FALSE,
                "NotFound",
                f"Target workload {target.key} not found",
                self._clock(),
            )
            self._persist(resource)
            return ReconcileResult(outcome="TargetNotFound", requeue_after=self.requeue.target_not_found)
        status.set_condition(
            ConditionType.TARGET_FOUND,
            ConditionStatus.TRUE,
            "Found",
            f"Target workload {target.key} found",
            self._clock(),
        )

        try:
            metric_source = self.metric_sources(config.prometheus.url)
        except Exception as exc:
            logger.error("Metric source unavailable key=%s url=%s error=%s", config.key, config.prometheus.url, exc)
            status.set_condition(
                ConditionType.PROMETHEUS_AVAILABLE, ConditionStatus.FALSE, "ClientError", str(exc), self._clock()
            )
            self._persist(resource)
            return ReconcileResult(outcome="ClientError", requeue_after=self.requeue.client_error)

        samples: Dict[str, float] = {}
        for metric in config.metrics:
            ctx.check()
            try:
                samples[metric.name] = metric_source.query(ctx, metric.promql)
            except MetricQueryError as exc:
                logger.error("Prometheus query failed key=%s metric=%s error=%s", config.key, metric.name, exc)
                status.set_condition(
                    ConditionType.PROMETHEUS_AVAILABLE, ConditionStatus.FALSE, "QueryError", str(exc), self._clock()
                )
                self._persist(resource)
                return ReconcileResult(outcome="QueryError", requeue_after=self.requeue.query_error)
        if config.metrics:
            status.set_condition(
                ConditionType.PROMETHEUS_AVAILABLE,
                ConditionStatus.TRUE,
                "QuerySucceeded",
                f"Sampled {len(samples)} metric(s)",
                self._clock(),
            )

        current = state.instance_count
        now = self._clock()
        decision_input = DecisionInput(
            current_count=current,
            config=config,
            samples=samples,
            now=now,
            last_scale_time=status.last_scale_time,
            history=tuple(self.history.get(config.key)),
        )
        try:
            decision = self.engine.decide(decision_input)
        except ConfigurationError as exc:
            logger.error("Policy evaluation failed key=%s error=%s", config.key, exc)
            status.set_condition(ConditionType.SPEC_VALID, ConditionStatus.FALSE, "PolicyError", str(exc), now)
            self._persist(resource)
            return ReconcileResult(outcome="PolicyError", requeue_after=self.requeue.policy_error)
        status.set_condition(ConditionType.SPEC_VALID, ConditionStatus.TRUE, "Valid", "Policy evaluated", now)

        desired = decision.desired_count
        self.history.append(config.key, HistorySample(timestamp=now, desired_count=desired), self.history_length)
        status.last_samples = dict(samples)
        status.current_count = current
        status.desired_count = desired

        if config.is_dry_run:
            logger.info("Dry-run: not applying key=%s current=%s desired=%s", config.key, current, desired)
            status.set_condition(
                ConditionType.READY,
                ConditionStatus.TRUE,
                "DryRun",
                "Computed desired replicas in DryRun mode; no changes applied",
                now,
            )
            self._persist(resource)
            return ReconcileResult(outcome="DryRun", requeue_after=self.requeue.dry_run, decision=decision)

        if desired == current:
            logger.info("No scaling required key=%s replicas=%s", config.key, current)
            status.set_condition(
                ConditionType.READY,
                ConditionStatus.TRUE,
                "SteadyState",
                "Current replicas already match desired",
                now,
            )
            self._persist(resource)
            return ReconcileResult(outcome="SteadyState", requeue_after=self.requeue.steady_state, decision=decision)

        return self._apply(resource, ctx, state, decision, now)

    def _apply(
        self,
        resource: AutoscalerResource,
        ctx: CycleContext,
        state: WorkloadState,
        decision: Decision,
        now: float,
    ) -> ReconcileResult:
        config = resource.config
        status = resource.status
        current = state.instance_count
        desired = decision.desired_count

        ctx.check()
        try:
            self.workloads.update(config.target, desired, based_on=state)
        except WorkloadConflict as exc:
            logger.warning("Scale conflict key=%s desired=%s error=%s", config.key, desired, exc)
            status.set_condition(ConditionType.READY, ConditionStatus.FALSE, "ScaleConflict", str(exc), now)
            self._persist(resource)
            return ReconcileResult(outcome="ScaleConflict", requeue_after=self.requeue.conflict, decision=decision)
        except Exception as exc:
            logger.error("Scale failed key=%s desired=%s error=%s", config.key, desired, exc)
            status.set_condition(ConditionType.READY, ConditionStatus.FALSE, "ScaleFailed", str(exc), now)
            self._persist(resource)
            raise ScaleError(f"scaling {config.target.key} to {desired} failed: {exc}") from exc

        status.last_scale_time = now
        status.set_condition(
            ConditionType.READY,
            ConditionStatus.TRUE,
            "Scaled",
            f"Scaled from {current} to {desired}",
            now,
        )
        self._persist(resource)
        self._emit(
            config.key,
            NORMAL,
            "Scaled",
            f"Scaled target {config.target.key} from {current} to {desired}",
        )
        logger.info(
            "Scaled key=%s target=%s from=%s to=%s reason=%s",
            config.key,
            config.target.key,
            current,
            desired,
            decision.reason,
        )
        return ReconcileResult(outcome="Scaled", requeue_after=self.requeue.scaled, decision=decision)

    def _persist(self, resource: AutoscalerResource) -> None:
        try:
            self.source.update_status(resource.key, resource.status)
        except Exception:
            logger.exception("Status update failed key=%s", resource.key)

    def _emit(self, key: str, severity: str, reason: str, message: str) -> None:
        try:
            self.events.emit(key, severity, reason, message)
        except Exception:
            logger.exception("Event emission failed key=%s reason=%s", key, reason)
