"""
Ray actor hosting the autoscaler controller.

The actor owns the controller, its work queue and the history store, and
exports Ray metrics for completed cycles, scale events and desired counts.
Collaborators may be injected (tests, custom deployments); anything not
injected is built from the controller settings.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import ray
from ray.util import metrics

from promscaler.core.actors.config import ActorConfig
from promscaler.core.config import (
    ControllerSettings,
    build_controller_settings,
    get_controller_settings,
    load_settings_file,
)
from promscaler.core.controllers import ReconcileResult, build_controller
from promscaler.core.controllers.context import CycleContext
from promscaler.core.errors import AutoscalerNotFound
from promscaler.core.events import EventSink, LoggingEventRecorder
from promscaler.core.metrics import MetricSourceFactory
from promscaler.core.policy import PolicyEngine
from promscaler.core.sources import ConfigurationSource
from promscaler.core.workload import WorkloadAccessor

logger = logging.getLogger(__name__)


class CountingEventSink(EventSink):
    """Forwards events and counts them per reason."""

    def __init__(self, inner: EventSink, counter: metrics.Counter) -> None:
        self.inner = inner
        self.counter = counter

    def emit(self, key: str, severity: str, reason: str, message: str) -> None:
        self.counter.inc(tags={"severity": severity, "reason": reason})
        self.inner.emit(key, severity, reason, message)


def _resolve_settings(config: ActorConfig) -> ControllerSettings:
    if config.settings_path:
        settings = build_controller_settings(load_settings_file(Path(config.settings_path).expanduser()))
    else:
        settings = get_controller_settings()
    overrides: Dict[str, Any] = {}
    if config.workers:
        overrides["workers"] = config.workers
    if config.manifest_path:
        overrides["manifest_path"] = config.manifest_path
    if config.state_path:
        overrides["state_path"] = config.state_path
    return dataclasses.replace(settings, **overrides) if overrides else settings


@ray.remote
class AutoscalerActor:
    """Runs the reconciliation loop inside a Ray actor."""

    def __init__(
        self,
        config: ActorConfig,
        *,
        source: Optional[ConfigurationSource] = None,
        workloads: Optional[WorkloadAccessor] = None,
        metric_sources: Optional[MetricSourceFactory] = None,
        engine: Optional[PolicyEngine] = None,
        events: Optional[EventSink] = None,
    ):
        self.config = config
        self.settings = _resolve_settings(config)
        self.recorder = events or LoggingEventRecorder()

        self.cycle_counter = metrics.Counter(
            name="promscaler_reconcile_cycles_total",
            description="Completed reconcile cycles by outcome",
            tag_keys=("outcome",),
        )
        self.event_counter = metrics.Counter(
            name="promscaler_events_total",
            description="Events emitted by the controller",
            tag_keys=("severity", "reason"),
        )
        self.desired_gauge = metrics.Gauge(
            name="promscaler_desired_instances",
            description="Most recent desired instance count",
            tag_keys=("autoscaler",),
        )

        self.controller = build_controller(
            self.settings,
            source=source,
            workloads=workloads,
            metric_sources=metric_sources,
            engine=engine,
            events=CountingEventSink(self.recorder, self.event_counter),
            on_result=self._record_result,
        )
        logger.info(
            "AutoscalerActor[%s] initialised workers=%s manifest=%s",
            config.name,
            self.settings.workers,
            self.settings.manifest_path,
        )

    def _record_result(
        self,
        key: str,
        result: Optional[ReconcileResult],
        error: Optional[BaseException],
    ) -> None:
        if result is None:
            self.cycle_counter.inc(tags={"outcome": "Error"})
            return
        self.cycle_counter.inc(tags={"outcome": result.outcome})
        if result.decision is not None:
            self.desired_gauge.set(result.decision.desired_count, tags={"autoscaler": key})

    # ------------------------------------------------------------------
    # Remote API

    def start(self) -> dict:
        self.controller.start()
        return {"success": True, "keys": self.controller.source.list_keys()}

    def stop(self) -> dict:
        self.controller.stop()
        return {"success": True}

    def enqueue(self, key: str) -> dict:
        self.controller.enqueue(key)
        return {"success": True}

    def reconcile(self, key: str) -> dict:
        """Run one synchronous cycle for ``key``; errors are reported, not raised."""
        ctx = CycleContext.with_timeout(self.settings.cycle_timeout)
        try:
            result = self.controller.reconciler.reconcile(key, ctx)
        except Exception as exc:
            logger.exception("AutoscalerActor reconcile failed key=%s", key)
            self._record_result(key, None, exc)
            return {"success": False, "key": key, "error": str(exc)}
        self._record_result(key, result, None)
        return {
            "success": True,
            "key": key,
            "outcome": result.outcome,
            "requeue_after": result.requeue_after,
            "desired": result.decision.desired_count if result.decision else None,
            "reason": result.decision.reason if result.decision else None,
        }

    def status(self, key: str) -> dict:
        try:
            resource = self.controller.source.get(key)
        except AutoscalerNotFound as exc:
            return {"success": False, "key": key, "error": str(exc)}
        return {"success": True, "key": key, "status": resource.status.to_dict()}

    def list_keys(self) -> List[str]:
        return self.controller.source.list_keys()

    def recent_events(self, limit: int = 50) -> List[dict]:
        recent = getattr(self.recorder, "recent", None)
        if recent is None:
            return []
        return [event.to_dict() for event in recent(limit)]

    def health(self) -> dict:
        return {
            "name": self.config.name,
            "running": self.controller.running,
            "queued": len(self.controller.queue),
            "delayed": self.controller.queue.pending_delayed(),
        }
