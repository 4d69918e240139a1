"""
Worker-pool controller driving :class:`AutoscalerReconciler` from a work queue.

A resync thread periodically refreshes the configuration source and enqueues
every idle key; workers pull keys, run one cycle each and requeue according
to the cycle result. The queue guarantees at most one in-flight cycle per key.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from promscaler.core.config import ControllerSettings
from promscaler.core.controllers.context import CycleContext
from promscaler.core.controllers.reconciler import AutoscalerReconciler, ReconcileResult
from promscaler.core.controllers.workqueue import DelayingWorkQueue, ExponentialBackoff, ShutDown
from promscaler.core.errors import CycleCancelled
from promscaler.core.events import EventSink, LoggingEventRecorder
from promscaler.core.history import HistoryStore
from promscaler.core.metrics import MetricSourceFactory, PrometheusClientFactory
from promscaler.core.policy import DefaultPolicyEngine, PolicyEngine
from promscaler.core.sources import ConfigurationSource, ManifestConfigurationSource
from promscaler.core.workload import KubernetesDeploymentAccessor, WorkloadAccessor

logger = logging.getLogger(__name__)

ResultHook = Callable[[str, Optional[ReconcileResult], Optional[BaseException]], None]


class AutoscalerController:
    def __init__(
        self,
        reconciler: AutoscalerReconciler,
        *,
        workers: int = 2,
        resync_interval: float = 30.0,
        cycle_timeout: Optional[float] = None,
        backoff: Optional[ExponentialBackoff] = None,
        queue: Optional[DelayingWorkQueue] = None,
        on_result: Optional[ResultHook] = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.reconciler = reconciler
        self.workers = workers
        self.resync_interval = resync_interval
        self.cycle_timeout = cycle_timeout
        self.backoff = backoff or ExponentialBackoff()
        self.queue = queue or DelayingWorkQueue()
        self.on_result = on_result

        self._lock = threading.Lock()
        self._inflight: Dict[str, CycleContext] = {}
        self._known_keys: set[str] = set()
        self._threads: List[threading.Thread] = []
        self._stop_event = threading.Event()
        self._running = False

    @property
    def source(self) -> ConfigurationSource:
        return self.reconciler.source

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
        self._stop_event.clear()
        for index in range(self.workers):
            thread = threading.Thread(target=self._worker, name=f"promscaler-worker-{index}", daemon=True)
            thread.start()
            self._threads.append(thread)
        resync = threading.Thread(target=self._resync_loop, name="promscaler-resync", daemon=True)
        resync.start()
        self._threads.append(resync)
        logger.info("AutoscalerController started workers=%s resync=%ss", self.workers, self.resync_interval)

    def stop(self, timeout: float = 10.0) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            inflight = list(self._inflight.values())
        self._stop_event.set()
        for ctx in inflight:
            ctx.cancel()
        self.queue.shutdown()
        for thread in self._threads:
            thread.join(timeout)
        self._threads.clear()
        logger.info("AutoscalerController stopped")

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def enqueue(self, key: str) -> None:
        self.queue.add(key)

    # ------------------------------------------------------------------
    # Resync

    def resync(self) -> List[str]:
        """
        Refresh the source and enqueue every idle key.

        Keys already waiting on a requeue or backoff delay keep their
        deadline. Keys that vanished have their history and backoff dropped
        and get one last cycle so the loop observes the removal.
        """
        self.source.refresh()
        keys = self.source.list_keys()
        current = set(keys)
        with self._lock:
            vanished = self._known_keys - current
            self._known_keys = current
        for key in sorted(vanished):
            logger.info("Autoscaler removed key=%s", key)
            self.reconciler.history.forget(key)
            self.backoff.forget(key)
            self.queue.add(key)
        for key in keys:
            self.queue.add_if_idle(key)
        return keys

    def _resync_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.resync()
            except Exception:
                logger.exception("Resync failed")
            self._stop_event.wait(self.resync_interval)

    # ------------------------------------------------------------------
    # Workers

    def _worker(self) -> None:
        while True:
            try:
                key = self.queue.get()
            except ShutDown:
                return
            if key is None:
                continue
            try:
                self.process(key)
            finally:
                self.queue.done(key)

    def process(self, key: str) -> Optional[ReconcileResult]:
        """Run one cycle for ``key`` and schedule its next evaluation."""
        ctx = CycleContext.with_timeout(self.cycle_timeout)
        with self._lock:
            self._inflight[key] = ctx
        try:
            result = self.reconciler.reconcile(key, ctx)
        except CycleCancelled:
            logger.info("Cycle cancelled key=%s", key)
            if not self.queue.shutting_down:
                self.queue.add_after(key, self.backoff.when(key))
            return None
        except Exception as exc:
            delay = self.backoff.when(key)
            logger.exception("Reconcile failed key=%s retry_in=%.3fs", key, delay)
            self.queue.add_after(key, delay)
            self._notify(key, None, exc)
            return None
        finally:
            with self._lock:
                self._inflight.pop(key, None)

        self.backoff.forget(key)
        if result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)
        self._notify(key, result, None)
        return result

    def _notify(self, key: str, result: Optional[ReconcileResult], error: Optional[BaseException]) -> None:
        if self.on_result is None:
            return
        try:
            self.on_result(key, result, error)
        except Exception:
            logger.exception("Result hook failed key=%s", key)

    def run_once(self) -> Dict[str, Optional[ReconcileResult]]:
        """Evaluate every key once, synchronously, without requeueing."""
        results: Dict[str, Optional[ReconcileResult]] = {}
        for key in self.source.list_keys():
            ctx = CycleContext.with_timeout(self.cycle_timeout)
            try:
                results[key] = self.reconciler.reconcile(key, ctx)
            except Exception:
                logger.exception("Reconcile failed key=%s", key)
                results[key] = None
        return results


def build_controller(
    settings: ControllerSettings,
    *,
    source: Optional[ConfigurationSource] = None,
    workloads: Optional[WorkloadAccessor] = None,
    metric_sources: Optional[MetricSourceFactory] = None,
    engine: Optional[PolicyEngine] = None,
    history: Optional[HistoryStore] = None,
    events: Optional[EventSink] = None,
    on_result: Optional[ResultHook] = None,
) -> AutoscalerController:
    """Wire a controller from settings, filling in production collaborators."""
    if source is None:
        if not settings.manifest_path:
            raise ValueError("a manifest path is required when no configuration source is given")
        source = ManifestConfigurationSource(settings.manifest_path, state_path=settings.state_path)

    reconciler = AutoscalerReconciler(
        source=source,
        workloads=workloads or KubernetesDeploymentAccessor(request_timeout=settings.query_timeout),
        metric_sources=metric_sources or PrometheusClientFactory(timeout=settings.query_timeout),
        engine=engine or DefaultPolicyEngine(),
        history=history or HistoryStore(),
        events=events or LoggingEventRecorder(),
        requeue=settings.requeue,
        history_length=settings.history_length,
    )
    return AutoscalerController(
        reconciler,
        workers=settings.workers,
        resync_interval=settings.resync_interval,
        cycle_timeout=settings.cycle_timeout,
        backoff=ExponentialBackoff(settings.backoff_base, settings.backoff_max),
        on_result=on_result,
    )
