"""
Shared pytest fixtures and in-memory collaborators.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import pytest
import ray

from promscaler.core.entities import (
    AutoscalerConfig,
    AutoscalerResource,
    AutoscalerStatus,
    TargetRef,
    WorkloadState,
)
from promscaler.core.errors import (
    AutoscalerNotFound,
    MetricQueryError,
    MetricSourceError,
    WorkloadNotFound,
)
from promscaler.core.events import EventSink
from promscaler.core.metrics import MetricSource
from promscaler.core.sources import ConfigurationSource
from promscaler.core.workload import WorkloadAccessor

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s", force=True)
logging.getLogger("promscaler").setLevel(logging.DEBUG)


class FakeMetricSource(MetricSource):
    """Answers queries from a promql -> value map; missing or exception entries fail."""

    def __init__(self, values: Optional[Dict[str, object]] = None) -> None:
        self.values: Dict[str, object] = dict(values or {})
        self.queries: List[str] = []

    def query(self, ctx, expression: str) -> float:
        ctx.check()
        self.queries.append(expression)
        value = self.values.get(expression)
        if value is None:
            raise MetricQueryError(f"no data for {expression!r}")
        if isinstance(value, Exception):
            raise value
        return float(value)


class FakeMetricSourceFactory:
    def __init__(self, source: Optional[FakeMetricSource] = None, *, fail: bool = False) -> None:
        self.source = source or FakeMetricSource()
        self.fail = fail
        self.urls: List[str] = []

    def __call__(self, url: str) -> MetricSource:
        self.urls.append(url)
        if self.fail:
            raise MetricSourceError(f"cannot reach {url}")
        return self.source


class FakeWorkloadAccessor(WorkloadAccessor):
    def __init__(self) -> None:
        self.workloads: Dict[str, WorkloadState] = {}
        self.updates: List[Tuple[str, int, Optional[str]]] = []
        self.update_error: Optional[Exception] = None
        self.get_error: Optional[Exception] = None

    def set(self, key: str, count: int, version: str = "1") -> None:
        self.workloads[key] = WorkloadState(instance_count=count, version=version)

    def get(self, target: TargetRef) -> WorkloadState:
        if self.get_error is not None:
            raise self.get_error
        state = self.workloads.get(target.key)
        if state is None:
            raise WorkloadNotFound(f"{target.key} not found")
        return state

    def update(self, target: TargetRef, desired: int, *, based_on: WorkloadState) -> None:
        if self.update_error is not None:
            raise self.update_error
        self.updates.append((target.key, desired, based_on.version))
        next_version = str(int(based_on.version or "0") + 1)
        self.workloads[target.key] = WorkloadState(instance_count=desired, version=next_version)


class FakeConfigurationSource(ConfigurationSource):
    def __init__(self, configs: Optional[List[AutoscalerConfig]] = None) -> None:
        self.configs: Dict[str, AutoscalerConfig] = {config.key: config for config in configs or []}
        self.statuses: Dict[str, AutoscalerStatus] = {}
        self.deleting: set = set()
        self.status_writes: List[str] = []
        self.get_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None

    def add(self, config: AutoscalerConfig) -> None:
        self.configs[config.key] = config

    def get(self, key: str) -> AutoscalerResource:
        if self.get_error is not None:
            raise self.get_error
        config = self.configs.get(key)
        if config is None:
            raise AutoscalerNotFound(key)
        status = self.statuses.get(key)
        return AutoscalerResource(
            config=config,
            status=status.copy() if status else AutoscalerStatus(),
            deleting=key in self.deleting,
        )

    def list_keys(self) -> List[str]:
        return sorted(self.configs)

    def update_status(self, key: str, status: AutoscalerStatus) -> None:
        self.status_writes.append(key)
        if self.status_error is not None:
            raise self.status_error
        self.statuses[key] = status.copy()


class FakeEventSink(EventSink):
    def __init__(self) -> None:
        self.events: List[Tuple[str, str, str, str]] = []

    def emit(self, key: str, severity: str, reason: str, message: str) -> None:
        self.events.append((key, severity, reason, message))


def make_config(
    *,
    name: str = "web",
    namespace: str = "shop",
    min_replicas: int = 1,
    max_replicas: int = 10,
    metrics: Optional[list] = None,
    behavior: Optional[dict] = None,
    mode: str = "Apply",
    aggregation: Optional[str] = None,
    target: str = "web",
) -> AutoscalerConfig:
    spec: dict = {
        "targetRef": {"kind": "Deployment", "name": target},
        "minReplicas": min_replicas,
        "maxReplicas": max_replicas,
        "mode": mode,
        "prometheus": {"url": "http://prometheus:9090"},
        "metrics": metrics
        if metrics is not None
        else [{"name": "cpu", "promQL": "cpu_query", "scaleUp": {"threshold": 70, "step": 2}}],
    }
    if behavior is not None:
        spec["behavior"] = behavior
    if aggregation is not None:
        spec["aggregation"] = aggregation
    return AutoscalerConfig.from_dict({"metadata": {"name": name, "namespace": namespace}, "spec": spec})


@pytest.fixture
def ray_runtime():
    """Spin up a local Ray runtime for tests and mirror worker logs to the driver."""
    try:
        ray.init(
            ignore_reinit_error=True,
            local_mode=True,
            logging_level=logging.INFO,
        )
    except PermissionError as exc:
        pytest.skip(f"Ray init requires system permissions not available in this environment: {exc}")
    except Exception as exc:  # pragma: no cover - restricted sandboxes
        if "Operation not permitted" in str(exc):
            pytest.skip(f"Ray init skipped due to restricted environment: {exc}")
        raise
    try:
        yield
    finally:
        ray.shutdown()


@pytest.fixture
def metric_source() -> FakeMetricSource:
    return FakeMetricSource({"cpu_query": 80.0})


@pytest.fixture
def metric_factory(metric_source) -> FakeMetricSourceFactory:
    return FakeMetricSourceFactory(metric_source)


@pytest.fixture
def workloads() -> FakeWorkloadAccessor:
    accessor = FakeWorkloadAccessor()
    accessor.set("shop/web", 4)
    return accessor


@pytest.fixture
def config_source() -> FakeConfigurationSource:
    return FakeConfigurationSource([make_config()])


@pytest.fixture
def event_sink() -> FakeEventSink:
    return FakeEventSink()
