"""
Autoscaler configuration entities.

The manifest shape mirrors the PrometheusAutoscaler custom resource, so
``from_dict`` accepts camelCase keys (``minReplicas``, ``promQL``, ...).
Only structural checks live here; range invariants such as
``minCount >= 1`` are tolerated and handled by the policy engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class Mode(str, Enum):
    """How the controller acts on the computed decision."""

    APPLY = "Apply"
    DRY_RUN = "DryRun"


class AggregationStrategy(str, Enum):
    """Built-in strategies for combining per-metric projections."""

    MAX = "max"
    MIN = "min"
    AVERAGE = "average"
    WEIGHTED = "weighted"


def _to_int(value: Any, key: str) -> int:
    # 2.0 is accepted, 2.7 is not.
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"'{key}' must be an integer, got {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{key}' must be an integer, got {value!r}") from exc


def _optional_int(raw: Mapping[str, Any], key: str) -> Optional[int]:
    value = raw.get(key)
    if value is None:
        return None
    number = _to_int(value, key)
    if number < 0:
        raise ValueError(f"'{key}' must be non-negative, got {number}")
    return number


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"'{what}' must be a mapping")
    return value


@dataclass(frozen=True)
class TargetRef:
    """Points to the workload whose instance count is controlled."""

    name: str
    namespace: str = "default"
    kind: str = "Deployment"
    api_version: str = "apps/v1"

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_dict(cls, values: Mapping[str, Any], *, default_namespace: str = "default") -> "TargetRef":
        name = str(values.get("name") or "").strip()
        if not name:
            raise ValueError("targetRef requires a non-empty 'name'")
        namespace = str(values.get("namespace") or default_namespace).strip()
        return cls(
            name=name,
            namespace=namespace,
            kind=str(values.get("kind") or "Deployment"),
            api_version=str(values.get("apiVersion") or "apps/v1"),
        )


@dataclass(frozen=True)
class PrometheusConfig:
    """Where the metric source lives. ``auth_secret_ref`` is carried but unused."""

    url: str
    auth_secret_ref: Optional[str] = None

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "PrometheusConfig":
        url = str(values.get("url") or "").strip()
        if not url:
            raise ValueError("prometheus.url must be a non-empty string")
        secret = values.get("authSecretRef")
        return cls(url=url, auth_secret_ref=str(secret) if secret is not None else None)


@dataclass(frozen=True)
class ScaleDirection:
    """Threshold and step for one scaling direction."""

    threshold: float
    step: int

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "ScaleDirection":
        try:
            threshold = float(values["threshold"])
        except KeyError as exc:
            raise ValueError("scale direction requires a 'threshold'") from exc
        except (TypeError, ValueError) as exc:
            raise ValueError(f"threshold must be numeric, got {values.get('threshold')!r}") from exc
        step = _optional_int(values, "step")
        return cls(threshold=threshold, step=step or 0)


@dataclass(frozen=True)
class MetricSpec:
    """One PromQL-backed signal that contributes a projection."""

    name: str
    promql: str
    weight: Optional[float] = None
    scale_up: Optional[ScaleDirection] = None
    scale_down: Optional[ScaleDirection] = None

    @property
    def effective_weight(self) -> float:
        return 1.0 if self.weight is None else self.weight

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "MetricSpec":
        name = str(values.get("name") or "").strip()
        if not name:
            raise ValueError("metric requires a non-empty 'name'")

        weight: Optional[float] = None
        if values.get("weight") is not None:
            try:
                weight = float(values["weight"])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"metric '{name}' weight must be numeric") from exc
            if weight < 0:
                raise ValueError(f"metric '{name}' weight must be non-negative, got {weight}")

        scale_up = values.get("scaleUp")
        scale_down = values.get("scaleDown")
        try:
            return cls(
                name=name,
                promql=str(values.get("promQL") or values.get("promql") or ""),
                weight=weight,
                scale_up=ScaleDirection.from_dict(_require_mapping(scale_up, "scaleUp")) if scale_up is not None else None,
                scale_down=(
                    ScaleDirection.from_dict(_require_mapping(scale_down, "scaleDown")) if scale_down is not None else None
                ),
            )
        except ValueError as exc:
            raise ValueError(f"metric '{name}': {exc}") from exc


@dataclass(frozen=True)
class BehaviorSpec:
    """Stabilization, cooldown and rate-limit knobs; ``None`` disables a knob."""

    stabilization_window_seconds: Optional[int] = None
    scale_up_cooldown_seconds: Optional[int] = None
    scale_down_cooldown_seconds: Optional[int] = None
    max_scale_up_step_percent: Optional[int] = None
    max_scale_down_step_percent: Optional[int] = None

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "BehaviorSpec":
        return cls(
            stabilization_window_seconds=_optional_int(values, "stabilizationWindowSeconds"),
            scale_up_cooldown_seconds=_optional_int(values, "scaleUpCooldownSeconds"),
            scale_down_cooldown_seconds=_optional_int(values, "scaleDownCooldownSeconds"),
            max_scale_up_step_percent=_optional_int(values, "maxScaleUpStepPercent"),
            max_scale_down_step_percent=_optional_int(values, "maxScaleDownStepPercent"),
        )


@dataclass(frozen=True)
class AutoscalerConfig:
    """
    Desired behaviour for one autoscaled workload.

    Attributes:
        name: Autoscaler name, unique within its namespace.
        namespace: Autoscaler namespace.
        target: Workload to scale.
        min_count: Lower bound for the instance count.
        max_count: Upper bound for the instance count.
        prometheus: Metric source endpoint.
        mode: ``Apply`` mutates the workload, ``DryRun`` only reports.
        aggregation: Name of the aggregation strategy; unknown values mean ``max``.
        metrics: Ordered metric specs.
        behavior: Optional stabilization / cooldown / rate-limit settings.
    """

    name: str
    namespace: str
    target: TargetRef
    min_count: int
    max_count: int
    prometheus: PrometheusConfig
    mode: Mode = Mode.APPLY
    aggregation: str = AggregationStrategy.MAX.value
    metrics: Tuple[MetricSpec, ...] = field(default_factory=tuple)
    behavior: Optional[BehaviorSpec] = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_dry_run(self) -> bool:
        return self.mode is Mode.DRY_RUN

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "AutoscalerConfig":
        """
        Build a config from a manifest entry.

        Accepts either the full resource (``{"name", "namespace", "spec": {...}}``)
        or a flat mapping that carries the spec keys next to ``name``.

        Raises:
            ValueError: if the entry is structurally invalid.
        """
        raw = _require_mapping(values, "autoscaler")
        meta = raw.get("metadata") if isinstance(raw.get("metadata"), Mapping) else raw
        name = str(meta.get("name") or "").strip()
        if not name:
            raise ValueError("autoscaler requires a non-empty 'name'")
        namespace = str(meta.get("namespace") or "default").strip()
        spec = _require_mapping(raw.get("spec", raw), "spec")

        try:
            target = TargetRef.from_dict(_require_mapping(spec.get("targetRef"), "targetRef"), default_namespace=namespace)
            prometheus = PrometheusConfig.from_dict(_require_mapping(spec.get("prometheus"), "prometheus"))

            min_count = _to_int(spec.get("minReplicas", 1), "minReplicas")
            max_count = _to_int(spec.get("maxReplicas", min_count), "maxReplicas")

            raw_mode = str(spec.get("mode") or Mode.APPLY.value)
            try:
                mode = Mode(raw_mode)
            except ValueError as exc:
                raise ValueError(f"mode must be one of {[m.value for m in Mode]}, got {raw_mode!r}") from exc

            raw_metrics = spec.get("metrics") or []
            if not isinstance(raw_metrics, list):
                raise ValueError("'metrics' must be a list of mappings")
            metrics = tuple(MetricSpec.from_dict(_require_mapping(item, "metric")) for item in raw_metrics)
            seen: Dict[str, int] = {}
            for metric in metrics:
                seen[metric.name] = seen.get(metric.name, 0) + 1
            duplicates = sorted(metric for metric, count in seen.items() if count > 1)
            if duplicates:
                raise ValueError(f"duplicate metric names: {', '.join(duplicates)}")

            behavior_raw = spec.get("behavior")
            behavior = (
                BehaviorSpec.from_dict(_require_mapping(behavior_raw, "behavior")) if behavior_raw is not None else None
            )
        except ValueError as exc:
            raise ValueError(f"autoscaler '{namespace}/{name}': {exc}") from exc

        return cls(
            name=name,
            namespace=namespace,
            target=target,
            min_count=min_count,
            max_count=max_count,
            prometheus=prometheus,
            mode=mode,
            aggregation=str(spec.get("aggregation") or AggregationStrategy.MAX.value).strip().lower(),
            metrics=metrics,
            behavior=behavior,
        )
