"""
Domain entities used throughout the PromScaler runtime.
"""

from .autoscaler import (  # noqa: F401
    AggregationStrategy,
    AutoscalerConfig,
    BehaviorSpec,
    MetricSpec,
    Mode,
    PrometheusConfig,
    ScaleDirection,
    TargetRef,
)
from .status import AutoscalerStatus, Condition, ConditionStatus, ConditionType  # noqa: F401
from .types import (  # noqa: F401
    AutoscalerResource,
    Decision,
    DecisionInput,
    HistorySample,
    WorkloadState,
)

__all__ = [
    "AggregationStrategy",
    "AutoscalerConfig",
    "BehaviorSpec",
    "MetricSpec",
    "Mode",
    "PrometheusConfig",
    "ScaleDirection",
    "TargetRef",
    "AutoscalerStatus",
    "Condition",
    "ConditionStatus",
    "ConditionType",
    "AutoscalerResource",
    "Decision",
    "DecisionInput",
    "HistorySample",
    "WorkloadState",
]
