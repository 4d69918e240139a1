"""
Decision engine and pluggable aggregation strategies.
"""

from .aggregation import (  # noqa: F401
    DEFAULT_AGGREGATION,
    available_aggregations,
    register_aggregation,
    resolve_aggregation,
    unregister_aggregation,
)
from .engine import DEFAULT_HISTORY_LENGTH, DefaultPolicyEngine, PolicyEngine  # noqa: F401

__all__ = [
    "DEFAULT_AGGREGATION",
    "DEFAULT_HISTORY_LENGTH",
    "DefaultPolicyEngine",
    "PolicyEngine",
    "available_aggregations",
    "register_aggregation",
    "resolve_aggregation",
    "unregister_aggregation",
]
