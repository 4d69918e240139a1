"""
PromScaler: a closed-loop, Prometheus-driven autoscaling controller.

This module exposes high-level entry points while keeping heavy dependencies
lazy-imported so packaging tools do not require Ray or the Kubernetes client
during metadata builds.
"""

from __future__ import annotations

from importlib import import_module
from importlib.metadata import PackageNotFoundError, version

__all__ = [
    "AutoscalerController",
    "AutoscalerHead",
    "DefaultPolicyEngine",
    "HistoryStore",
    "build_controller",
    "__version__",
]


try:
    __version__ = version("promscaler-core")
except PackageNotFoundError:
    __version__ = "0.0.0"


_LAZY_TARGETS = {
    "AutoscalerController": ("promscaler.core.controllers", "AutoscalerController"),
    "AutoscalerHead": ("promscaler.core.actors", "AutoscalerHead"),
    "DefaultPolicyEngine": ("promscaler.core.policy", "DefaultPolicyEngine"),
    "HistoryStore": ("promscaler.core.history", "HistoryStore"),
    "build_controller": ("promscaler.core.controllers", "build_controller"),
}


def __getattr__(name: str):
    """Dynamically load public symbols to avoid importing optional deps early."""
    target = _LAZY_TARGETS.get(name)
    if target is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

    module_name, attribute = target
    module = import_module(module_name)
    value = getattr(module, attribute)
    globals()[name] = value  # cache for subsequent lookups
    return value
