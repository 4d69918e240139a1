"""
Core package bootstrap for the PromScaler runtime.

Re-exports the primary building blocks so callers can simply do::

    from promscaler.core import AutoscalerController, DefaultPolicyEngine
"""

from __future__ import annotations

from promscaler.core.controllers import AutoscalerController, AutoscalerReconciler, build_controller
from promscaler.core.history import HistoryStore
from promscaler.core.policy import DefaultPolicyEngine

__all__ = [
    "AutoscalerController",
    "AutoscalerReconciler",
    "DefaultPolicyEngine",
    "HistoryStore",
    "build_controller",
]
