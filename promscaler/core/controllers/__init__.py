"""
Reconciliation loop, its work queue and the worker-pool controller.
"""

from .context import CycleContext  # noqa: F401
from .controller import AutoscalerController, build_controller  # noqa: F401
from .reconciler import AutoscalerReconciler, ReconcileResult  # noqa: F401
from .workqueue import DelayingWorkQueue, ExponentialBackoff, ShutDown  # noqa: F401

__all__ = [
    "AutoscalerController",
    "AutoscalerReconciler",
    "CycleContext",
    "DelayingWorkQueue",
    "ExponentialBackoff",
    "ReconcileResult",
    "ShutDown",
    "build_controller",
]
