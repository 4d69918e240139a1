"""
Exception hierarchy shared by the PromScaler core and its collaborators.
"""

from __future__ import annotations


class PromScalerError(Exception):
    """Base class for all PromScaler errors."""


class ConfigurationError(PromScalerError):
    """The autoscaler configuration cannot produce a decision (e.g. no metrics)."""


class MetricSourceError(PromScalerError):
    """A metric-source client could not be created for the configured endpoint."""


class MetricQueryError(MetricSourceError):
    """A single query failed or did not evaluate to exactly one scalar."""


class WorkloadError(PromScalerError):
    """The workload accessor rejected a read or an update."""


class WorkloadNotFound(WorkloadError):
    """The target workload does not exist."""


class WorkloadConflict(WorkloadError):
    """The workload changed since it was read; the optimistic update lost."""


class AutoscalerNotFound(PromScalerError):
    """The autoscaler entity is no longer known to the configuration source."""


class StatusUpdateError(PromScalerError):
    """Persisting the reported status failed."""


class ReconcileError(PromScalerError):
    """Fatal cycle error; the host requeues the key with backoff."""


class ScaleError(ReconcileError):
    """Applying the desired instance count to the workload failed."""


class CycleCancelled(PromScalerError):
    """The reconciliation cycle was cancelled or ran past its deadline."""


__all__ = [
    "PromScalerError",
    "ConfigurationError",
    "MetricSourceError",
    "MetricQueryError",
    "WorkloadError",
    "WorkloadNotFound",
    "WorkloadConflict",
    "AutoscalerNotFound",
    "StatusUpdateError",
    "ReconcileError",
    "ScaleError",
    "CycleCancelled",
]
