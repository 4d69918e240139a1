"""Accessors for the workloads whose instance count is controlled."""

from .base import WorkloadAccessor  # noqa: F401
from .kubernetes import KubernetesDeploymentAccessor  # noqa: F401

__all__ = ["WorkloadAccessor", "KubernetesDeploymentAccessor"]
