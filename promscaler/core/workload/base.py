"""
Workload accessor contract: read and set the instance count of a target.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from promscaler.core.entities import TargetRef, WorkloadState


class WorkloadAccessor(ABC):
    @abstractmethod
    def get(self, target: TargetRef) -> WorkloadState:
        """
        Read the target's current state.

        Raises:
            WorkloadNotFound: the target does not exist.
            WorkloadError: any other failure.
        """

    @abstractmethod
    def update(self, target: TargetRef, desired: int, *, based_on: WorkloadState) -> None:
        """
        Set the instance count, guarded by the version observed in ``based_on``.

        Raises:
            WorkloadConflict: the workload changed since ``based_on`` was read.
            WorkloadNotFound: the target disappeared.
            WorkloadError: any other failure.
        """
