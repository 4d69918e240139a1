"""
Configuration source contract: where autoscalers come from and where their
status goes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from promscaler.core.entities import AutoscalerResource, AutoscalerStatus


class ConfigurationSource(ABC):
    @abstractmethod
    def get(self, key: str) -> AutoscalerResource:
        """
        Return a fresh snapshot of the autoscaler ``key``.

        Raises:
            AutoscalerNotFound: the key is unknown.
        """

    @abstractmethod
    def list_keys(self) -> List[str]:
        """Every key the controller should reconcile."""

    @abstractmethod
    def update_status(self, key: str, status: AutoscalerStatus) -> None:
        """
        Persist ``status`` for ``key``.

        Raises:
            AutoscalerNotFound: the key is unknown.
            StatusUpdateError: the write failed.
        """

    def refresh(self) -> List[str]:
        """
        Pick up external changes to the autoscaler set.

        Called by the controller before every resync. Returns the keys that
        disappeared. Sources that are always current keep this no-op.
        """
        return []
