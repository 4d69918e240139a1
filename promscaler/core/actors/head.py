"""
PromScaler head-node helper.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import ray

from .autoscaler import AutoscalerActor
from .config import ActorConfig

logger = logging.getLogger(__name__)


class AutoscalerHead:
    """Convenience wrapper to start/stop the autoscaler actor on the head node."""

    def __init__(self, name: str = "promscaler-controller", config: Optional[ActorConfig] = None, **collaborators: Any):
        self.name = name
        self.config = config or ActorConfig(name=name)
        self._collaborators = collaborators
        self._actor: Optional[ray.actor.ActorHandle] = None

    @property
    def actor(self) -> Optional[ray.actor.ActorHandle]:
        return self._actor

    def start(self) -> bool:
        if self._actor is None:
            self._actor = AutoscalerActor.options(max_restarts=self.config.max_restarts).remote(
                self.config, **self._collaborators
            )
            ray.get(self._actor.start.remote())
            logger.info("PromScaler controller started (%s)", self.name)
        return True

    def stop(self) -> bool:
        if self._actor:
            try:
                ray.get(self._actor.stop.remote())
            finally:
                ray.kill(self._actor, no_restart=True)
                self._actor = None
            logger.info("PromScaler controller stopped (%s)", self.name)
        return True
