"""
Ray actor implementations that host the PromScaler controller.
"""

from .autoscaler import AutoscalerActor, CountingEventSink  # noqa: F401
from .config import ActorConfig  # noqa: F401
from .head import AutoscalerHead  # noqa: F401

__all__ = [
    "ActorConfig",
    "AutoscalerActor",
    "AutoscalerHead",
    "CountingEventSink",
]
