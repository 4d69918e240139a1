"""
Shared configuration dataclass for PromScaler actors.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ActorConfig:
    """
    Generic configuration for the actor hosting the controller.

    ``settings_path`` points at a controller settings YAML file; when unset
    the layered lookup in :mod:`promscaler.core.config` applies.
    """

    name: str
    max_restarts: int = 3
    workers: int | None = None
    settings_path: str | None = None
    manifest_path: str | None = None
    state_path: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
