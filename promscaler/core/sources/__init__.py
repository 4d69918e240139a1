"""Configuration sources feeding autoscalers to the controller."""

from .base import ConfigurationSource  # noqa: F401
from .manifest import ManifestConfigurationSource, parse_manifest  # noqa: F401

__all__ = ["ConfigurationSource", "ManifestConfigurationSource", "parse_manifest"]
