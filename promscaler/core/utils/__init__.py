"""Utility helpers for PromScaler."""

from .logging import configure_runtime_logging, parse_log_level  # noqa: F401

__all__ = [
    "configure_runtime_logging",
    "parse_log_level",
]
