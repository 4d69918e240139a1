"""Bounded per-autoscaler decision history."""

from .store import HistoryStore  # noqa: F401

__all__ = ["HistoryStore"]
