"""Configuration helpers for PromScaler.

Controller settings come from an optional YAML file. Precedence:

1. Environment variable ``PROMSCALER_CONFIG`` pointing to a YAML file.
2. ``promscaler.yaml`` in the current working directory.
3. Built-in defaults bundled with the package (``config/default.yaml``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

__all__ = [
    "ControllerSettings",
    "RequeueSettings",
    "build_controller_settings",
    "get_controller_settings",
    "load_settings_file",
    "reset_controller_settings",
]


_ENV_VAR = "PROMSCALER_CONFIG"
_CWD_FILE = "promscaler.yaml"
_LOG_LEVELS = ("debug", "info", "warn", "warning", "error")


@dataclass(frozen=True)
class RequeueSettings:
    """Delays (seconds) before a key is evaluated again, per loop outcome."""

    target_not_found: float = 30.0
    client_error: float = 60.0
    query_error: float = 30.0
    policy_error: float = 60.0
    dry_run: float = 30.0
    steady_state: float = 30.0
    scaled: float = 30.0
    conflict: float = 30.0


@dataclass(frozen=True)
class ControllerSettings:
    workers: int = 2
    resync_interval: float = 30.0
    cycle_timeout: float = 25.0
    query_timeout: float = 10.0
    history_length: int = 20
    backoff_base: float = 0.5
    backoff_max: float = 300.0
    manifest_path: Optional[str] = None
    state_path: Optional[str] = None
    log_level: str = "info"
    requeue: RequeueSettings = field(default_factory=RequeueSettings)


_controller_settings: Optional[ControllerSettings] = None


def _resolve_config_path() -> Optional[Path]:
    env_path = os.environ.get(_ENV_VAR)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate.is_file():
            return candidate

    cwd_file = Path.cwd() / _CWD_FILE
    if cwd_file.is_file():
        return cwd_file
    return None


def load_settings_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _load_yaml_dict() -> Dict[str, Any]:
    path = _resolve_config_path()
    if path is not None:
        return load_settings_file(path)

    # Fallback to bundled default configuration
    from importlib import resources

    with resources.files("promscaler.config").joinpath("default.yaml").open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _positive_number(node: Mapping[str, Any], key: str, default: float) -> float:
    value = node.get(key, default)
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{key}' must be a number, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"'{key}' must be positive, got {number}")
    return number


def _optional_str(node: Mapping[str, Any], key: str) -> Optional[str]:
    value = node.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _build_requeue(node: Any) -> RequeueSettings:
    if node is None:
        return RequeueSettings()
    if not isinstance(node, dict):
        raise ValueError("'requeue' section must be a mapping")
    defaults = RequeueSettings()
    known = {f.name for f in fields(RequeueSettings)}
    unknown = sorted(set(node) - known)
    if unknown:
        raise ValueError(f"Unknown requeue settings: {', '.join(unknown)}")
    return RequeueSettings(**{name: _positive_number(node, name, getattr(defaults, name)) for name in known})


def build_controller_settings(data: Mapping[str, Any]) -> ControllerSettings:
    node = data.get("controller", {})
    if node is None:
        node = {}
    if not isinstance(node, dict):
        raise ValueError("'controller' section must be a mapping")

    defaults = ControllerSettings()
    workers = int(_positive_number(node, "workers", defaults.workers))
    history_length = int(_positive_number(node, "history_length", defaults.history_length))
    log_level = str(node.get("log_level", defaults.log_level)).strip().lower() or defaults.log_level
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log_level '{log_level}'. Expected one of: {', '.join(_LOG_LEVELS)}")

    return ControllerSettings(
        workers=workers,
        resync_interval=_positive_number(node, "resync_interval", defaults.resync_interval),
        cycle_timeout=_positive_number(node, "cycle_timeout", defaults.cycle_timeout),
        query_timeout=_positive_number(node, "query_timeout", defaults.query_timeout),
        history_length=history_length,
        backoff_base=_positive_number(node, "backoff_base", defaults.backoff_base),
        backoff_max=_positive_number(node, "backoff_max", defaults.backoff_max),
        manifest_path=_optional_str(node, "manifest_path"),
        state_path=_optional_str(node, "state_path"),
        log_level=log_level,
        requeue=_build_requeue(node.get("requeue")),
    )


def get_controller_settings() -> ControllerSettings:
    global _controller_settings
    if _controller_settings is None:
        _controller_settings = build_controller_settings(_load_yaml_dict())
    return _controller_settings


def reset_controller_settings() -> None:
    """Reset cached controller settings (intended for tests)."""
    global _controller_settings
    _controller_settings = None
