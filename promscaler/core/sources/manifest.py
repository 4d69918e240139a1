"""
YAML manifest configuration source.

The manifest lists autoscalers under a top-level ``autoscalers`` key, each in
the PrometheusAutoscaler resource shape::

    autoscalers:
      - metadata: {name: web, namespace: shop}
        spec:
          targetRef: {kind: Deployment, name: web}
          minReplicas: 2
          maxReplicas: 10
          prometheus: {url: http://prometheus:9090}
          metrics:
            - name: cpu
              promQL: avg(rate(container_cpu_usage_seconds_total[1m]))
              scaleUp: {threshold: 0.8, step: 2}

Statuses live in memory and, when ``state_path`` is set, are mirrored to
``<state_path>/autoscaler-status.json`` so they survive restarts.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import yaml

from promscaler.core.entities import AutoscalerConfig, AutoscalerResource, AutoscalerStatus
from promscaler.core.errors import AutoscalerNotFound, StatusUpdateError
from promscaler.core.sources.base import ConfigurationSource

logger = logging.getLogger(__name__)


def parse_manifest(data: Any) -> Dict[str, AutoscalerConfig]:
    """Parse a loaded manifest; invalid entries are logged and skipped."""
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("manifest root must be a mapping")
    entries = data.get("autoscalers") or []
    if not isinstance(entries, list):
        raise ValueError("'autoscalers' must be a list of mappings")

    configs: Dict[str, AutoscalerConfig] = {}
    for index, entry in enumerate(entries):
        try:
            config = AutoscalerConfig.from_dict(entry)
        except ValueError as exc:
            logger.error("Skipping invalid autoscaler index=%s error=%s", index, exc)
            continue
        if config.key in configs:
            logger.error("Skipping duplicate autoscaler key=%s index=%s", config.key, index)
            continue
        configs[config.key] = config
    return configs


def _marked_for_deletion(data: Any, configs: Mapping[str, AutoscalerConfig]) -> Set[str]:
    """Keys of valid entries whose metadata carries a ``deletionTimestamp``."""
    if not isinstance(data, Mapping) or not isinstance(data.get("autoscalers"), list):
        return set()
    marked: Set[str] = set()
    for entry in data["autoscalers"]:
        meta = entry.get("metadata") if isinstance(entry, Mapping) else None
        if not isinstance(meta, Mapping) or not meta.get("deletionTimestamp"):
            continue
        key = f"{str(meta.get('namespace') or 'default').strip()}/{str(meta.get('name') or '').strip()}"
        if key in configs:
            marked.add(key)
    return marked


class ManifestConfigurationSource(ConfigurationSource):
    def __init__(
        self,
        manifest_path: Optional[str | Path] = None,
        *,
        configs: Optional[Mapping[str, AutoscalerConfig]] = None,
        state_path: Optional[str | Path] = None,
    ) -> None:
        self._manifest_path = Path(manifest_path).expanduser() if manifest_path else None
        self._state_path = Path(state_path).expanduser() if state_path else None
        self._lock = threading.RLock()
        self._configs: Dict[str, AutoscalerConfig] = dict(configs or {})
        self._statuses: Dict[str, AutoscalerStatus] = {}
        self._deleting: set[str] = set()
        self._manifest_stamp: Optional[Tuple[int, int]] = None

        if self._manifest_path is not None:
            self.reload()
        self._load_state()

    # ------------------------------------------------------------------
    # ConfigurationSource

    def get(self, key: str) -> AutoscalerResource:
        with self._lock:
            config = self._configs.get(key)
            if config is None:
                raise AutoscalerNotFound(f"autoscaler {key} not found")
            status = self._statuses.get(key)
            return AutoscalerResource(
                config=config,
                status=status.copy() if status is not None else AutoscalerStatus(),
                deleting=key in self._deleting,
            )

    def list_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._configs)

    def update_status(self, key: str, status: AutoscalerStatus) -> None:
        with self._lock:
            if key not in self._configs:
                raise AutoscalerNotFound(f"autoscaler {key} not found")
            self._statuses[key] = status.copy()
            self._save_state(strict=True)

    # ------------------------------------------------------------------
    # Manifest lifecycle

    def reload(self) -> List[str]:
        """Re-read the manifest; returns the keys that disappeared."""
        if self._manifest_path is None:
            return []
        stamp = self._manifest_stamp_now()
        with self._manifest_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        configs = parse_manifest(data)
        marked = _marked_for_deletion(data, configs)
        with self._lock:
            removed = sorted(set(self._configs) - set(configs))
            self._configs = configs
            self._deleting = (self._deleting & set(configs)) | marked
            self._manifest_stamp = stamp
            dropped = [key for key in removed if self._statuses.pop(key, None) is not None]
            if dropped:
                self._save_state(strict=False)
        logger.info(
            "Loaded manifest path=%s autoscalers=%s deleting=%s removed=%s",
            self._manifest_path,
            len(configs),
            sorted(marked),
            removed,
        )
        return removed

    def refresh(self) -> List[str]:
        """Reload the manifest when its modification time or size changed."""
        if self._manifest_path is None:
            return []
        try:
            stamp = self._manifest_stamp_now()
        except OSError as exc:
            logger.warning(
                "Manifest unavailable, keeping current autoscalers path=%s error=%s", self._manifest_path, exc
            )
            return []
        with self._lock:
            if stamp == self._manifest_stamp:
                return []
        try:
            return self.reload()
        except (OSError, ValueError, yaml.YAMLError):
            logger.exception("Manifest reload failed, keeping current autoscalers path=%s", self._manifest_path)
            return []

    def _manifest_stamp_now(self) -> Tuple[int, int]:
        stat = self._manifest_path.stat()
        return stat.st_mtime_ns, stat.st_size

    def put(self, config: AutoscalerConfig) -> None:
        with self._lock:
            self._configs[config.key] = config
            self._deleting.discard(config.key)

    def mark_deleting(self, key: str) -> None:
        with self._lock:
            if key not in self._configs:
                raise AutoscalerNotFound(f"autoscaler {key} not found")
            self._deleting.add(key)

    def remove(self, key: str) -> None:
        with self._lock:
            self._configs.pop(key, None)
            self._deleting.discard(key)
            if self._statuses.pop(key, None) is not None:
                self._save_state(strict=False)

    def statuses(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {key: status.to_dict() for key, status in sorted(self._statuses.items())}

    # ------------------------------------------------------------------
    # Persistence

    def _state_file(self) -> Optional[Path]:
        if self._state_path is None:
            return None
        self._state_path.mkdir(parents=True, exist_ok=True)
        return self._state_path / "autoscaler-status.json"

    def _save_state(self, *, strict: bool) -> None:
        state_file = self._state_file()
        if state_file is None:
            return
        payload = {key: status.to_dict() for key, status in self._statuses.items()}
        try:
            state_file.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            if strict:
                raise StatusUpdateError(f"failed to write {state_file}: {exc}") from exc
            logger.exception("Status persistence failed path=%s", state_file)

    def _load_state(self) -> None:
        state_file = self._state_file()
        if state_file is None or not state_file.exists():
            return
        try:
            data = json.loads(state_file.read_text(encoding="utf-8"))
            restored = {str(key): AutoscalerStatus.from_dict(value) for key, value in (data or {}).items()}
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Status restore failed path=%s", state_file)
            return
        with self._lock:
            self._statuses = restored
        logger.info("Restored statuses path=%s count=%s", state_file, len(restored))
