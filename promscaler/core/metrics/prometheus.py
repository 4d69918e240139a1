"""
Prometheus HTTP API client built on :mod:`requests`.

Only instant queries (``/api/v1/query``) are issued. Authentication is not
supported; ``authSecretRef`` on the autoscaler is ignored.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import urlparse

import requests

from promscaler.core.errors import MetricQueryError, MetricSourceError
from promscaler.core.metrics.base import MetricSource

if TYPE_CHECKING:  # pragma: no cover
    from promscaler.core.controllers.context import CycleContext

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 10.0


def _parse_value(raw: Any, expression: str) -> float:
    # Sample values arrive as [timestamp, "value"].
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise MetricQueryError(f"malformed sample for query {expression!r}: {raw!r}")
    try:
        value = float(raw[1])
    except (TypeError, ValueError) as exc:
        raise MetricQueryError(f"non-numeric sample for query {expression!r}: {raw[1]!r}") from exc
    return value


class PrometheusClient(MetricSource):
    """Thin wrapper around one Prometheus server."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_QUERY_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def query(self, ctx: "CycleContext", expression: str) -> float:
        ctx.check()
        url = f"{self.base_url}/api/v1/query"
        try:
            response = self._session.get(
                url,
                params={"query": expression},
                timeout=ctx.timeout(self.timeout),
            )
        except requests.RequestException as exc:
            raise MetricQueryError(f"prometheus request failed for {expression!r}: {exc}") from exc

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise MetricQueryError(
                f"prometheus returned non-JSON body (HTTP {response.status_code}) for {expression!r}"
            ) from exc

        if not isinstance(payload, dict):
            raise MetricQueryError(f"malformed response for query {expression!r}: {payload!r}")
        if payload.get("status") != "success":
            raise MetricQueryError(
                f"prometheus query {expression!r} failed: "
                f"{payload.get('errorType', 'unknown')}: {payload.get('error', response.status_code)}"
            )
        for warning in payload.get("warnings") or []:
            logger.warning("Prometheus warning expression=%s warning=%s", expression, warning)

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise MetricQueryError(f"malformed data for query {expression!r}: {data!r}")
        result_type = data.get("resultType")
        result = data.get("result")
        if result_type == "vector":
            if not result:
                raise MetricQueryError(f"empty result for query {expression!r}")
            if not isinstance(result, list) or not isinstance(result[0], dict):
                raise MetricQueryError(f"malformed vector for query {expression!r}: {result!r}")
            return _parse_value(result[0].get("value"), expression)
        if result_type == "scalar":
            return _parse_value(result, expression)
        raise MetricQueryError(f"unsupported result type {result_type!r} for query {expression!r}")

    def close(self) -> None:
        self._session.close()


class PrometheusClientFactory:
    """Validates endpoints and hands out one cached client per URL."""

    def __init__(self, *, timeout: float = DEFAULT_QUERY_TIMEOUT) -> None:
        self.timeout = timeout
        self._lock = threading.Lock()
        self._clients: Dict[str, PrometheusClient] = {}

    def __call__(self, url: str) -> PrometheusClient:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise MetricSourceError(f"invalid prometheus url {url!r}")
        key = url.rstrip("/")
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = PrometheusClient(key, timeout=self.timeout)
                self._clients[key] = client
                logger.info("Created Prometheus client url=%s", key)
            return client

    def close(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()
