"""
Kubernetes ``apps/v1`` Deployment accessor.

Replicas are written with a merge patch that carries the ``resourceVersion``
read earlier in the cycle, so a concurrent writer turns the update into a
409 conflict instead of a silent overwrite.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from promscaler.core.entities import TargetRef, WorkloadState
from promscaler.core.errors import WorkloadConflict, WorkloadError, WorkloadNotFound
from promscaler.core.workload.base import WorkloadAccessor

logger = logging.getLogger(__name__)

SUPPORTED_KIND = "Deployment"


def load_apps_api() -> Any:
    """Build an ``AppsV1Api`` from in-cluster config, falling back to kubeconfig."""
    try:
        k8s_config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except ConfigException:
        k8s_config.load_kube_config()
        logger.info("Loaded local kubeconfig")
    return k8s_client.AppsV1Api()


def _translate(exc: ApiException, target: TargetRef, action: str) -> WorkloadError:
    if exc.status == 404:
        return WorkloadNotFound(f"deployment {target.key} not found")
    if exc.status == 409:
        return WorkloadConflict(f"deployment {target.key} changed during {action}: {exc.reason}")
    return WorkloadError(f"{action} deployment {target.key} failed (HTTP {exc.status}): {exc.reason}")


class KubernetesDeploymentAccessor(WorkloadAccessor):
    def __init__(self, apps_api: Optional[Any] = None, *, request_timeout: float = 10.0) -> None:
        self._apps_api = apps_api
        self.request_timeout = request_timeout

    @property
    def apps_api(self) -> Any:
        if self._apps_api is None:
            self._apps_api = load_apps_api()
        return self._apps_api

    @staticmethod
    def _check_kind(target: TargetRef) -> None:
        if target.kind != SUPPORTED_KIND:
            raise WorkloadError(f"unsupported target kind {target.kind!r} for {target.key}")

    def get(self, target: TargetRef) -> WorkloadState:
        self._check_kind(target)
        try:
            deployment = self.apps_api.read_namespaced_deployment(
                target.name,
                target.namespace,
                _request_timeout=self.request_timeout,
            )
        except ApiException as exc:
            raise _translate(exc, target, "read") from exc

        replicas = deployment.spec.replicas if deployment.spec is not None else None
        version = deployment.metadata.resource_version if deployment.metadata is not None else None
        return WorkloadState(instance_count=1 if replicas is None else int(replicas), version=version)

    def update(self, target: TargetRef, desired: int, *, based_on: WorkloadState) -> None:
        self._check_kind(target)
        body: dict = {"spec": {"replicas": int(desired)}}
        if based_on.version:
            body["metadata"] = {"resourceVersion": based_on.version}
        try:
            self.apps_api.patch_namespaced_deployment(
                target.name,
                target.namespace,
                body,
                _request_timeout=self.request_timeout,
            )
        except ApiException as exc:
            raise _translate(exc, target, "update") from exc
        logger.info(
            "Patched deployment target=%s replicas=%s->%s",
            target.key,
            based_on.instance_count,
            desired,
        )
