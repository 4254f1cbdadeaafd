from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .settings import settings


class StoreError(Exception):
    """Base class for workload store failures."""

    retryable = False


class WriteConflict(StoreError):
    """The workload changed since it was read; the write was rejected."""

    retryable = True


class StoreUnavailable(StoreError):
    """The store could not be reached or returned an unexpected error."""

    retryable = True


@dataclass(frozen=True)
class WorkloadRef:
    namespace: str
    name: str

    @classmethod
    def parse(cls, value: str) -> WorkloadRef:
        """Parse ``namespace/name``."""
        namespace, sep, name = value.partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(f"Invalid workload reference '{value}', expected 'namespace/name'.")
        return cls(namespace=namespace, name=name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class WorkloadStore(Protocol):
    def get(self, ref: WorkloadRef) -> client.V1Deployment | None: ...

    def update(self, workload: client.V1Deployment) -> client.V1Deployment: ...

    def list_refs(self, namespace: str | None = None) -> list[WorkloadRef]: ...


def load_kube_config() -> None:
    if settings.in_cluster:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.kubeconfig, context=settings.kube_context)


class KubeWorkloadStore:
    """Deployments read and written through the Kubernetes API.

    Updates are full-object replaces that carry the ``resourceVersion`` of the
    snapshot, so the API server rejects them with 409 if the Deployment
    changed in between.
    """

    def __init__(self, api: client.AppsV1Api | None = None):
        self._api = api

    @property
    def api(self) -> client.AppsV1Api:
        if self._api is None:
            load_kube_config()
            self._api = client.AppsV1Api()
        return self._api

    def get(self, ref: WorkloadRef) -> client.V1Deployment | None:
        try:
            return self.api.read_namespaced_deployment(name=ref.name, namespace=ref.namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise StoreUnavailable(f"Failed to read deployment {ref}: HTTP {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise StoreUnavailable(f"Failed to read deployment {ref}: {type(e).__name__}: {e}") from e

    def update(self, workload: client.V1Deployment) -> client.V1Deployment:
        ref = WorkloadRef(workload.metadata.namespace, workload.metadata.name)
        try:
            return self.api.replace_namespaced_deployment(name=ref.name, namespace=ref.namespace, body=workload)
        except ApiException as e:
            if e.status == 409:
                raise WriteConflict(f"Deployment {ref} was modified concurrently") from e
            raise StoreUnavailable(f"Failed to update deployment {ref}: HTTP {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise StoreUnavailable(f"Failed to update deployment {ref}: {type(e).__name__}: {e}") from e

    def list_refs(self, namespace: str | None = None) -> list[WorkloadRef]:
        try:
            if namespace:
                resp = self.api.list_namespaced_deployment(namespace=namespace)
            else:
                resp = self.api.list_deployment_for_all_namespaces()
        except ApiException as e:
            raise StoreUnavailable(f"Failed to list deployments: HTTP {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise StoreUnavailable(f"Failed to list deployments: {type(e).__name__}: {e}") from e
        return [WorkloadRef(d.metadata.namespace, d.metadata.name) for d in resp.items]
