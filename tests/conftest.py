import copy
import os
import sys
from dataclasses import replace

import pytest

# Ensure project root is importable (so `import main` and `import injector` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from kubernetes import client  # noqa: E402

from injector import db  # noqa: E402
from injector.store import StoreUnavailable, WorkloadRef, WriteConflict  # noqa: E402


def make_deployment(name="web", namespace="default", annotations=None, init_containers=None, resource_version="1"):
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            annotations=annotations,
            resource_version=resource_version,
        ),
        spec=client.V1DeploymentSpec(
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels={"app": name}),
                spec=client.V1PodSpec(
                    containers=[client.V1Container(name="app", image="nginx:1.27")],
                    init_containers=init_containers,
                ),
            ),
        ),
    )


class FakeStore:
    """In-memory workload store with optimistic concurrency on resource_version."""

    def __init__(self, *deployments):
        self.objects = {}
        self.writes = []
        self.fail_with = None
        for d in deployments:
            self.put(d)

    def put(self, deployment):
        ref = WorkloadRef(deployment.metadata.namespace, deployment.metadata.name)
        self.objects[ref] = copy.deepcopy(deployment)

    def get(self, ref):
        obj = self.objects.get(ref)
        return copy.deepcopy(obj) if obj is not None else None

    def update(self, workload):
        if self.fail_with is not None:
            raise self.fail_with
        ref = WorkloadRef(workload.metadata.namespace, workload.metadata.name)
        current = self.objects.get(ref)
        if current is None:
            raise StoreUnavailable(f"{ref} not found")
        if current.metadata.resource_version != workload.metadata.resource_version:
            raise WriteConflict(f"{ref} was modified concurrently")
        stored = copy.deepcopy(workload)
        stored.metadata.resource_version = str(int(current.metadata.resource_version) + 1)
        self.objects[ref] = stored
        self.writes.append(copy.deepcopy(workload))
        return copy.deepcopy(stored)

    def list_refs(self, namespace=None):
        return [r for r in sorted(self.objects, key=str) if not namespace or r.namespace == namespace]


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "settings", replace(db.settings, db_path=str(tmp_path / "injector.db")))
    db.init_db()
    yield


@pytest.fixture
def store():
    return FakeStore()
