from __future__ import annotations

import copy
from dataclasses import dataclass
from threading import Event, Thread

from kubernetes import client

from . import db
from .annotations import INIT_CONTAINER_NAME, InjectionDirective
from .runtime import RuntimeState
from .settings import settings
from .store import StoreError, WorkloadRef, WorkloadStore

ABSENT = "absent"
SKIPPED = "skipped"
UNCHANGED = "unchanged"
INJECTED = "injected"
FAILED = "failed"


@dataclass(frozen=True)
class ReconcileResult:
    ref: WorkloadRef
    outcome: str  # absent|skipped|unchanged|injected
    message: str = ""

    @property
    def wrote(self) -> bool:
        return self.outcome == INJECTED


def _has_init_container(workload: client.V1Deployment, name: str) -> bool:
    pod_spec = workload.spec.template.spec
    for container in pod_spec.init_containers or []:
        if container.name == name:
            return True
    return False


class Reconciler:
    """Injects the annotated init container into Deployments."""

    def __init__(self, store: WorkloadStore, runtime: RuntimeState | None = None, namespace: str | None = None):
        self.store = store
        self.runtime = runtime or RuntimeState()
        self.namespace = namespace if namespace is not None else settings.watch_namespace
        self._stop = Event()
        self._thr: Thread | None = None

    def reconcile(self, ref: WorkloadRef) -> ReconcileResult:
        """Run one fetch/compare/apply pass for a single Deployment.

        Issues at most one write. Store failures (including write conflicts)
        propagate to the caller; nothing is retried here.
        """
        try:
            result = self._reconcile(ref)
        except StoreError as e:
            self.runtime.record(str(ref), FAILED, str(e))
            db.log_event("ERROR", f"Reconcile failed: {type(e).__name__}: {e}", namespace=ref.namespace, name=ref.name)
            raise
        self.runtime.record(str(ref), result.outcome, result.message)
        if result.wrote:
            db.log_event("INFO", result.message, namespace=ref.namespace, name=ref.name)
        return result

    def _reconcile(self, ref: WorkloadRef) -> ReconcileResult:
        workload = self.store.get(ref)
        if workload is None:
            return ReconcileResult(ref, ABSENT, "Deployment not found")

        directive = InjectionDirective.from_annotations(workload.metadata.annotations)
        if directive is None:
            return ReconcileResult(ref, SKIPPED, "No injector annotation")

        desired = directive.to_container()

        # Presence by name is the only idempotence signal; an existing step is
        # never compared or updated.
        if _has_init_container(workload, desired.name):
            return ReconcileResult(ref, UNCHANGED, f"Init container '{INIT_CONTAINER_NAME}' already present")

        updated = copy.deepcopy(workload)
        pod_spec = updated.spec.template.spec
        pod_spec.init_containers = list(pod_spec.init_containers or []) + [desired]
        self.store.update(updated)
        return ReconcileResult(ref, INJECTED, f"Injected init container '{desired.name}' with image {desired.image}")

    # Control loop: re-drives every Deployment each poll interval.

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def _loop(self) -> None:
        db.log_event("INFO", "Reconciler started")
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                db.log_event("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            self._stop.wait(max(1, settings.poll_interval_s))
        db.log_event("INFO", "Reconciler stopped")

    def tick(self) -> list[ReconcileResult]:
        """Reconcile every Deployment in the watched namespace, one at a time."""
        results: list[ReconcileResult] = []
        for ref in self.store.list_refs(self.namespace or None):
            try:
                results.append(self.reconcile(ref))
            except StoreError:
                # Already logged; the next tick retries it.
                continue
        self.runtime.mark_tick()
        return results
