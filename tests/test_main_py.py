import base64
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

import main
from conftest import FakeStore, make_deployment
from injector.annotations import ARGS_KEY
from injector.reconciler import Reconciler
from injector.runtime import RuntimeState
from injector.store import StoreUnavailable, WriteConflict


def _basic_auth(user: str, password: str) -> dict:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def store():
    return FakeStore(make_deployment(annotations={ARGS_KEY: "start"}), make_deployment(name="plain"))


@pytest.fixture
def api(store, monkeypatch):
    # No background loop and no auth unless a test enables it.
    monkeypatch.setattr(main, "settings", replace(main.settings, enable_loop=False, api_password=None))
    rec = Reconciler(store, RuntimeState(), namespace="default")
    main.app.dependency_overrides[main.get_reconciler] = lambda: rec
    with TestClient(main.app) as client:
        yield client
    main.app.dependency_overrides.clear()


def test_health(api):
    r = api.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


def test_reconcile_injects_then_unchanged(api, store):
    r = api.post("/reconcile", json={"namespace": "default", "name": "web"})
    assert r.status_code == 200
    body = r.json()
    assert body["outcome"] == "injected"

    r = api.post("/reconcile", json={"namespace": "default", "name": "web"})
    assert r.json()["outcome"] == "unchanged"
    assert len(store.writes) == 1


def test_reconcile_skipped_and_absent(api):
    assert api.post("/reconcile", json={"namespace": "default", "name": "plain"}).json()["outcome"] == "skipped"
    assert api.post("/reconcile", json={"namespace": "default", "name": "missing"}).json()["outcome"] == "absent"


def test_reconcile_rejects_bad_refs(api):
    assert api.post("/reconcile", json={"namespace": "a/b", "name": "web"}).status_code == 400
    assert api.post("/reconcile", json={"namespace": "", "name": "web"}).status_code == 422


@pytest.mark.parametrize("error,code", [(WriteConflict("stale"), 409), (StoreUnavailable("down"), 503)])
def test_reconcile_maps_store_errors(api, store, error, code):
    store.fail_with = error
    r = api.post("/reconcile", json={"namespace": "default", "name": "web"})
    assert r.status_code == code


def test_status_and_events(api):
    api.post("/reconcile", json={"namespace": "default", "name": "web"})

    status = api.get("/status").json()
    assert status["namespace"] == "default"
    assert status["counts"] == {"injected": 1}
    assert "InitContainerInjector" in status["kinds"]

    events = api.get("/events", params={"namespace": "default", "name": "web"}).json()
    assert events and events[0]["level"] == "INFO"


def test_crd_endpoint(api):
    r = api.get("/crd")
    assert r.status_code == 200
    assert r.json()["kind"] == "CustomResourceDefinition"


def test_basic_auth_when_password_configured(api, monkeypatch):
    monkeypatch.setattr(main, "settings", replace(main.settings, api_user="ops", api_password="s3cret"))

    assert api.get("/status").status_code == 401
    assert api.get("/status", headers=_basic_auth("ops", "wrong")).status_code == 401
    assert api.get("/status", headers=_basic_auth("ops", "s3cret")).status_code == 200
    # health and crd stay public
    assert api.get("/health").status_code == 200
