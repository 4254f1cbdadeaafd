from __future__ import annotations

import secrets

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from injector import db
from injector.api_models import ReconcileRequest, ReconcileResponse, crd_manifest, register_types, registered_kinds
from injector.reconciler import Reconciler
from injector.runtime import RuntimeState
from injector.settings import settings
from injector.store import KubeWorkloadStore, StoreUnavailable, WorkloadRef, WriteConflict

app = FastAPI(title="Init Container Injector")
security = HTTPBasic(auto_error=False)

runtime = RuntimeState()
reconciler = Reconciler(KubeWorkloadStore(), runtime)


def get_reconciler() -> Reconciler:
    return reconciler


def require_auth(credentials: HTTPBasicCredentials | None = Depends(security)) -> str | None:
    if not settings.api_password:
        return None
    if credentials is None or not (
        secrets.compare_digest(credentials.username, settings.api_user)
        and secrets.compare_digest(credentials.password, settings.api_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@app.on_event("startup")
def startup() -> None:
    db.init_db()
    register_types()
    if settings.enable_loop:
        reconciler.start()


@app.on_event("shutdown")
def shutdown() -> None:
    reconciler.stop()


@app.get("/health")
def health() -> dict:
    return {"status": "healthy"}


@app.get("/status")
def get_status(rec: Reconciler = Depends(get_reconciler), _user: str | None = Depends(require_auth)) -> dict:
    return {
        "namespace": rec.namespace or "*",
        "poll_interval_s": settings.poll_interval_s,
        "loop_enabled": settings.enable_loop,
        "kinds": sorted(registered_kinds()),
        **rec.runtime.snapshot(),
    }


@app.get("/events")
def get_events(
    limit: int = 100,
    namespace: str | None = None,
    name: str | None = None,
    _user: str | None = Depends(require_auth),
) -> list[dict]:
    limit = max(1, min(limit, 1000))
    return db.latest_events(limit=limit, namespace=namespace, name=name)


@app.get("/crd")
def get_crd() -> dict:
    return crd_manifest()


@app.post("/reconcile", response_model=ReconcileResponse)
def post_reconcile(
    req: ReconcileRequest,
    rec: Reconciler = Depends(get_reconciler),
    _user: str | None = Depends(require_auth),
) -> ReconcileResponse:
    if "/" in req.namespace or "/" in req.name:
        raise HTTPException(status_code=400, detail="namespace and name must not contain '/'")
    ref = WorkloadRef(req.namespace, req.name)
    try:
        result = rec.reconcile(ref)
    except WriteConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ReconcileResponse(namespace=ref.namespace, name=ref.name, outcome=result.outcome, message=result.message)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
