from __future__ import annotations

from threading import Lock
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .annotations import ARGS_KEY, COMMAND_KEY, IMAGE_KEY, REGISTRY_KEY

GROUP = "injector.example.com"
VERSION = "v1alpha1"
KIND = "InitContainerInjector"
PLURAL = "initcontainerinjectors"
SINGULAR = "initcontainerinjector"


# --- InitContainerInjector resource shape ---


class DeploymentAnnotations(BaseModel):
    """Annotations a Deployment carries to request injection."""

    model_config = ConfigDict(populate_by_name=True)

    args: str = Field(..., alias=ARGS_KEY, description="Comma separated init container arguments")
    image: str | None = Field(None, alias=IMAGE_KEY, description="Init container image name")
    registry: str | None = Field(None, alias=REGISTRY_KEY, description="Image registry")
    command: str | None = Field(None, alias=COMMAND_KEY, description="Comma separated init container command")


class ContainerTemplate(BaseModel):
    name: str
    image: str | None = None
    command: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)


class InitContainerInjectorSpec(BaseModel):
    template: ContainerTemplate
    annotations: DeploymentAnnotations


class InitContainerInjectorStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Declared only. The reconciler never updates this counter.
    injected_deployments: int = Field(0, alias="injectedDeployments")


class InitContainerInjector(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(f"{GROUP}/{VERSION}", alias="apiVersion")
    kind: str = KIND
    metadata: dict[str, Any] = Field(default_factory=dict)
    spec: InitContainerInjectorSpec | None = None
    status: InitContainerInjectorStatus = Field(default_factory=InitContainerInjectorStatus)


class InitContainerInjectorList(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(f"{GROUP}/{VERSION}", alias="apiVersion")
    kind: str = f"{KIND}List"
    metadata: dict[str, Any] = Field(default_factory=dict)
    items: list[InitContainerInjector] = Field(default_factory=list)


# --- Scheme registry ---

_SCHEME: dict[str, dict[str, Any]] = {}
_SCHEME_LOCK = Lock()


def register_types() -> None:
    """Record the resource kinds this process serves.

    Called once at startup; repeated calls are no-ops.
    """
    with _SCHEME_LOCK:
        if _SCHEME:
            return
        api_version = f"{GROUP}/{VERSION}"
        _SCHEME[KIND] = {"apiVersion": api_version, "kind": KIND, "plural": PLURAL, "model": InitContainerInjector}
        _SCHEME[f"{KIND}List"] = {
            "apiVersion": api_version,
            "kind": f"{KIND}List",
            "plural": PLURAL,
            "model": InitContainerInjectorList,
        }


def registered_kinds() -> dict[str, dict[str, Any]]:
    with _SCHEME_LOCK:
        return {k: dict(v) for k, v in _SCHEME.items()}


def _schema(model: type[BaseModel]) -> dict[str, Any]:
    """OpenAPI v3 schema for a CRD: inline refs, drop titles."""
    raw = model.model_json_schema(by_alias=True)
    defs = raw.pop("$defs", {})

    def resolve(node: Any) -> Any:
        if isinstance(node, dict):
            if "$ref" in node:
                return resolve(defs[node["$ref"].rsplit("/", 1)[-1]])
            if "anyOf" in node:
                # Optional[X] renders as anyOf [X, null]; CRDs want nullable.
                options = [o for o in node["anyOf"] if o.get("type") != "null"]
                if len(options) == 1:
                    out = resolve(options[0])
                    out["nullable"] = True
                    if "description" in node:
                        out["description"] = node["description"]
                    return out
            return {k: resolve(v) for k, v in node.items() if k not in {"title", "default"}}
        if isinstance(node, list):
            return [resolve(v) for v in node]
        return node

    return resolve(raw)


def crd_manifest() -> dict[str, Any]:
    """CustomResourceDefinition body for InitContainerInjector."""
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": f"{PLURAL}.{GROUP}"},
        "spec": {
            "group": GROUP,
            "names": {"kind": KIND, "listKind": f"{KIND}List", "plural": PLURAL, "singular": SINGULAR},
            "scope": "Namespaced",
            "versions": [
                {
                    "name": VERSION,
                    "served": True,
                    "storage": True,
                    "subresources": {"status": {}},
                    "schema": {
                        "openAPIV3Schema": {
                            "type": "object",
                            "properties": {
                                "apiVersion": {"type": "string"},
                                "kind": {"type": "string"},
                                "metadata": {"type": "object"},
                                "spec": _schema(InitContainerInjectorSpec),
                                "status": _schema(InitContainerInjectorStatus),
                            },
                        }
                    },
                }
            ],
        },
    }


# --- HTTP API ---


class ReconcileRequest(BaseModel):
    namespace: str = Field(..., min_length=1, description="Deployment namespace")
    name: str = Field(..., min_length=1, description="Deployment name")


class ReconcileResponse(BaseModel):
    namespace: str
    name: str
    outcome: str = Field(..., description="absent|skipped|unchanged|injected")
    message: str = ""
