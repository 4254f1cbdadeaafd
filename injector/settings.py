from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("INJ_DB_PATH", "injector.db")
    poll_interval_s: int = _env_int("INJ_POLL_INTERVAL_S", 10)
    enable_loop: bool = _env_bool("INJ_ENABLE_LOOP", True)

    # Cluster access. An empty namespace means "all namespaces".
    watch_namespace: str = os.getenv("INJ_WATCH_NAMESPACE", "")
    in_cluster: bool = _env_bool("INJ_IN_CLUSTER", False)
    kubeconfig: str | None = os.getenv("INJ_KUBECONFIG")
    kube_context: str | None = os.getenv("INJ_KUBE_CONTEXT")

    # API basic auth (disabled unless a password is configured)
    api_user: str = os.getenv("INJ_API_USER", "admin")
    api_password: str | None = os.getenv("INJ_API_PASSWORD")


settings = Settings()
