from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    When the injector runs in a pod the configured path is often a mounted
    volume directory rather than a file; in that case the database file is
    placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "injector.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              namespace TEXT,
              name TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_events_workload ON events(namespace, name);
            """
        )


def log_event(level: str, message: str, namespace: str | None = None, name: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, namespace, name, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), namespace, name, message),
        )


def latest_events(limit: int = 100, namespace: str | None = None, name: str | None = None) -> list[dict[str, Any]]:
    query = "SELECT * FROM events"
    clauses: list[str] = []
    params: list[Any] = []
    if namespace:
        clauses.append("namespace=?")
        params.append(namespace)
    if name:
        clauses.append("name=?")
        params.append(name)
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    with connect() as conn:
        rows = conn.execute(query, params).fetchall()
        return [dict(r) for r in rows]
