from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class OutcomeRecord:
    workload: str
    outcome: str  # absent|skipped|unchanged|injected|failed
    message: str
    at: str = field(default_factory=utc_now)


class RuntimeState:
    """In-memory view of what the reconciler has done since startup."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.last_outcome: dict[str, OutcomeRecord] = {}  # "ns/name" -> last record
        self.counts: dict[str, int] = {}  # outcome -> count
        self.last_tick_at: str | None = None

    def record(self, workload: str, outcome: str, message: str) -> OutcomeRecord:
        rec = OutcomeRecord(workload=workload, outcome=outcome, message=message)
        with self.lock:
            self.last_outcome[workload] = rec
            self.counts[outcome] = self.counts.get(outcome, 0) + 1
        return rec

    def mark_tick(self) -> None:
        with self.lock:
            self.last_tick_at = utc_now()

    def get(self, workload: str) -> OutcomeRecord | None:
        with self.lock:
            return self.last_outcome.get(workload)

    def snapshot(self) -> dict:
        with self.lock:
            return {
                "last_tick_at": self.last_tick_at,
                "counts": dict(self.counts),
                "workloads": {k: asdict(v) for k, v in self.last_outcome.items()},
            }
