from __future__ import annotations

import argparse
import json
import os
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _auth() -> tuple[str, str] | None:
    password = os.getenv("INJ_API_PASSWORD")
    if not password:
        return None
    return os.getenv("INJ_API_USER", "admin"), password


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Init Container Injector CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("status", help="Show reconciler status")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--namespace")
    s_ev.add_argument("--name")

    sub.add_parser("crd", help="Print the InitContainerInjector CRD manifest")

    s_rec = sub.add_parser("reconcile", help="Reconcile one deployment now")
    s_rec.add_argument("--namespace", required=True)
    s_rec.add_argument("--name", required=True)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    auth = _auth()

    if args.cmd == "status":
        _print(requests.get(f"{base}/status", auth=auth, timeout=10).json())
        return 0

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.namespace:
            params["namespace"] = args.namespace
        if args.name:
            params["name"] = args.name
        _print(requests.get(f"{base}/events", params=params, auth=auth, timeout=10).json())
        return 0

    if args.cmd == "crd":
        _print(requests.get(f"{base}/crd", timeout=10).json())
        return 0

    if args.cmd == "reconcile":
        payload = {"namespace": args.namespace, "name": args.name}
        r = requests.post(f"{base}/reconcile", json=payload, auth=auth, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
