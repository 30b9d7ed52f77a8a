#!/usr/bin/env python3
"""Smoke test for a running Child Health Analytics instance.

Works against any target: Docker Compose, K8s port-forward, deployed environment.
Only exercises the stateless endpoints, so it needs no seeded children.
Uses httpx (project dependency) for HTTP calls.

Usage:
    python scripts/smoke_test.py                                   # default localhost:8000
    python scripts/smoke_test.py --base-url http://10.0.0.5:8000   # custom target
    python scripts/smoke_test.py --wait 120 --verbose              # longer wait, verbose
"""

from __future__ import annotations

import argparse
import sys
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

CHILD_ID = str(uuid.uuid4())
PROBLEM_FIELDS = {"type", "title", "status", "detail", "instance"}

# ── Payloads ─────────────────────────────────────────────────────

FEEDING_RECORDS = [
    {
        "child_id": CHILD_ID,
        "category": "feeding",
        "started_at": f"2024-03-{day:02d}T{hour:02d}:00:00+00:00",
        "subtype": "bottle",
        "quantity": 120,
    }
    for day in (1, 2)
    for hour in (6, 9, 12, 15)
]


def _dose(at: str, amount: float) -> dict:
    return {
        "child_id": CHILD_ID,
        "medication_id": "ibuprofen",
        "amount": amount,
        "unit": "mg",
        "administered_at": at,
    }


def _field(path: str) -> Callable[[httpx.Response], object]:
    def lookup(resp: httpx.Response) -> object:
        value = resp.json()
        for key in path.split("."):
            value = value[key]
        return value

    return lookup


def _is_problem(resp: httpx.Response) -> bool:
    return resp.headers.get("content-type", "").startswith("application/problem+json") and (
        PROBLEM_FIELDS <= resp.json().keys()
    )


# ── Checks ───────────────────────────────────────────────────────


@dataclass
class SmokeCheck:
    name: str
    method: str
    path: str
    status: int = 200
    body: dict | None = None
    expect: Callable[[httpx.Response], bool] = field(default=lambda resp: True)


CHECKS = [
    SmokeCheck("Health check", "GET", "/health", expect=lambda r: _field("status")(r) == "ok"),
    SmokeCheck("Metrics endpoint available", "GET", "/metrics/", expect=lambda r: "analyses_total" in r.text),
    SmokeCheck(
        "Classify percentile",
        "POST",
        "/api/v1/percentiles/classify",
        body={"sex": "male", "age_in_weeks": 0, "measurement_type": "weight", "value": 3.3},
        expect=lambda r: _field("data.percentile")(r) == 50,
    ),
    SmokeCheck(
        "Pattern analysis",
        "POST",
        "/api/v1/patterns/analyze",
        body={"records": FEEDING_RECORDS, "timezone": "UTC"},
        expect=lambda r: [s["record_count"] for s in _field("data.summaries")(r)] == [8],
    ),
    SmokeCheck(
        "Recommended dose: age restricted",
        "POST",
        "/api/v1/medications/recommended-dose",
        body={"medication_id": "ibuprofen", "age_months": 2},
        expect=lambda r: _field("data.kind")(r) == "age_restricted",
    ),
    SmokeCheck(
        "Dose safety: interval not met",
        "POST",
        "/api/v1/medications/check-safety",
        body={
            "proposed": _dose("2024-03-01T14:00:00+00:00", 150),
            "history": [_dose("2024-03-01T12:00:00+00:00", 100)],
            "timezone": "UTC",
        },
        expect=lambda r: _field("data.safe")(r) is False,
    ),
    SmokeCheck(
        "Report text export",
        "POST",
        "/api/v1/reports/text",
        body={
            "child": {"child_id": CHILD_ID, "name": "Smoke", "sex": "female"},
            "records": FEEDING_RECORDS,
            "timezone": "UTC",
        },
        expect=lambda r: r.text.startswith("TRACKER ANALYTICS REPORT"),
    ),
    SmokeCheck(
        "Error: unknown medication",
        "POST",
        "/api/v1/medications/recommended-dose",
        status=404,
        body={"medication_id": "unobtainium", "age_months": 12},
        expect=_is_problem,
    ),
    SmokeCheck(
        "Error: invalid input",
        "POST",
        "/api/v1/percentiles/classify",
        status=422,
        body={"sex": "male", "age_in_weeks": -1, "measurement_type": "weight", "value": 3.3},
        expect=_is_problem,
    ),
    # Runs after the unsafe verdict above, so its counter has a sample
    SmokeCheck(
        "Metrics increment after analysis",
        "GET",
        "/metrics/",
        expect=lambda r: 'safe="false"' in r.text and "api_requests_total" in r.text,
    ),
]


class SmokeRunner:
    def __init__(self, client: httpx.Client, verbose: bool = False):
        self.client = client
        self.verbose = verbose
        self.passed = 0
        self.failed = 0
        self.missing_request_id: list[str] = []

    def report(self, name: str, ok: bool, detail: str = "") -> None:
        if ok:
            self.passed += 1
        else:
            self.failed += 1
        line = f" [{'PASS' if ok else 'FAIL'}] {name}"
        if detail and (not ok or self.verbose):
            line += f"  ({detail})"
        print(line)

    def run(self, check: SmokeCheck) -> None:
        resp = self.client.request(check.method, check.path, json=check.body)
        if "X-Request-ID" not in resp.headers:
            self.missing_request_id.append(f"{check.method} {check.path}")

        if resp.status_code != check.status:
            self.report(check.name, False, f"expected {check.status}, got {resp.status_code}: {resp.text[:300]}")
            return
        try:
            ok = bool(check.expect(resp))
        except (KeyError, TypeError, ValueError) as e:
            self.report(check.name, False, f"unexpected body: {e!r}")
            return
        self.report(check.name, ok, f"{resp.status_code} {resp.text[:120]}")

    def run_all(self) -> int:
        for check in CHECKS:
            self.run(check)
        self.report(
            "X-Request-ID present on all responses",
            not self.missing_request_id,
            f"missing on: {self.missing_request_id[:3]}",
        )
        print(f"\n{self.passed}/{self.passed + self.failed} passed")
        return self.failed


# ── Entry point ──────────────────────────────────────────────────


def wait_for_health(client: httpx.Client, timeout: int) -> bool:
    """Poll /health every two seconds until it answers 200 or the timeout passes."""
    deadline = time.monotonic() + timeout
    print("Waiting for /health...", end=" ", flush=True)
    while time.monotonic() < deadline:
        try:
            if client.get("/health").status_code == 200:
                print("OK")
                return True
        except httpx.TransportError:
            pass
        time.sleep(2)
    print("TIMEOUT")
    return False


def main() -> None:
    parser = argparse.ArgumentParser(description="Smoke test for Child Health Analytics API")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Target URL")
    parser.add_argument("--wait", type=int, default=60, help="Max seconds to wait for /health")
    parser.add_argument("--verbose", action="store_true", help="Print response details on success")
    args = parser.parse_args()

    print(f"Child Health Analytics Smoke Test\nTarget: {args.base_url}\n")
    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        if not wait_for_health(client, timeout=args.wait):
            print("ERROR: app did not become healthy in time")
            sys.exit(1)
        print()
        sys.exit(SmokeRunner(client, verbose=args.verbose).run_all())


if __name__ == "__main__":
    main()
