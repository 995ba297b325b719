"""
Post-Deploy Smoke Test Script.

Runs against a live server and checks the public read surface:
1. Health Check
2. Availability search (and whether status was reconciled)
3. Location autocomplete, including its validation errors
4. Forced reconciliation through the admin endpoint
"""

import os
import sys

import httpx

from tickto.app.core.jwt import create_access_token

BASE_URL = os.getenv("TICKTO_BASE_URL", "http://127.0.0.1:8000")
API_PREFIX = "/v1"


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def main():
    print("🚀 Starting Deployment Validation...")
    client = httpx.Client(base_url=BASE_URL, timeout=10)

    # 1. Health Check
    print_step("HEALTH", "Checking /health...")
    try:
        response = client.get("/health")
    except httpx.HTTPError as e:
        fail(f"Server not reachable at {BASE_URL}: {e}")
    if response.status_code != 200:
        fail(f"/health returned {response.status_code}")
    success(f"Healthy: {response.json().get('app_name')}")

    # 2. Availability
    print_step("SEARCH", "GET /trips/available ...")
    response = client.get(f"{API_PREFIX}/trips/available")
    if response.status_code != 200:
        fail(f"Availability returned {response.status_code}: {response.text}")
    trips = response.json()
    departures = [t["departure_time"] for t in trips]
    if departures != sorted(departures):
        fail("Availability results are not ordered by departure")
    if any(t["status"] != "upcoming" or not t.get("bus_details") for t in trips):
        fail("Availability returned a non-upcoming trip or a trip without vehicle")
    stale = response.headers.get("X-Trip-Status-Stale") == "true"
    success(f"{len(trips)} upcoming trips{' (status possibly stale)' if stale else ''}")

    # 3. Autocomplete
    print_step("LOCATIONS", "GET /locations ...")
    if trips:
        prefix = trips[0]["origin"].strip()[:2]
        response = client.get(f"{API_PREFIX}/locations", params={"from": prefix})
        if response.status_code != 200 or len(response.json()) > 10:
            fail(f"Autocomplete for {prefix!r} failed: {response.status_code}")
        success(f"Autocomplete {prefix!r} -> {response.json()}")
    for params in ({"from": "d"}, {"from": "dh", "to": "sy"}, {}):
        response = client.get(f"{API_PREFIX}/locations", params=params)
        if response.status_code != 400:
            fail(f"Expected 400 for {params}, got {response.status_code}")
    success("Autocomplete validation rejects bad input")

    # 4. Forced reconciliation
    print_step("RECONCILE", "POST /admin/ops/reconcile ...")
    admin_token = create_access_token(
        data={"sub": "admin_deploy_bot", "role": "ADMIN", "user_id": 1}
    )
    response = client.post(
        f"{API_PREFIX}/admin/ops/reconcile",
        headers={"Authorization": f"Bearer {admin_token}"},
    )
    if response.status_code != 200:
        fail(f"Reconcile returned {response.status_code}: {response.text}")
    report = response.json()
    if report.get("stale"):
        fail(f"Reconciliation only partly applied: {report.get('failed_rules')}")
    success(f"Reconciled: {report.get('modified')}")

    print("\n🎉 Deployment validation passed")


if __name__ == "__main__":
    main()
