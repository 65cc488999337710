"""Seed script for development data.

Run against a running API:  python -m leavedesk.seed

The directory is the in-memory stub, so re-run this after every API restart.
Everything is idempotent: directory entries and policies are upserts, year
initialization skips existing balances and overlapping applications are
reported as skipped.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000"

# Well-known UUIDs
ADMIN_ID = "00000000-0000-0000-0000-000000000001"
MARIA_ID = "00000000-0000-0000-0000-000000000002"
ALICE_ID = "00000000-0000-0000-0000-000000000003"
BOB_ID = "00000000-0000-0000-0000-000000000004"
CAROL_ID = "00000000-0000-0000-0000-000000000005"

ENGINEERING_ID = "00000000-0000-0000-0000-0000000000d1"
SUPPORT_ID = "00000000-0000-0000-0000-0000000000d2"


def _headers(user_id: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "X-User-Id": user_id}


ADMIN_HEADERS = _headers(ADMIN_ID)

EMPLOYEES = [
    {
        "id": ADMIN_ID,
        "first_name": "Avery",
        "last_name": "Admin",
        "email": "avery.admin@example.com",
        "role": "admin",
        "department_id": None,
    },
    {
        "id": MARIA_ID,
        "first_name": "Maria",
        "last_name": "Lopez",
        "email": "maria.lopez@example.com",
        "role": "department_head",
        "department_id": ENGINEERING_ID,
    },
    {
        "id": ALICE_ID,
        "first_name": "Alice",
        "last_name": "Johnson",
        "email": "alice.johnson@example.com",
        "role": "staff",
        "department_id": ENGINEERING_ID,
    },
    {
        "id": BOB_ID,
        "first_name": "Bob",
        "last_name": "Smith",
        "email": "bob.smith@example.com",
        "role": "staff",
        "department_id": SUPPORT_ID,
    },
    {
        "id": CAROL_ID,
        "first_name": "Carol",
        "last_name": "Williams",
        "email": "carol.williams@example.com",
        "role": "manager",
        "department_id": None,
    },
]

DEPARTMENTS = [
    {"id": ENGINEERING_ID, "name": "Engineering", "head_id": MARIA_ID},
    # No head on record: staff here go straight to an admin.
    {"id": SUPPORT_ID, "name": "Support", "head_id": None},
]

POLICIES = [
    {
        "leave_type": "annual",
        "description": "Paid annual leave",
        "default_allocation": 15,
        "max_consecutive_days": 15,
        "min_advance_notice_days": 7,
        "allow_carry_forward": True,
        "carry_forward_limit": 5,
    },
    {
        "leave_type": "sick",
        "description": "Sick leave",
        "default_allocation": 10,
        "max_consecutive_days": 10,
        "min_advance_notice_days": 0,
    },
    {
        "leave_type": "personal",
        "description": "Personal days",
        "default_allocation": 3,
        "max_consecutive_days": 2,
        "min_advance_notice_days": 2,
    },
]


async def _safe_send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    json: dict,
    label: str,
    headers: dict[str, str] = ADMIN_HEADERS,
) -> dict | None:
    """Send a request, treating 409 conflicts as already-seeded."""
    resp = await client.request(method, url, json=json, headers=headers)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()["data"]
    if resp.status_code == 409:
        print(f"  [SKIP] {label} ({resp.json()['message']})")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_directory(client: httpx.AsyncClient) -> None:
    """Seed employees and departments into the stub directory."""
    print("\n--- Seeding directory ---")
    for emp in EMPLOYEES:
        body = {k: v for k, v in emp.items() if k != "id"}
        await _safe_send(
            client,
            "PUT",
            f"{BASE_URL}/directory/employees/{emp['id']}",
            body,
            f"{emp['first_name']} {emp['last_name']}",
        )
    for dept in DEPARTMENTS:
        body = {k: v for k, v in dept.items() if k != "id"}
        await _safe_send(
            client, "PUT", f"{BASE_URL}/directory/departments/{dept['id']}", body, f"Department: {dept['name']}"
        )


async def seed_policies(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding policies ---")
    for policy in POLICIES:
        body = {k: v for k, v in policy.items() if k != "leave_type"}
        await _safe_send(
            client, "PUT", f"{BASE_URL}/policies/{policy['leave_type']}", body, f"Policy: {policy['leave_type']}"
        )


async def seed_balances(client: httpx.AsyncClient) -> None:
    print("\n--- Initializing balances ---")
    year = date.today().year
    result = await _safe_send(
        client, "POST", f"{BASE_URL}/balances/initialize", {"year": year}, f"Year {year}"
    )
    if result:
        print(f"       created={result['created']} skipped={result['skipped']}")


def _next_weekday(start: date, days_ahead: int) -> date:
    candidate = start + timedelta(days=days_ahead)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return candidate


async def seed_applications(client: httpx.AsyncClient) -> None:
    """Seed a few applications in different workflow states."""
    print("\n--- Seeding leave applications ---")
    today = date.today()

    # Alice: 3 days annual, department head approves, admin still pending.
    alice_start = _next_weekday(today, 14)
    alice = await _safe_send(
        client,
        "POST",
        f"{BASE_URL}/leaves",
        {
            "leave_type": "annual",
            "start_date": alice_start.isoformat(),
            "end_date": (alice_start + timedelta(days=2)).isoformat(),
            "reason": "Family vacation",
        },
        "Alice: 3-day annual leave",
        headers=_headers(ALICE_ID),
    )
    if alice:
        await _safe_send(
            client,
            "POST",
            f"{BASE_URL}/leaves/{alice['id']}/decision",
            {"decision": "approved", "comments": "Enjoy!", "step_order": 1},
            "Maria approves Alice's first step",
            headers=_headers(MARIA_ID),
        )

    # Bob: 1 day sick leave, approved by the admin (single step, no department head).
    bob_day = _next_weekday(today, 1)
    bob = await _safe_send(
        client,
        "POST",
        f"{BASE_URL}/leaves",
        {
            "leave_type": "sick",
            "start_date": bob_day.isoformat(),
            "end_date": bob_day.isoformat(),
            "reason": "Doctor appointment",
        },
        "Bob: 1-day sick leave",
        headers=_headers(BOB_ID),
    )
    if bob:
        await _safe_send(
            client,
            "POST",
            f"{BASE_URL}/leaves/{bob['id']}/decision",
            {"decision": "approved", "comments": "Feel better"},
            "Admin approves Bob's sick leave",
        )

    # Carol (manager) files personal leave on Bob's behalf; it stays pending.
    personal_day = _next_weekday(today, 21)
    await _safe_send(
        client,
        "POST",
        f"{BASE_URL}/leaves",
        {
            "leave_type": "personal",
            "start_date": personal_day.isoformat(),
            "end_date": personal_day.isoformat(),
            "reason": "Moving house",
            "employee_id": BOB_ID,
        },
        "Carol files personal leave for Bob",
        headers=_headers(CAROL_ID),
    )


async def main() -> None:
    print("=" * 60)
    print("  Leavedesk Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        await seed_directory(client)
        await seed_policies(client)
        await seed_balances(client)
        await seed_applications(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
