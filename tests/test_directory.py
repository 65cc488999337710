from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from leavedesk.services.directory import InMemoryDirectoryService, set_directory_service

if TYPE_CHECKING:
    from httpx import AsyncClient

    from tests.conftest import People

NEW_ID = "00000000-0000-0000-0000-0000000000aa"
EMPLOYEE = {"first_name": "Nia", "last_name": "Newhire", "email": "nia@example.com", "role": "staff"}


async def test_admin_upserts_employee(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put(
        f"/directory/employees/{NEW_ID}",
        json={**EMPLOYEE, "department_id": str(people.staff.department_id)},
        headers=people.headers(people.admin),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == NEW_ID

    # The new employee can now act.
    listing = await async_client.get("/policies", headers={"X-User-Id": NEW_ID})
    assert listing.status_code == 200


async def test_non_admin_cannot_change_directory(async_client: AsyncClient, people: People) -> None:
    for actor in (people.manager, people.staff):
        resp = await async_client.put(
            f"/directory/employees/{NEW_ID}", json=EMPLOYEE, headers=people.headers(actor)
        )
        assert resp.status_code == 403


async def test_directory_requires_user_once_populated(async_client: AsyncClient) -> None:
    resp = await async_client.put(f"/directory/employees/{NEW_ID}", json=EMPLOYEE)
    assert resp.status_code == 403


async def test_empty_directory_accepts_first_entries(async_client: AsyncClient) -> None:
    set_directory_service(InMemoryDirectoryService())
    resp = await async_client.put(f"/directory/employees/{NEW_ID}", json={**EMPLOYEE, "role": "admin"})
    assert resp.status_code == 200

    blocked = await async_client.put(
        "/directory/departments/00000000-0000-0000-0000-0000000000bb", json={"name": "Legal"}
    )
    assert blocked.status_code == 403


async def test_departments(async_client: AsyncClient, people: People) -> None:
    department_id = uuid.uuid4()
    resp = await async_client.put(
        f"/directory/departments/{department_id}",
        json={"name": "Legal", "head_id": str(people.other_head.id)},
        headers=people.headers(people.admin),
    )
    assert resp.status_code == 200

    fetched = await async_client.get(f"/directory/departments/{department_id}", headers=people.headers(people.admin))
    assert fetched.json()["data"]["head_id"] == str(people.other_head.id)

    missing = await async_client.get(f"/directory/departments/{uuid.uuid4()}", headers=people.headers(people.admin))
    assert missing.status_code == 404


async def test_list_employees(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.get("/directory/employees", headers=people.headers(people.admin))
    assert {e["id"] for e in resp.json()["data"]} == {str(p.id) for p in people.all()}


async def test_invalid_employee_payload(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put(
        f"/directory/employees/{NEW_ID}", json={**EMPLOYEE, "role": "ceo"}, headers=people.headers(people.admin)
    )
    assert resp.status_code == 422
