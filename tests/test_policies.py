from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from leavedesk.models.audit import AuditLog

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from tests.conftest import People

ANNUAL = {
    "description": "Paid annual leave",
    "default_allocation": 15,
    "max_consecutive_days": 10,
    "min_advance_notice_days": 7,
    "allow_carry_forward": True,
    "carry_forward_limit": 5,
}


async def _put_policy(
    client: AsyncClient, people: People, leave_type: str = "annual", body: dict[str, Any] | None = None
) -> dict[str, Any]:
    resp = await client.put(f"/policies/{leave_type}", json=body or ANNUAL, headers=people.headers(people.admin))
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


async def test_create_policy(async_client: AsyncClient, people: People) -> None:
    body = await _put_policy(async_client, people)
    assert body["success"] is True
    assert body["message"] == "Policy saved"
    data = body["data"]
    assert data["leave_type"] == "annual"
    assert data["default_allocation"] == 15
    assert data["max_advance_booking_days"] == 365
    assert data["carry_forward_limit"] == 5
    assert data["is_active"] is True


async def test_upsert_replaces_rules(async_client: AsyncClient, people: People) -> None:
    created = (await _put_policy(async_client, people))["data"]
    updated = (await _put_policy(async_client, people, body={**ANNUAL, "default_allocation": 20}))["data"]
    assert updated["id"] == created["id"]
    assert updated["default_allocation"] == 20


async def test_manager_can_upsert(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put(
        "/policies/sick", json={"default_allocation": 10}, headers=people.headers(people.manager)
    )
    assert resp.status_code == 200


async def test_staff_cannot_upsert(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put(
        "/policies/sick", json={"default_allocation": 10}, headers=people.headers(people.staff)
    )
    assert resp.status_code == 403
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "PERMISSION_DENIED"


async def test_department_head_cannot_upsert(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put(
        "/policies/sick", json={"default_allocation": 10}, headers=people.headers(people.head)
    )
    assert resp.status_code == 403


async def test_upsert_rejects_invalid_payload(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put(
        "/policies/annual", json={"default_allocation": -5}, headers=people.headers(people.admin)
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "VALIDATION_ERROR"


async def test_quota_name_is_reserved(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.put("/policies/annual_quota", json=ANNUAL, headers=people.headers(people.admin))
    assert resp.status_code == 400
    assert resp.json()["error"] == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


async def test_get_policy(async_client: AsyncClient, people: People) -> None:
    await _put_policy(async_client, people)
    resp = await async_client.get("/policies/annual", headers=people.headers(people.staff))
    assert resp.status_code == 200
    assert resp.json()["data"]["min_advance_notice_days"] == 7


async def test_get_policy_not_found(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.get("/policies/sabbatical", headers=people.headers(people.staff))
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "POLICY_NOT_FOUND"
    assert "sabbatical" in body["message"]


async def test_list_policies_sorted(async_client: AsyncClient, people: People) -> None:
    await _put_policy(async_client, people, "sick", {"default_allocation": 10})
    await _put_policy(async_client, people, "annual")
    resp = await async_client.get("/policies", headers=people.headers(people.staff))
    data = resp.json()["data"]
    assert data["total"] == 2
    assert [p["leave_type"] for p in data["items"]] == ["annual", "sick"]


async def test_list_policies_pagination(async_client: AsyncClient, people: People) -> None:
    for leave_type in ("annual", "personal", "sick"):
        await _put_policy(async_client, people, leave_type, {"default_allocation": 1})
    resp = await async_client.get("/policies", params={"offset": 1, "limit": 1}, headers=people.headers(people.staff))
    data = resp.json()["data"]
    assert data["total"] == 3
    assert [p["leave_type"] for p in data["items"]] == ["personal"]


async def test_unknown_user_is_unauthenticated(async_client: AsyncClient) -> None:
    resp = await async_client.get("/policies", headers={"X-User-Id": "00000000-0000-0000-0000-00000000ffff"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "UNAUTHENTICATED"


async def test_missing_user_header(async_client: AsyncClient) -> None:
    resp = await async_client.get("/policies")
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Deactivate
# ---------------------------------------------------------------------------


async def test_deactivate_hides_policy_from_default_listing(async_client: AsyncClient, people: People) -> None:
    await _put_policy(async_client, people)
    resp = await async_client.delete("/policies/annual", headers=people.headers(people.admin))
    assert resp.status_code == 200
    assert resp.json()["data"]["is_active"] is False

    active = (await async_client.get("/policies", headers=people.headers(people.staff))).json()["data"]
    assert active["total"] == 0
    everything = (
        await async_client.get("/policies", params={"include_inactive": True}, headers=people.headers(people.staff))
    ).json()["data"]
    assert everything["total"] == 1


async def test_deactivate_requires_authority(async_client: AsyncClient, people: People) -> None:
    await _put_policy(async_client, people)
    resp = await async_client.delete("/policies/annual", headers=people.headers(people.staff))
    assert resp.status_code == 403


async def test_deactivate_unknown_policy(async_client: AsyncClient, people: People) -> None:
    resp = await async_client.delete("/policies/annual", headers=people.headers(people.admin))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


async def test_policy_changes_are_audited(async_client: AsyncClient, db_session: AsyncSession, people: People) -> None:
    created = (await _put_policy(async_client, people))["data"]
    await _put_policy(async_client, people, body={**ANNUAL, "default_allocation": 18})
    await async_client.delete("/policies/annual", headers=people.headers(people.manager))

    result = await db_session.execute(
        select(AuditLog).where(col(AuditLog.entity_type) == "POLICY").order_by(col(AuditLog.created_at))
    )
    entries = list(result.scalars().all())
    assert [e.action for e in entries] == ["CREATE", "UPDATE", "DEACTIVATE"]
    assert all(str(e.entity_id) == created["id"] for e in entries)
    assert entries[0].before_json is None
    assert entries[1].before_json["default_allocation"] == 15
    assert entries[1].after_json["default_allocation"] == 18
    assert entries[2].actor_id == people.manager.id
