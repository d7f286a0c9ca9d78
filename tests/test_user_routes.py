import pytest
from sqlalchemy import select

from conftest import auth_headers
from helpdesk.db.models import RoleEnum, User


@pytest.mark.asyncio
async def test_listing_is_admin_only_and_paginated(client, make_user):
    admin = await make_user(RoleEnum.admin)
    agent = await make_user(RoleEnum.agent)
    for _ in range(11):
        await make_user()

    assert (await client.get("/api/users", headers=auth_headers(agent))).status_code == 403

    first = (await client.get("/api/users", headers=auth_headers(admin))).json()
    assert first["total"] == 13
    assert first["limit"] == 10
    assert first["total_pages"] == 2
    assert len(first["users"]) == 10

    second = (await client.get("/api/users", params={"page": 2}, headers=auth_headers(admin))).json()
    assert len(second["users"]) == 3

    agents = (await client.get("/api/users", params={"role": "agent"}, headers=auth_headers(admin))).json()
    assert [u["id"] for u in agents["users"]] == [agent.id]


@pytest.mark.asyncio
async def test_search_matches_email_or_name(client, make_user):
    admin = await make_user(RoleEnum.admin)
    await make_user(email="carol@acme.io", full_name="Carol Jones")
    await make_user(email="dave@acme.io", full_name="Dave Carlson")
    await make_user(email="erin@acme.io", full_name="Erin Smith")

    body = (await client.get("/api/users", params={"search": "CARL"}, headers=auth_headers(admin))).json()
    assert {u["email"] for u in body["users"]} == {"dave@acme.io"}

    body = (await client.get("/api/users", params={"search": "car"}, headers=auth_headers(admin))).json()
    assert {u["email"] for u in body["users"]} == {"carol@acme.io", "dave@acme.io"}


@pytest.mark.asyncio
async def test_admin_creates_user(client, make_user):
    admin = await make_user(RoleEnum.admin)
    agent = await make_user(RoleEnum.agent)
    payload = {"email": "fresh@acme.io", "full_name": "Fresh", "password": "abcdef", "role": "agent"}

    assert (await client.post("/api/users", headers=auth_headers(agent), json=payload)).status_code == 403

    created = await client.post("/api/users", headers=auth_headers(admin), json=payload)
    assert created.status_code == 201
    assert created.json()["user"]["role"] == "agent"

    dup = await client.post("/api/users", headers=auth_headers(admin), json=payload)
    assert dup.status_code == 400
    assert dup.json() == {"error": "User already exists"}

    short = await client.post(
        "/api/users", headers=auth_headers(admin), json={**payload, "email": "short@acme.io", "password": "abc"}
    )
    assert short.status_code == 400
    assert short.json() == {"error": "Password must be at least 6 characters long"}


@pytest.mark.asyncio
async def test_profile_read_and_edit_rules(client, make_user):
    user = await make_user()
    other = await make_user()
    admin = await make_user(RoleEnum.admin)

    assert (await client.get(f"/api/users/{user.id}", headers=auth_headers(user))).status_code == 200
    assert (await client.get(f"/api/users/{other.id}", headers=auth_headers(user))).status_code == 403
    assert (await client.get("/api/users/9999", headers=auth_headers(admin))).status_code == 404

    renamed = await client.put(f"/api/users/{user.id}", headers=auth_headers(user), json={"full_name": "Renamed"})
    assert renamed.status_code == 200
    assert renamed.json()["user"]["full_name"] == "Renamed"

    foreign = await client.put(f"/api/users/{other.id}", headers=auth_headers(user), json={"full_name": "X"})
    assert foreign.status_code == 403

    escalate = await client.put(f"/api/users/{user.id}", headers=auth_headers(user), json={"role": "admin"})
    assert escalate.status_code == 403
    assert escalate.json() == {"error": "Cannot change role"}

    taken = await client.put(f"/api/users/{user.id}", headers=auth_headers(user), json={"email": other.email})
    assert taken.status_code == 400
    assert taken.json() == {"error": "Email already taken"}


@pytest.mark.asyncio
async def test_admin_role_changes(client, make_user):
    admin = await make_user(RoleEnum.admin)
    user = await make_user()

    promoted = await client.put(f"/api/users/{user.id}", headers=auth_headers(admin), json={"role": "agent"})
    assert promoted.status_code == 200
    assert promoted.json()["user"]["role"] == "agent"

    invalid = await client.put(f"/api/users/{user.id}", headers=auth_headers(admin), json={"role": "boss"})
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Invalid role"}

    demote_self = await client.put(f"/api/users/{admin.id}", headers=auth_headers(admin), json={"role": "user"})
    assert demote_self.status_code == 400
    assert demote_self.json() == {"error": "Cannot change your own role"}

    same_role = await client.put(
        f"/api/users/{admin.id}", headers=auth_headers(admin), json={"role": "admin", "full_name": "Boss"}
    )
    assert same_role.status_code == 200


@pytest.mark.asyncio
async def test_delete_user(client, make_user, make_ticket):
    admin = await make_user(RoleEnum.admin)
    agent = await make_user(RoleEnum.agent)
    busy = await make_user()
    idle = await make_user()
    await make_ticket(busy)

    assert (await client.delete(f"/api/users/{idle.id}", headers=auth_headers(agent))).status_code == 403

    self_delete = await client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))
    assert self_delete.status_code == 400
    assert self_delete.json() == {"error": "Cannot delete your own account"}

    guarded = await client.delete(f"/api/users/{busy.id}", headers=auth_headers(admin))
    assert guarded.status_code == 400
    assert "associated tickets" in guarded.json()["error"]

    deleted = await client.delete(f"/api/users/{idle.id}", headers=auth_headers(admin))
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "User deleted successfully"}
    assert (await client.delete(f"/api/users/{idle.id}", headers=auth_headers(admin))).status_code == 404


@pytest.mark.asyncio
async def test_bulk_delete_is_all_or_nothing(client, make_user, make_ticket, session_factory):
    admin = await make_user(RoleEnum.admin)
    free_a = await make_user()
    free_b = await make_user()
    busy = await make_user()
    await make_ticket(busy)

    blocked = await client.post(
        "/api/users/bulk",
        headers=auth_headers(admin),
        json={"action": "delete", "userIds": [free_a.id, busy.id, free_b.id]},
    )
    assert blocked.status_code == 400

    async with session_factory() as s:
        remaining = set((await s.execute(select(User.id))).scalars().all())
    assert {free_a.id, free_b.id, busy.id} <= remaining

    done = await client.post(
        "/api/users/bulk",
        headers=auth_headers(admin),
        json={"action": "delete", "user_ids": [free_a.id, free_b.id]},
    )
    assert done.status_code == 200
    assert done.json() == {"message": "Successfully deleted 2 users"}


@pytest.mark.asyncio
async def test_bulk_rejects_own_account(client, make_user, session_factory):
    admin = await make_user(RoleEnum.admin)
    user = await make_user()

    response = await client.post(
        "/api/users/bulk",
        headers=auth_headers(admin),
        json={"action": "updateRole", "userIds": [user.id, admin.id], "data": {"role": "user"}},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Cannot perform bulk operations on your own account"}
    async with session_factory() as s:
        assert (await s.get(User, admin.id)).role == RoleEnum.admin


@pytest.mark.asyncio
async def test_bulk_update_role(client, make_user, session_factory):
    admin = await make_user(RoleEnum.admin)
    a = await make_user()
    b = await make_user()

    response = await client.post(
        "/api/users/bulk",
        headers=auth_headers(admin),
        json={"action": "updateRole", "userIds": [a.id, b.id], "data": {"role": "agent"}},
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Successfully updated role for 2 users"}
    async with session_factory() as s:
        roles = (await s.execute(select(User.role).where(User.id.in_([a.id, b.id])))).scalars().all()
    assert set(roles) == {RoleEnum.agent}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"action": "delete", "userIds": []}, "Invalid request data"),
        ({"action": "delete", "userIds": "1,2"}, "Invalid request data"),
        ({"userIds": [1]}, "Invalid request data"),
        ({"action": "explode", "userIds": [12345]}, "Invalid action"),
        ({"action": "updateRole", "userIds": [12345], "data": {"role": "root"}}, "Invalid role"),
    ],
)
async def test_bulk_malformed_requests(client, make_user, payload, message):
    admin = await make_user(RoleEnum.admin)
    response = await client.post("/api/users/bulk", headers=auth_headers(admin), json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": message}


@pytest.mark.asyncio
async def test_bulk_requires_admin(client, make_user):
    agent = await make_user(RoleEnum.agent)
    user = await make_user()
    response = await client.post(
        "/api/users/bulk", headers=auth_headers(agent), json={"action": "delete", "userIds": [user.id]}
    )
    assert response.status_code == 403
