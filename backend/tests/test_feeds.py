"""Feeds: creation, visibility, membership and permissions."""
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from churchthreads.models.notification import Notification
from tests.conftest import add_feed, add_user, auth_headers, create_org


async def setup_org(client, session_maker):
    data = await create_org(client)
    org_id = data["organization"]["id"]
    admin = {"id": data["admin"]["id"], "token": data["access_token"]}
    member = await add_user(session_maker, org_id, name="Mary Member")
    return org_id, admin, member


@pytest.mark.asyncio
async def test_create_feed_makes_creator_owner(client: AsyncClient, session_maker):
    org_id, _, member = await setup_org(client, session_maker)

    resp = await client.post(
        f"/api/orgs/{org_id}/feeds/",
        json={
            "name": "  Bible Study  ",
            "description": "Weekly",
            "privacy": "open",
            "member_permissions": ["message", "post", "message"],
        },
        headers=auth_headers(member["token"]),
    )
    assert resp.status_code == 201
    feed = resp.json()
    assert feed["name"] == "Bible Study"
    assert feed["member_permissions"] == ["message", "post"]

    resp = await client.get(
        f"/api/orgs/{org_id}/feeds/{feed['id']}/members", headers=auth_headers(member["token"])
    )
    members = resp.json()
    assert len(members) == 1
    assert members[0]["owner"] is True
    assert members[0]["user"]["id"] == member["id"]


@pytest.mark.asyncio
async def test_create_feed_validation(client: AsyncClient, session_maker):
    org_id, _, member = await setup_org(client, session_maker)
    headers = auth_headers(member["token"])

    resp = await client.post(f"/api/orgs/{org_id}/feeds/", json={"name": "abc"}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Feed name must be at least 4 characters"

    resp = await client.post(
        f"/api/orgs/{org_id}/feeds/",
        json={"name": "Valid name", "privacy": "secret"},
        headers=headers,
    )
    assert resp.status_code == 422

    resp = await client.post(
        f"/api/orgs/{org_id}/feeds/",
        json={"name": "Valid name", "member_permissions": ["delete"]},
        headers=headers,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_feeds_shows_memberships_and_open_feeds(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    await add_feed(session_maker, org_id, admin["id"], name="Private Elders")
    open_id = await add_feed(session_maker, org_id, admin["id"], name="Open Choir", privacy="open")
    mine_id = await add_feed(
        session_maker, org_id, admin["id"], name="Youth Group", member_ids=[member["id"]]
    )

    resp = await client.get(f"/api/orgs/{org_id}/feeds/", headers=auth_headers(member["token"]))
    assert resp.status_code == 200
    feeds = {f["id"]: f for f in resp.json()}
    assert set(feeds) == {open_id, mine_id}
    assert feeds[mine_id]["is_member"] is True
    assert feeds[mine_id]["is_owner"] is False
    assert feeds[mine_id]["member_count"] == 2
    assert feeds[open_id]["is_member"] is False


@pytest.mark.asyncio
async def test_private_feed_requires_membership(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    feed_id = await add_feed(session_maker, org_id, admin["id"], name="Private Elders")

    resp = await client.get(
        f"/api/orgs/{org_id}/feeds/{feed_id}", headers=auth_headers(member["token"])
    )
    assert resp.status_code == 403

    resp = await client.get(
        f"/api/orgs/{org_id}/feeds/{feed_id}", headers=auth_headers(admin["token"])
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_join_open_feed_notifies_owners(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    feed_id = await add_feed(session_maker, org_id, admin["id"], name="Open Choir", privacy="open")

    resp = await client.post(
        f"/api/orgs/{org_id}/feeds/{feed_id}/join", headers=auth_headers(member["token"])
    )
    assert resp.status_code == 201
    assert resp.json()["owner"] is False

    resp = await client.post(
        f"/api/orgs/{org_id}/feeds/{feed_id}/join", headers=auth_headers(member["token"])
    )
    assert resp.status_code == 409

    async with session_maker() as session:
        result = await session.execute(select(Notification))
        notifications = result.scalars().all()
    assert len(notifications) == 1
    assert notifications[0].type == "new_feed_member"
    assert str(notifications[0].user_id) == admin["id"]
    assert notifications[0].data == {"userId": member["id"], "feedId": feed_id}


@pytest.mark.asyncio
async def test_cannot_join_private_feed(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    feed_id = await add_feed(session_maker, org_id, admin["id"])

    resp = await client.post(
        f"/api/orgs/{org_id}/feeds/{feed_id}/join", headers=auth_headers(member["token"])
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_leave_and_remove_members(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    other = await add_user(session_maker, org_id, name="Other Member")
    feed_id = await add_feed(
        session_maker, org_id, admin["id"], member_ids=[member["id"], other["id"]]
    )
    base = f"/api/orgs/{org_id}/feeds/{feed_id}/members"

    # Plain members cannot remove others
    resp = await client.delete(f"{base}/{other['id']}", headers=auth_headers(member["token"]))
    assert resp.status_code == 403

    # ...but can leave
    resp = await client.delete(f"{base}/{member['id']}", headers=auth_headers(member["token"]))
    assert resp.status_code == 204

    # Owners remove others
    resp = await client.delete(f"{base}/{other['id']}", headers=auth_headers(admin["token"]))
    assert resp.status_code == 204

    # The last owner stays
    resp = await client.delete(f"{base}/{admin['id']}", headers=auth_headers(admin["token"]))
    assert resp.status_code == 409

    resp = await client.delete(f"{base}/{uuid.uuid4()}", headers=auth_headers(admin["token"]))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_check_feed_permission(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    owner = await add_user(session_maker, org_id, name="Feed Owner")
    feed_id = await add_feed(
        session_maker,
        org_id,
        owner["id"],
        member_permissions=["message"],
        member_ids=[member["id"]],
    )
    base = f"/api/orgs/{org_id}/feeds/{feed_id}/permissions"

    async def allowed(user, action):
        resp = await client.get(f"{base}/{action}", headers=auth_headers(user["token"]))
        assert resp.status_code == 200
        return resp.json()["allowed"]

    assert await allowed(member, "message") is True
    assert await allowed(member, "post") is False
    assert await allowed(owner, "post") is True
    assert await allowed(admin, "post") is True

    resp = await client.get(f"{base}/delete", headers=auth_headers(member["token"]))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_only_owners_update_feed(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    feed_id = await add_feed(session_maker, org_id, admin["id"], member_ids=[member["id"]])

    resp = await client.patch(
        f"/api/orgs/{org_id}/feeds/{feed_id}",
        json={"privacy": "open"},
        headers=auth_headers(member["token"]),
    )
    assert resp.status_code == 403

    resp = await client.patch(
        f"/api/orgs/{org_id}/feeds/{feed_id}",
        json={"privacy": "open", "member_permissions": ["post"]},
        headers=auth_headers(admin["token"]),
    )
    assert resp.status_code == 200
    assert resp.json()["privacy"] == "open"
    assert resp.json()["member_permissions"] == ["post"]
