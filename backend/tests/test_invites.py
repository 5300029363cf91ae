"""Invites: creation rules, bulk e-mail invitations, listing and revocation."""
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from churchthreads.errors import EmailDeliveryError
from churchthreads.models.base import as_utc, utcnow
from churchthreads.models.invite import Invite
from churchthreads.services.invites import has_invite_expired
from churchthreads.services.tokens import generate_invite_token
from tests.conftest import add_feed, add_user, auth_headers, create_org


async def setup_org(client, session_maker):
    data = await create_org(client)
    org_id = data["organization"]["id"]
    admin = {"id": data["admin"]["id"], "token": data["access_token"]}
    member = await add_user(session_maker, org_id, name="Mary Member", email="mary@grace.church")
    return org_id, admin, member


def test_invite_token_shape():
    token = generate_invite_token()
    assert len(token) == 43
    assert all(c.isalnum() or c in "-_" for c in token)
    assert token != generate_invite_token()


def test_has_invite_expired():
    future = utcnow() + timedelta(days=1)
    assert not has_invite_expired(Invite(expires_at=future, max_uses=1, use_count=0))
    assert has_invite_expired(Invite(expires_at=future, max_uses=1, use_count=1))
    assert not has_invite_expired(Invite(expires_at=future, max_uses=None, use_count=50))
    assert has_invite_expired(
        Invite(expires_at=utcnow() - timedelta(seconds=1), max_uses=None, use_count=0)
    )


@pytest.mark.asyncio
async def test_create_email_invite(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)
    feed_id = await add_feed(session_maker, org_id, admin["id"])

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "email", "email": "new@grace.church", "name": "New Person", "feeds": [feed_id]},
        headers=auth_headers(admin["token"]),
    )
    assert resp.status_code == 201
    invite = resp.json()
    assert invite["max_uses"] == 1
    assert invite["use_count"] == 0
    assert invite["feeds"] == [feed_id]
    assert invite["expired"] is False
    assert len(invite["token"]) == 43

    async with session_maker() as session:
        stored = await session.get(Invite, uuid.UUID(invite["id"]))
    ttl = as_utc(stored.expires_at) - utcnow()
    assert timedelta(days=2, hours=23) < ttl <= timedelta(days=3)


@pytest.mark.asyncio
async def test_create_link_invite(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "link", "feeds": []},
        headers=auth_headers(admin["token"]),
    )
    assert resp.status_code == 201
    invite = resp.json()
    assert invite["max_uses"] is None
    assert invite["email"] is None

    async with session_maker() as session:
        stored = await session.get(Invite, uuid.UUID(invite["id"]))
    ttl = as_utc(stored.expires_at) - utcnow()
    assert timedelta(hours=23) < ttl <= timedelta(days=1)


@pytest.mark.asyncio
async def test_existing_user_cannot_be_invited(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "email", "email": "mary@grace.church"},
        headers=auth_headers(admin["token"]),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "A user with this email already exists in the organization"


@pytest.mark.asyncio
async def test_duplicate_active_invite_blocked(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)
    payload = {"type": "email", "email": "dup@grace.church"}

    resp1 = await client.post(
        f"/api/orgs/{org_id}/invites/", json=payload, headers=auth_headers(admin["token"])
    )
    assert resp1.status_code == 201

    resp2 = await client.post(
        f"/api/orgs/{org_id}/invites/", json=payload, headers=auth_headers(admin["token"])
    )
    assert resp2.status_code == 400
    assert "active invite" in resp2.json()["detail"]


@pytest.mark.asyncio
async def test_invite_email_case_is_ignored(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)
    headers = auth_headers(admin["token"])

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "email", "email": "Mary@Grace.church"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "A user with this email already exists in the organization"

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "email", "email": "new@grace.church"},
        headers=headers,
    )
    assert resp.status_code == 201

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "email", "email": "NEW@Grace.Church"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert "active invite" in resp.json()["detail"]

    async with session_maker() as session:
        emails = (await session.execute(select(Invite.email))).scalars().all()
    assert emails == ["new@grace.church"]


@pytest.mark.asyncio
async def test_expired_invite_does_not_block_new_one(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)
    payload = {"type": "email", "email": "late@grace.church"}
    resp = await client.post(
        f"/api/orgs/{org_id}/invites/", json=payload, headers=auth_headers(admin["token"])
    )

    async with session_maker() as session:
        stored = await session.get(Invite, uuid.UUID(resp.json()["id"]))
        stored.expires_at = utcnow() - timedelta(minutes=1)
        await session.commit()

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/", json=payload, headers=auth_headers(admin["token"])
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_inviter_must_own_feeds(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    admin_feed = await add_feed(session_maker, org_id, admin["id"], member_ids=[member["id"]])
    own_feed = await add_feed(session_maker, org_id, member["id"], name="Mary's Feed")

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "link", "feeds": [admin_feed]},
        headers=auth_headers(member["token"]),
    )
    assert resp.status_code == 403
    assert "admin or owner of feed" in resp.json()["detail"]

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "link", "feeds": [own_feed]},
        headers=auth_headers(member["token"]),
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_feeds_must_belong_to_org(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)
    other = await create_org(client, name="Hope", subdomain="hope", admin_email="a@hope.church")
    foreign_feed = await add_feed(
        session_maker, other["organization"]["id"], other["admin"]["id"]
    )

    resp = await client.post(
        f"/api/orgs/{org_id}/invites/",
        json={"type": "link", "feeds": [foreign_feed]},
        headers=auth_headers(admin["token"]),
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_send_email_invitations(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)
    feed_id = await add_feed(session_maker, org_id, admin["id"])

    with patch("churchthreads.services.invites.send_email", new_callable=AsyncMock) as mock_send:
        resp = await client.post(
            f"/api/orgs/{org_id}/invites/email",
            json={
                "feeds": [feed_id],
                "users_to_invite": [
                    {"email": "First@Grace.Church", "name": "First Person"},
                    {"email": "mary@grace.church"},
                    {"email": "second@grace.church"},
                ],
            },
            headers=auth_headers(admin["token"]),
        )
    assert resp.status_code == 200
    results = resp.json()
    assert [r["success"] for r in results] == [True, False, True]
    assert results[0]["invite_id"]
    assert results[1]["error"] == "A user with this email already exists in the organization"

    assert mock_send.await_count == 2
    first = mock_send.await_args_list[0]
    assert first.args[1] == "First@Grace.Church"
    assert first.args[2] == "Pastor Admin invited you to join Grace Church on ChurchThreads"
    assert "https://grace.churchthreads.local/register?token=" in first.args[3]

    async with session_maker() as session:
        result = await session.execute(select(Invite.email))
        emails = sorted(result.scalars().all())
    assert emails == ["first@grace.church", "second@grace.church"]


@pytest.mark.asyncio
async def test_one_failed_send_does_not_stop_the_rest(client: AsyncClient, session_maker):
    org_id, admin, _ = await setup_org(client, session_maker)

    async def flaky(db, to_email, *args, **kwargs):
        if to_email == "broken@grace.church":
            raise EmailDeliveryError(f"Failed to send email to {to_email}")

    with patch("churchthreads.services.invites.send_email", AsyncMock(side_effect=flaky)):
        resp = await client.post(
            f"/api/orgs/{org_id}/invites/email",
            json={
                "users_to_invite": [
                    {"email": "broken@grace.church"},
                    {"email": "fine@grace.church"},
                ],
            },
            headers=auth_headers(admin["token"]),
        )
    results = resp.json()
    assert results[0] == {
        "email": "broken@grace.church",
        "success": False,
        "error": "Failed to send email to broken@grace.church",
        "invite_id": None,
    }
    assert results[1]["success"] is True


@pytest.mark.asyncio
async def test_list_invites_by_role(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    await client.post(
        f"/api/orgs/{org_id}/invites/", json={"type": "link"}, headers=auth_headers(admin["token"])
    )
    await client.post(
        f"/api/orgs/{org_id}/invites/", json={"type": "link"}, headers=auth_headers(member["token"])
    )

    resp = await client.get(f"/api/orgs/{org_id}/invites/", headers=auth_headers(admin["token"]))
    assert len(resp.json()) == 2

    resp = await client.get(f"/api/orgs/{org_id}/invites/", headers=auth_headers(member["token"]))
    invites = resp.json()
    assert len(invites) == 1
    assert invites[0]["created_by"] == member["id"]


@pytest.mark.asyncio
async def test_revoke_invite(client: AsyncClient, session_maker):
    org_id, admin, member = await setup_org(client, session_maker)
    other = await add_user(session_maker, org_id, name="Other Member")
    resp = await client.post(
        f"/api/orgs/{org_id}/invites/", json={"type": "link"}, headers=auth_headers(member["token"])
    )
    invite_id = resp.json()["id"]

    resp = await client.delete(
        f"/api/orgs/{org_id}/invites/{invite_id}", headers=auth_headers(other["token"])
    )
    assert resp.status_code == 403

    resp = await client.delete(
        f"/api/orgs/{org_id}/invites/{invite_id}", headers=auth_headers(admin["token"])
    )
    assert resp.status_code == 204

    resp = await client.delete(
        f"/api/orgs/{org_id}/invites/{invite_id}", headers=auth_headers(member["token"])
    )
    assert resp.status_code == 404
