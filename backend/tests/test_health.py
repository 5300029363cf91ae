"""Health endpoint and general API checks."""
import uuid

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["service"] == "churchthreads"


@pytest.mark.asyncio
async def test_unauthenticated_endpoints_return_401(client: AsyncClient):
    org_id = uuid.uuid4()
    endpoints = [
        f"/api/orgs/{org_id}/users/me",
        f"/api/orgs/{org_id}/users/",
        f"/api/orgs/{org_id}/feeds/",
        f"/api/orgs/{org_id}/invites/",
        f"/api/orgs/{org_id}/notifications/",
        f"/api/orgs/{org_id}/notifications/unread-count",
    ]
    for path in endpoints:
        resp = await client.get(path)
        assert resp.status_code == 401, f"GET {path} should return 401"


@pytest.mark.asyncio
async def test_garbage_token_is_rejected(client: AsyncClient):
    resp = await client.get(
        f"/api/orgs/{uuid.uuid4()}/users/me",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401
