"""Tests for bearer token authentication."""
from datetime import timedelta

import pytest

from dump_billing.auth.security import create_access_token, decode_token
from conftest import auth_headers, make_user


def test_decode_round_trip():
    token = create_access_token({"sub": "user-1", "email": "a@example.com"})

    payload = decode_token(token)
    assert payload["sub"] == "user-1"
    assert "exp" in payload


def test_decode_rejects_expired_token():
    token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-10))

    assert decode_token(token) is None


def test_decode_rejects_garbage():
    assert decode_token("not-a-jwt") is None


@pytest.mark.asyncio
async def test_missing_token(client):
    response = await client.get("/api/users/me/subscriptions")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token(client):
    response = await client.get(
        "/api/users/me/subscriptions",
        headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_token_for_unknown_user(client):
    token = create_access_token({"sub": "ghost"})

    response = await client.get(
        "/api/users/me/subscriptions",
        headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


@pytest.mark.asyncio
async def test_inactive_user_rejected(client, test_db):
    user = await make_user(test_db, "suspended@example.com")
    user.status = "suspended"
    await test_db.commit()

    response = await client.get("/api/users/me/subscriptions", headers=auth_headers(user))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_route_rejects_regular_user(client, subscriber):
    response = await client.get("/api/admin/payouts", headers=auth_headers(subscriber))

    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


@pytest.mark.asyncio
async def test_admin_route_accepts_admin(client, admin_user):
    response = await client.get("/api/admin/payouts", headers=auth_headers(admin_user))

    assert response.status_code == 200
    assert response.json()["total"] == 0
