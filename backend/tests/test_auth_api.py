"""
API Integration Tests: Login, session cookie, password reset.
"""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import TEST_PASSWORD, auth_headers
from db.models import User


@pytest.mark.asyncio
class TestLogin:
    async def test_login_sets_cookie(self, client: AsyncClient, tenant):
        resp = await client.post("/api/v1/auth/login", json={"email": tenant["admin_email"], "password": TEST_PASSWORD})
        assert resp.status_code == 200
        data = resp.json()
        assert data["needsOnboarding"] is False
        assert data["user"]["email"] == tenant["admin_email"]
        assert "auth-token" in resp.cookies

    async def test_cookie_authenticates_follow_up_requests(self, client: AsyncClient, tenant):
        await client.post("/api/v1/auth/login", json={"email": tenant["admin_email"], "password": TEST_PASSWORD})
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["user"]["user_id"] == str(tenant["admin_id"])

    async def test_email_is_case_insensitive(self, client: AsyncClient, tenant):
        resp = await client.post(
            "/api/v1/auth/login", json={"email": tenant["admin_email"].upper(), "password": TEST_PASSWORD}
        )
        assert resp.status_code == 200

    async def test_wrong_password(self, client: AsyncClient, tenant):
        resp = await client.post("/api/v1/auth/login", json={"email": tenant["admin_email"], "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid email or password"

    async def test_unknown_email(self, client: AsyncClient):
        resp = await client.post("/api/v1/auth/login", json={"email": "ghost@example.test", "password": TEST_PASSWORD})
        assert resp.status_code == 401

    async def test_logout_clears_cookie(self, client: AsyncClient, tenant):
        await client.post("/api/v1/auth/login", json={"email": tenant["admin_email"], "password": TEST_PASSWORD})
        resp = await client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert client.cookies.get("auth-token") is None


@pytest.mark.asyncio
class TestSession:
    async def test_me_requires_auth(self, client: AsyncClient):
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Not authenticated"

    async def test_bad_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid or expired token"

    async def test_deleted_user(self, client: AsyncClient):
        resp = await client.get("/api/v1/auth/me", headers=auth_headers("00000000-0000-0000-0000-000000000042"))
        assert resp.status_code == 404

    async def test_signup_is_gone(self, client: AsyncClient):
        resp = await client.post("/api/v1/auth/signup", json={"email": "a@b.test"})
        assert resp.status_code == 410


@pytest.mark.asyncio
class TestPasswordReset:
    async def test_forgot_password_is_generic(self, client: AsyncClient, tenant):
        known = await client.post("/api/v1/auth/forgot-password", json={"email": tenant["admin_email"]})
        unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.test"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    async def test_reset_flow(self, client: AsyncClient, tenant, test_db):
        await client.post("/api/v1/auth/forgot-password", json={"email": tenant["admin_email"]})
        user = (await test_db.execute(select(User).where(User.user_id == tenant["admin_id"]))).scalar_one()
        assert user.reset_token
        assert user.reset_token_expires > datetime.utcnow() + timedelta(minutes=55)

        resp = await client.post(
            "/api/v1/auth/reset-password", json={"token": user.reset_token, "password": "brand-new-pass"}
        )
        assert resp.status_code == 200

        login = await client.post(
            "/api/v1/auth/login", json={"email": tenant["admin_email"], "password": "brand-new-pass"}
        )
        assert login.status_code == 200

    async def test_reset_with_unknown_token(self, client: AsyncClient):
        resp = await client.post("/api/v1/auth/reset-password", json={"token": "nope", "password": "brand-new-pass"})
        assert resp.status_code == 400
