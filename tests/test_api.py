"""HTTP surface tests (httpx ASGITransport, lifespan not started)."""

from __future__ import annotations

import httpx
import pytest

from pulse_identity.main import create_app
from pulse_identity.models.profile import CLINICIAN_PROFILES


@pytest.fixture
def app(runtime):
    return create_app(runtime)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


class TestSession:
    async def test_session_before_initial_load(self, client):
        resp = await client.get("/api/v1/session")
        assert resp.status_code == 200
        assert resp.json() == {"user": None, "is_loading": True}

    async def test_demo_login_then_session(self, client):
        resp = await client.post(
            "/api/v1/login",
            json={"email": "demo@nurse.com", "password": "demo123", "role": "nurse"},
        )
        assert resp.status_code == 200
        assert resp.json()["demo"] is True

        session = (await client.get("/api/v1/session")).json()
        assert session["user"]["role"] == "clinician"
        assert session["user"]["id"].startswith("demo-clinician-")

        resp = await client.post("/api/v1/logout")
        assert resp.status_code == 204
        assert (await client.get("/api/v1/session")).json()["user"] is None


class TestErrors:
    async def test_invalid_credentials_maps_to_401(self, client, provider):
        provider.sign_in_error = "Invalid login credentials"
        resp = await client.post(
            "/api/v1/login",
            json={"email": "ada@example.com", "password": "nope", "role": "clinician"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "INVALID_CREDENTIALS"

    async def test_duplicate_signup_maps_to_409(self, client, provider):
        provider.sign_up_error = "User already registered"
        resp = await client.post(
            "/api/v1/signup",
            json={"email": "ada@example.com", "password": "secret1", "role": "clinician"},
        )
        assert resp.status_code == 409

    async def test_admin_google_signup_rejected(self, client):
        resp = await client.post("/api/v1/signup/google", json={"role": "admin"})
        assert resp.status_code == 422

    async def test_admin_signup_rejected(self, client, provider):
        resp = await client.post(
            "/api/v1/signup",
            json={"email": "root@example.com", "password": "secret1", "role": "admin"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        assert provider.calls_to("sign_up") == []


class TestSignup:
    async def test_signup_reports_confirmation(self, client):
        resp = await client.post(
            "/api/v1/signup",
            json={"email": "ada@example.com", "password": "secret1", "role": "clinician"},
        )
        assert resp.status_code == 201
        assert resp.json()["needs_email_confirmation"] is True

    async def test_google_login_returns_url(self, client, provider):
        resp = await client.post("/api/v1/login/google", json={"role": "hco"})
        assert resp.status_code == 200
        assert resp.json() == {"url": provider.oauth_url}

    async def test_google_signup_accepts_legacy_role_name(self, client, provider):
        resp = await client.post("/api/v1/signup/google", json={"role": "nurse"})
        assert resp.status_code == 200
        [(_, _, params)] = provider.calls_to("sign_in_with_oauth")
        assert params == {"mode": "register", "userType": "clinician"}


class TestCallbackRoute:
    async def test_get_confirmed_redirects_to_root(self, client, store):
        resp = await client.get(
            "/auth/callback",
            params={
                "mode": "register",
                "userType": "nurse",
                "access_token": "a",
                "refresh_token": "r",
            },
        )
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert len(store.rows(CLINICIAN_PROFILES, user_id="u-oauth")) == 1

    async def test_get_failed_returns_outcome(self, client):
        resp = await client.get("/auth/callback", params={"error": "access_denied"})
        assert resp.status_code == 400
        assert resp.json()["status"] == "failed"

    async def test_post_with_fragment(self, client):
        resp = await client.post(
            "/auth/callback",
            json={"url": "http://localhost:5173/auth/callback#access_token=a&refresh_token=r"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "confirmed"
        assert body["redirect_to"] == "/"


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["provider"] == "configured"
