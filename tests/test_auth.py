"""Test cases for authentication"""
import pytest


@pytest.mark.asyncio
async def test_login_success(api_client):
    """Test successful login"""
    async with api_client as client:
        response = await client.post(
            "/api/v1/auth/token",
            json={"username": "demo_user", "password": "demo_password"}
        )
        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0


@pytest.mark.asyncio
async def test_login_invalid_credentials(api_client):
    """Test login with invalid credentials"""
    async with api_client as client:
        response = await client.post(
            "/api/v1/auth/token",
            json={"username": "invalid", "password": "wrong_password"}
        )
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_token_verifies(api_client):
    """Token from login is accepted by the verify endpoint"""
    async with api_client as client:
        login = await client.post(
            "/api/v1/auth/token",
            json={"username": "admin", "password": "admin_password"}
        )
        token = login.json()["access_token"]

        response = await client.get(
            "/api/v1/auth/verify",
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"


@pytest.mark.asyncio
async def test_verify_rejects_garbage_token(api_client):
    async with api_client as client:
        response = await client.get(
            "/api/v1/auth/verify",
            headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_generate_without_token(api_client):
    """Gemini endpoint requires a bearer token"""
    async with api_client as client:
        response = await client.post(
            "/api/v1/gemini/generate",
            json={"prompt": "This is a test"}
        )
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(api_client, user_headers):
    async with api_client as client:
        response = await client.get("/api/v1/admin/gemini-keys", headers=user_headers)
        assert response.status_code == 403

        response = await client.get("/api/v1/admin/gemini-keys")
        assert response.status_code == 401
