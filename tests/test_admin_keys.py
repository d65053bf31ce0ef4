"""Test cases for the Gemini key admin endpoints"""
import pytest
from app.models.schemas import KeyRecord, KeySource, UsageOutcome, UsageScope

BASE = "/api/v1/admin/gemini-keys"


@pytest.mark.asyncio
async def test_add_then_list(api_client, admin_headers):
    async with api_client as client:
        first = await client.post(BASE, headers=admin_headers, json={"key": "sk-aaaaaaaaaa", "name": "Primary"})
        second = await client.post(BASE, headers=admin_headers, json={"key": "sk-bbbbbbbbbb", "name": "Secondary"})
        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json()["key"] == "sk-aaaaa..."

        response = await client.get(BASE, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert [k["key"] for k in data["keys"]] == ["sk-aaaaa...", "sk-bbbbb..."]
        assert data["summary"]["total"] == 2
        assert data["summary"]["active"] == 2
        assert data["summary"]["store_available"] is True


@pytest.mark.asyncio
async def test_add_duplicate_conflicts(api_client, admin_headers):
    async with api_client as client:
        await client.post(BASE, headers=admin_headers, json={"key": "sk-dup"})
        response = await client.post(BASE, headers=admin_headers, json={"key": "sk-dup"})
        assert response.status_code == 409
        assert response.json()["error"] == "Duplicate Key"


@pytest.mark.asyncio
async def test_add_blank_key_is_bad_request(api_client, admin_headers):
    async with api_client as client:
        response = await client.post(BASE, headers=admin_headers, json={"key": "   "})
        assert response.status_code == 400


@pytest.mark.asyncio
async def test_add_when_store_down(api_client, admin_headers, fake_redis):
    fake_redis.fail = True
    async with api_client as client:
        response = await client.post(BASE, headers=admin_headers, json={"key": "sk-new"})
        assert response.status_code == 503
        assert response.json()["error"] == "Store Unavailable"


@pytest.mark.asyncio
async def test_toggle_and_remove(api_client, admin_headers):
    async with api_client as client:
        created = (await client.post(BASE, headers=admin_headers, json={"key": "sk-toggle"})).json()

        response = await client.patch(
            f"{BASE}/{created['id']}/toggle", headers=admin_headers, json={"active": False}
        )
        assert response.status_code == 200
        assert response.json()["active"] is False

        response = await client.delete(f"{BASE}/{created['id']}", headers=admin_headers)
        assert response.status_code == 200

        response = await client.delete(f"{BASE}/{created['id']}", headers=admin_headers)
        assert response.status_code == 404

        response = await client.patch(
            f"{BASE}/{created['id']}/toggle", headers=admin_headers, json={"active": True}
        )
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_requires_boolean(api_client, admin_headers):
    async with api_client as client:
        created = (await client.post(BASE, headers=admin_headers, json={"key": "sk-bool"})).json()
        response = await client.patch(
            f"{BASE}/{created['id']}/toggle", headers=admin_headers, json={"active": "maybe"}
        )
        assert response.status_code == 422


@pytest.mark.asyncio
async def test_key_stats(api_client, admin_headers, keys_service):
    record = await keys_service.add_key("sk-stats")
    await keys_service.record_usage(record.id, None, UsageOutcome(success=True, tokens=7, response_time_ms=100))
    await keys_service.record_usage(record.id, None, UsageOutcome(success=False, response_time_ms=300))

    async with api_client as client:
        response = await client.get(f"{BASE}/{record.id}/stats", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["scope"] == "key"
        assert data["stats"]["total_requests"] == 2
        assert data["stats"]["total_tokens"] == 7
        assert data["stats"]["avg_response_time"] == pytest.approx(200.0)
        assert data["error_rate"] == pytest.approx(50.0)

        response = await client.get(f"{BASE}/key_missing/stats", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.asyncio
async def test_env_keys_listed_when_not_stored(api_client, admin_headers, keys_service):
    keys_service.fallback_keys.append(
        KeyRecord(id="env_key_1", key="AIzaSyEnvironment", name="Environment key 1", source=KeySource.ENV)
    )
    await keys_service.add_key("sk-stored")

    async with api_client as client:
        data = (await client.get(BASE, headers=admin_headers)).json()
        assert [k["source"] for k in data["keys"]] == ["admin", "env"]
        assert data["keys"][1]["key"] == "AIzaSyEn..."
        assert data["summary"]["store_keys"] == 1
        assert data["summary"]["env_keys"] == 1


@pytest.mark.asyncio
async def test_list_falls_back_to_env_keys_when_store_down(api_client, admin_headers, keys_service, fake_redis):
    keys_service.fallback_keys.append(
        KeyRecord(id="env_key_1", key="AIzaSyEnvironment", name="Environment key 1", source=KeySource.ENV)
    )
    fake_redis.fail = True

    async with api_client as client:
        response = await client.get(BASE, headers=admin_headers)
        assert response.status_code == 200
        assert [k["id"] for k in response.json()["keys"]] == ["env_key_1"]


@pytest.mark.asyncio
async def test_test_key_endpoint(api_client, admin_headers, keys_service, gemini_stub):
    record = await keys_service.add_key("sk-tested-key")

    async with api_client as client:
        response = await client.post(f"{BASE}/{record.id}/test", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

        gemini_stub.status_code = 401
        response = await client.post(f"{BASE}/{record.id}/test", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["detail"] == "Invalid API key for Gemini"

    assert gemini_stub.used_keys == ["sk-tested-key", "sk-tested-key"]
    stats = await keys_service.usage.get(UsageScope.KEY, record.id)
    assert stats.success_count == 1
    assert stats.fail_count == 1
