"""Test cases for the key service facade: startup and admin mutations"""
import pytest
from app.core.redis import RedisStore
from app.models.schemas import KeyRecord, KeySource, UsageOutcome, UsageScope
from app.services.keys.service import GeminiKeysService


def env_key(index: int, secret: str) -> KeyRecord:
    return KeyRecord(id=f"env_key_{index}", key=secret, name=f"Environment key {index}", source=KeySource.ENV)


@pytest.mark.asyncio
async def test_initialize_with_repeated_env_secret(store, clock):
    """Startup completes and stores the shared secret once"""
    service = GeminiKeysService(
        store,
        fallback_keys=[env_key(1, "sk-shared"), env_key(2, "sk-shared")],
        clock=clock
    )

    await service.initialize()

    stored = await service.key_store.list(reveal=True)
    assert [k.key for k in stored] == ["sk-shared"]
    assert stored[0].source == KeySource.MIGRATED
    assert (await service.select_key_for_call()).key == "sk-shared"
    await service.shutdown()


@pytest.mark.asyncio
async def test_initialize_without_store_keeps_fallback(clock):
    service = GeminiKeysService(RedisStore(url=None), fallback_keys=[env_key(1, "sk-env")], clock=clock)

    await service.initialize()

    assert service.store_available is False
    assert (await service.select_key_for_call()).key == "sk-env"


@pytest.mark.asyncio
async def test_toggle_not_undone_by_pending_usage_update(keys_service, fake_redis):
    """A disabled key stays disabled even if its last selection is still being recorded"""
    fake_redis.yield_on_io = True
    first = await keys_service.add_key("sk-a")
    await keys_service.add_key("sk-b")

    assert (await keys_service.select_key_for_call()).key == "sk-a"
    await keys_service.toggle_key(first.id, False)
    await keys_service.selector.wait_pending()

    picked = [(await keys_service.select_key_for_call()).key for _ in range(4)]
    await keys_service.selector.wait_pending()

    assert picked == ["sk-b"] * 4
    stored = await keys_service.get_key(first.id)
    assert stored.active is False
    assert stored.request_count == 1


@pytest.mark.asyncio
async def test_remove_not_undone_by_pending_usage_update(keys_service, fake_redis):
    fake_redis.yield_on_io = True
    first = await keys_service.add_key("sk-a")
    await keys_service.add_key("sk-b")

    await keys_service.select_key_for_call()
    await keys_service.remove_key(first.id)
    await keys_service.selector.wait_pending()

    assert [k.key for k in await keys_service.list_keys(reveal=True)] == ["sk-b"]


@pytest.mark.asyncio
async def test_remove_key_drops_its_stats(keys_service, fake_redis):
    record = await keys_service.add_key("sk-stats")
    await keys_service.record_usage(record.id, "user_demo", UsageOutcome(success=True, tokens=3))
    assert f"usage:key:{record.id}" in fake_redis.data

    await keys_service.remove_key(record.id)

    assert f"usage:key:{record.id}" not in fake_redis.data
    # User stats are kept
    assert (await keys_service.usage.get(UsageScope.USER, "user_demo")).total_requests == 1
