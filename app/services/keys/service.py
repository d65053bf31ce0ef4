"""Facade over key storage, selection and usage accounting"""
from datetime import datetime
from typing import Callable, List, Mapping, Optional

from app.core.config import settings
from app.core.redis import RedisStore
from app.models.schemas import (
    KeyRecord,
    KeySource,
    KeySummary,
    RequestHistoryPage,
    RequestStatus,
    UsageOutcome,
    UsageScope,
    UsageStats,
    utc_now
)
from app.services.keys.key_selector import KeySelector, load_fallback_keys
from app.services.keys.key_store import KeyStore
from app.services.usage.rate_gate import RateDecision, RateGate
from app.services.usage.recorder import UsageRecorder
from app.services.usage.request_log import RequestLog
from app.utils.exceptions import KeyManagementError, KeyNotFoundError, StoreUnavailableError
from app.utils.logger import get_logger

logger = get_logger("keys.service")


class GeminiKeysService:
    """
    Everything the HTTP layer needs to manage and use Gemini keys.

    Built once per application in the lifespan handler and kept on
    ``app.state``; the round-robin cursor lives in its ``KeySelector``.
    """

    def __init__(
        self,
        store: RedisStore,
        fallback_keys: Optional[List[KeyRecord]] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.fallback_keys = list(fallback_keys or [])
        self.usage = UsageRecorder(store, clock=clock)
        self.key_store = KeyStore(store, usage=self.usage, clock=clock)
        self.request_log = RequestLog(store, clock=clock)
        self.selector = KeySelector(self.key_store, self.fallback_keys)
        self.rate_gate = RateGate(self.usage, clock=clock)

    @classmethod
    def from_settings(cls, environ: Mapping[str, str]) -> "GeminiKeysService":
        return cls(
            RedisStore(url=settings.REDIS_URL),
            fallback_keys=load_fallback_keys(environ)
        )

    @property
    def store_available(self) -> bool:
        return self.store.is_connected

    async def initialize(self) -> None:
        """Connect to the store and seed it from the environment if empty"""
        try:
            await self.store.connect()
        except StoreUnavailableError as e:
            logger.warning(f"Key store unavailable, running on fallback keys only: {str(e)}")

        if self.store_available:
            try:
                await self.key_store.migrate(self.fallback_keys)
            except KeyManagementError as e:
                logger.error(f"Failed to migrate fallback keys: {str(e)}")

        logger.info(
            f"GeminiKeysService initialized (store={self.store_available}, "
            f"fallback_keys={len(self.fallback_keys)})"
        )

    async def shutdown(self) -> None:
        await self.selector.wait_pending()
        await self.store.close()

    # Admin operations

    async def list_keys(self, reveal: bool = False) -> List[KeyRecord]:
        """
        Store records followed by environment keys the store does not hold.

        An unreachable store degrades to the environment keys alone.
        """
        try:
            records = await self.key_store.list(reveal=True)
        except StoreUnavailableError as e:
            logger.warning(f"Listing fallback keys only: {str(e)}")
            records = []

        stored_secrets = {r.key for r in records}
        records.extend(k for k in self.fallback_keys if k.key not in stored_secrets)

        if reveal:
            return records
        return [r.redacted() for r in records]

    async def summary(self) -> KeySummary:
        keys = await self.list_keys()
        return KeySummary(
            total=len(keys),
            active=sum(1 for k in keys if k.active),
            inactive=sum(1 for k in keys if not k.active),
            store_keys=sum(1 for k in keys if k.source != KeySource.ENV),
            env_keys=sum(1 for k in keys if k.source == KeySource.ENV),
            total_requests=sum(k.request_count for k in keys),
            store_available=self.store_available
        )

    async def add_key(self, key: str, name: Optional[str] = None, active: bool = True) -> KeyRecord:
        # Pending touches write the whole list back; let them land before mutating
        await self.selector.wait_pending()
        record = await self.key_store.add(key, name=name, active=active)
        return record.redacted()

    async def remove_key(self, key_id: str) -> None:
        await self.selector.wait_pending()
        await self.key_store.remove(key_id)

    async def toggle_key(self, key_id: str, active: bool) -> KeyRecord:
        await self.selector.wait_pending()
        record = await self.key_store.toggle(key_id, active)
        return record.redacted()

    async def get_key(self, key_id: str, reveal: bool = False) -> KeyRecord:
        for record in await self.list_keys(reveal=reveal):
            if record.id == key_id:
                return record
        raise KeyNotFoundError(key_id)

    async def get_stats(self, key_id: str) -> UsageStats:
        await self.get_key(key_id)
        return await self.usage.get(UsageScope.KEY, key_id)

    async def get_user_stats(self, user_id: str) -> UsageStats:
        return await self.usage.get(UsageScope.USER, user_id)

    async def request_history(
        self,
        user_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> RequestHistoryPage:
        return await self.request_log.history(user_id=user_id, status=status, limit=limit, offset=offset)

    # Outbound call path

    async def select_key_for_call(self) -> KeyRecord:
        return await self.selector.next_record()

    async def record_usage(self, key_id: Optional[str], user_id: Optional[str], outcome: UsageOutcome) -> None:
        """Attribute one Gemini call to its key and its user; never raises"""
        if key_id:
            await self.usage.record(UsageScope.KEY, key_id, outcome)
        if user_id:
            await self.usage.record(UsageScope.USER, user_id, outcome)

    async def check_user_rate(self, user_id: str) -> RateDecision:
        return await self.rate_gate.check(
            UsageScope.USER,
            user_id,
            limit=settings.USER_RATE_LIMIT,
            window_seconds=settings.USER_RATE_WINDOW_SECONDS
        )
