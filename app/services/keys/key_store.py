"""Persistent list of Gemini API keys"""
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError

from app.core.config import settings
from app.core.redis import RedisStore
from app.models.schemas import KeyRecord, KeySource, UsageScope, utc_now
from app.services.usage.recorder import UsageRecorder
from app.utils.exceptions import (
    DuplicateKeyError,
    KeyNotFoundError,
    KeyValidationError,
    StoreUnavailableError
)
from app.utils.logger import get_logger

logger = get_logger("keys")


def generate_key_id(prefix: str = "key") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


class KeyStore:
    """
    Gemini key records persisted as one JSON list under a single store key.

    Every mutation reads the whole list, changes it and writes it back. There
    is no locking or versioning: concurrent writers overwrite each other and
    the last write wins.
    """

    def __init__(
        self,
        store: RedisStore,
        redis_key: Optional[str] = None,
        usage: Optional[UsageRecorder] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.redis_key = redis_key or settings.GEMINI_KEYS_REDIS_KEY
        self.usage = usage or UsageRecorder(store, clock=clock)
        self.clock = clock

    async def _load(self) -> List[KeyRecord]:
        raw = await self.store.get(self.redis_key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StoreUnavailableError(f"Key list under {self.redis_key} is not a list")

        try:
            return [KeyRecord.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.error(f"Corrupt key record under {self.redis_key}: {str(e)}")
            raise StoreUnavailableError("Corrupt key record in store") from e

    async def _save(self, records: List[KeyRecord]) -> None:
        await self.store.set(self.redis_key, [r.model_dump(mode="json") for r in records])
        logger.debug(f"Saved {len(records)} keys to {self.redis_key}")

    def _find(self, records: List[KeyRecord], key_id: str) -> int:
        for index, record in enumerate(records):
            if record.id == key_id:
                return index
        raise KeyNotFoundError(key_id)

    async def add(
        self,
        key: str,
        name: Optional[str] = None,
        active: bool = True,
        source: KeySource = KeySource.ADMIN,
        key_id: Optional[str] = None
    ) -> KeyRecord:
        """Append a new record; the secret must be non-blank and unique"""
        secret = (key or "").strip()
        if not secret:
            raise KeyValidationError("API key is required")

        records = await self._load()
        if any(r.key == secret for r in records):
            raise DuplicateKeyError("This API key already exists")

        record = KeyRecord(
            id=key_id or generate_key_id(),
            key=secret,
            name=(name or "").strip() or f"API Key {len(records) + 1}",
            active=active,
            source=source,
            created_at=self.clock()
        )
        records.append(record)
        await self._save(records)

        logger.info(f"Key added: {record.id} ({record.name}, source={record.source.value})")
        return record

    async def remove(self, key_id: str) -> None:
        """Delete a record and its usage stats"""
        records = await self._load()
        index = self._find(records, key_id)
        del records[index]
        await self._save(records)

        try:
            await self.usage.forget(UsageScope.KEY, key_id)
        except StoreUnavailableError as e:
            logger.warning(f"Usage stats of removed key {key_id} not deleted: {str(e)}")

        logger.info(f"Key removed: {key_id}")

    async def toggle(self, key_id: str, active: bool) -> KeyRecord:
        records = await self._load()
        index = self._find(records, key_id)
        records[index].active = active
        await self._save(records)

        logger.info(f"Key toggled: {key_id} active={active}")
        return records[index]

    async def list(self, reveal: bool = False) -> List[KeyRecord]:
        """All records; secrets are redacted unless ``reveal`` is set"""
        records = await self._load()
        if reveal:
            return records
        return [r.redacted() for r in records]

    async def get(self, key_id: str, reveal: bool = False) -> KeyRecord:
        records = await self._load()
        record = records[self._find(records, key_id)]
        return record if reveal else record.redacted()

    async def active(self) -> List[KeyRecord]:
        """Active records in stored order, secrets included"""
        return [r for r in await self._load() if r.active]

    async def touch(self, key_id: str) -> None:
        """Stamp last-used time and bump the request counter"""
        records = await self._load()
        index = self._find(records, key_id)
        records[index].last_used = self.clock()
        records[index].request_count += 1
        await self._save(records)

    async def migrate(self, fallback: List[KeyRecord]) -> int:
        """
        Copy environment keys into an empty store.

        Returns the number of records written; nothing is written when the
        store already holds keys. A secret set under several variables is
        stored once.
        """
        if not fallback or await self._load():
            return 0

        seen = set()
        for record in fallback:
            if record.key in seen:
                logger.warning(f"Skipping {record.id}: same secret as an earlier environment key")
                continue
            seen.add(record.key)
            await self.add(
                record.key,
                name=record.name,
                active=record.active,
                source=KeySource.MIGRATED,
                key_id=generate_key_id("migrated")
            )

        logger.info(f"Migrated {len(seen)} environment keys to the store")
        return len(seen)
