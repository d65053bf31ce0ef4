"""Round-robin selection of the Gemini key for the next outbound call"""
import asyncio
from typing import List, Mapping, Optional, Sequence, Set

from app.core.config import settings
from app.models.schemas import KeyRecord, KeySource, utc_now
from app.services.keys.key_store import KeyStore
from app.utils.exceptions import KeyNotFoundError, NoActiveKeysError, StoreUnavailableError
from app.utils.logger import get_logger

logger = get_logger("keys.selector")


def load_fallback_keys(environ: Mapping[str, str], prefix: Optional[str] = None) -> List[KeyRecord]:
    """
    Read fallback keys from ``PREFIX``, ``PREFIX_2``, ``PREFIX_3``...

    Numbering starts at 2 and stops at the first missing index.
    """
    prefix = prefix or settings.GEMINI_KEY_ENV_PREFIX
    now = utc_now()
    keys: List[KeyRecord] = []

    def append(index: int, secret: Optional[str]) -> None:
        if secret and secret.strip():
            keys.append(KeyRecord(
                id=f"env_key_{index}",
                key=secret.strip(),
                name=f"Environment key {index}",
                active=True,
                source=KeySource.ENV,
                created_at=now
            ))

    append(1, environ.get(prefix))

    index = 2
    while environ.get(f"{prefix}_{index}"):
        append(index, environ[f"{prefix}_{index}"])
        index += 1

    logger.info(f"Loaded {len(keys)} fallback keys from environment")
    return keys


class RotationCursor:
    """Process-local round-robin position, always in ``[0, max(1, n))``"""

    def __init__(self, position: int = 0):
        self.position = position

    def pick(self, items: Sequence[KeyRecord]) -> KeyRecord:
        # Re-normalise first: the active set may have shrunk since the last call
        index = self.position % len(items)
        self.position = (index + 1) % len(items)
        return items[index]


class KeySelector:
    """
    Chooses the key for each Gemini call.

    Active store keys are preferred. The environment fallback list is used
    only when the store is unreachable or has no active key. One cursor is
    shared by both sources and lives as long as this instance.
    """

    def __init__(
        self,
        key_store: Optional[KeyStore],
        fallback_keys: Optional[List[KeyRecord]] = None,
        cursor: Optional[RotationCursor] = None
    ):
        self.key_store = key_store
        self.fallback_keys = fallback_keys if fallback_keys is not None else []
        self.cursor = cursor or RotationCursor()
        self._pending: Set[asyncio.Task] = set()

    async def _store_candidates(self) -> List[KeyRecord]:
        if self.key_store is None:
            return []
        try:
            return await self.key_store.active()
        except StoreUnavailableError as e:
            logger.warning(f"Key store unavailable, using fallback keys: {str(e)}")
            return []

    async def next_record(self) -> KeyRecord:
        """Select the next key and return its full record"""
        candidates = await self._store_candidates()
        if candidates:
            record = self.cursor.pick(candidates)
            self._schedule_touch(record.id)
            logger.debug(f"Using store key {record.id}")
            return record

        fallback = [k for k in self.fallback_keys if k.active]
        if fallback:
            record = self.cursor.pick(fallback)
            logger.debug(f"Using fallback key {record.id}")
            return record

        logger.error("No active Gemini API keys available")
        raise NoActiveKeysError("No active Gemini API keys available")

    async def next(self) -> str:
        """Select the next key and return only its secret"""
        return (await self.next_record()).key

    def _schedule_touch(self, key_id: str) -> None:
        task = asyncio.create_task(self._touch(key_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _touch(self, key_id: str) -> None:
        try:
            await self.key_store.touch(key_id)
        except (StoreUnavailableError, KeyNotFoundError) as e:
            logger.warning(f"Failed to update usage of key {key_id}: {str(e)}")

    async def wait_pending(self) -> None:
        """Let outstanding usage updates finish (used on shutdown and in tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
