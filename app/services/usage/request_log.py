"""Capped history of Gemini calls"""
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError

from app.core.config import settings
from app.core.redis import RedisStore
from app.models.schemas import (
    KeyRecord,
    RequestHistoryPage,
    RequestLogEntry,
    RequestStatus,
    preview_secret,
    utc_now
)
from app.utils.exceptions import StoreUnavailableError
from app.utils.logger import get_logger

logger = get_logger("request_log")

PROMPT_LOG_LENGTH = 500
RESPONSE_LOG_LENGTH = 1000


class RequestLog:
    """
    Newest-first list of logged calls under one store key.

    The list is trimmed to ``max_entries`` on every write. Like usage
    accounting, logging is best-effort: ``log`` never raises for store
    problems.
    """

    def __init__(
        self,
        store: RedisStore,
        redis_key: Optional[str] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.redis_key = redis_key or settings.REQUEST_LOG_REDIS_KEY
        self.max_entries = max_entries or settings.REQUEST_LOG_MAX_ENTRIES
        self.clock = clock

    async def log(
        self,
        endpoint: str,
        status_code: int,
        prompt: str,
        response: Optional[str] = None,
        error: Optional[str] = None,
        user_id: Optional[str] = None,
        username: Optional[str] = None,
        model: Optional[str] = None,
        tokens: int = 0,
        response_time_ms: int = 0,
        key: Optional[KeyRecord] = None
    ) -> Optional[RequestLogEntry]:
        """Append one call; returns the stored entry, or None if it was not stored"""
        entry = RequestLogEntry(
            id=f"req_{uuid.uuid4().hex[:16]}",
            timestamp=self.clock(),
            user_id=user_id,
            username=username,
            endpoint=endpoint,
            status=RequestStatus.SUCCESS if status_code < 400 else RequestStatus.ERROR,
            status_code=status_code,
            response_time_ms=response_time_ms,
            model=model,
            tokens=tokens,
            prompt=prompt[:PROMPT_LOG_LENGTH],
            response=response[:RESPONSE_LOG_LENGTH] if response is not None else None,
            error=error,
            key_id=key.id if key else None,
            key_preview=preview_secret(key.key) if key else None
        )

        try:
            await self.store.push_capped(self.redis_key, entry.model_dump(mode="json"), self.max_entries)
        except StoreUnavailableError as e:
            logger.warning(f"Request {entry.id} not logged: {str(e)}")
            return None

        logger.debug(f"Request logged: {entry.id} ({entry.status.value}, {entry.status_code})")
        return entry

    async def _entries(self) -> List[RequestLogEntry]:
        raw = await self.store.get_list(self.redis_key)
        try:
            return [RequestLogEntry.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.error(f"Corrupt request log entry under {self.redis_key}: {str(e)}")
            raise StoreUnavailableError("Corrupt request log entry in store") from e

    async def history(
        self,
        user_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> RequestHistoryPage:
        """Filtered page of the history, newest first"""
        entries = await self._entries()
        if user_id:
            entries = [e for e in entries if e.user_id == user_id]
        if status:
            entries = [e for e in entries if e.status == status]

        return RequestHistoryPage(
            entries=entries[offset:offset + limit],
            total=len(entries),
            limit=limit,
            offset=offset
        )
