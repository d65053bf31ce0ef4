"""Per-key and per-user usage accounting"""
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from app.core.config import settings
from app.core.redis import RedisStore
from app.models.schemas import UsageOutcome, UsageScope, UsageStats, utc_now
from app.utils.exceptions import StoreUnavailableError
from app.utils.logger import get_logger

logger = get_logger("usage")


def usage_stats_key(scope: UsageScope, subject_id: str, prefix: Optional[str] = None) -> str:
    """Store key holding the stats of one key or user, e.g. ``usage:key:key_ab12``"""
    return f"{prefix or settings.USAGE_STATS_PREFIX}:{scope.value}:{subject_id}"


def apply_outcome(stats: UsageStats, outcome: UsageOutcome, now: datetime) -> UsageStats:
    """
    Fold one call outcome into a stats record.

    The running average uses the post-increment request count ``n``:
    ``avg' = (avg * (n - 1) + new) / n``.
    """
    updated = stats.model_copy(deep=True)
    updated.total_requests += 1
    updated.total_tokens += outcome.tokens
    updated.last_used = now

    if outcome.success:
        updated.success_count += 1
    else:
        updated.fail_count += 1

    # Sunday = 0
    updated.daily_buckets[(now.weekday() + 1) % 7] += 1
    updated.hourly_buckets[now.hour] += 1

    if outcome.model:
        updated.usage_by_model[outcome.model] = updated.usage_by_model.get(outcome.model, 0) + 1

    n = updated.total_requests
    updated.avg_response_time = (stats.avg_response_time * (n - 1) + outcome.response_time_ms) / n

    return updated


class UsageRecorder:
    """
    Best-effort usage telemetry.

    ``record`` never raises for store problems: accounting is informational
    and a lost update only skews the counters.
    """

    def __init__(
        self,
        store: RedisStore,
        prefix: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store
        self.prefix = prefix or settings.USAGE_STATS_PREFIX
        self.clock = clock

    def _key(self, scope: UsageScope, subject_id: str) -> str:
        return usage_stats_key(scope, subject_id, self.prefix)

    async def get(self, scope: UsageScope, subject_id: str) -> UsageStats:
        """Load stats, returning zeroed stats if none were recorded yet"""
        raw = await self.store.get(self._key(scope, subject_id))
        if raw is None:
            return UsageStats()

        try:
            return UsageStats.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Corrupt usage stats for {scope.value} {subject_id}: {str(e)}")
            raise StoreUnavailableError(f"Corrupt usage stats for {scope.value} {subject_id}") from e

    async def record(self, scope: UsageScope, subject_id: str, outcome: UsageOutcome) -> None:
        """Add one call outcome to the subject's stats (read-modify-write)"""
        try:
            stats = await self.get(scope, subject_id)
            updated = apply_outcome(stats, outcome, self.clock())
            await self.store.set(self._key(scope, subject_id), updated.model_dump(mode="json"))
        except StoreUnavailableError as e:
            logger.warning(f"Usage not recorded for {scope.value} {subject_id}: {str(e)}")
            return

        logger.debug(
            f"Usage recorded for {scope.value} {subject_id}: "
            f"success={outcome.success} tokens={outcome.tokens} time={outcome.response_time_ms}ms"
        )

    async def forget(self, scope: UsageScope, subject_id: str) -> None:
        """Drop the subject's stats"""
        await self.store.delete(self._key(scope, subject_id))
