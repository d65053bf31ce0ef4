"""Fixed-window admission control over recorded usage counters"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.models.schemas import UsageScope, utc_now
from app.services.usage.recorder import UsageRecorder
from app.utils.exceptions import StoreUnavailableError
from app.utils.logger import get_logger

logger = get_logger("rate_gate")


@dataclass(frozen=True)
class RateDecision:
    admitted: bool
    reason: Optional[str] = None


ADMIT = RateDecision(admitted=True)


class RateGate:
    """
    Compares a subject's cumulative request counter against a limit.

    Once the counter reaches ``limit``, calls are rejected while the last
    recorded use is within ``window_seconds``; a subject idle for longer than
    the window is admitted again. Counters are never reset, so this is a coarse
    fixed-window approximation that allows bursts at window boundaries.
    """

    def __init__(self, recorder: UsageRecorder, clock: Callable[[], datetime] = utc_now):
        self.recorder = recorder
        self.clock = clock

    async def check(self, scope: UsageScope, subject_id: str, limit: int, window_seconds: int) -> RateDecision:
        try:
            stats = await self.recorder.get(scope, subject_id)
        except StoreUnavailableError as e:
            # Counters are best-effort; an unreadable store does not block traffic
            logger.warning(f"Rate check skipped for {scope.value} {subject_id}: {str(e)}")
            return ADMIT

        if stats.total_requests < limit:
            return ADMIT

        window_start = self.clock() - timedelta(seconds=window_seconds)
        if stats.last_used is None or stats.last_used < window_start:
            return ADMIT

        logger.info(
            f"Rate limit exceeded for {scope.value} {subject_id} "
            f"({stats.total_requests}/{limit} within {window_seconds}s)"
        )
        return RateDecision(admitted=False, reason="Rate limit exceeded")
