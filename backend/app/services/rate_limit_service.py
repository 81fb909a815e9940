"""Weekly cooldown between completed check-ins."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    next_available_at: Optional[datetime] = None


def _as_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC; normalise aware values to match."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def evaluate_cooldown(
    last_completed_at: Optional[datetime],
    now: datetime,
    cooldown: timedelta,
) -> RateLimitDecision:
    """
    Decide whether a new check-in may be generated.
    
    The cooldown runs from the creation time of the most recent completed
    check-in. A request landing exactly on the boundary is allowed.
    """
    if last_completed_at is None:
        return RateLimitDecision(allowed=True)
    
    next_available_at = _as_naive_utc(last_completed_at) + cooldown
    if _as_naive_utc(now) >= next_available_at:
        return RateLimitDecision(allowed=True)
    return RateLimitDecision(allowed=False, next_available_at=next_available_at)


class RateLimitService:
    """Eligibility check backed by the check-in repository."""
    
    def __init__(self, repository, cooldown_days: int = 7):
        self.repository = repository
        self.cooldown = timedelta(days=cooldown_days)
    
    async def check(self, user_id: int, now: datetime) -> RateLimitDecision:
        last_completed_at = await self.repository.get_latest_completed_check_in_at(user_id)
        decision = evaluate_cooldown(last_completed_at, now, self.cooldown)
        if not decision.allowed:
            logger.info(f"User {user_id} is rate limited until {decision.next_available_at.isoformat()}")
        return decision
