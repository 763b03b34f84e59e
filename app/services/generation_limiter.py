# services/generation_limiter.py
"""
Per-client concurrency ceiling for generation jobs.

check -> increment must run without an await in between; on a single event
loop that makes admission race-free within one process.
"""

from core.errors import RateLimited
from core.logger import logger
from schemas.job_models import RateLimitCheck
from services.quota_store import QuotaStore


class GenerationRateLimiter:

    def __init__(self, store: QuotaStore, limit: int = 2):
        self.store = store
        self.limit = limit

    def check_rate_limit(self, client_id: str) -> RateLimitCheck:
        """Pure read of the client's current usage."""
        current = self.store.get(client_id)
        return RateLimitCheck(
            allowed=current < self.limit,
            current=current,
            limit=self.limit,
        )

    def increment_generation(self, client_id: str) -> None:
        count = self.store.increment(client_id)
        logger.debug(f"Generation slot taken: client={client_id} active={count}/{self.limit}")

    def decrement_generation(self, client_id: str) -> None:
        """Release one slot. Never drops below zero."""
        count = self.store.decrement(client_id)
        logger.debug(f"Generation slot released: client={client_id} active={count}/{self.limit}")

    def get_active_count(self, client_id: str) -> int:
        return self.store.get(client_id)

    def admit(self, client_id: str) -> RateLimitCheck:
        """
        Check and take a slot in one step.

        Raises:
            RateLimited: client is already at the ceiling
        """
        check = self.check_rate_limit(client_id)
        if not check.allowed:
            raise RateLimited(current=check.current, limit=check.limit)
        self.increment_generation(client_id)
        return check
