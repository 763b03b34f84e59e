# services/quota_store.py
"""
Per-client generation counters.

QuotaStore is the seam between the rate limiter and wherever the counts
live. InMemoryQuotaStore is a plain per-process dict: every worker process
holds its own independent view, so the ceiling is enforced per process and
not across horizontally scaled instances. RedisQuotaStore keeps the same
counters in Redis for deployments that need one shared view.

QuotaResetTask clears the whole store on a fixed interval regardless of
in-flight jobs. A job that started just before a clear and is still running
afterwards no longer holds a slot, so concurrency can be under-counted for
up to one job per client per interval. That is the accepted cost of never
leaking a slot permanently.
"""

import asyncio
from typing import Callable, Dict, Optional, Protocol

import redis

from core.logger import logger


class QuotaStore(Protocol):
    def get(self, client_id: str) -> int: ...

    def increment(self, client_id: str) -> int: ...

    def decrement(self, client_id: str) -> int: ...

    def clear(self) -> None: ...


class InMemoryQuotaStore:
    """Process-local map of client id to active count."""

    def __init__(self):
        self._counts: Dict[str, int] = {}

    def get(self, client_id: str) -> int:
        return self._counts.get(client_id, 0)

    def increment(self, client_id: str) -> int:
        current = self._counts.get(client_id, 0) + 1
        self._counts[client_id] = current
        return current

    def decrement(self, client_id: str) -> int:
        current = self._counts.get(client_id, 0)
        if current > 0:
            current -= 1
            self._counts[client_id] = current
        return current

    def clear(self) -> None:
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)


# Floor-at-zero decrement, atomic on the server side
_DECREMENT_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current > 0 then
    return redis.call('DECR', KEYS[1])
end
return 0
"""


class RedisQuotaStore:
    """
    Shared quota store backed by Redis INCR/DECR.

    Keys: {prefix}{client_id} -> integer count.
    """

    def __init__(self, client: redis.Redis, prefix: str = "genquota:"):
        self.redis = client
        self.prefix = prefix
        self._decrement = self.redis.register_script(_DECREMENT_SCRIPT)

    def _key(self, client_id: str) -> str:
        return f"{self.prefix}{client_id}"

    def get(self, client_id: str) -> int:
        value = self.redis.get(self._key(client_id))
        return int(value) if value else 0

    def increment(self, client_id: str) -> int:
        return int(self.redis.incr(self._key(client_id)))

    def decrement(self, client_id: str) -> int:
        return int(self._decrement(keys=[self._key(client_id)]))

    def clear(self) -> None:
        keys = list(self.redis.scan_iter(match=f"{self.prefix}*"))
        if keys:
            self.redis.delete(*keys)

    def health_check(self) -> bool:
        try:
            return bool(self.redis.ping())
        except redis.RedisError as e:
            logger.error(f"Quota store health check failed: {e}")
            return False


class QuotaResetTask:
    """
    Scheduled full clear of a QuotaStore.

    Started from the application lifespan and stopped on shutdown. Optional
    `on_tick` callbacks run after each clear (job registry pruning).
    """

    def __init__(
        self,
        store: QuotaStore,
        interval_seconds: float,
        on_tick: Optional[Callable[[], None]] = None,
        sleep=asyncio.sleep,
    ):
        self.store = store
        self.interval_seconds = interval_seconds
        self.on_tick = on_tick
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="quota-reset"
        )
        logger.info(f"Quota reset task started (every {self.interval_seconds:g}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Quota reset task stopped")

    def run_once(self) -> None:
        self.store.clear()
        self.runs += 1
        logger.info("Generation quota map cleared")
        if self.on_tick is not None:
            self.on_tick()

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            try:
                self.run_once()
            except redis.RedisError as e:
                logger.error(f"Quota reset failed: {e}")
