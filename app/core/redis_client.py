# core/redis_client.py
"""
Lazily connected Redis handle for the shared quota store.

Nothing here runs unless QUOTA_BACKEND is "redis". The first call to
get_client() builds the pool and PINGs once; a failed PING leaves the
handle unconnected so the next call retries.
"""

from typing import Any, Dict, Optional

import redis
from redis.connection import ConnectionPool

from core.config import Settings, settings
from core.logger import logger


def redis_pool_kwargs(cfg: Settings) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "host": cfg.REDIS_HOST,
        "port": cfg.REDIS_PORT,
        "db": cfg.REDIS_DB,
        "decode_responses": True,
        "socket_timeout": cfg.REDIS_SOCKET_TIMEOUT,
        "socket_connect_timeout": cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
        "max_connections": cfg.REDIS_MAX_CONNECTIONS,
        "retry_on_timeout": True,
    }
    if cfg.REDIS_SSL:
        kwargs["connection_class"] = redis.SSLConnection
    if cfg.REDIS_PASSWORD:
        kwargs["password"] = cfg.REDIS_PASSWORD
    return kwargs


class RedisClient:

    def __init__(self, cfg: Settings = settings):
        self.cfg = cfg
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[redis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def get_client(self) -> redis.Redis:
        """
        Raises:
            redis.ConnectionError: the server did not answer the first PING
        """
        if self._client is None:
            self._connect()
        return self._client

    def _connect(self) -> None:
        logger.info(
            f"Connecting quota store to Redis at {self.cfg.REDIS_HOST}:{self.cfg.REDIS_PORT} "
            f"(db={self.cfg.REDIS_DB}, ssl={self.cfg.REDIS_SSL})"
        )
        pool = ConnectionPool(**redis_pool_kwargs(self.cfg))
        client = redis.Redis(connection_pool=pool)
        try:
            client.ping()
        except redis.ConnectionError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            pool.disconnect()
            raise
        self._pool, self._client = pool, client

    def close(self) -> None:
        if self._pool is None:
            return
        self._pool.disconnect()
        self._pool = None
        self._client = None
        logger.info("Redis connection pool closed")


redis_client_instance = RedisClient()


def get_redis() -> redis.Redis:
    return redis_client_instance.get_client()
