from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.config import settings
from core.logger import logger
from services.generation_service import quota_reset_task


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Starts the periodic quota reset on startup and stops it on shutdown.
    """
    quota_reset_task.start()
    logger.info("Lifespan startup: Ready to serve requests.")
    yield
    await quota_reset_task.stop()
    if settings.QUOTA_BACKEND == "redis":
        from core.redis_client import redis_client_instance
        redis_client_instance.close()
    logger.info("Lifespan shutdown.")
