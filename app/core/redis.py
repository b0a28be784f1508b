# app/core/redis.py
import logging

import redis.asyncio as redis
from app.core.config import settings

logger = logging.getLogger(__name__)

# decode_responses=True автоматически декодирует ответы из байтов в строки
redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

SCHEDULER_LOCK_KEY = "ledger:scheduler_lock"
SCHEDULER_LOCK_TTL = 60


async def acquire_scheduler_lock() -> bool:
    """
    Только один воркер uvicorn/gunicorn запускает планировщик.
    SET NX: ключ получает первый стартовавший воркер.
    """
    acquired = await redis_client.set(SCHEDULER_LOCK_KEY, "1", ex=SCHEDULER_LOCK_TTL, nx=True)
    logger.debug(f"Scheduler lock acquired: {bool(acquired)}")
    return bool(acquired)


async def release_scheduler_lock():
    await redis_client.delete(SCHEDULER_LOCK_KEY)
