from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from booking_leads.core.config import settings
from booking_leads.core.exceptions import ServiceUnavailableError
from booking_leads.core.logging import get_structlog_logger

logger = get_structlog_logger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None

# Monotonic time of the last failed connect; requests inside the cooldown
# fail fast instead of reconnecting.
_last_failure: Optional[float] = None
_init_lock: Optional[asyncio.Lock] = None


def _in_cooldown() -> bool:
    if _last_failure is None:
        return False
    return time.monotonic() - _last_failure < settings.redis_retry_cooldown_seconds


async def init_redis_pool() -> None:
    """Connect the shared pool. Raises ServiceUnavailableError on failure."""
    global _redis_pool, _redis_client, _last_failure, _init_lock

    if _redis_client is not None:
        return

    if _init_lock is None:
        _init_lock = asyncio.Lock()

    async with _init_lock:
        if _redis_client is not None:
            return
        if _in_cooldown():
            raise ServiceUnavailableError(
                message="Redis unavailable",
                details={"retry_after_seconds": settings.redis_retry_cooldown_seconds},
            )

        pool = ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_connect_timeout,
            retry=Retry(backoff=ExponentialBackoff(base=1), retries=3),
            retry_on_error=[redis.ConnectionError, redis.TimeoutError],
            health_check_interval=30,
            decode_responses=True,
        )
        client = redis.Redis(connection_pool=pool)

        try:
            # Bounded by the connect timeout, retries included.
            await asyncio.wait_for(client.ping(), timeout=settings.redis_socket_connect_timeout)
        except Exception as e:
            _last_failure = time.monotonic()
            await pool.disconnect()
            logger.error("redis.connection_failed", error=str(e))
            raise ServiceUnavailableError(
                message="Redis connection failed",
                details={"error": str(e)},
            ) from e

        _redis_pool = pool
        _redis_client = client
        _last_failure = None
        logger.info("redis.connected", max_connections=settings.redis_max_connections)


async def get_redis_client() -> redis.Redis:
    if _redis_client is None:
        await init_redis_pool()

    return _redis_client


async def close_redis_pool() -> None:
    global _redis_pool, _redis_client, _init_lock

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    _init_lock = None
    logger.info("redis.connections_closed")


async def health_check() -> Dict[str, Any]:
    """Check Redis health."""
    try:
        client = await get_redis_client()
        info = await client.info(section="server")
        return {
            "status": "healthy",
            "version": info.get("redis_version", "unknown"),
        }
    except Exception as e:
        logger.error("redis.health_check_failed", error=str(e))
        return {
            "status": "unhealthy",
            "error": str(e),
        }
