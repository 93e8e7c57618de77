import logging
from typing import Optional

from redis import Redis, ConnectionPool
from redis.exceptions import RedisError

from ticketbridge.core.config import get_settings

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None
_connection_pool: Optional[ConnectionPool] = None


def get_redis_client() -> Optional[Redis]:
    """
    Get Redis client instance (singleton pattern)
    Returns None if Redis is not configured or connection fails
    """
    global _redis_client, _connection_pool

    if _redis_client is not None:
        return _redis_client

    redis_url = get_settings().redis_url
    if not redis_url:
        logger.warning("Redis URL not configured")
        return None

    try:
        _connection_pool = ConnectionPool.from_url(
            redis_url,
            max_connections=10,
            decode_responses=False,
        )
        _redis_client = Redis(connection_pool=_connection_pool)

        # Test connection
        _redis_client.ping()
        logger.info(f"Redis connected successfully: {redis_url}")
        return _redis_client

    except RedisError as e:
        logger.error(f"Redis connection error: {e}")
        _redis_client = None
        return None


def close_redis_connection():
    """Close Redis connection"""
    global _redis_client, _connection_pool

    if _redis_client:
        _redis_client.close()
        _redis_client = None

    if _connection_pool:
        _connection_pool.disconnect()
        _connection_pool = None

    logger.info("Redis connection closed")
