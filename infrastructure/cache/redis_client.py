"""Async Redis connection factory.

Returns an async redis.Redis client, or None if Redis is not configured
or the connection fails. All callers must handle the None case gracefully.

Connect and socket timeouts are both set, so a Redis that accepts the TCP
connection but stops answering raises instead of hanging the caller.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


async def create_redis_client(
    redis_uri: Optional[str], timeout_seconds: float = 1.0
) -> Optional[aioredis.Redis]:
    """Connect to Redis and return a client, or None when absent or unreachable."""
    if not redis_uri:
        log.info("redis_not_configured")
        return None
    try:
        client: aioredis.Redis = aioredis.from_url(
            redis_uri,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        await client.ping()
        log.info(
            "redis_connected",
            uri=redis_uri.split("@")[-1],  # mask credentials
            timeout_seconds=timeout_seconds,
        )
        return client
    except RedisError as e:
        log.warning(
            "redis_connection_failed", error=str(e), error_type=type(e).__name__
        )
        return None
    except Exception as e:
        log.warning("redis_unexpected_error", error=str(e), error_type=type(e).__name__)
        return None
