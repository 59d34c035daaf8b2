# ward_planner/storage/redis_base.py
import logging

import redis.asyncio as aioredis

from ..settings import settings

logger = logging.getLogger(__name__)


async def create_redis_client() -> aioredis.Redis:
    """
    Connect to Redis using the global settings and verify the link with PING.

    Raises:
        redis.exceptions.RedisError: If the server cannot be reached
    """
    # Build connection parameters from global settings
    connection_params = {
        "host": settings.redis_host,
        "port": settings.redis_port,
        "db": settings.redis_db,
        "decode_responses": True,
    }
    if settings.redis_password:
        connection_params["password"] = settings.redis_password

    logger.info(
        f"Connecting to Redis at {connection_params['host']}:"
        f"{connection_params['port']}, DB: {connection_params['db']}"
    )
    client = aioredis.Redis(**connection_params)
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    logger.info("Successfully connected to Redis and pinged.")
    return client


def redis_key(*parts: str) -> str:
    """Namespace a key under the configured prefix, e.g. 'ward_planner:ward:primavera'."""
    return ":".join((settings.redis_key_prefix,) + parts)


def change_channel_name(tenant_id: str) -> str:
    """Pub/sub channel carrying plan changes of one ward."""
    return redis_key("changes", tenant_id)
