from __future__ import annotations

import json
import logging
from typing import Any

import redis
from ..core.config import get_settings

logger = logging.getLogger(__name__)


def _redis_client() -> redis.Redis:
    # One short-lived client per call; each Celery task runs its own event loop.
    return redis.from_url(
        get_settings().REDIS_URL,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def _read(client: redis.Redis, key: str) -> Any:
    raw = client.get(key)
    return json.loads(raw) if raw is not None else None


def _write(client: redis.Redis, key: str, value: Any, ttl: int | None) -> Any:
    client.set(key, json.dumps(value, default=str), ex=ttl)
    return value


async def cached_get(
    key: str,
    set_value: Any | None = None,
    ttl: int | None = None,
) -> Any:
    """
    JSON values in Redis with an optional TTL.

        record = await cached_get("apollo:email=jane@acme.com")
        await cached_get("apollo:email=jane@acme.com", set_value=record, ttl=3600)

    A miss, an undecodable entry or an unreachable Redis all read as None.
    Lookups must keep working without the cache.
    """
    client = _redis_client()
    try:
        if set_value is None:
            return _read(client, key)
        return _write(client, key, set_value, ttl)
    except (redis.RedisError, ValueError) as e:
        logger.warning("Cache unavailable for %s: %s", key, e)
        return None
    finally:
        client.close()
