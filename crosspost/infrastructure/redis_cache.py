# crosspost/infrastructure/redis_cache.py
import json
from typing import Optional

import redis.asyncio as aioredis

from crosspost import config

# short-lived data a connect flow needs between start and callback
OAUTH_SIDE_DATA_TTL = 600

redis_client = aioredis.from_url(config.REDIS_URL, decode_responses=True)


def get_redis():
    return redis_client


async def put_oauth_side_data(client, namespace: str, key: str, payload: dict, ttl: int = OAUTH_SIDE_DATA_TTL) -> None:
    await client.set(f"oauth:{namespace}:{key}", json.dumps(payload), ex=ttl)


async def pop_oauth_side_data(client, namespace: str, key: str) -> Optional[dict]:
    redis_key = f"oauth:{namespace}:{key}"
    raw = await client.get(redis_key)
    if not raw:
        return None
    await client.delete(redis_key)
    try:
        return json.loads(raw)
    except ValueError:
        return None
