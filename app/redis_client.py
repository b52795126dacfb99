import json
from datetime import datetime, timezone

import redis.asyncio as aioredis
from app.config import get_settings

settings = get_settings()

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=100,
        )
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Ride location helpers
# ---------------------------------------------------------------------------

async def set_ride_location(redis: aioredis.Redis, ride_id: str, lat: float, lng: float, ttl: int) -> dict:
    """Store the driver's last known position for a ride."""
    location = {
        "lat": lat,
        "lng": lng,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    await redis.setex(f"ride:{ride_id}:loc", ttl, json.dumps(location))
    return location


async def get_ride_location(redis: aioredis.Redis, ride_id: str) -> dict | None:
    raw = await redis.get(f"ride:{ride_id}:loc")
    return json.loads(raw) if raw else None


# ---------------------------------------------------------------------------
# Pub/sub helpers
# ---------------------------------------------------------------------------

async def publish(redis: aioredis.Redis, channel: str, message: str) -> int:
    return await redis.publish(channel, message)
