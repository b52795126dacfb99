import json
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.redis_client import get_redis

settings = get_settings()


def _cache_key(user_id: str, key: str) -> str:
    return f"idempotency:{user_id}:{key}"


async def check_idempotency(request: Request, user_id: str) -> Optional[Response]:
    """
    Returns the cached Response if this user already used the Idempotency-Key,
    otherwise returns None (proceed normally).
    """
    key = request.headers.get("Idempotency-Key")
    if not key:
        return None

    redis = await get_redis()
    cached = await redis.get(_cache_key(user_id, key))

    if cached:
        data = json.loads(cached)
        return JSONResponse(
            content=data["body"],
            status_code=data["status_code"],
            headers={"X-Idempotency-Replay": "true"},
        )
    return None


async def store_idempotency_result(user_id: str, key: str, status_code: int, body: dict) -> None:
    """Persist the response for the given idempotency key (24h TTL)."""
    redis = await get_redis()
    await redis.setex(
        _cache_key(user_id, key),
        settings.idempotency_ttl_seconds,
        json.dumps({"status_code": status_code, "body": body}, default=str),
    )
