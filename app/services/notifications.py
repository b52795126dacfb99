"""
Realtime relay: ride/booking events published on Redis pub/sub.

Channels:
  events:user:{user_id}  – personal feed (driver or passenger)
  events:ride:{ride_id}  – everyone on a ride (location updates, cancellations)
  events:admin           – emergency alerts

Delivery is best-effort.  A relay failure is logged and never propagates, so it
cannot undo a booking or cancellation that already committed.
"""
import json
import logging
from datetime import datetime, timezone

from redis.exceptions import RedisError

from app.redis_client import get_redis, publish

logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def ride_room(ride_id: str) -> str:
    return f"ride:{ride_id}"


ADMIN_ROOM = "admin"


async def notify(event: str, payload: dict, *rooms: str) -> int:
    """Publish `event` to every room. Returns how many rooms were reached."""
    message = json.dumps(
        {
            "event": event,
            "payload": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        default=str,
    )
    delivered = 0
    try:
        redis = await get_redis()
        for room in rooms:
            await publish(redis, f"events:{room}", message)
            delivered += 1
    except (RedisError, OSError) as exc:
        logger.warning("Realtime relay failed for event=%s rooms=%s: %s", event, rooms, exc)
    return delivered
