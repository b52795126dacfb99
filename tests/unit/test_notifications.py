"""
Unit tests for the realtime relay (Redis pub/sub fan-out).
"""
import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services import notifications


@pytest.mark.asyncio
class TestNotify:
    async def test_publishes_to_every_room(self, fake_redis):
        with patch("app.services.notifications.get_redis", AsyncMock(return_value=fake_redis)):
            delivered = await notifications.notify(
                "ride-booked",
                {"ride_id": "r1", "seats": 2},
                notifications.user_room("driver-1"),
                notifications.ride_room("r1"),
            )

        assert delivered == 2
        channels = [channel for channel, _ in fake_redis.published]
        assert channels == ["events:user:driver-1", "events:ride:r1"]
        message = json.loads(fake_redis.published[0][1])
        assert message["event"] == "ride-booked"
        assert message["payload"] == {"ride_id": "r1", "seats": 2}
        assert "timestamp" in message

    async def test_relay_failure_is_swallowed(self):
        broken = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        with patch("app.services.notifications.get_redis", broken):
            delivered = await notifications.notify("ride-cancelled", {"ride_id": "r1"}, notifications.ADMIN_ROOM)
        assert delivered == 0

    async def test_partial_delivery_is_counted(self, fake_redis):
        fake_redis.publish = AsyncMock(side_effect=[1, OSError("broken pipe")])
        with patch("app.services.notifications.get_redis", AsyncMock(return_value=fake_redis)):
            delivered = await notifications.notify("emergency-alert", {}, "ride:r1", notifications.ADMIN_ROOM)
        assert delivered == 1
