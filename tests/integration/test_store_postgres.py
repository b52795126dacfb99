"""
RideStore against a real PostgreSQL database: version-token conflicts and the
partial unique index on active bookings.

Set TEST_DATABASE_URL (postgresql+asyncpg://...) to run; the schema is created
and dropped around every test, so point it at a scratch database.
"""
import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import Base
from app.errors import DuplicatePassenger
from app.services import ledger
from app.services.store import RideStore

DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not DATABASE_URL, reason="TEST_DATABASE_URL not set")


@pytest_asyncio.fixture
async def stores():
    engine = create_async_engine(DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with sessions() as first, sessions() as second:
        yield RideStore(first), RideStore(second)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.mark.asyncio
class TestRideStorePostgres:
    async def test_stale_ride_write_is_refused(self, stores, ride_factory):
        first, second = stores
        ride = ride_factory(total_seats=3)
        ride_id = ride.id
        await first.add_ride(ride)

        mine = await first.get_ride(ride_id)
        theirs = await second.get_ride(ride_id)
        mine.available_seats = 2
        assert await first.save_ride(mine) is True

        theirs.available_seats = 1
        assert await second.save_ride(theirs) is False

        fresh = await second.get_ride(ride_id)
        assert fresh.available_seats == 2
        assert fresh.version == mine.version

    async def test_stale_booking_write_is_refused(self, stores, ride_factory):
        first, second = stores
        ride = ride_factory()
        await first.add_ride(ride)
        booking = await first.add_booking(ledger.create_booking(ride, "p1", 1, None))
        booking_id = booking.id

        mine = await first.get_booking(booking_id)
        theirs = await second.get_booking(booking_id)
        mine.special_requests = "front seat"
        assert await first.save_booking(mine) is True

        theirs.special_requests = "window seat"
        assert await second.save_booking(theirs) is False
        assert (await second.get_booking(booking_id)).special_requests == "front seat"

    async def test_second_active_booking_is_a_duplicate(self, stores, ride_factory):
        first, second = stores
        ride = ride_factory()
        await first.add_ride(ride)
        await first.add_booking(ledger.create_booking(ride, "p1", 1, None))

        with pytest.raises(DuplicatePassenger):
            await second.add_booking(ledger.create_booking(ride, "p1", 2, None))

    async def test_rejected_booking_frees_the_passenger_slot(self, stores, ride_factory):
        first, _ = stores
        ride = ride_factory()
        await first.add_ride(ride)
        booking = await first.add_booking(ledger.create_booking(ride, "p1", 1, None, status="pending"))

        ledger.reject_booking(booking)
        assert await first.save_booking(booking) is True

        rebooked = await first.add_booking(ledger.create_booking(ride, "p1", 1, None))
        assert rebooked.status == "confirmed"
