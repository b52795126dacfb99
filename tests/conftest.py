"""
Shared fixtures: an in-memory RideStore with the same version-token semantics
as the SQLAlchemy one, plus a minimal async Redis double.
"""
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import inspect as sa_inspect

from app.errors import DuplicatePassenger
from app.models import Booking, Ride, RidePassenger
from app.services.ledger import ACTIVE_STATUSES


NOW = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)


def _columns(obj) -> dict:
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(type(obj)).column_attrs}


def clone_ride(ride: Ride) -> Ride:
    passengers = [RidePassenger(**_columns(p)) for p in ride.passengers]
    return Ride(**_columns(ride), passengers=passengers)


def clone_booking(booking: Booking) -> Booking:
    return Booking(**_columns(booking))


class InMemoryStore:
    """
    Mirrors RideStore: reads hand out detached copies, writes are accepted only
    when the instance carries the stored version (then bump it).
    """

    def __init__(self):
        self.rides: dict[str, Ride] = {}
        self.bookings: dict[str, Booking] = {}
        self._clock = itertools.count()
        self.ride_saves = 0
        self.booking_saves = 0

    def _stamp(self) -> datetime:
        return NOW + timedelta(microseconds=next(self._clock))

    # -- rides ---------------------------------------------------------------

    async def get_ride(self, ride_id):
        ride = self.rides.get(ride_id)
        return clone_ride(ride) if ride else None

    async def add_ride(self, ride):
        ride.version = ride.version or 1
        ride.created_at = ride.created_at or self._stamp()
        self.rides[ride.id] = clone_ride(ride)
        return ride

    async def save_ride(self, ride):
        stored = self.rides.get(ride.id)
        if stored is None or stored.version != ride.version:
            return False
        ride.version += 1
        self.rides[ride.id] = clone_ride(ride)
        self.ride_saves += 1
        return True

    async def list_driver_rides(self, driver_id):
        rides = [r for r in self.rides.values() if r.driver_id == driver_id]
        rides.sort(key=lambda r: r.created_at, reverse=True)
        return [clone_ride(r) for r in rides]

    async def find_rides(self, day, exclude_driver_id=None, max_price=None, vehicle_type=None, min_seats=1):
        rides = [
            r for r in self.rides.values()
            if r.status == "active"
            and r.ride_date == day
            and r.available_seats >= min_seats
            and (not exclude_driver_id or r.driver_id != exclude_driver_id)
            and (max_price is None or r.price_per_seat <= max_price)
            and (not vehicle_type or r.vehicle_type == vehicle_type)
        ]
        rides.sort(key=lambda r: (r.ride_date, r.departure_time))
        return [clone_ride(r) for r in rides]

    # -- bookings ------------------------------------------------------------

    async def get_booking(self, booking_id):
        booking = self.bookings.get(booking_id)
        return clone_booking(booking) if booking else None

    async def add_booking(self, booking):
        for other in self.bookings.values():
            if (
                other.ride_id == booking.ride_id
                and other.passenger_id == booking.passenger_id
                and other.status in ACTIVE_STATUSES
            ):
                raise DuplicatePassenger("You already have a booking for this ride")
        booking.version = booking.version or 1
        booking.created_at = booking.created_at or self._stamp()
        self.bookings[booking.id] = clone_booking(booking)
        return booking

    async def save_booking(self, booking):
        stored = self.bookings.get(booking.id)
        if stored is None or stored.version != booking.version:
            return False
        booking.version += 1
        self.bookings[booking.id] = clone_booking(booking)
        self.booking_saves += 1
        return True

    async def list_ride_bookings(self, ride_id, statuses=None):
        bookings = [
            b for b in self.bookings.values()
            if b.ride_id == ride_id and (not statuses or b.status in statuses)
        ]
        bookings.sort(key=lambda b: b.created_at)
        return [clone_booking(b) for b in bookings]

    async def list_passenger_bookings(self, passenger_id):
        bookings = [b for b in self.bookings.values() if b.passenger_id == passenger_id]
        bookings.sort(key=lambda b: b.created_at, reverse=True)
        return [clone_booking(b) for b in bookings]


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1


def make_ride(
    driver_id: str = "driver-1",
    total_seats: int = 3,
    available_seats: int | None = None,
    price_per_seat: str = "100.00",
    departure: datetime | None = None,
    status: str = "active",
    origin: str = "Koramangala, Bengaluru",
    destination: str = "Electronic City, Bengaluru",
    vehicle_type: str = "sedan",
) -> Ride:
    departure = departure or NOW + timedelta(hours=48)
    return Ride(
        id=str(uuid.uuid4()),
        driver_id=driver_id,
        origin_address=origin,
        destination_address=destination,
        ride_date=departure.date(),
        departure_time=departure.timetz().replace(tzinfo=None),
        total_seats=total_seats,
        available_seats=total_seats if available_seats is None else available_seats,
        price_per_seat=Decimal(price_per_seat),
        vehicle_type=vehicle_type,
        vehicle_number="KA01AB1234",
        amenities=[],
        status=status,
        version=1,
        passengers=[],
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def ride_factory():
    return make_ride
