"""
Data-access layer for rides and bookings.

Every ride/booking write goes through save_ride()/save_booking(), which flush
under the row's version token (SQLAlchemy version_id_col), i.e.

    UPDATE rides SET ... , version = :new WHERE id = :id AND version = :expected

A lost race surfaces as False, never as a silent overwrite.  After a failed
commit the session is rolled back, so callers must reload before retrying.
"""
import logging
from datetime import date
from decimal import Decimal

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.database import get_db
from app.errors import DuplicatePassenger
from app.models.booking import Booking
from app.models.ride import Ride

logger = logging.getLogger(__name__)


class RideStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # -- rides ---------------------------------------------------------------

    async def get_ride(self, ride_id: str) -> Ride | None:
        result = await self.db.execute(
            select(Ride).where(Ride.id == ride_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_ride(self, ride: Ride) -> Ride:
        self.db.add(ride)
        await self.db.commit()
        return ride

    async def save_ride(self, ride: Ride) -> bool:
        self.db.add(ride)
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.info("Stale write on ride=%s", ride.id)
            return False
        return True

    async def list_driver_rides(self, driver_id: str) -> list[Ride]:
        result = await self.db.execute(
            select(Ride).where(Ride.driver_id == driver_id).order_by(Ride.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_rides(
        self,
        day: date,
        exclude_driver_id: str | None = None,
        max_price: Decimal | None = None,
        vehicle_type: str | None = None,
        min_seats: int = 1,
    ) -> list[Ride]:
        stmt = select(Ride).where(
            Ride.status == "active",
            Ride.ride_date == day,
            Ride.available_seats >= min_seats,
        )
        if exclude_driver_id:
            stmt = stmt.where(Ride.driver_id != exclude_driver_id)
        if max_price is not None:
            stmt = stmt.where(Ride.price_per_seat <= max_price)
        if vehicle_type:
            stmt = stmt.where(Ride.vehicle_type == vehicle_type)
        stmt = stmt.order_by(Ride.ride_date, Ride.departure_time)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # -- bookings ------------------------------------------------------------

    async def get_booking(self, booking_id: str) -> Booking | None:
        result = await self.db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if "uq_bookings_active_passenger" in str(exc.orig):
                raise DuplicatePassenger("You already have a booking for this ride") from exc
            raise
        return booking

    async def save_booking(self, booking: Booking) -> bool:
        self.db.add(booking)
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.info("Stale write on booking=%s", booking.id)
            return False
        return True

    async def list_ride_bookings(self, ride_id: str, statuses: set[str] | None = None) -> list[Booking]:
        stmt = select(Booking).where(Booking.ride_id == ride_id)
        if statuses:
            stmt = stmt.where(Booking.status.in_(statuses))
        stmt = stmt.order_by(Booking.created_at).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_passenger_bookings(self, passenger_id: str) -> list[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.passenger_id == passenger_id)
            .order_by(Booking.created_at.desc())
        )
        return list(result.scalars().all())


async def get_store(db: AsyncSession = Depends(get_db)) -> RideStore:
    return RideStore(db)
