import uuid
from datetime import date, datetime, time
from decimal import Decimal
from sqlalchemy import (
    JSON, CheckConstraint, Date, DateTime, Float, ForeignKey, Integer, Numeric, String, Text, Time, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base


class Ride(Base):
    __tablename__ = "rides"
    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="ck_rides_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_rides_available_le_total"),
        CheckConstraint("total_seats BETWEEN 1 AND 10", name="ck_rides_total_seats_range"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    driver_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    origin_address: Mapped[str] = mapped_column(String(255), nullable=False)
    origin_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    origin_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    origin_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    origin_landmark: Mapped[str | None] = mapped_column(String(255), nullable=True)

    destination_address: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    destination_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    destination_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    destination_landmark: Mapped[str | None] = mapped_column(String(255), nullable=True)

    ride_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    departure_time: Mapped[time] = mapped_column(Time, nullable=False)

    # total_seats is the configured capacity, available_seats the remaining counter
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_seat: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    vehicle_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    vehicle_number: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    amenities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # active | full | in-progress | completed | cancelled | expired
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    passengers: Mapped[list["RidePassenger"]] = relationship(
        "RidePassenger",
        order_by="RidePassenger.booked_at",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    # UPDATE rides ... WHERE id = :id AND version = :expected
    __mapper_args__ = {"version_id_col": version}


class RidePassenger(Base):
    """Roster entry: a read cache of the owning booking's seats and pickup point."""

    __tablename__ = "ride_passengers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ride_id: Mapped[str] = mapped_column(String, ForeignKey("rides.id"), nullable=False, index=True)
    passenger_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    booking_id: Mapped[str] = mapped_column(String, ForeignKey("bookings.id"), nullable=False)

    seats: Mapped[int] = mapped_column(Integer, nullable=False)
    pickup_address: Mapped[str] = mapped_column(String(255), nullable=False)
    pickup_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_lng: Mapped[float | None] = mapped_column(Float, nullable=True)

    # confirmed | pending | cancelled | no-show
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="confirmed")
    booked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
