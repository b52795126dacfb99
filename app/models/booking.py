import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, Numeric, String, func, text,
)
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # one pending/confirmed booking per passenger per ride
        Index(
            "uq_bookings_active_passenger",
            "ride_id",
            "passenger_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("idx_bookings_ride_status", "ride_id", "status"),
        CheckConstraint("seats BETWEEN 1 AND 10", name="ck_bookings_seats_range"),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ride_id: Mapped[str] = mapped_column(String, ForeignKey("rides.id"), nullable=False)
    passenger_id: Mapped[str] = mapped_column(String, nullable=False, index=True)

    seats: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    pickup_address: Mapped[str] = mapped_column(String(255), nullable=False)
    pickup_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    special_requests: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # pending | confirmed | cancelled | completed | rejected
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    # pending | paid | failed | refunded
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    # cash | card | wallet | upi
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="cash")
    transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # passenger -> driver
    driver_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    driver_rating_comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    driver_rated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # driver -> passenger
    passenger_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passenger_rating_comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    passenger_rated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    cancellation_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # passenger | driver | system
    cancelled_by: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"version_id_col": version}
