"""Initial schema — rides, bookings, ride_passengers"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rides",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("driver_id", sa.String, nullable=False),
        sa.Column("origin_address", sa.String(255), nullable=False),
        sa.Column("origin_lat", sa.Float, nullable=True),
        sa.Column("origin_lng", sa.Float, nullable=True),
        sa.Column("origin_city", sa.String(100), nullable=True),
        sa.Column("origin_landmark", sa.String(255), nullable=True),
        sa.Column("destination_address", sa.String(255), nullable=False),
        sa.Column("destination_lat", sa.Float, nullable=True),
        sa.Column("destination_lng", sa.Float, nullable=True),
        sa.Column("destination_city", sa.String(100), nullable=True),
        sa.Column("destination_landmark", sa.String(255), nullable=True),
        sa.Column("ride_date", sa.Date, nullable=False),
        sa.Column("departure_time", sa.Time, nullable=False),
        sa.Column("total_seats", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column("price_per_seat", sa.Numeric(10, 2), nullable=False),
        sa.Column("vehicle_type", sa.String(50), nullable=False),
        sa.Column("vehicle_number", sa.String(20), nullable=False, server_default=""),
        sa.Column("amenities", sa.JSON, nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("cancellation_reason", sa.String(200), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("available_seats >= 0", name="ck_rides_available_non_negative"),
        sa.CheckConstraint("available_seats <= total_seats", name="ck_rides_available_le_total"),
        sa.CheckConstraint("total_seats BETWEEN 1 AND 10", name="ck_rides_total_seats_range"),
    )
    op.create_index("ix_rides_driver_id", "rides", ["driver_id"])
    op.create_index("ix_rides_ride_date", "rides", ["ride_date"])
    op.create_index("ix_rides_vehicle_type", "rides", ["vehicle_type"])
    op.create_index("ix_rides_status", "rides", ["status"])
    op.create_index("ix_rides_created_at", "rides", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("ride_id", sa.String, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("passenger_id", sa.String, nullable=False),
        sa.Column("seats", sa.Integer, nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("special_requests", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cash"),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("driver_rating", sa.Integer, nullable=True),
        sa.Column("driver_rating_comment", sa.String(500), nullable=True),
        sa.Column("driver_rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("passenger_rating", sa.Integer, nullable=True),
        sa.Column("passenger_rating_comment", sa.String(500), nullable=True),
        sa.Column("passenger_rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(200), nullable=True),
        sa.Column("cancelled_by", sa.String(20), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("seats BETWEEN 1 AND 10", name="ck_bookings_seats_range"),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
    )
    op.create_index("ix_bookings_passenger_id", "bookings", ["passenger_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_ride_status", "bookings", ["ride_id", "status"])
    # one pending/confirmed booking per passenger per ride
    op.create_index(
        "uq_bookings_active_passenger",
        "bookings",
        ["ride_id", "passenger_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )

    op.create_table(
        "ride_passengers",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("ride_id", sa.String, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("passenger_id", sa.String, nullable=False),
        sa.Column("booking_id", sa.String, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("seats", sa.Integer, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_ride_passengers_ride_id", "ride_passengers", ["ride_id"])
    op.create_index("ix_ride_passengers_passenger_id", "ride_passengers", ["passenger_id"])


def downgrade() -> None:
    op.drop_table("ride_passengers")
    op.drop_index("uq_bookings_active_passenger", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("rides")
