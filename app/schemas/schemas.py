from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class RideStatusEnum(str, Enum):
    active = "active"
    full = "full"
    in_progress = "in-progress"
    completed = "completed"
    cancelled = "cancelled"
    expired = "expired"


class RosterStatusEnum(str, Enum):
    confirmed = "confirmed"
    pending = "pending"
    cancelled = "cancelled"
    no_show = "no-show"


class BookingStatusEnum(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    rejected = "rejected"


class PaymentStatusEnum(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"


class PaymentMethodEnum(str, Enum):
    cash = "cash"
    card = "card"
    wallet = "wallet"
    upi = "upi"


class ActorEnum(str, Enum):
    passenger = "passenger"
    driver = "driver"
    system = "system"


class RatedUserTypeEnum(str, Enum):
    driver = "driver"
    passenger = "passenger"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

class PlaceIn(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    city: Optional[str] = Field(default=None, max_length=100)
    landmark: Optional[str] = Field(default=None, max_length=255)

    @field_validator("address")
    @classmethod
    def strip_address(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("address must not be blank")
        return v


class PickupPoint(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)


# ---------------------------------------------------------------------------
# Ride schemas
# ---------------------------------------------------------------------------

class RideCreateRequest(BaseModel):
    origin: PlaceIn
    destination: PlaceIn
    ride_date: date
    departure_time: time
    total_seats: int = Field(..., ge=1, le=10)
    price_per_seat: Decimal = Field(..., ge=1, le=10000)
    vehicle_type: str = Field(..., min_length=1, max_length=50)
    vehicle_number: str = Field(default="", max_length=20)
    amenities: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("vehicle_number")
    @classmethod
    def upper_vehicle_number(cls, v: str) -> str:
        return v.strip().upper()


class PlaceOut(BaseModel):
    address: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    city: Optional[str] = None
    landmark: Optional[str] = None


class RosterEntryResponse(BaseModel):
    id: str
    passenger_id: str
    booking_id: str
    seats: int
    pickup_address: str
    status: RosterStatusEnum
    booked_at: datetime

    model_config = {"from_attributes": True}


class RideResponse(BaseModel):
    id: str
    driver_id: str
    origin: PlaceOut
    destination: PlaceOut
    ride_date: date
    departure_time: time
    total_seats: int
    available_seats: int
    price_per_seat: float
    vehicle_type: str
    vehicle_number: str
    amenities: list[str] = []
    notes: Optional[str] = None
    status: RideStatusEnum
    completed_at: Optional[datetime] = None
    passengers: list[RosterEntryResponse] = []
    match_score: Optional[int] = None

    @classmethod
    def from_ride(cls, ride, match_score: Optional[int] = None) -> "RideResponse":
        return cls(
            id=ride.id,
            driver_id=ride.driver_id,
            origin=PlaceOut(
                address=ride.origin_address,
                lat=ride.origin_lat,
                lng=ride.origin_lng,
                city=ride.origin_city,
                landmark=ride.origin_landmark,
            ),
            destination=PlaceOut(
                address=ride.destination_address,
                lat=ride.destination_lat,
                lng=ride.destination_lng,
                city=ride.destination_city,
                landmark=ride.destination_landmark,
            ),
            ride_date=ride.ride_date,
            departure_time=ride.departure_time,
            total_seats=ride.total_seats,
            available_seats=ride.available_seats,
            price_per_seat=float(ride.price_per_seat),
            vehicle_type=ride.vehicle_type,
            vehicle_number=ride.vehicle_number or "",
            amenities=list(ride.amenities or []),
            notes=ride.notes,
            status=ride.status,
            completed_at=ride.completed_at,
            passengers=[RosterEntryResponse.model_validate(p) for p in ride.passengers],
            match_score=match_score,
        )


class SeatAvailabilityResponse(BaseModel):
    ride_id: str
    total_seats: int
    booked_seats: int
    available_seats: int
    status: RideStatusEnum


class RideCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# Booking schemas
# ---------------------------------------------------------------------------

class BookingCreateRequest(BaseModel):
    seats: int = Field(..., ge=1, le=10)
    pickup_point: PickupPoint
    payment_method: PaymentMethodEnum = PaymentMethodEnum.cash
    special_requests: Optional[str] = Field(default=None, max_length=200)


class RatingOut(BaseModel):
    rating: int
    comment: Optional[str] = None
    rated_at: Optional[datetime] = None


class BookingResponse(BaseModel):
    id: str
    ride_id: str
    passenger_id: str
    seats: int
    total_price: float
    pickup_address: str
    status: BookingStatusEnum
    payment_status: PaymentStatusEnum
    payment_method: PaymentMethodEnum
    transaction_id: Optional[str] = None
    refund_amount: Optional[float] = None
    driver_rating: Optional[RatingOut] = None
    passenger_rating: Optional[RatingOut] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[ActorEnum] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        driver_rating = None
        if booking.driver_rating is not None:
            driver_rating = RatingOut(
                rating=booking.driver_rating,
                comment=booking.driver_rating_comment,
                rated_at=booking.driver_rated_at,
            )
        passenger_rating = None
        if booking.passenger_rating is not None:
            passenger_rating = RatingOut(
                rating=booking.passenger_rating,
                comment=booking.passenger_rating_comment,
                rated_at=booking.passenger_rated_at,
            )
        return cls(
            id=booking.id,
            ride_id=booking.ride_id,
            passenger_id=booking.passenger_id,
            seats=booking.seats,
            total_price=float(booking.total_price),
            pickup_address=booking.pickup_address,
            status=booking.status,
            payment_status=booking.payment_status,
            payment_method=booking.payment_method,
            transaction_id=booking.transaction_id,
            refund_amount=float(booking.refund_amount) if booking.refund_amount is not None else None,
            driver_rating=driver_rating,
            passenger_rating=passenger_rating,
            cancellation_reason=booking.cancellation_reason,
            cancelled_by=booking.cancelled_by,
            cancelled_at=booking.cancelled_at,
        )


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)


class BookingCancelResponse(BaseModel):
    booking: BookingResponse
    refund_amount: float


# ---------------------------------------------------------------------------
# Rating schemas
# ---------------------------------------------------------------------------

class RatingRequest(BaseModel):
    rated_user_type: RatedUserTypeEnum
    # range is enforced by the ledger so callers get a stable error kind
    rating: int
    comment: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Tracking schemas
# ---------------------------------------------------------------------------

class LocationUpdateRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    timestamp: Optional[datetime] = None


class LocationResponse(BaseModel):
    ride_id: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    updated_at: Optional[datetime] = None
    status: RideStatusEnum


class SosRequest(BaseModel):
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    message: Optional[str] = Field(default=None, max_length=500)
