"""
Booking ledger: price, lifecycle, cancellation/refund policy and ratings of a
single reservation.
"""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from app.config import get_settings
from app.errors import (
    AlreadyRated, CancellationWindowClosed, Forbidden, InvalidState, NotEligible, OutOfRange,
    ValidationError,
)
from app.models.booking import Booking
from app.models.ride import Ride
from app.schemas.schemas import (
    ActorEnum, BookingStatusEnum, PaymentMethodEnum, PickupPoint, RatedUserTypeEnum,
    RideStatusEnum,
)
from app.services.inventory import hours_until_departure

settings = get_settings()

ACTIVE_STATUSES = {BookingStatusEnum.pending.value, BookingStatusEnum.confirmed.value}

BOOKING_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "rejected", "cancelled"},
    "confirmed": {"cancelled", "completed"},
    "cancelled": set(),
    "completed": set(),
    "rejected": set(),
}


def can_transition(current: str, next_status: str) -> bool:
    return next_status in BOOKING_TRANSITIONS.get(current, set())


def _transition(booking: Booking, next_status: str) -> None:
    if not can_transition(booking.status, next_status):
        raise InvalidState(f"Booking is {booking.status}, cannot move to {next_status}")
    booking.status = next_status


def _money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def create_booking(
    ride: Ride,
    passenger_id: str,
    seats: int,
    pickup_point: PickupPoint | None,
    payment_method: str = PaymentMethodEnum.cash.value,
    special_requests: str | None = None,
    status: str = BookingStatusEnum.confirmed.value,
) -> Booking:
    """
    Build a booking for `seats` seats on `ride`.

    Bookings are auto-confirmed; the booking workflow passes status="pending"
    only while the seat reservation is in flight.
    """
    if seats < 1 or seats > settings.max_seats_per_ride:
        raise ValidationError(f"Seats must be between 1 and {settings.max_seats_per_ride}")
    if pickup_point is None or not pickup_point.address.strip():
        raise ValidationError("Please provide pickup point")

    return Booking(
        id=str(uuid.uuid4()),
        ride_id=ride.id,
        passenger_id=passenger_id,
        seats=seats,
        total_price=_money(Decimal(seats) * Decimal(ride.price_per_seat)),
        pickup_address=pickup_point.address.strip(),
        pickup_lat=pickup_point.lat,
        pickup_lng=pickup_point.lng,
        special_requests=special_requests,
        status=status,
        payment_status="pending",
        payment_method=payment_method,
    )


def confirm_booking(booking: Booking) -> Booking:
    _transition(booking, BookingStatusEnum.confirmed.value)
    return booking


def reject_booking(booking: Booking) -> Booking:
    _transition(booking, BookingStatusEnum.rejected.value)
    return booking


def refund_amount(total_price: Decimal, hours_until: float) -> Decimal:
    """
    Refund policy by hours left before departure:
      > 24h        -> 100%
      > 2h, <= 24h -> 50%
      <= 2h        -> 0
    """
    total = Decimal(total_price)
    if hours_until > settings.full_refund_hours:
        return _money(total)
    if hours_until > settings.partial_refund_hours:
        return _money(total * Decimal(str(settings.partial_refund_ratio)))
    return Decimal("0.00")


def cancel_booking(
    booking: Booking,
    ride: Ride,
    actor: str,
    now: datetime,
    reason: str | None = None,
    enforce_window: bool = True,
) -> Decimal:
    """
    Cancel the booking and return the refund it is owed.  No money moves here.

    enforce_window=False is used for driver-initiated ride cancellation, where
    the passenger-side cut-off does not apply.
    """
    if booking.status not in ACTIVE_STATUSES:
        raise InvalidState(f"Booking is already {booking.status}")

    hours_until = hours_until_departure(ride, now)
    if enforce_window and hours_until <= settings.cancellation_cutoff_hours:
        raise CancellationWindowClosed(
            f"Bookings can only be cancelled up to {settings.cancellation_cutoff_hours:g} hour(s) "
            "before departure"
        )

    _transition(booking, BookingStatusEnum.cancelled.value)
    booking.cancelled_by = ActorEnum(actor).value
    booking.cancelled_at = now
    booking.cancellation_reason = reason

    refund = refund_amount(booking.total_price, hours_until)
    booking.refund_amount = refund
    return refund


def undo_cancel(booking: Booking, previous_status: str) -> Booking:
    """Compensation for a cancellation whose seat release could not be applied."""
    booking.status = previous_status
    booking.cancelled_by = None
    booking.cancelled_at = None
    booking.cancellation_reason = None
    booking.refund_amount = None
    return booking


def rate_booking(
    booking: Booking,
    ride: Ride,
    rater_id: str,
    rated_user_type: str,
    rating: int,
    comment: str | None,
    now: datetime,
) -> Booking:
    if ride.status != RideStatusEnum.completed.value:
        raise NotEligible("Can only rate completed rides")

    rated = RatedUserTypeEnum(rated_user_type)
    if rated is RatedUserTypeEnum.driver:
        if booking.passenger_id != rater_id:
            raise Forbidden("Not authorized to rate this ride as passenger")
        if booking.driver_rating is not None:
            raise AlreadyRated("You have already rated this driver")
    else:
        if ride.driver_id != rater_id:
            raise Forbidden("Not authorized to rate this passenger as driver")
        if booking.passenger_rating is not None:
            raise AlreadyRated("You have already rated this passenger")

    if not isinstance(rating, int) or rating < 1 or rating > 5:
        raise OutOfRange("Rating must be between 1 and 5")

    if rated is RatedUserTypeEnum.driver:
        booking.driver_rating = rating
        booking.driver_rating_comment = comment
        booking.driver_rated_at = now
    else:
        booking.passenger_rating = rating
        booking.passenger_rating_comment = comment
        booking.passenger_rated_at = now
    return booking


def complete_bookings(bookings: list[Booking], now: datetime) -> list[Booking]:
    """Mark every confirmed booking of a completed ride as completed."""
    completed = []
    for booking in bookings:
        if booking.status == BookingStatusEnum.confirmed.value:
            booking.status = BookingStatusEnum.completed.value
            booking.completed_at = now
            completed.append(booking)
    return completed
