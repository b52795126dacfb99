"""
Ride inventory: seat capacity, passenger roster and derived ride status.

All functions operate on a loaded Ride in memory; persisting the change (with
the optimistic version check) is the caller's job.  Status is only ever
derived here, by recompute_status().
"""
import uuid
from datetime import datetime, timedelta, timezone

from app.config import get_settings
from app.errors import (
    CapacityExceeded, DuplicatePassenger, InvalidState, PassengerNotFound, ValidationError,
)
from app.models.ride import Ride, RidePassenger
from app.schemas.schemas import PickupPoint, RideStatusEnum, RosterStatusEnum

settings = get_settings()

# roster entries that hold seats
HOLDING_STATUSES = {RosterStatusEnum.confirmed.value, RosterStatusEnum.pending.value}

TERMINAL_STATUSES = {
    RideStatusEnum.completed.value,
    RideStatusEnum.cancelled.value,
    RideStatusEnum.expired.value,
}

RIDE_TRANSITIONS: dict[str, set[str]] = {
    "active": {"full", "in-progress", "completed", "cancelled", "expired"},
    "full": {"active", "in-progress", "completed", "cancelled", "expired"},
    "in-progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
    "expired": set(),
}


def can_transition(current: str, next_status: str) -> bool:
    return next_status in RIDE_TRANSITIONS.get(current, set())


def departure_at(ride: Ride) -> datetime:
    """Scheduled departure instant (UTC)."""
    return datetime.combine(ride.ride_date, ride.departure_time, tzinfo=timezone.utc)


def hours_until_departure(ride: Ride, now: datetime) -> float:
    return (departure_at(ride) - now) / timedelta(hours=1)


def booked_seats(ride: Ride) -> int:
    return sum(p.seats for p in ride.passengers if p.status in HOLDING_STATUSES)


def remaining_capacity(ride: Ride) -> int:
    return ride.total_seats - booked_seats(ride)


def active_entry(ride: Ride, passenger_id: str) -> RidePassenger | None:
    for entry in ride.passengers:
        if entry.passenger_id == passenger_id and entry.status in HOLDING_STATUSES:
            return entry
    return None


def recompute_status(ride: Ride, now: datetime) -> str:
    """
    Derive the status a ride should have right now.

    Pure and idempotent: feeding the result back in yields the same status.
      - active/full whose departure has passed -> completed
      - active with no remaining seats         -> full
      - full with seats freed up               -> active
      - anything else                          -> unchanged
    """
    status = ride.status
    if status in (RideStatusEnum.active.value, RideStatusEnum.full.value) and departure_at(ride) <= now:
        return RideStatusEnum.completed.value
    if status == RideStatusEnum.active.value and ride.available_seats <= 0:
        return RideStatusEnum.full.value
    if status == RideStatusEnum.full.value and ride.available_seats > 0:
        return RideStatusEnum.active.value
    return status


def refresh_status(ride: Ride, now: datetime) -> bool:
    """Apply recompute_status() to the ride. Returns True if the status changed."""
    new_status = recompute_status(ride, now)
    if new_status == ride.status:
        return False
    ride.status = new_status
    if new_status == RideStatusEnum.completed.value:
        ride.completed_at = now
    return True


def check_reservable(ride: Ride, passenger_id: str, seats: int) -> None:
    """Raise if reserve() would be rejected for this ride snapshot."""
    if ride.status != RideStatusEnum.active.value:
        raise InvalidState(f"Cannot book this ride. Ride is {ride.status}")
    if seats < 1 or seats > settings.max_seats_per_ride:
        raise ValidationError(f"Seats must be between 1 and {settings.max_seats_per_ride}")
    if active_entry(ride, passenger_id) is not None:
        raise DuplicatePassenger("You already have a booking for this ride")
    if seats > ride.available_seats:
        raise CapacityExceeded(
            f"Not enough seats available. Only {ride.available_seats} seat(s) left."
        )


def reserve(
    ride: Ride,
    passenger_id: str,
    seats: int,
    pickup_point: PickupPoint,
    booking_id: str,
    now: datetime,
) -> Ride:
    refresh_status(ride, now)
    check_reservable(ride, passenger_id, seats)

    ride.passengers.append(
        RidePassenger(
            id=str(uuid.uuid4()),
            ride_id=ride.id,
            passenger_id=passenger_id,
            booking_id=booking_id,
            seats=seats,
            pickup_address=pickup_point.address,
            pickup_lat=pickup_point.lat,
            pickup_lng=pickup_point.lng,
            status=RosterStatusEnum.confirmed.value,
            booked_at=now,
        )
    )
    ride.available_seats -= seats
    refresh_status(ride, now)
    return ride


def release(ride: Ride, passenger_id: str, now: datetime) -> Ride:
    entry = active_entry(ride, passenger_id)
    if entry is None:
        raise PassengerNotFound(f"Passenger {passenger_id} holds no seats on ride {ride.id}")

    entry.status = RosterStatusEnum.cancelled.value
    ride.available_seats += entry.seats
    refresh_status(ride, now)
    return ride


def close(ride: Ride, now: datetime, reason: str | None = None) -> Ride:
    """Driver cancellation: free every held seat and move the ride to cancelled."""
    if ride.status in TERMINAL_STATUSES:
        raise InvalidState(f"Ride is already {ride.status}")

    for entry in ride.passengers:
        if entry.status in HOLDING_STATUSES:
            entry.status = RosterStatusEnum.cancelled.value
    ride.available_seats = ride.total_seats
    ride.status = RideStatusEnum.cancelled.value
    ride.cancellation_reason = reason
    return ride


def mark_completed(ride: Ride, now: datetime) -> Ride:
    if not can_transition(ride.status, RideStatusEnum.completed.value):
        raise InvalidState(f"Cannot complete a ride that is {ride.status}")
    ride.status = RideStatusEnum.completed.value
    ride.completed_at = now
    return ride
