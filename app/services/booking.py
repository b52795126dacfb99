"""
Booking workflow across the two aggregates (ride inventory, booking ledger).

Book:
  1. load ride, refresh its derived status, check reserve preconditions
  2. insert the booking as `pending` (duplicate active bookings rejected here)
  3. reserve seats on the ride under its version token, retrying lost races
  4. confirm the booking (auto-confirm, no driver approval step)
  Compensation: a failure in 3 marks the booking `rejected`; a failure in 4
  releases the reserved seats, then marks the booking `rejected`.

Cancel booking:
  1. ledger cancel, persisted under the booking's version token (retrying lost races)
  2. release the roster entry (retrying lost races)
  3. refund through the PSP
  Compensation: a failure in 2 restores the booking's previous status.

Cancel ride: close the ride (roster cancelled, seats restored), then cancel
every pending/confirmed booking on it with the standard refund policy. Bookings
that cannot be cancelled surface as a conflict; calling again on the cancelled
ride finishes the sweep.

Realtime notifications are sent only after the data is committed and can
never fail a workflow.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from app.config import get_settings
from app.errors import (
    ConcurrencyConflict, Forbidden, NotFound, PassengerNotFound, ValidationError,
)
from app.models.booking import Booking
from app.models.ride import Ride
from app.schemas.schemas import (
    ActorEnum, BookingStatusEnum, PaymentMethodEnum, PaymentStatusEnum, PickupPoint,
    RideCreateRequest, RideStatusEnum,
)
from app.services import inventory, ledger
from app.services.geocoding import geocode
from app.services.notifications import notify, ride_room, user_room
from app.services.payment import refund as refund_payment

logger = logging.getLogger(__name__)
settings = get_settings()


def _utcnow(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


async def load_ride(store, ride_id: str) -> Ride:
    ride = await store.get_ride(ride_id)
    if ride is None:
        raise NotFound("Ride not found")
    return ride


async def load_booking(store, booking_id: str) -> Booking:
    booking = await store.get_booking(booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    return booking


async def mutate_ride(store, ride_id: str, mutate: Callable[[Ride], object]) -> Ride:
    """
    Load, mutate and save a ride under its version token.

    A lost race reloads the ride and re-runs `mutate` (which re-validates
    against the fresh state).  Domain errors raised by `mutate` propagate
    immediately.
    """
    attempts = settings.optimistic_max_retries
    for attempt in range(1, attempts + 1):
        ride = await load_ride(store, ride_id)
        mutate(ride)
        if await store.save_ride(ride):
            return ride
        logger.warning("Version conflict on ride=%s (attempt %d/%d)", ride_id, attempt, attempts)
    raise ConcurrencyConflict(f"Ride {ride_id} is being updated concurrently, please retry")


async def mutate_booking(
    store,
    booking_id: str,
    mutate: Callable[..., object],
    with_ride: bool = False,
) -> tuple[Booking, object]:
    """
    Booking counterpart of `mutate_ride`.  Returns the saved booking and
    whatever `mutate` returned.

    with_ride=True also reloads the booking's ride on every attempt and passes
    it as a second argument.  A lost race rolls the session back, which expires
    any ride loaded before the loop.
    """
    attempts = settings.optimistic_max_retries
    for attempt in range(1, attempts + 1):
        booking = await load_booking(store, booking_id)
        if with_ride:
            result = mutate(booking, await load_ride(store, booking.ride_id))
        else:
            result = mutate(booking)
        if await store.save_booking(booking):
            return booking, result
        logger.warning("Version conflict on booking=%s (attempt %d/%d)", booking_id, attempt, attempts)
    raise ConcurrencyConflict(f"Booking {booking_id} is being updated concurrently, please retry")


async def _complete_ride_bookings(store, ride_id: str, now: datetime) -> list[Booking]:
    bookings = await store.list_ride_bookings(ride_id, {BookingStatusEnum.confirmed.value})
    completed = []
    for booking in ledger.complete_bookings(bookings, now):
        if await store.save_booking(booking):
            completed.append(booking)
        else:
            logger.warning("Booking %s changed while completing ride %s", booking.id, ride_id)
    return completed


async def sync_ride_status(store, ride: Ride, now: datetime | None = None) -> Ride:
    """
    Persist the derived status if it drifted from the stored one (e.g. the
    departure time passed).  Called on every read path that exposes status.
    """
    now = _utcnow(now)
    if inventory.recompute_status(ride, now) == ride.status:
        return ride

    ride = await mutate_ride(store, ride.id, lambda r: inventory.refresh_status(r, now))
    logger.info("Ride %s status derived as %s", ride.id, ride.status)
    if ride.status == RideStatusEnum.completed.value:
        await _complete_ride_bookings(store, ride.id, now)
    return ride


async def get_ride(store, ride_id: str, now: datetime | None = None) -> Ride:
    ride = await load_ride(store, ride_id)
    return await sync_ride_status(store, ride, now)


# ---------------------------------------------------------------------------
# Rides
# ---------------------------------------------------------------------------

async def create_ride(store, driver_id: str, details: RideCreateRequest, now: datetime | None = None) -> Ride:
    now = _utcnow(now)
    departure = datetime.combine(details.ride_date, details.departure_time, tzinfo=timezone.utc)
    if departure <= now:
        raise ValidationError("Departure must be in the future")

    origin_lat, origin_lng = details.origin.lat, details.origin.lng
    if origin_lat is None or origin_lng is None:
        origin_lat, origin_lng = await geocode(details.origin.address) or (None, None)

    dest_lat, dest_lng = details.destination.lat, details.destination.lng
    if dest_lat is None or dest_lng is None:
        dest_lat, dest_lng = await geocode(details.destination.address) or (None, None)

    ride = Ride(
        id=str(uuid.uuid4()),
        driver_id=driver_id,
        origin_address=details.origin.address,
        origin_lat=origin_lat,
        origin_lng=origin_lng,
        origin_city=details.origin.city,
        origin_landmark=details.origin.landmark,
        destination_address=details.destination.address,
        destination_lat=dest_lat,
        destination_lng=dest_lng,
        destination_city=details.destination.city,
        destination_landmark=details.destination.landmark,
        ride_date=details.ride_date,
        departure_time=details.departure_time,
        total_seats=details.total_seats,
        available_seats=details.total_seats,
        price_per_seat=details.price_per_seat,
        vehicle_type=details.vehicle_type.strip(),
        vehicle_number=details.vehicle_number,
        amenities=list(details.amenities),
        notes=details.notes,
        status=RideStatusEnum.active.value,
        passengers=[],
    )
    await store.add_ride(ride)
    logger.info(
        "Ride created id=%s driver=%s %s -> %s seats=%d",
        ride.id, driver_id, ride.origin_address, ride.destination_address, ride.total_seats,
    )
    return ride


async def cancel_ride(
    store,
    ride_id: str,
    driver_id: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> Ride:
    now = _utcnow(now)
    ride = await load_ride(store, ride_id)
    if ride.driver_id != driver_id:
        raise Forbidden("Not authorized to cancel this ride")

    def _close(r: Ride) -> None:
        inventory.refresh_status(r, now)
        inventory.close(r, now, reason)

    leftover = ride.status == RideStatusEnum.cancelled.value and bool(
        await store.list_ride_bookings(ride_id, ledger.ACTIVE_STATUSES)
    )
    if leftover:
        # an earlier cancellation closed the ride but could not cancel every booking
        logger.info("Ride %s already cancelled, sweeping remaining bookings", ride_id)
    else:
        await mutate_ride(store, ride_id, _close)

    active = [
        (b.id, b.passenger_id)
        for b in await store.list_ride_bookings(ride_id, ledger.ACTIVE_STATUSES)
    ]
    stuck = []
    for booking_id, _ in active:
        try:
            await _cancel_for_closed_ride(store, booking_id, reason, now)
        except ConcurrencyConflict:
            logger.error("Could not cancel booking %s for cancelled ride %s", booking_id, ride_id)
            stuck.append(booking_id)

    logger.info(
        "Ride %s cancelled by driver, %d booking(s) cancelled", ride_id, len(active) - len(stuck)
    )
    await notify(
        "ride-cancelled",
        {"ride_id": ride_id, "reason": reason},
        ride_room(ride_id),
        *[user_room(passenger_id) for _, passenger_id in active],
    )
    if stuck:
        raise ConcurrencyConflict(
            f"Ride {ride_id} is cancelled but {len(stuck)} booking(s) are still active, please retry"
        )
    return await load_ride(store, ride_id)


async def _cancel_for_closed_ride(store, booking_id: str, reason: str | None, now: datetime) -> None:
    def _cancel(b: Booking, ride: Ride) -> Decimal | None:
        if b.status not in ledger.ACTIVE_STATUSES:
            return None
        return ledger.cancel_booking(b, ride, ActorEnum.driver.value, now, reason=reason, enforce_window=False)

    booking, amount = await mutate_booking(store, booking_id, _cancel, with_ride=True)
    if amount is not None:
        await _apply_refund(store, booking_id, booking.payment_method, amount)


async def complete_ride(store, ride_id: str, driver_id: str, now: datetime | None = None) -> Ride:
    now = _utcnow(now)
    ride = await load_ride(store, ride_id)
    if ride.driver_id != driver_id:
        raise Forbidden("Not authorized to update this ride")

    def _complete(r: Ride) -> None:
        inventory.refresh_status(r, now)
        if r.status != RideStatusEnum.completed.value:
            inventory.mark_completed(r, now)

    ride = await mutate_ride(store, ride_id, _complete)
    completed = await _complete_ride_bookings(store, ride_id, now)
    logger.info("Ride %s completed, %d booking(s) completed", ride_id, len(completed))
    await notify("ride-completed", {"ride_id": ride_id}, ride_room(ride_id))
    return ride


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

async def book_ride(
    store,
    passenger_id: str,
    ride_id: str,
    seats: int,
    pickup_point: PickupPoint | None,
    payment_method: str = PaymentMethodEnum.cash.value,
    special_requests: str | None = None,
    now: datetime | None = None,
) -> Booking:
    now = _utcnow(now)
    ride = await get_ride(store, ride_id, now)
    if ride.driver_id == passenger_id:
        raise Forbidden("Cannot book your own ride")
    inventory.check_reservable(ride, passenger_id, seats)

    booking = ledger.create_booking(
        ride, passenger_id, seats, pickup_point,
        payment_method=payment_method,
        special_requests=special_requests,
        status=BookingStatusEnum.pending.value,
    )
    booking_id = booking.id
    await store.add_booking(booking)

    try:
        ride = await mutate_ride(
            store,
            ride_id,
            lambda r: inventory.reserve(r, passenger_id, seats, pickup_point, booking_id, now),
        )
    except Exception:
        await _reject_booking(store, booking_id)
        raise

    try:
        booking, _ = await mutate_booking(store, booking_id, ledger.confirm_booking)
    except Exception:
        await _release_seats(store, ride_id, passenger_id, now)
        await _reject_booking(store, booking_id)
        raise

    logger.info(
        "Ride %s booked by %s: booking=%s seats=%d total=%s remaining=%d",
        ride_id, passenger_id, booking_id, seats, booking.total_price, ride.available_seats,
    )
    await notify(
        "ride-booked",
        {
            "ride_id": ride_id,
            "booking_id": booking_id,
            "passenger_id": passenger_id,
            "seats": seats,
            "available_seats": ride.available_seats,
            "from": ride.origin_address,
            "to": ride.destination_address,
        },
        user_room(ride.driver_id),
        user_room(passenger_id),
    )
    return booking


async def _reject_booking(store, booking_id: str) -> None:
    def _reject(b: Booking) -> None:
        if b.status == BookingStatusEnum.pending.value:
            ledger.reject_booking(b)

    try:
        await mutate_booking(store, booking_id, _reject)
    except Exception:
        logger.exception("Compensation failed: booking %s left unrejected", booking_id)


async def _release_seats(store, ride_id: str, passenger_id: str, now: datetime) -> None:
    try:
        await mutate_ride(store, ride_id, lambda r: inventory.release(r, passenger_id, now))
    except PassengerNotFound:
        pass
    except Exception:
        logger.exception("Compensation failed: seats of %s on ride %s not released", passenger_id, ride_id)


async def cancel_booking(
    store,
    booking_id: str,
    actor_id: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> tuple[Booking, Decimal]:
    now = _utcnow(now)
    booking = await load_booking(store, booking_id)
    ride = await load_ride(store, booking.ride_id)
    ride_id, driver_id = ride.id, ride.driver_id
    passenger_id, payment_method = booking.passenger_id, booking.payment_method

    if actor_id == passenger_id:
        actor = ActorEnum.passenger.value
    elif actor_id == driver_id:
        actor = ActorEnum.driver.value
    else:
        raise Forbidden("Not authorized to cancel this booking")

    previous = {}

    def _cancel(b: Booking, r: Ride) -> Decimal:
        previous["status"] = b.status
        return ledger.cancel_booking(b, r, actor, now, reason=reason)

    _, amount = await mutate_booking(store, booking_id, _cancel, with_ride=True)
    previous_status = previous["status"]

    try:
        await mutate_ride(store, ride_id, lambda r: inventory.release(r, passenger_id, now))
    except PassengerNotFound:
        # a pending booking whose reservation never landed holds no seats
        logger.warning("Booking %s held no roster entry on ride %s", booking_id, ride_id)
    except Exception:
        await _restore_booking(store, booking_id, previous_status)
        raise

    await _apply_refund(store, booking_id, payment_method, amount)
    booking = await load_booking(store, booking_id)
    ride = await load_ride(store, ride_id)

    logger.info(
        "Booking %s cancelled by %s: refund=%s seats_released=%d",
        booking_id, actor, amount, booking.seats,
    )
    await notify(
        "booking-cancelled",
        {
            "ride_id": ride_id,
            "booking_id": booking_id,
            "cancelled_by": actor,
            "available_seats": ride.available_seats,
        },
        user_room(driver_id),
        user_room(passenger_id),
    )
    return booking, amount


async def _restore_booking(store, booking_id: str, previous_status: str) -> None:
    try:
        await mutate_booking(store, booking_id, lambda b: ledger.undo_cancel(b, previous_status))
    except Exception:
        logger.exception("Compensation failed: booking %s left cancelled", booking_id)


async def _apply_refund(store, booking_id: str, payment_method: str, amount: Decimal) -> None:
    if amount <= 0:
        return

    result = await refund_payment(
        booking_id, amount, payment_method, idempotency_key=f"refund-{booking_id}"
    )
    if result["status"] != "SUCCESS":
        logger.error("Refund of %s for booking %s not applied", amount, booking_id)
        return

    def _stamp(b: Booking) -> None:
        b.payment_status = PaymentStatusEnum.refunded.value
        b.transaction_id = result["psp_ref"]

    try:
        await mutate_booking(store, booking_id, _stamp)
    except ConcurrencyConflict:
        logger.error("Refund %s applied but booking %s not updated", result["psp_ref"], booking_id)


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------

async def rate_booking(
    store,
    booking_id: str,
    rater_id: str,
    rated_user_type: str,
    rating: int,
    comment: str | None = None,
    now: datetime | None = None,
) -> Booking:
    now = _utcnow(now)
    ride_id = (await load_booking(store, booking_id)).ride_id
    # syncing the ride may complete the booking, so the booking is loaded afresh below
    await get_ride(store, ride_id, now)

    booking, _ = await mutate_booking(
        store,
        booking_id,
        lambda b, r: ledger.rate_booking(b, r, rater_id, rated_user_type, rating, comment, now),
        with_ride=True,
    )
    logger.info("Booking %s rated: %s -> %d", booking_id, rated_user_type, rating)
    return booking
