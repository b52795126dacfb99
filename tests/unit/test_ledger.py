"""
Unit tests for the booking ledger: pricing, cancellation/refund policy, ratings.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from app.errors import (
    AlreadyRated, CancellationWindowClosed, Forbidden, InvalidState, NotEligible, OutOfRange,
    ValidationError,
)
from app.schemas.schemas import PickupPoint
from app.services import ledger

PICKUP = PickupPoint(address="Silk Board junction")


def _booking(ride, passenger_id="p1", seats=2, **kwargs):
    booking = ledger.create_booking(ride, passenger_id, seats, PICKUP, **kwargs)
    booking.version = 1
    return booking


class TestCreateBooking:
    def test_total_price_is_seats_times_price(self, ride_factory):
        ride = ride_factory(price_per_seat="120.50")
        booking = _booking(ride, seats=3)

        assert booking.total_price == Decimal("361.50")
        assert booking.status == "confirmed"
        assert booking.payment_status == "pending"
        assert booking.payment_method == "cash"
        assert booking.pickup_address == "Silk Board junction"

    def test_pending_when_requested(self, ride_factory):
        booking = _booking(ride_factory(), status="pending")
        assert booking.status == "pending"

    def test_missing_pickup_point(self, ride_factory):
        with pytest.raises(ValidationError):
            ledger.create_booking(ride_factory(), "p1", 1, None)

    def test_seats_out_of_bounds(self, ride_factory):
        with pytest.raises(ValidationError):
            ledger.create_booking(ride_factory(), "p1", 0, PICKUP)


class TestTransitions:
    def test_pending_to_confirmed(self, ride_factory):
        booking = _booking(ride_factory(), status="pending")
        ledger.confirm_booking(booking)
        assert booking.status == "confirmed"

    def test_confirmed_cannot_be_rejected(self, ride_factory):
        booking = _booking(ride_factory())
        with pytest.raises(InvalidState):
            ledger.reject_booking(booking)

    def test_transition_table(self):
        assert ledger.can_transition("pending", "rejected")
        assert ledger.can_transition("confirmed", "completed")
        assert not ledger.can_transition("cancelled", "confirmed")
        assert not ledger.can_transition("completed", "cancelled")
        assert not ledger.can_transition("rejected", "pending")


class TestRefundPolicy:
    @pytest.mark.parametrize(
        "hours, expected",
        [
            (25, Decimal("500.00")),
            (24.01, Decimal("500.00")),
            (24, Decimal("250.00")),
            (10, Decimal("250.00")),
            (2.5, Decimal("250.00")),
            (2, Decimal("0.00")),
            (1, Decimal("0.00")),
        ],
    )
    def test_refund_by_notice(self, hours, expected):
        assert ledger.refund_amount(Decimal("500.00"), hours) == expected

    def test_partial_refund_rounds_to_cents(self):
        assert ledger.refund_amount(Decimal("100.01"), 10) == Decimal("50.01")


class TestCancelBooking:
    def test_cancel_more_than_a_day_ahead(self, ride_factory, now):
        ride = ride_factory(departure=now + timedelta(hours=25))
        booking = _booking(ride, seats=2)

        refund = ledger.cancel_booking(booking, ride, "passenger", now, reason="plans changed")

        assert refund == Decimal("200.00")
        assert booking.status == "cancelled"
        assert booking.cancelled_by == "passenger"
        assert booking.cancelled_at == now
        assert booking.cancellation_reason == "plans changed"
        assert booking.refund_amount == Decimal("200.00")

    def test_cancel_inside_cutoff(self, ride_factory, now):
        ride = ride_factory(departure=now + timedelta(minutes=45))
        booking = _booking(ride)

        with pytest.raises(CancellationWindowClosed):
            ledger.cancel_booking(booking, ride, "passenger", now)
        assert booking.status == "confirmed"

    def test_ride_cancellation_ignores_cutoff(self, ride_factory, now):
        ride = ride_factory(departure=now + timedelta(minutes=45))
        booking = _booking(ride)

        refund = ledger.cancel_booking(booking, ride, "driver", now, enforce_window=False)

        assert refund == Decimal("0.00")
        assert booking.cancelled_by == "driver"

    def test_cancel_twice(self, ride_factory, now):
        ride = ride_factory()
        booking = _booking(ride)
        ledger.cancel_booking(booking, ride, "passenger", now)

        with pytest.raises(InvalidState):
            ledger.cancel_booking(booking, ride, "passenger", now)

    def test_undo_cancel_restores_previous_state(self, ride_factory, now):
        ride = ride_factory()
        booking = _booking(ride)
        ledger.cancel_booking(booking, ride, "passenger", now)

        ledger.undo_cancel(booking, "confirmed")

        assert booking.status == "confirmed"
        assert booking.cancelled_at is None
        assert booking.refund_amount is None


class TestRatings:
    def _completed(self, ride_factory, now):
        ride = ride_factory(departure=now - timedelta(hours=3), status="completed")
        return ride, _booking(ride, passenger_id="p1")

    def test_passenger_rates_driver(self, ride_factory, now):
        ride, booking = self._completed(ride_factory, now)
        ledger.rate_booking(booking, ride, "p1", "driver", 5, "smooth ride", now)

        assert booking.driver_rating == 5
        assert booking.driver_rating_comment == "smooth ride"
        assert booking.driver_rated_at == now

    def test_driver_rates_passenger(self, ride_factory, now):
        ride, booking = self._completed(ride_factory, now)
        ledger.rate_booking(booking, ride, ride.driver_id, "passenger", 4, None, now)
        assert booking.passenger_rating == 4

    def test_ride_not_completed(self, ride_factory, now):
        ride = ride_factory()
        booking = _booking(ride)
        with pytest.raises(NotEligible):
            ledger.rate_booking(booking, ride, "p1", "driver", 5, None, now)

    def test_wrong_rater(self, ride_factory, now):
        ride, booking = self._completed(ride_factory, now)
        with pytest.raises(Forbidden):
            ledger.rate_booking(booking, ride, "someone-else", "driver", 5, None, now)
        with pytest.raises(Forbidden):
            ledger.rate_booking(booking, ride, "p1", "passenger", 5, None, now)

    def test_rate_twice(self, ride_factory, now):
        ride, booking = self._completed(ride_factory, now)
        ledger.rate_booking(booking, ride, "p1", "driver", 5, None, now)
        with pytest.raises(AlreadyRated):
            ledger.rate_booking(booking, ride, "p1", "driver", 3, None, now)
        assert booking.driver_rating == 5

    @pytest.mark.parametrize("rating", [0, 6, -2])
    def test_rating_out_of_range(self, ride_factory, now, rating):
        ride, booking = self._completed(ride_factory, now)
        with pytest.raises(OutOfRange):
            ledger.rate_booking(booking, ride, "p1", "driver", rating, None, now)
        assert booking.driver_rating is None


class TestCompleteBookings:
    def test_only_confirmed_bookings_complete(self, ride_factory, now):
        ride = ride_factory()
        confirmed = _booking(ride, passenger_id="p1")
        cancelled = _booking(ride, passenger_id="p2")
        ledger.cancel_booking(cancelled, ride, "passenger", now)

        done = ledger.complete_bookings([confirmed, cancelled], now)

        assert done == [confirmed]
        assert confirmed.status == "completed"
        assert confirmed.completed_at == now
        assert cancelled.status == "cancelled"
