"""
Bookings router — POST /v1/rides/{ride_id}/bookings, GET /v1/bookings/mine,
                  GET /v1/bookings/{id}, PUT /v1/bookings/{id}/cancel
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status

from app.errors import Forbidden
from app.middleware.auth import get_current_user_id
from app.middleware.idempotency import check_idempotency, store_idempotency_result
from app.schemas.schemas import (
    BookingCancelRequest, BookingCancelResponse, BookingCreateRequest, BookingResponse,
)
from app.services import booking as workflow
from app.services.store import RideStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1", tags=["Bookings"])


@router.post(
    "/rides/{ride_id}/bookings",
    status_code=status.HTTP_201_CREATED,
    response_model=BookingResponse,
)
async def book_ride(
    ride_id: str,
    payload: BookingCreateRequest,
    request: Request,
    store: RideStore = Depends(get_store),
    passenger_id: str = Depends(get_current_user_id),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    """
    Book seats on a ride.
    - Idempotent: a repeated Idempotency-Key replays the first response.
    - Auto-confirmed: the booking is `confirmed` as soon as seats are held.
    """
    if idempotency_key:
        cached = await check_idempotency(request, passenger_id)
        if cached:
            return cached

    booking = await workflow.book_ride(
        store,
        passenger_id,
        ride_id,
        payload.seats,
        payload.pickup_point,
        payment_method=payload.payment_method.value,
        special_requests=payload.special_requests,
    )
    response = BookingResponse.from_booking(booking)

    if idempotency_key:
        await store_idempotency_result(
            passenger_id, idempotency_key, status.HTTP_201_CREATED, response.model_dump(mode="json")
        )
    return response


@router.get("/bookings/mine", response_model=list[BookingResponse])
async def my_bookings(
    store: RideStore = Depends(get_store),
    passenger_id: str = Depends(get_current_user_id),
):
    bookings = await store.list_passenger_bookings(passenger_id)
    return [BookingResponse.from_booking(b) for b in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    booking = await workflow.load_booking(store, booking_id)
    if user_id != booking.passenger_id:
        ride = await workflow.load_ride(store, booking.ride_id)
        if user_id != ride.driver_id:
            raise Forbidden("Not authorized to view this booking")
    return BookingResponse.from_booking(booking)


@router.put("/bookings/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancelRequest] = None,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    reason = payload.reason if payload else None
    booking, refund = await workflow.cancel_booking(store, booking_id, user_id, reason=reason)
    return BookingCancelResponse(
        booking=BookingResponse.from_booking(booking),
        refund_amount=float(refund),
    )
