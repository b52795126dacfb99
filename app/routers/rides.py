"""
Rides router — POST /v1/rides, GET /v1/rides/search, GET /v1/rides/mine,
               GET /v1/rides/{id}, GET /v1/rides/{id}/seats,
               PUT /v1/rides/{id}/cancel, PUT /v1/rides/{id}/complete
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.middleware.auth import get_current_user_id
from app.schemas.schemas import (
    RideCancelRequest, RideCreateRequest, RideResponse, SeatAvailabilityResponse,
)
from app.services import booking as workflow
from app.services import inventory
from app.services.search import search_rides
from app.services.store import RideStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/rides", tags=["Rides"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=RideResponse)
async def create_ride(
    payload: RideCreateRequest,
    store: RideStore = Depends(get_store),
    driver_id: str = Depends(get_current_user_id),
):
    ride = await workflow.create_ride(store, driver_id, payload)
    return RideResponse.from_ride(ride)


@router.get("/search", response_model=list[RideResponse])
async def search(
    origin: str = Query(..., min_length=1, alias="from"),
    destination: str = Query(..., min_length=1, alias="to"),
    ride_date: date = Query(..., alias="date"),
    max_price: Optional[Decimal] = Query(default=None, gt=0),
    vehicle_type: Optional[str] = None,
    seats: int = Query(default=1, ge=1, le=10),
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    """Active rides on `date` whose addresses match `from`/`to`, best match first."""
    ranked = await search_rides(
        store,
        origin,
        destination,
        ride_date,
        searcher_id=user_id,
        max_price=max_price,
        vehicle_type=vehicle_type,
        min_seats=seats,
    )
    logger.info("Search %r -> %r on %s: %d match(es)", origin, destination, ride_date, len(ranked))
    return [RideResponse.from_ride(ride, match_score=score) for ride, score in ranked]


@router.get("/mine", response_model=list[RideResponse])
async def my_rides(
    store: RideStore = Depends(get_store),
    driver_id: str = Depends(get_current_user_id),
):
    rides = await store.list_driver_rides(driver_id)
    return [RideResponse.from_ride(await workflow.sync_ride_status(store, ride)) for ride in rides]


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(
    ride_id: str,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    ride = await workflow.get_ride(store, ride_id)
    return RideResponse.from_ride(ride)


@router.get("/{ride_id}/seats", response_model=SeatAvailabilityResponse)
async def get_available_seats(
    ride_id: str,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    ride = await workflow.get_ride(store, ride_id)
    return SeatAvailabilityResponse(
        ride_id=ride.id,
        total_seats=ride.total_seats,
        booked_seats=inventory.booked_seats(ride),
        available_seats=ride.available_seats,
        status=ride.status,
    )


@router.put("/{ride_id}/cancel", response_model=RideResponse)
async def cancel_ride(
    ride_id: str,
    payload: Optional[RideCancelRequest] = None,
    store: RideStore = Depends(get_store),
    driver_id: str = Depends(get_current_user_id),
):
    reason = payload.reason if payload else None
    ride = await workflow.cancel_ride(store, ride_id, driver_id, reason=reason)
    return RideResponse.from_ride(ride)


@router.put("/{ride_id}/complete", response_model=RideResponse)
async def complete_ride(
    ride_id: str,
    store: RideStore = Depends(get_store),
    driver_id: str = Depends(get_current_user_id),
):
    ride = await workflow.complete_ride(store, ride_id, driver_id)
    return RideResponse.from_ride(ride)
