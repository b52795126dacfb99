"""
Tracking router — POST /v1/tracking/{ride_id}/location, GET /v1/tracking/{ride_id},
                  POST /v1/tracking/{ride_id}/sos
"""
import logging

from fastapi import APIRouter, Depends, status

from app.config import get_settings
from app.errors import Forbidden, InvalidState
from app.middleware.auth import get_current_user_id
from app.models.ride import Ride
from app.redis_client import get_redis, get_ride_location, set_ride_location
from app.schemas.schemas import LocationResponse, LocationUpdateRequest, SosRequest
from app.services import booking as workflow
from app.services import inventory
from app.services.notifications import ADMIN_ROOM, notify, ride_room
from app.services.store import RideStore, get_store

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/tracking", tags=["Tracking"])


def _ensure_participant(ride: Ride, user_id: str) -> None:
    if user_id == ride.driver_id or inventory.active_entry(ride, user_id) is not None:
        return
    raise Forbidden("Not a participant of this ride")


@router.post("/{ride_id}/location", response_model=LocationResponse)
async def update_location(
    ride_id: str,
    payload: LocationUpdateRequest,
    store: RideStore = Depends(get_store),
    driver_id: str = Depends(get_current_user_id),
):
    """Driver pushes the live position; fanned out to everyone on the ride."""
    ride = await workflow.get_ride(store, ride_id)
    if ride.driver_id != driver_id:
        raise Forbidden("Only the driver can share the ride location")
    if ride.status in inventory.TERMINAL_STATUSES:
        raise InvalidState(f"Ride is {ride.status}")

    redis = await get_redis()
    location = await set_ride_location(
        redis, ride_id, payload.lat, payload.lng, settings.location_ttl_seconds
    )
    await notify("location-update", {"ride_id": ride_id, **location}, ride_room(ride_id))
    return LocationResponse(ride_id=ride_id, status=ride.status, **location)


@router.get("/{ride_id}", response_model=LocationResponse)
async def get_location(
    ride_id: str,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    ride = await workflow.get_ride(store, ride_id)
    _ensure_participant(ride, user_id)

    redis = await get_redis()
    location = await get_ride_location(redis, ride_id) or {}
    return LocationResponse(ride_id=ride_id, status=ride.status, **location)


@router.post("/{ride_id}/sos", status_code=status.HTTP_202_ACCEPTED)
async def raise_sos(
    ride_id: str,
    payload: SosRequest,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    ride = await workflow.load_ride(store, ride_id)
    _ensure_participant(ride, user_id)

    logger.warning("SOS on ride=%s from user=%s at (%s, %s)", ride_id, user_id, payload.lat, payload.lng)
    delivered = await notify(
        "emergency-alert",
        {
            "ride_id": ride_id,
            "user_id": user_id,
            "lat": payload.lat,
            "lng": payload.lng,
            "message": payload.message,
        },
        ride_room(ride_id),
        ADMIN_ROOM,
    )
    return {"ride_id": ride_id, "status": "alert-sent", "delivered": delivered}
