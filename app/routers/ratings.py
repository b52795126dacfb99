"""
Ratings router — POST /v1/ratings/{booking_id}
"""
from fastapi import APIRouter, Depends

from app.middleware.auth import get_current_user_id
from app.schemas.schemas import BookingResponse, RatingRequest
from app.services import booking as workflow
from app.services.store import RideStore, get_store

router = APIRouter(prefix="/v1/ratings", tags=["Ratings"])


@router.post("/{booking_id}", response_model=BookingResponse)
async def submit_rating(
    booking_id: str,
    payload: RatingRequest,
    store: RideStore = Depends(get_store),
    user_id: str = Depends(get_current_user_id),
):
    """
    Rate the other side of a completed ride.
    rated_user_type=driver: the passenger rates the driver;
    rated_user_type=passenger: the driver rates the passenger.
    """
    booking = await workflow.rate_booking(
        store,
        booking_id,
        user_id,
        payload.rated_user_type.value,
        payload.rating,
        payload.comment,
    )
    return BookingResponse.from_booking(booking)
