from app.models.ride import Ride, RidePassenger
from app.models.booking import Booking

__all__ = ["Ride", "RidePassenger", "Booking"]
