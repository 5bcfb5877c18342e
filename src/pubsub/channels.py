"""Pub/sub channel naming and message schema for live ride locations."""

from pydantic import BaseModel

RIDE_CHANNEL_PREFIX = "ride-"
LOCATION_UPDATE_EVENT = "location-update"


def ride_channel(ride_id: str) -> str:
    """Channel carrying location updates for a single ride."""
    if not ride_id:
        raise ValueError("ride_id must not be empty")
    return f"{RIDE_CHANNEL_PREFIX}{ride_id}"


class LocationUpdateMessage(BaseModel):
    """Driver position broadcast to parents following a ride."""

    ride_id: str
    lat: float
    lng: float
    timestamp: str
    event: str = LOCATION_UPDATE_EVENT
