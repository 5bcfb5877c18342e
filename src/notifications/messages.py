"""Parent-facing message texts for each notification kind."""

from dataclasses import dataclass, field
from typing import Any

from tracking.ports import NotificationKind

LOCATION_UNAVAILABLE = "Location unavailable"


@dataclass(frozen=True)
class ParentContacts:
    """Who is told about a ride and how the driver is named to them."""

    driver_name: str
    phone_numbers: tuple[str, ...] = field(default_factory=tuple)


def tracking_url(app_base_url: str, ride_id: str) -> str:
    return f"{app_base_url.rstrip('/')}/parent-tracking/{ride_id}"


def maps_link(location: Any) -> str:
    """Google Maps link for a ``(lat, lng)`` pair, or the unavailable marker."""
    if isinstance(location, (tuple, list)) and len(location) == 2:
        lat, lng = location
        return f"https://www.google.com/maps?q={lat},{lng}"
    return LOCATION_UNAVAILABLE


def render_message(
    kind: NotificationKind,
    payload: dict[str, Any],
    contacts: ParentContacts,
    app_base_url: str,
) -> str:
    ride_id = payload.get("ride_id", "")
    driver = contacts.driver_name

    if kind is NotificationKind.STARTED:
        return (
            f"Ride Started: Your child's ride with driver {driver} has begun! "
            f"Track live: {tracking_url(app_base_url, ride_id)}"
        )
    if kind is NotificationKind.MIDWAY:
        return f"Ride Update: Driver {driver} is halfway to the destination. Ride ID: {ride_id}"
    if kind is NotificationKind.COMPLETED:
        return (
            f"Ride Completed: Your child's ride with driver {driver} "
            f"has been completed safely. Ride ID: {ride_id}"
        )
    if kind is NotificationKind.CHECKPOINT:
        label = payload.get("label", "a checkpoint")
        return f"Ride Update: Driver {driver} has reached {label}. Ride ID: {ride_id}"
    if kind is NotificationKind.SOS:
        return (
            "EMERGENCY ALERT\n\n"
            f"Your child's driver ({driver}) has triggered an SOS alert!\n\n"
            f"Ride ID: {ride_id}\n"
            f"{maps_link(payload.get('location'))}\n\n"
            "Please check on them immediately or contact emergency services if needed."
        )
    return f"Ride update for {ride_id}"
