"""Ride repository: loads a ride for tracking and records its status."""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from core.exceptions import InvalidTransition, MalformedInput
from geo.coordinate import Coordinate
from tracking.models import Pickup, RideRoute

from ..schema import Ride, RideRequest
from ..utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_PASSENGER_LABEL = "Passenger"


class RideStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.SCHEDULED: {RideStatus.ACTIVE, RideStatus.CANCELLED},
    RideStatus.ACTIVE: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class RideRecord:
    """A ride with everything tracking needs, detached from the session."""

    ride_id: str
    driver_id: str
    driver_name: str
    status: RideStatus
    start: Coordinate
    end: Coordinate
    pickups: tuple[Pickup, ...]
    parent_phone_numbers: tuple[str, ...]

    def route(self) -> RideRoute:
        return RideRoute(start=self.start, end=self.end, pickups=self.pickups)


class RideRepository:
    """Repository for the rides a driver tracks."""

    def __init__(self, session: Session):
        self.session = session

    def get_active_ride(self, ride_id: str) -> RideRecord | None:
        """Ride with its accepted passengers, or None if it does not exist.

        Pickups without a usable coordinate are left out of the route.
        """
        stmt = (
            select(Ride)
            .where(Ride.id == ride_id)
            .options(
                selectinload(Ride.driver),
                selectinload(Ride.requests).selectinload(RideRequest.passenger),
            )
        )
        ride = self.session.execute(stmt).scalar_one_or_none()
        if ride is None:
            return None
        return self._to_domain(ride)

    def update_status(self, ride_id: str, status: RideStatus) -> bool:
        """Move a ride to ``status``; returns False if the ride does not exist.

        Setting the current status again is a no-op.
        """
        ride = self.session.get(Ride, ride_id)
        if ride is None:
            return False

        current = RideStatus(ride.status)
        if current == status:
            return True
        if status not in VALID_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Ride {ride_id} cannot go from {current.value} to {status.value}",
                details={"ride_id": ride_id, "from": current.value, "to": status.value},
            )

        now = utc_now()
        ride.status = status.value
        if status == RideStatus.ACTIVE:
            ride.started_at = now
        elif status == RideStatus.COMPLETED:
            ride.completed_at = now
        ride.updated_at = now
        return True

    def _to_domain(self, ride: Ride) -> RideRecord:
        accepted = [r for r in ride.requests if r.status == "accepted"]

        pickups = []
        for request in accepted:
            pickup = _pickup_from_request(request)
            if pickup is not None:
                pickups.append(pickup)

        phones: list[str] = []
        for request in accepted:
            phone = (request.passenger.parent_phone_number or "").strip()
            if phone and phone not in phones:
                phones.append(phone)

        return RideRecord(
            ride_id=ride.id,
            driver_id=ride.driver_id,
            driver_name=ride.driver.full_name,
            status=RideStatus(ride.status),
            start=Coordinate(ride.start_lat, ride.start_lng),
            end=Coordinate(ride.end_lat, ride.end_lng),
            pickups=tuple(pickups),
            parent_phone_numbers=tuple(phones),
        )


def _pickup_from_request(request: RideRequest) -> Pickup | None:
    # 0 is the "not set" placeholder written by the booking form
    if not request.pickup_lat or not request.pickup_lng:
        return None
    try:
        coordinate = Coordinate(request.pickup_lat, request.pickup_lng)
    except MalformedInput:
        logger.warning(f"Skipping pickup with invalid coordinate on request {request.id}")
        return None
    label = request.passenger.full_name or DEFAULT_PASSENGER_LABEL
    return Pickup(coordinate=coordinate, label=label)
