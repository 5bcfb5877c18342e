"""Tracking for one stored ride: wires persistence, notifications and the session."""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import sessionmaker

from core.exceptions import InvalidTransition, LocationSourceError, NotFoundError
from db.repositories.ride_repository import RideRecord, RideStatus
from db.transaction import ride_transaction
from notifications.messages import ParentContacts
from notifications.sms import SmsNotificationGateway
from ride_logging import log_ride_context
from settings import Settings

from .models import RideSummary, TrackingSnapshot
from .ports import (
    DirectionsProvider,
    LocationPublisher,
    LocationSource,
    NotificationGateway,
    SideEffectPort,
)
from .session import TrackingSession

logger = logging.getLogger(__name__)

TRACKABLE_STATUSES = {RideStatus.SCHEDULED, RideStatus.ACTIVE}


class RideTracker:
    """Runs a TrackingSession for a ride loaded from the database.

    Starting marks the ride active, completing marks it completed. When no
    notification gateway is given, parents are texted through the SMS
    gateway using the phone numbers stored with the ride.
    """

    def __init__(
        self,
        ride_id: str,
        session_factory: sessionmaker[Any],
        location_source: LocationSource,
        directions_provider: DirectionsProvider,
        settings: Settings | None = None,
        notification_gateway: NotificationGateway | None = None,
        location_publisher: LocationPublisher | None = None,
        side_effects: SideEffectPort | None = None,
        on_error: Callable[[LocationSourceError], None] | None = None,
    ):
        self.ride_id = ride_id
        self._session_factory = session_factory
        self._location_source = location_source
        self._directions_provider = directions_provider
        self._settings = settings or Settings()
        self._notification_gateway = notification_gateway
        self._location_publisher = location_publisher
        self._side_effects = side_effects
        self._on_error = on_error

        self.ride: RideRecord | None = None
        self.session: TrackingSession | None = None

    def start(self) -> RideRecord:
        with log_ride_context(self.ride_id):
            if self.session is not None:
                raise InvalidTransition(f"Ride {self.ride_id} is already being tracked")

            with ride_transaction(self._session_factory) as repo:
                ride = repo.get_active_ride(self.ride_id)
                if ride is None:
                    raise NotFoundError(f"Ride {self.ride_id} not found")
                if ride.status not in TRACKABLE_STATUSES:
                    raise InvalidTransition(
                        f"Ride {self.ride_id} is {ride.status.value} and cannot be tracked"
                    )
                repo.update_status(self.ride_id, RideStatus.ACTIVE)

            logger.info(
                f"Ride loaded: {len(ride.pickups)} pickups, "
                f"{len(ride.parent_phone_numbers)} parent contacts"
            )

            self.ride = ride
            self.session = TrackingSession(
                ride_id=self.ride_id,
                location_source=self._location_source,
                directions_provider=self._directions_provider,
                notification_gateway=self._notification_gateway or self._sms_gateway(ride),
                location_publisher=self._location_publisher,
                side_effects=self._side_effects,
                settings=self._settings.tracking,
                on_error=self._on_error,
            )
            self.session.start(ride.route())
            return ride

    def complete(self) -> RideSummary:
        session = self._require_session()
        summary = session.complete()
        with log_ride_context(self.ride_id):
            with ride_transaction(self._session_factory) as repo:
                repo.update_status(self.ride_id, RideStatus.COMPLETED)
            logger.info("Ride marked completed")
        return summary

    def send_emergency_alert(self) -> None:
        self._require_session().send_emergency_alert()

    def snapshot(self) -> TrackingSnapshot:
        return self._require_session().snapshot()

    async def drain(self) -> None:
        if self.session is not None:
            await self.session.drain()

    def close(self, timeout: float | None = 10.0) -> None:
        if self.session is not None:
            self.session.close(timeout)

    def _require_session(self) -> TrackingSession:
        if self.session is None:
            raise InvalidTransition(f"Ride {self.ride_id} is not being tracked")
        return self.session

    def _sms_gateway(self, ride: RideRecord) -> SmsNotificationGateway:
        contacts = ParentContacts(
            driver_name=ride.driver_name,
            phone_numbers=ride.parent_phone_numbers,
        )
        return SmsNotificationGateway(self._settings.sms, contacts)
