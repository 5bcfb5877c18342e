import pytest

from notifications.messages import ParentContacts, maps_link, render_message, tracking_url
from tracking.ports import NotificationKind

CONTACTS = ParentContacts(driver_name="Ravi", phone_numbers=("+15551230001",))
APP = "https://rides.example.edu/"


def render(kind, **payload) -> str:
    return render_message(kind, {"ride_id": "ride-9", **payload}, CONTACTS, APP)


@pytest.mark.unit
class TestMessages:
    def test_started(self):
        assert render(NotificationKind.STARTED) == (
            "Ride Started: Your child's ride with driver Ravi has begun! "
            "Track live: https://rides.example.edu/parent-tracking/ride-9"
        )

    def test_midway(self):
        assert render(NotificationKind.MIDWAY) == (
            "Ride Update: Driver Ravi is halfway to the destination. Ride ID: ride-9"
        )

    def test_completed(self):
        assert render(NotificationKind.COMPLETED) == (
            "Ride Completed: Your child's ride with driver Ravi has been completed safely. "
            "Ride ID: ride-9"
        )

    def test_checkpoint(self):
        assert render(NotificationKind.CHECKPOINT, label="Pickup: Asha") == (
            "Ride Update: Driver Ravi has reached Pickup: Asha. Ride ID: ride-9"
        )

    @pytest.mark.critical
    def test_sos_with_location(self):
        text = render(NotificationKind.SOS, location=(12.97, 77.59))

        assert text.startswith("EMERGENCY ALERT")
        assert "Your child's driver (Ravi) has triggered an SOS alert!" in text
        assert "Ride ID: ride-9" in text
        assert "https://www.google.com/maps?q=12.97,77.59" in text
        assert text.endswith("contact emergency services if needed.")

    @pytest.mark.critical
    def test_sos_without_location(self):
        assert "Location unavailable" in render(NotificationKind.SOS, location="unavailable")

    def test_maps_link(self):
        assert maps_link([1.5, 2.5]) == "https://www.google.com/maps?q=1.5,2.5"
        assert maps_link(None) == "Location unavailable"

    def test_tracking_url_strips_trailing_slash(self):
        assert tracking_url(APP, "r1") == "https://rides.example.edu/parent-tracking/r1"
