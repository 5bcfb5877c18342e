import os

# Settings() must build without real SMS credentials or a live database.
os.environ.setdefault("SMS_DEV_MODE", "true")

from collections.abc import Callable
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, Mock

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from geo.coordinate import Coordinate
from notifications.gateway import LoggingNotificationGateway
from settings import TrackingSettings
from tests.factories import RideFactory, create_faker_instance
from tracking.models import Pickup, RideRoute
from tracking.ports import InMemorySideEffects
from tracking.session import TrackingSession
from utils.async_helpers import BackgroundTasks

if TYPE_CHECKING:
    from faker.proxy import Faker


class FakeClock:
    """Manually advanced clock for deterministic timing."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLocationSource:
    """Location source driven directly by the test."""

    def __init__(self) -> None:
        self.on_fix: Callable | None = None
        self.on_error: Callable | None = None
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0

    def subscribe(self, on_fix, on_error) -> None:
        self.subscribe_calls += 1
        self.on_fix = on_fix
        self.on_error = on_error

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1

    @property
    def subscribed(self) -> bool:
        return self.subscribe_calls > self.unsubscribe_calls


@pytest.fixture
def fake() -> "Faker":
    """Seeded Faker instance for deterministic test data."""
    return create_faker_instance(seed=42)


@pytest.fixture
def ride_factory() -> RideFactory:
    return RideFactory(seed=42)


@pytest.fixture
def temp_sqlite_db(tmp_path):
    """Temporary SQLite database for persistence tests."""
    return tmp_path / "test_rides.db"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def location_source() -> FakeLocationSource:
    return FakeLocationSource()


@pytest.fixture
def directions_provider() -> AsyncMock:
    provider = AsyncMock()
    provider.get_directions.return_value = ["Head north on Main St", "Turn left onto Oak Ave"]
    return provider


@pytest.fixture
def notifications() -> LoggingNotificationGateway:
    return LoggingNotificationGateway()


@pytest.fixture
def publisher() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def side_effects() -> InMemorySideEffects:
    return InMemorySideEffects()


@pytest.fixture
def on_error() -> Mock:
    return Mock()


@pytest.fixture
def tracking_settings() -> TrackingSettings:
    return TrackingSettings()


@pytest.fixture
def route() -> RideRoute:
    """Roughly 2.2km due north, with one pickup about a third of the way."""
    return RideRoute(
        start=Coordinate(12.9700, 77.5900),
        end=Coordinate(12.9900, 77.5900),
        pickups=(Pickup(Coordinate(12.9770, 77.5900), "Asha"),),
    )


@pytest.fixture
def make_session(
    location_source,
    directions_provider,
    notifications,
    publisher,
    side_effects,
    tracking_settings,
    on_error,
    clock,
):
    """Build a TrackingSession wired to test doubles."""

    def _make(**overrides) -> TrackingSession:
        kwargs = {
            "ride_id": "ride-1",
            "location_source": location_source,
            "directions_provider": directions_provider,
            "notification_gateway": notifications,
            "location_publisher": publisher,
            "side_effects": side_effects,
            "settings": tracking_settings,
            "on_error": on_error,
            "clock": clock,
            "tasks": BackgroundTasks(),
        }
        kwargs.update(overrides)
        return TrackingSession(**kwargs)

    return _make


@pytest.fixture(scope="session")
def _span_exporter() -> InMemorySpanExporter:
    # The global tracer provider can only be installed once per process.
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return exporter


@pytest.fixture
def span_exporter(_span_exporter) -> InMemorySpanExporter:
    """Finished spans recorded during the current test."""
    _span_exporter.clear()
    return _span_exporter
