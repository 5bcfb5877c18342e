"""
Campus Ride Tracking - Simulated Ride Entry Point

Seeds a demo ride, fetches its road geometry from OSRM and replays it as a
noisy GPS feed through a TrackingSession. Parents are notified through the
SMS gateway (dev mode logs instead of sending) and locations are fanned out
over Redis when it is reachable.
"""

import argparse
import asyncio
import logging
import os
import uuid
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import start_http_server
from sqlalchemy.orm import sessionmaker

from core.exceptions import MalformedInput, TrackingError
from core.retry import RetryConfig
from db.database import init_database
from db.schema import Profile, Ride, RideRequest
from db.transaction import ride_transaction
from geo.coordinate import Coordinate
from geo.gps_simulation import SimulatedLocationSource
from geo.osrm_client import OSRMClient
from metrics import REGISTRY
from redis_client.publisher import RedisLocationPublisher
from settings import Settings, get_settings
from tracking.models import RideSummary
from tracking.ports import InMemorySideEffects
from tracking.ride_tracker import RideTracker

logger = logging.getLogger(__name__)

DEFAULT_START = "12.9716,77.5946"
DEFAULT_END = "12.9352,77.6245"


def parse_coordinate(value: str) -> Coordinate:
    try:
        lat, lng = (float(part) for part in value.split(","))
        return Coordinate(lat, lng)
    except (ValueError, MalformedInput) as e:
        raise argparse.ArgumentTypeError(f"expected 'lat,lng', got {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay a simulated ride through the tracker")
    parser.add_argument("--ride-id", default=None, help="defaults to a fresh id")
    parser.add_argument("--start", type=parse_coordinate, default=DEFAULT_START)
    parser.add_argument("--end", type=parse_coordinate, default=DEFAULT_END)
    parser.add_argument("--speed-kmh", type=float, default=30.0)
    parser.add_argument("--interval", type=float, default=0.05, help="real seconds between fixes")
    parser.add_argument("--noise-m", type=float, default=5.0)
    parser.add_argument("--dropout", type=float, default=0.02)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument(
        "--metrics-port", type=int, default=None, help="serve Prometheus metrics on this port"
    )
    return parser


def init_tracing() -> TracerProvider | None:
    """Export spans over OTLP gRPC when OTEL_EXPORTER_OTLP_ENDPOINT is set."""
    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        logger.debug("OTEL_EXPORTER_OTLP_ENDPOINT not set, tracing disabled")
        return None

    resource = Resource.create({"service.name": "campus-ride-tracking"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
    )
    trace.set_tracer_provider(provider)
    logger.info("OpenTelemetry tracing initialized (endpoint=%s)", otlp_endpoint)
    return provider


def seed_demo_ride(
    session_factory: sessionmaker[Any], ride_id: str, start: Coordinate, end: Coordinate
) -> None:
    """Store a scheduled ride with one accepted passenger, unless it exists."""
    with ride_transaction(session_factory) as repo:
        db = repo.session
        if db.get(Ride, ride_id) is not None:
            return

        driver_id = f"driver-{ride_id}"
        passenger_id = f"passenger-{ride_id}"
        db.add(Profile(id=driver_id, full_name="Demo Driver", email="driver@example.edu"))
        db.add(
            Profile(
                id=passenger_id,
                full_name="Demo Passenger",
                email="passenger@example.edu",
                parent_phone_number="+15550000000",
            )
        )
        db.add(
            Ride(
                id=ride_id,
                driver_id=driver_id,
                start_lat=start.latitude,
                start_lng=start.longitude,
                end_lat=end.latitude,
                end_lng=end.longitude,
            )
        )
        db.add(
            RideRequest(
                id=f"request-{ride_id}",
                ride_id=ride_id,
                passenger_id=passenger_id,
                status="accepted",
                pickup_lat=(start.latitude + end.latitude) / 2,
                pickup_lng=(start.longitude + end.longitude) / 2,
            )
        )


def create_location_publisher(settings: Settings) -> RedisLocationPublisher | None:
    """Create Redis publisher if Redis answers, otherwise run without fan-out."""
    publisher = RedisLocationPublisher(settings.redis)
    if publisher.ping():
        return publisher
    logger.warning("Redis unavailable, running without location fan-out")
    publisher.close()
    return None


async def fetch_path(
    osrm: OSRMClient, start: Coordinate, end: Coordinate
) -> list[tuple[float, float]]:
    try:
        route = await osrm.get_route_with_retry(start, end)
        logger.info(f"Route geometry: {len(route.geometry)} points, {route.distance_meters:.0f}m")
        return route.geometry
    except TrackingError as e:
        logger.warning(f"OSRM route unavailable, driving a straight line: {e.message}")
        return [start.as_tuple(), end.as_tuple()]


async def run_demo(settings: Settings, args: argparse.Namespace) -> RideSummary:
    ride_id = args.ride_id or uuid.uuid4().hex[:12]
    session_factory = init_database(settings.database.path)
    seed_demo_ride(session_factory, ride_id, args.start, args.end)

    osrm = OSRMClient(
        settings.osrm.base_url,
        timeout=settings.osrm.timeout,
        retry_config=RetryConfig.from_osrm_settings(settings.osrm),
    )
    logger.info(f"OSRM client configured: {settings.osrm.base_url}")

    source = SimulatedLocationSource(
        await fetch_path(osrm, args.start, args.end),
        speed_kmh=args.speed_kmh,
        fix_spacing_s=settings.tracking.nominal_fix_interval_s,
        interval_s=args.interval,
        noise_meters=args.noise_m,
        dropout_probability=args.dropout,
        seed=args.seed,
    )
    publisher = create_location_publisher(settings)
    tracker = RideTracker(
        ride_id,
        session_factory,
        location_source=source,
        directions_provider=osrm,
        settings=settings,
        location_publisher=publisher,
        side_effects=InMemorySideEffects(),
    )

    try:
        tracker.start()
        await source.wait_finished()
        summary = tracker.complete()
        await tracker.drain()
    finally:
        if publisher:
            publisher.close()
    return summary


def main() -> None:
    """Main entry point - replays one simulated ride and prints its summary."""
    from ride_logging import setup_logging_from_settings

    args = build_parser().parse_args()
    settings = get_settings()

    setup_logging_from_settings(
        settings.tracking, environment=os.environ.get("ENVIRONMENT", "development")
    )

    tracer_provider = init_tracing()
    if args.metrics_port is not None:
        start_http_server(args.metrics_port, registry=REGISTRY)
        logger.info(f"Prometheus metrics on :{args.metrics_port}/metrics")

    try:
        summary = asyncio.run(run_demo(settings, args))
    finally:
        if tracer_provider is not None:
            tracer_provider.shutdown()
    print(summary.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
