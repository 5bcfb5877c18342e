import logging
import time
from typing import Any

import httpx
import polyline
from opentelemetry import trace
from pydantic import BaseModel

from core.exceptions import (
    MalformedInput,
    NetworkError,
    ServiceUnavailableError,
    TrackingError,
)
from core.retry import RetryConfig, with_retry
from metrics import observe_latency, record_error
from metrics.tracing import bridge_correlation_id

from .coordinate import Coordinate

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)


class RouteStep(BaseModel):
    maneuver_type: str
    modifier: str = ""
    street_name: str = ""
    distance_meters: float = 0.0

    def instruction(self) -> str:
        """Human-readable instruction for this step."""
        street = self.street_name or "unnamed road"
        kind = self.maneuver_type
        modifier = self.modifier

        if kind == "depart":
            return " ".join(f"Head {modifier} on {street}".split())
        if kind == "arrive":
            return "You have arrived at your destination"
        if kind == "turn":
            return " ".join(f"Turn {modifier} onto {street}".split())
        if kind == "merge":
            return " ".join(f"Merge {modifier} onto {street}".split())
        if kind in ("roundabout", "rotary"):
            return f"Take the roundabout and exit onto {street}"
        if kind == "continue":
            return f"Continue on {street}"
        return " ".join(f"{kind} {modifier} on {street}".split())


class RouteResponse(BaseModel):
    distance_meters: float
    duration_seconds: float
    geometry: list[tuple[float, float]]
    steps: list[RouteStep] = []
    osrm_code: str

    def directions(self) -> list[str]:
        return [step.instruction() for step in self.steps]


class NoRouteFoundError(MalformedInput):
    """No route found between coordinates. Inherits from MalformedInput (non-retryable)."""

    pass


class OSRMServiceError(ServiceUnavailableError):
    """OSRM service error (5xx). Inherits from ServiceUnavailableError (retryable)."""

    pass


class OSRMTimeoutError(NetworkError):
    """OSRM request timeout. Inherits from NetworkError (retryable)."""

    pass


def _error_type(error: TrackingError) -> str:
    if isinstance(error, NoRouteFoundError):
        return "no_route"
    if isinstance(error, OSRMTimeoutError):
        return "timeout"
    if isinstance(error, OSRMServiceError):
        return "server_error"
    return type(error).__name__


def decode_polyline(encoded: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode polyline string to list of (lat, lon) tuples."""
    coords = polyline.decode(encoded, precision)
    return [(lat, lon) for lat, lon in coords]


def _parse_steps(route: dict[str, Any]) -> list[RouteStep]:
    legs = route.get("legs") or []
    if not legs:
        return []

    steps = []
    for step in legs[0].get("steps") or []:
        maneuver = step.get("maneuver") or {}
        steps.append(
            RouteStep(
                maneuver_type=maneuver.get("type", ""),
                modifier=maneuver.get("modifier") or "",
                street_name=step.get("name") or "",
                distance_meters=float(step.get("distance", 0.0)),
            )
        )
    return steps


class OSRMClient:
    """Turn-by-turn directions and route geometry from an OSRM server."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        retry_config: RetryConfig | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

    async def get_route(self, origin: Coordinate, destination: Coordinate) -> RouteResponse:
        """Get route between two coordinates using OSRM."""
        url = (
            f"{self.base_url}/route/v1/driving/"
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )
        params = {"overview": "full", "geometries": "polyline", "steps": "true"}

        with _tracer.start_as_current_span("osrm.route") as span:
            span.set_attribute("http.url", url)
            bridge_correlation_id(span)
            start_time = time.perf_counter()
            try:
                route = await self._fetch(url, params)
            except TrackingError as e:
                span.record_exception(e)
                record_error("osrm", _error_type(e))
                raise
            observe_latency("osrm", (time.perf_counter() - start_time) * 1000)
            span.set_attribute("osrm.steps", len(route.steps))
            return route

    async def _fetch(self, url: str, params: dict[str, str]) -> RouteResponse:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)

                if response.status_code >= 500:
                    raise OSRMServiceError(f"OSRM server error: {response.status_code}")

                data = response.json()

                if data.get("code") == "NoRoute" or not data.get("routes"):
                    raise NoRouteFoundError("No route found between coordinates")

                route = data["routes"][0]
                return RouteResponse(
                    distance_meters=float(route["distance"]),
                    duration_seconds=float(route["duration"]),
                    geometry=decode_polyline(route["geometry"]),
                    steps=_parse_steps(route),
                    osrm_code=data["code"],
                )

        except httpx.TimeoutException as e:
            raise OSRMTimeoutError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise OSRMServiceError(f"Network error: {e}") from e

    async def get_route_with_retry(
        self, origin: Coordinate, destination: Coordinate
    ) -> RouteResponse:
        return await with_retry(
            lambda: self.get_route(origin, destination),
            self.retry_config,
            operation_name="osrm.get_route",
        )

    async def get_directions(self, origin: Coordinate, destination: Coordinate) -> list[str]:
        """Ordered, human-readable turn-by-turn steps from origin to destination."""
        route = await self.get_route_with_retry(origin, destination)
        directions = route.directions()
        logger.debug(f"Extracted {len(directions)} directions")
        return directions
