"""Immutable geographic coordinate value type."""

import math
from dataclasses import dataclass
from typing import Any

from core.exceptions import MalformedInput


@dataclass(frozen=True, slots=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name, value, bound in (
            ("latitude", self.latitude, 90.0),
            ("longitude", self.longitude, 180.0),
        ):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise MalformedInput(
                    f"{name} must be a number, got {type(value).__name__}",
                    details={name: value},
                )
            if math.isnan(value) or not -bound <= value <= bound:
                raise MalformedInput(
                    f"{name} out of range: {value}",
                    details={name: value},
                )

    @classmethod
    def from_tuple(cls, latlon: tuple[float, float]) -> "Coordinate":
        lat, lon = latlon
        return cls(lat, lon)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "Coordinate":
        """Build from a ``{lat, lng}`` or ``{latitude, longitude}`` payload."""
        lat = data.get("lat", data.get("latitude"))
        lon = data.get("lng", data.get("lon", data.get("longitude")))
        if lat is None or lon is None:
            raise MalformedInput("Coordinate payload is missing lat/lng", details=dict(data))
        return cls(lat, lon)

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)
