"""Passenger/driver pairing rules and the 0-100 compatibility score."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

Gender = Literal["male", "female", "other", "prefer_not_to_say"]
UserType = Literal["student", "faculty"]

SENIOR_YEAR = 3
BASE_SCORE = 100
OPPOSITE_GENDER_PENALTY = 30
YEAR_GAP_PENALTY = 10
SENIORITY_PENALTY = 40
FACULTY_BONUS = 15


class MismatchReason(str, Enum):
    PASSENGER_REJECTS_OPPOSITE_GENDER = "Passenger doesn't accept opposite gender"
    DRIVER_REJECTS_OPPOSITE_GENDER = "Driver doesn't accept opposite gender"
    PASSENGER_REJECTS_SENIORS = "Passenger (junior) doesn't accept rides with seniors"
    DRIVER_REJECTS_SENIORS = "Driver (junior) doesn't accept seniors as passengers"


class Profile(BaseModel):
    """The profile fields that matching looks at."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    gender: Gender | None = None
    user_type: UserType | None = None
    current_year: int | None = Field(default=None, ge=0)


class RidePreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    accept_opposite_gender: bool = True
    accept_seniors: bool = True


@dataclass(frozen=True)
class MatchResult:
    compatible: bool
    reasons: list[str] = field(default_factory=list)


def _is_opposite_gender(passenger: Profile, driver: Profile) -> bool:
    if not passenger.gender or not driver.gender:
        return False
    return passenger.gender != driver.gender


def _student_years(passenger: Profile, driver: Profile) -> tuple[int, int] | None:
    """Years of study when both sides are students with a known year.

    Year 0 counts as unknown.
    """
    if passenger.user_type != "student" or driver.user_type != "student":
        return None
    if not passenger.current_year or not driver.current_year:
        return None
    return passenger.current_year, driver.current_year


def _seniority_reasons(
    passenger_year: int,
    driver_year: int,
    passenger_prefs: RidePreferences,
    driver_prefs: RidePreferences,
) -> list[MismatchReason]:
    passenger_is_senior = passenger_year >= SENIOR_YEAR
    driver_is_senior = driver_year >= SENIOR_YEAR

    reasons = []
    if not passenger_is_senior and driver_is_senior and not passenger_prefs.accept_seniors:
        reasons.append(MismatchReason.PASSENGER_REJECTS_SENIORS)
    if passenger_is_senior and not driver_is_senior and not driver_prefs.accept_seniors:
        reasons.append(MismatchReason.DRIVER_REJECTS_SENIORS)
    return reasons


def is_ride_match(
    passenger: Profile,
    driver: Profile,
    passenger_prefs: RidePreferences,
    driver_prefs: RidePreferences,
) -> MatchResult:
    """Check whether a passenger may ride with a driver.

    Each rule is evaluated independently, so more than one reason can be
    reported. The pair is compatible iff no reason fires.
    """
    reasons: list[str] = []

    if _is_opposite_gender(passenger, driver):
        if not passenger_prefs.accept_opposite_gender:
            reasons.append(MismatchReason.PASSENGER_REJECTS_OPPOSITE_GENDER.value)
        if not driver_prefs.accept_opposite_gender:
            reasons.append(MismatchReason.DRIVER_REJECTS_OPPOSITE_GENDER.value)

    years = _student_years(passenger, driver)
    if years is not None:
        reasons.extend(
            r.value for r in _seniority_reasons(*years, passenger_prefs, driver_prefs)
        )

    return MatchResult(compatible=not reasons, reasons=reasons)


def calculate_compatibility_score(
    passenger: Profile,
    driver: Profile,
    passenger_prefs: RidePreferences,
    driver_prefs: RidePreferences,
) -> int:
    """Score a pairing from 0 (worst) to 100 (best).

    Penalties and the faculty bonus are applied to an unbounded running
    score; clamping happens once, at the end.
    """
    score = BASE_SCORE

    if _is_opposite_gender(passenger, driver) and not (
        passenger_prefs.accept_opposite_gender and driver_prefs.accept_opposite_gender
    ):
        score -= OPPOSITE_GENDER_PENALTY

    years = _student_years(passenger, driver)
    if years is not None:
        passenger_year, driver_year = years
        score -= abs(passenger_year - driver_year) * YEAR_GAP_PENALTY
        score -= SENIORITY_PENALTY * len(
            _seniority_reasons(passenger_year, driver_year, passenger_prefs, driver_prefs)
        )

    if passenger.user_type == "faculty" or driver.user_type == "faculty":
        score += FACULTY_BONUS

    return max(0, min(BASE_SCORE, score))


T = TypeVar("T")


def rank_candidates(
    passenger: Profile,
    passenger_prefs: RidePreferences,
    candidates: list[tuple[T, Profile, RidePreferences]],
) -> list[tuple[T, MatchResult, int]]:
    """Compatible candidates, best score first.

    ``candidates`` holds ``(key, driver_profile, driver_prefs)`` triples;
    ties keep their input order.
    """
    ranked = []
    for key, driver, driver_prefs in candidates:
        result = is_ride_match(passenger, driver, passenger_prefs, driver_prefs)
        if not result.compatible:
            continue
        score = calculate_compatibility_score(passenger, driver, passenger_prefs, driver_prefs)
        ranked.append((key, result, score))

    ranked.sort(key=lambda item: item[2], reverse=True)
    return ranked
