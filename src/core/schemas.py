"""Pydantic data contracts for travel-intent extraction and location refinement.

Every model in this module is a request/response value object: it is built
right before a prompt is rendered, consumed once at the model-call boundary
and then discarded or promoted into itinerary state by the caller.

Key model categories:
- TripIntent / HeuristicParseResult: the trip-intent reply contract and the
  rule-based pre-parse that shares its field set
- TravelInputRequest: validated input for the trip-intent prompt builder
- LocationRefinementRequest / PreviousActivity: input for the location prompt
- LocationRefinementResult: the location reply contract
- ItineraryDay / ItineraryActivity / RefinedActivity: day-by-day refinement
- PromptPair: the (system, user) prompt strings handed to the model caller
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from src.core.types import Confidence, Lat, Lon, NonEmptyStr, NonNegInt, PositiveInt

MAX_SEARCH_QUERIES = 3


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _clean_string_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [item for item in value if _blank_to_none(item) is not None]
    return value


class TripIntent(BaseModel):
    """Structured trip requirements extracted from free-form text.

    This is the reply contract for the trip-intent model call and also the
    shape of the merged result handed back to callers. A field the text does
    not determine is ``None``; empty strings and placeholder zeros are never
    used to mean "unknown".

    Attributes:
        destination: Travel destination, kept as written in the source text
        origin: Departure city or place
        days: Trip length in days
        budget: Total budget in whole yuan
        party_size: Number of travellers
        preferences: Ordered preference tags
        notes: Ordered free-text remarks
    """
    destination: Optional[NonEmptyStr] = None
    origin: Optional[NonEmptyStr] = None
    days: Optional[PositiveInt] = None
    budget: Optional[NonNegInt] = None
    party_size: Optional[PositiveInt] = None
    preferences: List[NonEmptyStr] = Field(default_factory=list)
    notes: List[NonEmptyStr] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("destination", "origin", mode="before")
    @classmethod
    def _empty_text_is_unknown(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("preferences", "notes", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value: Any) -> Any:
        return _clean_string_list(value)


class HeuristicParseResult(TripIntent):
    """Lower-confidence pre-parse produced without a language model.

    Shares the field set of :class:`TripIntent` so the model can reconcile the
    two positionally. It is advisory context only.
    """


class TravelInputRequest(BaseModel):
    """Validated input for the trip-intent prompt builder."""
    original_text: str
    known_preferences: Tuple[str, ...] = ()
    heuristic_result: Optional[HeuristicParseResult] = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("original_text")
    @classmethod
    def _text_must_not_be_blank(cls, value: str) -> str:
        # Embedded verbatim; only blank text is rejected.
        if not value.strip():
            raise ValueError("original_text must not be blank")
        return value


class PreviousActivity(BaseModel):
    """An activity already resolved earlier in the same itinerary."""
    title: NonEmptyStr
    address: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("address", mode="before")
    @classmethod
    def _empty_address_is_absent(cls, value: Any) -> Any:
        return _blank_to_none(value)


class LocationRefinementRequest(BaseModel):
    """Context for refining a single itinerary activity into a geocodable hint.

    Only ``destination`` and ``activity_title`` are required. Optional fields
    that are ``None`` (or blank) are treated as absent and render no prompt
    line. ``previous_activities`` is kept in chronological itinerary order and
    is never reordered or mutated by a refinement call.

    Camel-case aliases (``activityTitle``, ``previousActivities``, ...) are
    accepted so payloads from the web client validate unchanged.
    """
    destination: NonEmptyStr
    activity_title: NonEmptyStr
    kind: Optional[str] = None
    time_slot: Optional[str] = None
    existing_address: Optional[str] = None
    existing_note: Optional[str] = None
    day_label: Optional[str] = None
    previous_activities: Tuple[PreviousActivity, ...] = ()

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator(
        "kind", "time_slot", "existing_address", "existing_note", "day_label", mode="before"
    )
    @classmethod
    def _empty_field_is_absent(cls, value: Any) -> Any:
        return _blank_to_none(value)


class LocationRefinementResult(BaseModel):
    """Reply contract for the location refinement model call.

    Coordinates are paired: both present or both ``None``. A lone latitude or
    longitude is rejected at validation time.
    """
    refined_name: Optional[NonEmptyStr] = None
    address_hint: Optional[NonEmptyStr] = None
    search_queries: List[NonEmptyStr] = Field(default_factory=list, max_length=MAX_SEARCH_QUERIES)
    nearby_landmarks: List[NonEmptyStr] = Field(default_factory=list)
    latitude: Optional[Lat] = None
    longitude: Optional[Lon] = None
    confidence: Optional[Confidence] = None
    reason: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("refined_name", "address_hint", mode="before")
    @classmethod
    def _empty_text_is_unknown(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("search_queries", "nearby_landmarks", mode="before")
    @classmethod
    def _null_list_is_empty(cls, value: Any) -> Any:
        return _clean_string_list(value)

    @model_validator(mode="after")
    def validate_coordinates(self) -> "LocationRefinementResult":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must both be set or both be null")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ItineraryActivity(BaseModel):
    """Single activity of an itinerary day awaiting location refinement."""
    title: NonEmptyStr
    kind: Optional[str] = None
    time_slot: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None

    @field_validator("address", mode="before")
    @classmethod
    def _empty_address_is_absent(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ItineraryDay(BaseModel):
    """One itinerary day, activities listed in chronological order."""
    label: Optional[str] = None
    activities: List[ItineraryActivity] = Field(default_factory=list)


class RefinedActivity(BaseModel):
    """Outcome of refining one activity; ``result`` is ``None`` on failure."""
    day_label: Optional[str] = None
    activity: ItineraryActivity
    result: Optional[LocationRefinementResult] = None
    queries: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.result is not None


@dataclass(frozen=True, slots=True)
class PromptPair:
    """System instruction plus request-specific user prompt for one model call."""

    system: str
    user: str


__all__ = [
    "MAX_SEARCH_QUERIES",
    "TripIntent",
    "HeuristicParseResult",
    "TravelInputRequest",
    "PreviousActivity",
    "LocationRefinementRequest",
    "LocationRefinementResult",
    "ItineraryActivity",
    "ItineraryDay",
    "RefinedActivity",
    "PromptPair",
]
