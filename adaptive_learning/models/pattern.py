"""Detected behavioral pattern models.

``Pattern`` is a closed union discriminated on ``pattern_type``; consumers
dispatch on the concrete class.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import ConfigDict, Field, TypeAdapter, model_validator

from adaptive_learning.models.event import CamelModel


class PatternType(str, Enum):
    """Variants of detected patterns."""

    TIME = "time"
    SEQUENCE = "sequence"
    FREQUENCY = "frequency"
    LOCATION = "location"


class TimeUnit(str, Enum):
    """Units a frequency pattern is expressed in."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class _FrozenModel(CamelModel):
    model_config = ConfigDict(frozen=True)


class TimeOfDay(_FrozenModel):
    """A wall-clock anchor with a tolerance window."""

    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(..., ge=0, le=59)
    tolerance_minutes: int = Field(default=30, ge=0)


class TimePattern(_FrozenModel):
    """An action that recurs at a time of day or on a calendar day."""

    pattern_type: Literal["time"] = "time"
    event_type: str
    time_of_day: Optional[TimeOfDay] = None
    day_of_week: Optional[list[Annotated[int, Field(ge=0, le=6)]]] = None
    day_of_month: Optional[list[Annotated[int, Field(ge=1, le=31)]]] = None
    month_of_year: Optional[list[Annotated[int, Field(ge=0, le=11)]]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(..., ge=0.0, le=1.0)


class SequenceStep(_FrozenModel):
    """One step of an action sequence."""

    event_type: str
    metadata: Optional[dict[str, Any]] = None
    optional: bool = False


class SequencePattern(_FrozenModel):
    """Actions that were repeatedly observed together within a time window."""

    pattern_type: Literal["sequence"] = "sequence"
    steps: list[SequenceStep] = Field(..., min_length=2)
    time_window_ms: int = Field(..., gt=0)
    confidence: float = Field(..., ge=0.0, le=1.0)

    @property
    def event_type(self) -> str:
        """The event type that starts the sequence."""
        return self.steps[0].event_type

    @property
    def step_types(self) -> list[str]:
        return [step.event_type for step in self.steps]


class Frequency(_FrozenModel):
    """N occurrences per ``duration`` units of ``time_unit``."""

    count: int = Field(..., ge=0)
    time_unit: TimeUnit
    duration: int = Field(default=1, ge=1)


class FrequencyPattern(_FrozenModel):
    """An action performed at a steady rate."""

    pattern_type: Literal["frequency"] = "frequency"
    event_type: str
    frequency: Frequency
    metadata: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(..., ge=0.0, le=1.0)


class Location(_FrozenModel):
    """A circular area on the map, or a named place known only by name.

    At least one of the coordinate pair or ``location_name`` is set.
    """

    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    radius_meters: float = Field(..., gt=0)
    location_name: Optional[str] = None

    @model_validator(mode="after")
    def coordinates_or_name(self) -> "Location":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        if self.latitude is None and not (self.location_name or "").strip():
            raise ValueError("a location needs coordinates or a name")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class LocationPattern(_FrozenModel):
    """An action the user keeps performing at the same place."""

    pattern_type: Literal["location"] = "location"
    event_type: str
    location: Location
    metadata: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(..., ge=0.0, le=1.0)


Pattern = Annotated[
    Union[TimePattern, SequencePattern, FrequencyPattern, LocationPattern],
    Field(discriminator="pattern_type"),
]

PatternList = TypeAdapter(list[Pattern])
