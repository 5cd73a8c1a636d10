"""Pattern analyzer: detects recurring behavior in a user's event history.

Detectors:
- time: same time of day, same day of week, same day of month
- sequence: actions that follow each other within a short window
- frequency: actions performed at a steady rate per hour/day/week/month
- location: actions repeatedly performed at the same place

Every detector runs over an ascending-timestamp event list. Sparse or
degenerate data yields fewer patterns, never an error.
"""

import json
import math
from collections import Counter
from datetime import timedelta
from statistics import mean, pstdev
from typing import Any, Iterable, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from adaptive_learning.config import get_settings
from adaptive_learning.models.event import LocationInfo, TrackingEvent
from adaptive_learning.models.pattern import (
    Frequency,
    FrequencyPattern,
    Location,
    LocationPattern,
    Pattern,
    SequencePattern,
    SequenceStep,
    TimeOfDay,
    TimePattern,
    TimeUnit,
)

logger = structlog.get_logger(__name__)

EventInput = Union[TrackingEvent, Mapping[str, Any]]

# Occurrence floors per detector
TIME_PATTERN_MIN_OCCURRENCES = 3
SEQUENCE_PATTERN_MIN_OCCURRENCES = 3
FREQUENCY_PATTERN_MIN_OCCURRENCES = 5
LOCATION_PATTERN_MIN_OCCURRENCES = 3

MIN_CONFIDENCE_THRESHOLD = 0.6

# Time-of-day detection
TIME_SLOT_MINUTES = 30
MAX_TIME_STDDEV_MINUTES = 180

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
WEEK_MS = 7 * DAY_MS
MONTH_MS = 30 * DAY_MS

# Sequence detection
SEQUENCE_TIME_WINDOWS_MS = (5 * MINUTE_MS, 15 * MINUTE_MS, 30 * MINUTE_MS, 60 * MINUTE_MS)
SEQUENCE_MAX_CONFIDENCE = 0.95

# Frequency detection
FREQUENCY_TIME_UNITS = (
    (TimeUnit.HOUR, HOUR_MS),
    (TimeUnit.DAY, DAY_MS),
    (TimeUnit.WEEK, WEEK_MS),
    (TimeUnit.MONTH, MONTH_MS),
)
FREQUENCY_MIN_SPAN_MS = DAY_MS
FREQUENCY_MIN_UNITS_SPANNED = 3

# Location detection
LOCATION_KEY_DECIMALS = 3
LOCATION_MIN_RADIUS_METERS = 100.0
LOCATION_MAX_RADIUS_METERS = 1000.0
LOCATION_SPATIAL_WEIGHT = 0.7
LOCATION_TEMPORAL_WEIGHT = 0.3
EARTH_RADIUS_METERS = 6371000


def coerce_events(raw_events: Iterable[EventInput]) -> list[TrackingEvent]:
    """Validate raw events, skipping the malformed ones."""
    events = []
    for raw in raw_events:
        if isinstance(raw, TrackingEvent):
            events.append(raw)
            continue
        try:
            events.append(TrackingEvent.model_validate(raw))
        except ValidationError as e:
            logger.warning(
                "malformed_event_skipped",
                event_type=raw.get("eventType") if isinstance(raw, Mapping) else None,
                error_count=e.error_count(),
            )
    return events


def sort_events(events: Iterable[TrackingEvent]) -> list[TrackingEvent]:
    """Stable ascending sort by timestamp."""
    return sorted(events, key=lambda e: e.timestamp)


def epoch_ms(event: TrackingEvent) -> float:
    return event.timestamp.timestamp() * 1000


def span_ms(events: list[TrackingEvent]) -> float:
    """Milliseconds between the first and last event of a sorted list."""
    if len(events) < 2:
        return 0.0
    return epoch_ms(events[-1]) - epoch_ms(events[0])


def group_by_type(events: Iterable[TrackingEvent]) -> dict[str, list[TrackingEvent]]:
    groups: dict[str, list[TrackingEvent]] = {}
    for event in events:
        groups.setdefault(event.event_type, []).append(event)
    return groups


def time_consistency(events: list[TrackingEvent]) -> float:
    """Score 0-1 for how tightly events cluster around one time of day.

    Population standard deviation of minutes since midnight, capped at
    three hours and inverted.
    """
    minutes = [event.minutes_into_day for event in events]
    std_dev = pstdev(minutes) if len(minutes) > 1 else 0.0
    return 1 - min(std_dev, MAX_TIME_STDDEV_MINUTES) / MAX_TIME_STDDEV_MINUTES


def frequency_consistency(events: list[TrackingEvent], unit_ms: int) -> float:
    """Score 0-1 for how evenly events spread over unit-sized slots.

    Combines the coefficient of variation of per-slot counts (non-empty
    slots only) with the share of slots in the span that saw any event.
    """
    slot_counts = Counter(math.floor(epoch_ms(event) / unit_ms) for event in events)
    if not slot_counts:
        return 0.0

    total_slots = max(slot_counts) - min(slot_counts) + 1
    values = list(slot_counts.values())
    avg = mean(values)
    cv = pstdev(values) / avg if avg else 1.0
    coverage = len(values) / total_slots

    return max(0.0, 1 - cv) * 0.7 + coverage * 0.3


def common_metadata(events: list[TrackingEvent]) -> dict[str, Any]:
    """Metadata entries whose value is identical across every event."""
    if not events:
        return {}

    first = events[0].metadata
    common = {}
    for key, value in first.items():
        encoded = _canonical_json(value)
        if all(_canonical_json(event.metadata.get(key)) == encoded for event in events[1:]):
            common[key] = value
    return common


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two coordinates."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def location_key(info: Union[LocationInfo, Location, None]) -> Optional[str]:
    """Key events that happened at the same place.

    A resolved place name wins; otherwise coordinates rounded to about
    110 m. Events with neither have no location. A detected ``Location``
    maps back to the key of the group it was built from.
    """
    if info is None:
        return None
    if info.location_name and info.location_name.strip():
        return "name:" + info.location_name.strip().lower()
    if info.has_coordinates:
        return f"{info.latitude:.{LOCATION_KEY_DECIMALS}f},{info.longitude:.{LOCATION_KEY_DECIMALS}f}"
    return None


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


class PatternAnalyzer:
    """Runs every detector over one user's event history.

    Holds configuration only; each call works on the events it is given,
    so one instance can serve any number of users.
    """

    def __init__(self, window_days: Optional[int] = None):
        if window_days is None:
            window_days = get_settings().analysis_window_days
        self.window_days = window_days

    def prepare(self, raw_events: Iterable[EventInput]) -> list[TrackingEvent]:
        """Validate, sort and window the input."""
        events = sort_events(coerce_events(raw_events))
        if self.window_days and events:
            cutoff = events[-1].timestamp - timedelta(days=self.window_days)
            events = [event for event in events if event.timestamp >= cutoff]
        return events

    def analyze(self, raw_events: Iterable[EventInput]) -> list[Pattern]:
        """Run all detectors and return the combined patterns."""
        events = self.prepare(raw_events)

        time_patterns = self._detect_time_patterns(events)
        sequence_patterns = self._detect_sequence_patterns(events)
        frequency_patterns = self._detect_frequency_patterns(events)
        location_patterns = self._detect_location_patterns(events)

        logger.info(
            "patterns_detected",
            event_count=len(events),
            time_patterns=len(time_patterns),
            sequence_patterns=len(sequence_patterns),
            frequency_patterns=len(frequency_patterns),
            location_patterns=len(location_patterns),
        )

        return [*time_patterns, *sequence_patterns, *frequency_patterns, *location_patterns]

    def detect_time_patterns(self, raw_events: Iterable[EventInput]) -> list[TimePattern]:
        return self._detect_time_patterns(self.prepare(raw_events))

    def detect_sequence_patterns(self, raw_events: Iterable[EventInput]) -> list[SequencePattern]:
        return self._detect_sequence_patterns(self.prepare(raw_events))

    def detect_frequency_patterns(self, raw_events: Iterable[EventInput]) -> list[FrequencyPattern]:
        return self._detect_frequency_patterns(self.prepare(raw_events))

    def detect_location_patterns(self, raw_events: Iterable[EventInput]) -> list[LocationPattern]:
        return self._detect_location_patterns(self.prepare(raw_events))

    def analyze_sequences_in_window(
        self, raw_events: Iterable[EventInput], window_ms: int
    ) -> list[SequencePattern]:
        """Sequence detection for a single gap window."""
        events = self.prepare(raw_events)
        if len(events) < SEQUENCE_PATTERN_MIN_OCCURRENCES * 2 or span_ms(events) <= 0:
            return []
        return self._sequences_in_window(events, window_ms)

    # --- time ---

    def _detect_time_patterns(self, events: list[TrackingEvent]) -> list[TimePattern]:
        patterns: list[TimePattern] = []
        if len(events) < TIME_PATTERN_MIN_OCCURRENCES:
            return patterns

        for event_type, group in group_by_type(events).items():
            if len(group) < TIME_PATTERN_MIN_OCCURRENCES:
                continue
            # Everything at one instant says nothing about recurrence
            if span_ms(group) <= 0:
                continue

            patterns.extend(self._daily_patterns(event_type, group))
            patterns.extend(self._weekly_patterns(event_type, group))
            patterns.extend(self._monthly_patterns(event_type, group))

        return patterns

    def _daily_patterns(self, event_type: str, events: list[TrackingEvent]) -> list[TimePattern]:
        slots: dict[tuple[int, int], list[TrackingEvent]] = {}
        for event in events:
            slot_minute = event.timestamp.minute // TIME_SLOT_MINUTES * TIME_SLOT_MINUTES
            slots.setdefault((event.timestamp.hour, slot_minute), []).append(event)

        patterns = []
        for (hour, minute), slot_events in slots.items():
            if len(slot_events) < TIME_PATTERN_MIN_OCCURRENCES:
                continue

            confidence = time_consistency(slot_events)
            if confidence < MIN_CONFIDENCE_THRESHOLD:
                continue

            patterns.append(
                TimePattern(
                    event_type=event_type,
                    time_of_day=TimeOfDay(
                        hour=hour, minute=minute, tolerance_minutes=TIME_SLOT_MINUTES
                    ),
                    metadata=common_metadata(slot_events),
                    confidence=_clamp(confidence),
                )
            )
        return patterns

    def _weekly_patterns(self, event_type: str, events: list[TrackingEvent]) -> list[TimePattern]:
        days: dict[int, list[TrackingEvent]] = {}
        for event in events:
            days.setdefault(event.day_of_week, []).append(event)

        total_weeks = max(1, math.ceil(span_ms(events) / DAY_MS / 7))

        patterns = []
        for day, day_events in days.items():
            if len(day_events) < TIME_PATTERN_MIN_OCCURRENCES:
                continue

            coverage = min(1.0, len(day_events) / total_weeks)
            confidence = coverage * 0.9 + 0.1
            if confidence < MIN_CONFIDENCE_THRESHOLD:
                continue

            patterns.append(
                TimePattern(
                    event_type=event_type,
                    day_of_week=[day],
                    metadata=common_metadata(day_events),
                    confidence=_clamp(confidence),
                )
            )
        return patterns

    def _monthly_patterns(self, event_type: str, events: list[TrackingEvent]) -> list[TimePattern]:
        days: dict[int, list[TrackingEvent]] = {}
        for event in events:
            days.setdefault(event.timestamp.day, []).append(event)

        first, last = events[0].timestamp, events[-1].timestamp
        total_months = max(1, (last.year - first.year) * 12 + (last.month - first.month) + 1)

        patterns = []
        for day, day_events in days.items():
            if len(day_events) < TIME_PATTERN_MIN_OCCURRENCES:
                continue

            coverage = min(1.0, len(day_events) / total_months)
            confidence = coverage * 0.9 + 0.1
            if confidence < MIN_CONFIDENCE_THRESHOLD:
                continue

            patterns.append(
                TimePattern(
                    event_type=event_type,
                    day_of_month=[day],
                    metadata=common_metadata(day_events),
                    confidence=_clamp(confidence),
                )
            )
        return patterns

    # --- sequence ---

    def _detect_sequence_patterns(self, events: list[TrackingEvent]) -> list[SequencePattern]:
        patterns: list[SequencePattern] = []
        if len(events) < SEQUENCE_PATTERN_MIN_OCCURRENCES * 2 or span_ms(events) <= 0:
            return patterns

        # The same habit may surface at several window sizes; each is kept.
        for window_ms in SEQUENCE_TIME_WINDOWS_MS:
            patterns.extend(self._sequences_in_window(events, window_ms))
        return patterns

    def _sequences_in_window(
        self, events: list[TrackingEvent], window_ms: int
    ) -> list[SequencePattern]:
        sequences: list[tuple[str, ...]] = []
        current: list[str] = []
        last_ms: Optional[float] = None

        for event in events:
            event_ms = epoch_ms(event)
            if last_ms is None or event_ms - last_ms <= window_ms:
                current.append(event.event_type)
            else:
                if len(current) >= 2:
                    sequences.append(tuple(current))
                current = [event.event_type]
            last_ms = event_ms

        if len(current) >= 2:
            sequences.append(tuple(current))

        patterns = []
        for steps, count in Counter(sequences).items():
            if count < SEQUENCE_PATTERN_MIN_OCCURRENCES:
                continue

            max_possible = len(events) / len(steps)
            confidence = min(SEQUENCE_MAX_CONFIDENCE, count / max_possible * 0.8 + 0.2)
            if confidence < MIN_CONFIDENCE_THRESHOLD:
                continue

            patterns.append(
                SequencePattern(
                    steps=[SequenceStep(event_type=step) for step in steps],
                    time_window_ms=window_ms,
                    confidence=_clamp(confidence),
                )
            )
        return patterns

    # --- frequency ---

    def _detect_frequency_patterns(self, events: list[TrackingEvent]) -> list[FrequencyPattern]:
        patterns: list[FrequencyPattern] = []
        if len(events) < FREQUENCY_PATTERN_MIN_OCCURRENCES:
            return patterns

        for event_type, group in group_by_type(events).items():
            if len(group) < FREQUENCY_PATTERN_MIN_OCCURRENCES:
                continue

            total_ms = span_ms(group)
            if total_ms < FREQUENCY_MIN_SPAN_MS:
                continue

            for unit, unit_ms in FREQUENCY_TIME_UNITS:
                if total_ms < unit_ms * FREQUENCY_MIN_UNITS_SPANNED:
                    continue

                events_per_unit = len(group) / math.ceil(total_ms / unit_ms)
                if events_per_unit < 1:
                    continue

                consistency = frequency_consistency(group, unit_ms)
                if consistency < MIN_CONFIDENCE_THRESHOLD:
                    continue

                patterns.append(
                    FrequencyPattern(
                        event_type=event_type,
                        frequency=Frequency(
                            # Half-up rounding, not banker's
                            count=math.floor(events_per_unit + 0.5),
                            time_unit=unit,
                            duration=1,
                        ),
                        metadata=common_metadata(group),
                        confidence=_clamp(consistency),
                    )
                )

        return patterns

    # --- location ---

    def _detect_location_patterns(self, events: list[TrackingEvent]) -> list[LocationPattern]:
        groups: dict[tuple[str, str], list[TrackingEvent]] = {}
        for event in events:
            key = location_key(event.location_info)
            if key is None:
                continue
            groups.setdefault((event.event_type, key), []).append(event)

        patterns = []
        for (event_type, _key), group in groups.items():
            if len(group) < LOCATION_PATTERN_MIN_OCCURRENCES:
                continue
            if span_ms(group) <= 0:
                continue

            pattern = self._location_pattern(event_type, group)
            if pattern is not None:
                patterns.append(pattern)
        return patterns

    def _location_pattern(
        self, event_type: str, events: list[TrackingEvent]
    ) -> Optional[LocationPattern]:
        points = [
            (event.location_info.latitude, event.location_info.longitude)
            for event in events
            if event.location_info.has_coordinates
        ]

        if points:
            center_lat = mean(lat for lat, _ in points)
            center_lon = mean(lon for _, lon in points)
            distances = [haversine_meters(center_lat, center_lon, lat, lon) for lat, lon in points]
            spatial = 1 - min(mean(distances), LOCATION_MAX_RADIUS_METERS) / LOCATION_MAX_RADIUS_METERS
            radius = min(LOCATION_MAX_RADIUS_METERS, max(LOCATION_MIN_RADIUS_METERS, max(distances)))
        else:
            # Named place without coordinates
            center_lat = center_lon = None
            spatial = 1.0
            radius = LOCATION_MIN_RADIUS_METERS

        confidence = (
            spatial * LOCATION_SPATIAL_WEIGHT + time_consistency(events) * LOCATION_TEMPORAL_WEIGHT
        )
        if confidence < MIN_CONFIDENCE_THRESHOLD:
            return None

        # Name-keyed groups may differ in case or padding; keep the first spelling
        names = [
            event.location_info.location_name.strip()
            for event in events
            if event.location_info.location_name and event.location_info.location_name.strip()
        ]
        location_name = names[0] if names else None

        return LocationPattern(
            event_type=event_type,
            location=Location(
                latitude=center_lat,
                longitude=center_lon,
                radius_meters=radius,
                location_name=location_name,
            ),
            metadata=common_metadata(events),
            confidence=_clamp(confidence),
        )


def detect_patterns(
    raw_events: Iterable[EventInput], window_days: Optional[int] = None
) -> list[Pattern]:
    """Convenience wrapper: analyze one user's events with a fresh analyzer."""
    return PatternAnalyzer(window_days=window_days).analyze(raw_events)
