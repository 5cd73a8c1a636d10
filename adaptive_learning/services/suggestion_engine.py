"""Suggestion engine: turns detected patterns into ranked suggestions.

The pipeline is a chain of pure stages, each returning new values:

    generate_suggestions(patterns, preferences, now) -> candidates
    calculate_relevance_scores(candidates, preferences, now) -> scored
    filter_suggestions(scored, preferences, exclusions, now) -> visible

``SuggestionSession`` wraps the chain for one user and keeps the
dismissed/implemented ids, feedback history and preferences for the
lifetime of a session. Callers construct one per user; there is no shared
instance.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Optional, Union

import structlog

from adaptive_learning.errors import ScoringBeforeGenerationError
from adaptive_learning.models.pattern import (
    FrequencyPattern,
    LocationPattern,
    Pattern,
    PatternType,
    SequencePattern,
    TimePattern,
)
from adaptive_learning.models.suggestion import (
    PreferencesUpdate,
    RelevanceFactor,
    RelevanceFactorScore,
    Suggestion,
    SuggestionCategory,
    SuggestionFeedback,
    SuggestionPreferences,
    SuggestionSource,
    SuggestionType,
)
from adaptive_learning.services.feedback_service import (
    adapt_preferences,
    default_preferences,
    merge_preferences,
)
from adaptive_learning.services.formatting import format_frequency_pattern, format_location_pattern
from adaptive_learning.services.pattern_analyzer import (
    MINUTE_MS,
    EventInput,
    PatternAnalyzer,
    location_key,
)
from adaptive_learning.services.scoring import (
    FREQUENCY_IMPORTANCE_SEED,
    GENERATOR_MIN_CONFIDENCE,
    LOCATION_CONTEXT_SEED,
    SEQUENCE_CONTEXT_SEED,
    TIME_FREQUENCY_SEED,
    TIME_SENSITIVE_TTL,
    score_suggestion,
)

logger = structlog.get_logger(__name__)


class SuggestionTemplate(NamedTuple):
    """Wording and classification for one event type."""

    title: str
    description: str
    category: SuggestionCategory
    type: SuggestionType


TIME_TEMPLATES = {
    "transportation_booked": SuggestionTemplate(
        "Schedule your regular ride",
        "You often book transportation around this time. Would you like to schedule it?",
        SuggestionCategory.TRANSPORTATION,
        SuggestionType.ACTION,
    ),
    "food_ordered": SuggestionTemplate(
        "Order your usual meal",
        "You typically order food at this time. Would you like to place an order now?",
        SuggestionCategory.FOOD,
        SuggestionType.ACTION,
    ),
    "calendar_event_created": SuggestionTemplate(
        "Create a recurring event",
        "You often create calendar events at this time. Would you like to set up a recurring event?",
        SuggestionCategory.PRODUCTIVITY,
        SuggestionType.AUTOMATION,
    ),
    "message_sent": SuggestionTemplate(
        "Schedule your regular check-in",
        "You regularly send messages around this time. Would you like to automate a check-in?",
        SuggestionCategory.COMMUNICATION,
        SuggestionType.AUTOMATION,
    ),
}
TIME_FALLBACK = SuggestionTemplate(
    "Automate your regular {label}",
    "You often perform this action at a similar time. Would you like to create an automation?",
    SuggestionCategory.PRODUCTIVITY,
    SuggestionType.AUTOMATION,
)

FREQUENCY_TEMPLATES = {
    "transportation_booked": SuggestionTemplate(
        "Set up regular transportation",
        "You book transportation about {frequency}. Would you like to create a schedule?",
        SuggestionCategory.TRANSPORTATION,
        SuggestionType.AUTOMATION,
    ),
    "food_ordered": SuggestionTemplate(
        "Create a meal schedule",
        "You order food about {frequency}. Would you like to create a meal plan?",
        SuggestionCategory.FOOD,
        SuggestionType.AUTOMATION,
    ),
    "calendar_event_created": SuggestionTemplate(
        "Streamline your calendar management",
        "You create calendar events about {frequency}. Would you like scheduling assistance?",
        SuggestionCategory.PRODUCTIVITY,
        SuggestionType.FEATURE,
    ),
}
FREQUENCY_FALLBACK = SuggestionTemplate(
    "Optimize your {label} frequency",
    "You perform this action about {frequency}. Would you like to create a schedule?",
    SuggestionCategory.PRODUCTIVITY,
    SuggestionType.AUTOMATION,
)

LOCATION_TEMPLATES = {
    "transportation_booked": SuggestionTemplate(
        "Set up location-based ride booking",
        "You often book transportation at {location}. Create a location trigger?",
        SuggestionCategory.TRANSPORTATION,
        SuggestionType.AUTOMATION,
    ),
    "food_ordered": SuggestionTemplate(
        "Order food when at this location",
        "You frequently order food when at {location}. Create a location-based order?",
        SuggestionCategory.FOOD,
        SuggestionType.AUTOMATION,
    ),
    "app_opened": SuggestionTemplate(
        "Location-based preferences",
        "You often use this app at {location}. Set up location-specific settings?",
        SuggestionCategory.SYSTEM,
        SuggestionType.FEATURE,
    ),
}
LOCATION_FALLBACK = SuggestionTemplate(
    "Location-based automation for {location}",
    "You regularly perform actions at this location. Create a location-triggered workflow?",
    SuggestionCategory.PRODUCTIVITY,
    SuggestionType.AUTOMATION,
)

SEQUENCE_TEMPLATE = SuggestionTemplate(
    "Automate this sequence of actions",
    "You often perform these actions in sequence: {steps}. Create an automation?",
    SuggestionCategory.PRODUCTIVITY,
    SuggestionType.AUTOMATION,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _label(event_type: str) -> str:
    return event_type.replace("_", " ")


def _render(template: SuggestionTemplate, **values: str) -> tuple[str, str]:
    return template.title.format(**values), template.description.format(**values)


@dataclass(frozen=True)
class Exclusions:
    """Suggestion ids that must not be shown again this session."""

    dismissed: frozenset[str] = field(default_factory=frozenset)
    implemented: frozenset[str] = field(default_factory=frozenset)

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self.dismissed or suggestion_id in self.implemented

    def with_dismissed(self, suggestion_id: str) -> "Exclusions":
        return replace(self, dismissed=self.dismissed | {suggestion_id})

    def with_implemented(self, suggestion_id: str) -> "Exclusions":
        return replace(self, implemented=self.implemented | {suggestion_id})


# --- generators ---


def _time_suggestion(pattern: TimePattern, now: datetime) -> Optional[Suggestion]:
    if pattern.confidence < GENERATOR_MIN_CONFIDENCE[PatternType.TIME]:
        return None

    template = TIME_TEMPLATES.get(pattern.event_type, TIME_FALLBACK)
    title, description = _render(template, label=_label(pattern.event_type))

    dimensions = []
    if pattern.time_of_day:
        dimensions.append(f"tod{pattern.time_of_day.hour:02d}{pattern.time_of_day.minute:02d}")
    if pattern.day_of_week:
        dimensions.append("dow" + "_".join(str(d) for d in pattern.day_of_week))
    if pattern.day_of_month:
        dimensions.append("dom" + "_".join(str(d) for d in pattern.day_of_month))
    if pattern.month_of_year:
        dimensions.append("moy" + "_".join(str(m) for m in pattern.month_of_year))

    time_fields = pattern.model_dump(
        mode="json",
        by_alias=True,
        include={"time_of_day", "day_of_week", "day_of_month", "month_of_year"},
    )

    return Suggestion(
        id=f"time-{pattern.event_type}-{'-'.join(dimensions) or 'any'}",
        title=title,
        description=description,
        type=template.type,
        category=template.category,
        source=SuggestionSource(pattern_type=PatternType.TIME, confidence=pattern.confidence),
        relevance_factors=[
            RelevanceFactorScore(factor=RelevanceFactor.TIME, score=pattern.confidence),
            RelevanceFactorScore(factor=RelevanceFactor.FREQUENCY, score=TIME_FREQUENCY_SEED),
        ],
        created=now,
        # A specific time of day is only worth suggesting around that time
        expires=now + TIME_SENSITIVE_TTL if pattern.time_of_day else None,
        action_params={
            "eventType": pattern.event_type,
            "metadata": pattern.metadata,
            "timePattern": time_fields,
        },
    )


def _sequence_suggestion(pattern: SequencePattern, now: datetime) -> Optional[Suggestion]:
    if pattern.confidence < GENERATOR_MIN_CONFIDENCE[PatternType.SEQUENCE]:
        return None

    steps = pattern.step_types
    title, description = _render(SEQUENCE_TEMPLATE, steps=" → ".join(steps))

    return Suggestion(
        id=f"sequence-{'-'.join(steps)}-{pattern.time_window_ms // MINUTE_MS}m",
        title=title,
        description=description,
        type=SEQUENCE_TEMPLATE.type,
        category=SEQUENCE_TEMPLATE.category,
        source=SuggestionSource(pattern_type=PatternType.SEQUENCE, confidence=pattern.confidence),
        relevance_factors=[
            RelevanceFactorScore(factor=RelevanceFactor.FREQUENCY, score=pattern.confidence),
            RelevanceFactorScore(factor=RelevanceFactor.CONTEXT, score=SEQUENCE_CONTEXT_SEED),
        ],
        created=now,
        action_params={
            "steps": [step.model_dump(mode="json", by_alias=True) for step in pattern.steps],
            "timeWindow": pattern.time_window_ms,
        },
    )


def _frequency_suggestion(pattern: FrequencyPattern, now: datetime) -> Optional[Suggestion]:
    if pattern.confidence < GENERATOR_MIN_CONFIDENCE[PatternType.FREQUENCY]:
        return None

    template = FREQUENCY_TEMPLATES.get(pattern.event_type, FREQUENCY_FALLBACK)
    title, description = _render(
        template,
        label=_label(pattern.event_type),
        frequency=format_frequency_pattern(pattern),
    )

    return Suggestion(
        id=f"frequency-{pattern.event_type}-{pattern.frequency.time_unit.value}",
        title=title,
        description=description,
        type=template.type,
        category=template.category,
        source=SuggestionSource(pattern_type=PatternType.FREQUENCY, confidence=pattern.confidence),
        relevance_factors=[
            RelevanceFactorScore(factor=RelevanceFactor.FREQUENCY, score=pattern.confidence),
            RelevanceFactorScore(factor=RelevanceFactor.IMPORTANCE, score=FREQUENCY_IMPORTANCE_SEED),
        ],
        created=now,
        action_params={
            "eventType": pattern.event_type,
            "metadata": pattern.metadata,
            "frequency": pattern.frequency.model_dump(mode="json", by_alias=True),
        },
    )


def _location_suggestion(pattern: LocationPattern, now: datetime) -> Optional[Suggestion]:
    if pattern.confidence < GENERATOR_MIN_CONFIDENCE[PatternType.LOCATION]:
        return None

    location = pattern.location
    if location.location_name:
        place = location.location_name
    else:
        place = f"location ({format_location_pattern(pattern)})"

    template = LOCATION_TEMPLATES.get(pattern.event_type, LOCATION_FALLBACK)
    title, description = _render(template, location=place)

    return Suggestion(
        id=f"location-{pattern.event_type}-{location_key(location)}",
        title=title,
        description=description,
        type=template.type,
        category=template.category,
        source=SuggestionSource(pattern_type=PatternType.LOCATION, confidence=pattern.confidence),
        relevance_factors=[
            RelevanceFactorScore(factor=RelevanceFactor.LOCATION, score=pattern.confidence),
            RelevanceFactorScore(factor=RelevanceFactor.CONTEXT, score=LOCATION_CONTEXT_SEED),
        ],
        created=now,
        action_params={
            "eventType": pattern.event_type,
            "metadata": pattern.metadata,
            "location": location.model_dump(mode="json", by_alias=True, exclude_none=True),
        },
    )


def suggestion_for_pattern(pattern: Pattern, now: datetime) -> Optional[Suggestion]:
    """Build the candidate suggestion for one pattern, or None if too weak."""
    if isinstance(pattern, TimePattern):
        return _time_suggestion(pattern, now)
    if isinstance(pattern, SequencePattern):
        return _sequence_suggestion(pattern, now)
    if isinstance(pattern, FrequencyPattern):
        return _frequency_suggestion(pattern, now)
    if isinstance(pattern, LocationPattern):
        return _location_suggestion(pattern, now)
    raise TypeError(f"Unsupported pattern variant: {type(pattern).__name__}")


# --- pipeline stages ---


def suggestions_paused(preferences: SuggestionPreferences, now: datetime) -> bool:
    if not preferences.enabled:
        return True
    return preferences.disabled_until is not None and preferences.disabled_until > now


def generate_suggestions(
    patterns: Iterable[Pattern],
    preferences: SuggestionPreferences,
    now: Optional[datetime] = None,
) -> list[Suggestion]:
    """Create one unscored candidate per qualifying pattern, in pattern order."""
    now = now or _utcnow()
    if suggestions_paused(preferences, now):
        return []

    candidates = []
    for pattern in patterns:
        suggestion = suggestion_for_pattern(pattern, now)
        if suggestion is not None:
            candidates.append(suggestion)
    return candidates


def calculate_relevance_scores(
    candidates: Iterable[Suggestion],
    preferences: SuggestionPreferences,
    now: Optional[datetime] = None,
) -> list[Suggestion]:
    now = now or _utcnow()
    return [score_suggestion(suggestion, preferences, now) for suggestion in candidates]


def filter_suggestions(
    scored: Iterable[Suggestion],
    preferences: SuggestionPreferences,
    exclusions: Optional[Exclusions] = None,
    now: Optional[datetime] = None,
) -> list[Suggestion]:
    """Apply the visibility gates, rank by relevance and cap the list.

    Ties keep their generation order.
    """
    now = now or _utcnow()
    exclusions = exclusions or Exclusions()

    visible = [
        suggestion
        for suggestion in scored
        if preferences.is_category_enabled(suggestion.category)
        and suggestion.relevance_score >= preferences.min_relevance_threshold
        and suggestion.id not in exclusions
        and not suggestion.dismissed
        and not suggestion.implemented
        and (suggestion.expires is None or suggestion.expires >= now)
    ]
    visible = sorted(visible, key=lambda s: s.relevance_score, reverse=True)
    return visible[: preferences.max_suggestions_visible]


def rank_suggestions(
    patterns: Iterable[Pattern],
    preferences: SuggestionPreferences,
    exclusions: Optional[Exclusions] = None,
    now: Optional[datetime] = None,
) -> list[Suggestion]:
    """Run generate, score and filter in one go."""
    now = now or _utcnow()
    candidates = generate_suggestions(patterns, preferences, now)
    scored = calculate_relevance_scores(candidates, preferences, now)
    return filter_suggestions(scored, preferences, exclusions, now)


# --- per-user session ---


class SuggestionSession:
    """One user's suggestion state between requests.

    Not safe for concurrent mutation: the host must serialize
    ``mark_dismissed``, ``mark_implemented`` and ``record_feedback`` calls
    for the same user.
    """

    def __init__(
        self,
        user_id: str,
        preferences: Optional[SuggestionPreferences] = None,
        analyzer: Optional[PatternAnalyzer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.user_id = user_id
        self.preferences = preferences or default_preferences()
        self.patterns: list[Pattern] = []
        self.feedback: list[SuggestionFeedback] = []
        self.exclusions = Exclusions()
        self._analyzer = analyzer or PatternAnalyzer()
        self._clock = clock
        self._candidates: Optional[list[Suggestion]] = None
        # Latest copy of every suggestion issued this session, by id
        self._issued: dict[str, Suggestion] = {}

    @property
    def candidates(self) -> list[Suggestion]:
        return list(self._candidates or [])

    def analyze(self, events: Iterable[EventInput]) -> list[Pattern]:
        """Detect patterns from events and use them for the next generation."""
        self.patterns = self._analyzer.analyze(events)
        return list(self.patterns)

    def set_patterns(self, patterns: Iterable[Pattern]) -> None:
        self.patterns = list(patterns)
        logger.info(
            "suggestion_session_patterns_set",
            user_id=self.user_id,
            pattern_count=len(self.patterns),
        )

    def set_preferences(
        self, update: Union[PreferencesUpdate, Mapping[str, Any]]
    ) -> SuggestionPreferences:
        self.preferences = merge_preferences(self.preferences, update)
        return self.get_preferences()

    def get_preferences(self) -> SuggestionPreferences:
        return self.preferences.model_copy(deep=True)

    def generate_suggestions(self) -> list[Suggestion]:
        """Regenerate and score candidates, then return the visible ones."""
        now = self._clock()
        candidates = generate_suggestions(self.patterns, self.preferences, now)
        self._candidates = calculate_relevance_scores(candidates, self.preferences, now)
        for suggestion in self._candidates:
            self._issued[suggestion.id] = suggestion

        logger.info(
            "suggestions_generated",
            user_id=self.user_id,
            pattern_count=len(self.patterns),
            candidate_count=len(self._candidates),
        )
        return self.get_filtered_suggestions()

    def calculate_relevance_scores(self) -> list[Suggestion]:
        """Rescore the current candidates against the current preferences."""
        if self._candidates is None:
            raise ScoringBeforeGenerationError()

        self._candidates = calculate_relevance_scores(
            self._candidates, self.preferences, self._clock()
        )
        for suggestion in self._candidates:
            self._issued[suggestion.id] = suggestion
        return self.candidates

    def get_filtered_suggestions(self) -> list[Suggestion]:
        if self._candidates is None:
            return []
        return filter_suggestions(
            self._candidates, self.preferences, self.exclusions, self._clock()
        )

    def mark_dismissed(self, suggestion_id: str) -> None:
        if not self._flag(suggestion_id, "dismissed"):
            return
        self.exclusions = self.exclusions.with_dismissed(suggestion_id)
        logger.info("suggestion_dismissed", user_id=self.user_id, suggestion_id=suggestion_id)

    def mark_implemented(self, suggestion_id: str) -> None:
        if not self._flag(suggestion_id, "implemented"):
            return
        self.exclusions = self.exclusions.with_implemented(suggestion_id)
        logger.info("suggestion_implemented", user_id=self.user_id, suggestion_id=suggestion_id)

    def record_feedback(self, feedback: SuggestionFeedback) -> None:
        """Store feedback and adapt preferences when it is negative."""
        suggestion = self._issued.get(feedback.suggestion_id)
        if suggestion is None:
            logger.info(
                "feedback_for_unknown_suggestion",
                user_id=self.user_id,
                suggestion_id=feedback.suggestion_id,
            )
            return

        self.feedback.append(feedback)
        self._flag(feedback.suggestion_id, "feedback_provided")

        if not feedback.relevant:
            self.preferences = adapt_preferences(self.preferences, feedback, suggestion.category)

    def _flag(self, suggestion_id: str, flag: str) -> bool:
        """Set a boolean flag on every held copy of a suggestion.

        Returns False when the id was never issued in this session.
        """
        if suggestion_id not in self._issued:
            logger.debug("unknown_suggestion_id", user_id=self.user_id, suggestion_id=suggestion_id)
            return False

        self._issued[suggestion_id] = self._issued[suggestion_id].model_copy(update={flag: True})
        if self._candidates is not None:
            self._candidates = [
                s.model_copy(update={flag: True}) if s.id == suggestion_id else s
                for s in self._candidates
            ]
        return True
