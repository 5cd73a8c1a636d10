"""Models package exports."""

from adaptive_learning.models.event import (
    DeviceInfo,
    LocationInfo,
    TrackingEvent,
    TrackingEventType,
)
from adaptive_learning.models.pattern import (
    Frequency,
    FrequencyPattern,
    Location,
    LocationPattern,
    Pattern,
    PatternList,
    PatternType,
    SequencePattern,
    SequenceStep,
    TimeOfDay,
    TimePattern,
    TimeUnit,
)
from adaptive_learning.models.suggestion import (
    FeedbackReason,
    PreferencesUpdate,
    RelevanceFactor,
    RelevanceFactorScore,
    SensitivityLevel,
    Suggestion,
    SuggestionCategory,
    SuggestionFeedback,
    SuggestionPreferences,
    SuggestionSource,
    SuggestionType,
)

__all__ = [
    "DeviceInfo",
    "FeedbackReason",
    "Frequency",
    "FrequencyPattern",
    "Location",
    "LocationInfo",
    "LocationPattern",
    "Pattern",
    "PatternList",
    "PatternType",
    "PreferencesUpdate",
    "RelevanceFactor",
    "RelevanceFactorScore",
    "SensitivityLevel",
    "SequencePattern",
    "SequenceStep",
    "Suggestion",
    "SuggestionCategory",
    "SuggestionFeedback",
    "SuggestionPreferences",
    "SuggestionSource",
    "SuggestionType",
    "TimeOfDay",
    "TimePattern",
    "TimeUnit",
    "TrackingEvent",
    "TrackingEventType",
]
