"""Request bodies for the learning API."""

from typing import Any, Optional

from pydantic import Field

from adaptive_learning.models.event import CamelModel
from adaptive_learning.models.suggestion import (
    PreferencesUpdate,
    SuggestionFeedback,
    SuggestionPreferences,
)

MAX_EVENTS_PER_REQUEST = 10000


class AnalyzeRequest(CamelModel):
    """A window of one user's events.

    Events are kept as raw mappings so malformed entries can be skipped
    instead of failing the whole request.
    """

    events: list[dict[str, Any]] = Field(default_factory=list, max_length=MAX_EVENTS_PER_REQUEST)


class SuggestionsRequest(AnalyzeRequest):
    """Events plus the caller's stored preferences and exclusions."""

    preferences: Optional[SuggestionPreferences] = None
    dismissed: list[str] = Field(default_factory=list)
    implemented: list[str] = Field(default_factory=list)


class FeedbackRequest(CamelModel):
    preferences: SuggestionPreferences
    feedback: SuggestionFeedback


class PreferencesMergeRequest(CamelModel):
    preferences: SuggestionPreferences
    update: PreferencesUpdate
