"""Suggestion, preference and feedback models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from adaptive_learning.models.event import CamelModel, ensure_aware
from adaptive_learning.models.pattern import PatternType


class SuggestionType(str, Enum):
    """What accepting the suggestion leads to."""

    AUTOMATION = "automation"
    ACTION = "action"
    REMINDER = "reminder"
    CONNECTION = "connection"
    FEATURE = "feature"


class SuggestionCategory(str, Enum):
    """Categories users can switch on and off."""

    PRODUCTIVITY = "productivity"
    COMMUNICATION = "communication"
    TRANSPORTATION = "transportation"
    FOOD = "food"
    ENTERTAINMENT = "entertainment"
    SYSTEM = "system"


class RelevanceFactor(str, Enum):
    """Named inputs to the relevance score."""

    TIME = "time"
    FREQUENCY = "frequency"
    LOCATION = "location"
    USER_PREFERENCE = "user_preference"
    FEEDBACK = "feedback"
    CONTEXT = "context"
    URGENCY = "urgency"
    IMPORTANCE = "importance"


class DisplayMode(str, Enum):
    BANNER = "banner"
    INLINE = "inline"
    BOTH = "both"


class SensitivityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FeedbackReason(str, Enum):
    """Why the user marked a suggestion as irrelevant."""

    TIMING = "timing"
    CATEGORY = "category"
    FREQUENCY = "frequency"
    NOT_INTERESTED = "not_interested"
    OTHER = "other"


class RelevanceFactorScore(CamelModel):
    """One explainable contribution to a relevance score."""

    factor: RelevanceFactor
    score: float = Field(..., ge=0.0, le=1.0)


class SuggestionSource(CamelModel):
    """Back-link to the pattern a suggestion came from."""

    pattern_type: PatternType
    pattern_id: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class Suggestion(CamelModel):
    """A proactive recommendation derived from one pattern."""

    id: str
    title: str
    description: str
    type: SuggestionType
    category: SuggestionCategory
    source: SuggestionSource
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    relevance_factors: list[RelevanceFactorScore] = Field(default_factory=list)
    created: datetime
    expires: Optional[datetime] = None
    action_params: dict[str, Any] = Field(default_factory=dict)
    dismissed: bool = False
    implemented: bool = False
    feedback_provided: bool = False

    @field_validator("created", "expires")
    @classmethod
    def timestamps_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(v)


def _all_categories_enabled() -> dict[SuggestionCategory, bool]:
    return {category: True for category in SuggestionCategory}


class SuggestionPreferences(CamelModel):
    """Per-user settings gating which suggestions are shown."""

    enabled: bool = True
    categories_enabled: dict[SuggestionCategory, bool] = Field(
        default_factory=_all_categories_enabled
    )
    min_relevance_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    max_suggestions_per_day: int = Field(default=10, ge=0)
    max_suggestions_visible: int = Field(default=3, ge=0)
    suggestions_display_mode: DisplayMode = DisplayMode.BOTH
    sensitivity_level: SensitivityLevel = SensitivityLevel.MEDIUM
    disabled_until: Optional[datetime] = None

    @field_validator("disabled_until")
    @classmethod
    def disabled_until_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(v)

    def is_category_enabled(self, category: SuggestionCategory) -> bool:
        """Categories missing from the map count as enabled."""
        return self.categories_enabled.get(category, True)


class PreferencesUpdate(CamelModel):
    """Partial preference patch; unset fields leave the current value alone."""

    enabled: Optional[bool] = None
    categories_enabled: Optional[dict[SuggestionCategory, bool]] = None
    min_relevance_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_suggestions_per_day: Optional[int] = Field(default=None, ge=0)
    max_suggestions_visible: Optional[int] = Field(default=None, ge=0)
    suggestions_display_mode: Optional[DisplayMode] = None
    sensitivity_level: Optional[SensitivityLevel] = None
    disabled_until: Optional[datetime] = None

    @field_validator("disabled_until")
    @classmethod
    def disabled_until_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(v)


class SuggestionFeedback(CamelModel):
    """Explicit user signal on an issued suggestion."""

    suggestion_id: str
    relevant: bool
    helpful: bool
    reason_if_irrelevant: Optional[FeedbackReason] = None
    comment: Optional[str] = Field(default=None, max_length=1000)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def timestamp_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)
