"""Preference defaults, partial updates and adaptation from user feedback.

Every function here returns a new ``SuggestionPreferences``; nothing is
shared between users.
"""

from typing import Any, Mapping, Optional, Union

import structlog

from adaptive_learning.config import get_settings
from adaptive_learning.models.suggestion import (
    FeedbackReason,
    PreferencesUpdate,
    SuggestionCategory,
    SuggestionFeedback,
    SuggestionPreferences,
)

logger = structlog.get_logger(__name__)

# "Too many suggestions" lowers the daily cap by this much, never below the floor
FREQUENCY_FEEDBACK_STEP = 2
MIN_SUGGESTIONS_PER_DAY = 2


def default_preferences() -> SuggestionPreferences:
    """Preferences for a user who has never saved any."""
    settings = get_settings()
    return SuggestionPreferences(
        min_relevance_threshold=settings.default_min_relevance_threshold,
        max_suggestions_per_day=settings.default_max_suggestions_per_day,
        max_suggestions_visible=settings.default_max_suggestions_visible,
    )


def merge_preferences(
    preferences: SuggestionPreferences,
    update: Union[PreferencesUpdate, Mapping[str, Any]],
) -> SuggestionPreferences:
    """Shallow field-by-field merge of a partial update.

    Only fields present in the update are applied; an explicit null for
    ``disabled_until`` clears the pause.
    """
    if not isinstance(update, PreferencesUpdate):
        update = PreferencesUpdate.model_validate(update)

    changes = update.model_dump(exclude_unset=True)
    # Nulls are only meaningful for the pause timestamp
    changes = {
        key: value
        for key, value in changes.items()
        if value is not None or key == "disabled_until"
    }

    if changes:
        logger.info("preferences_updated", fields=sorted(changes))
    return preferences.model_copy(update=changes)


def adapt_preferences(
    preferences: SuggestionPreferences,
    feedback: SuggestionFeedback,
    category: Optional[SuggestionCategory] = None,
) -> SuggestionPreferences:
    """Adjust preferences in response to one piece of negative feedback.

    Only the ``frequency`` reason changes anything: the daily cap drops by
    ``FREQUENCY_FEEDBACK_STEP`` down to ``MIN_SUGGESTIONS_PER_DAY``. Other
    reasons are recorded as signals and leave preferences untouched.
    """
    if feedback.relevant:
        return preferences

    reason = feedback.reason_if_irrelevant

    if reason == FeedbackReason.FREQUENCY:
        new_max = max(
            MIN_SUGGESTIONS_PER_DAY,
            preferences.max_suggestions_per_day - FREQUENCY_FEEDBACK_STEP,
        )
        logger.info(
            "preferences_adapted",
            suggestion_id=feedback.suggestion_id,
            reason=reason.value,
            max_suggestions_per_day=new_max,
        )
        return preferences.model_copy(update={"max_suggestions_per_day": new_max})

    logger.info(
        "feedback_signal_logged",
        suggestion_id=feedback.suggestion_id,
        reason=reason.value if reason else None,
        category=category.value if category else None,
    )
    return preferences
