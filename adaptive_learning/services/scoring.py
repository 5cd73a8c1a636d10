"""Relevance scoring model for suggestions.

Every weight and threshold the engine uses lives here so the model can be
read and tested apart from detection.
"""

from datetime import datetime, timedelta

from adaptive_learning.models.pattern import PatternType
from adaptive_learning.models.suggestion import (
    RelevanceFactor,
    RelevanceFactorScore,
    SensitivityLevel,
    Suggestion,
    SuggestionPreferences,
)

# Minimum pattern confidence before a generator produces a suggestion
GENERATOR_MIN_CONFIDENCE = {
    PatternType.TIME: 0.65,
    PatternType.FREQUENCY: 0.65,
    PatternType.SEQUENCE: 0.70,
    PatternType.LOCATION: 0.70,
}

# Seed factor scores attached by each generator next to the pattern confidence
TIME_FREQUENCY_SEED = 0.7
SEQUENCE_CONTEXT_SEED = 0.8
FREQUENCY_IMPORTANCE_SEED = 0.6
LOCATION_CONTEXT_SEED = 0.75

# Suggestions about a specific time of day go stale quickly
TIME_SENSITIVE_TTL = timedelta(hours=1)

FACTOR_WEIGHTS = {
    RelevanceFactor.TIME: 1.5,
    RelevanceFactor.LOCATION: 1.3,
    RelevanceFactor.USER_PREFERENCE: 2.0,
    RelevanceFactor.FEEDBACK: 1.8,
    RelevanceFactor.URGENCY: 1.7,
    RelevanceFactor.IMPORTANCE: 1.6,
}
DEFAULT_FACTOR_WEIGHT = 1.0

AGE_WEIGHT = 1.2
CATEGORY_WEIGHT = 2.0
AGE_DECAY_HOURS = 24.0

# (hours until expiry strictly below, urgency score)
URGENCY_BANDS = ((1.0, 0.9), (3.0, 0.7))
URGENCY_DEFAULT = 0.3

SENSITIVITY_MULTIPLIERS = {
    SensitivityLevel.LOW: 0.8,
    SensitivityLevel.MEDIUM: 1.0,
    SensitivityLevel.HIGH: 1.2,
}


def factor_weight(factor: RelevanceFactor) -> float:
    return FACTOR_WEIGHTS.get(factor, DEFAULT_FACTOR_WEIGHT)


def age_factor(created: datetime, now: datetime) -> float:
    """Linear decay from 1 to 0 over the first day."""
    age_hours = (now - created).total_seconds() / 3600
    return min(1.0, max(0.0, 1 - age_hours / AGE_DECAY_HOURS))


def urgency_factor(expires: datetime, now: datetime) -> float:
    hours_left = (expires - now).total_seconds() / 3600
    for limit, score in URGENCY_BANDS:
        if hours_left < limit:
            return score
    return URGENCY_DEFAULT


def apply_sensitivity(score: float, level: SensitivityLevel) -> float:
    return min(1.0, score * SENSITIVITY_MULTIPLIERS[level])


def weighted_relevance(
    factors: list[RelevanceFactorScore], age: float, category_preference: float
) -> float:
    """Weighted mean of the factor list plus the age and category terms."""
    weighted_sum = 0.0
    total_weight = 0.0
    for entry in factors:
        weight = factor_weight(entry.factor)
        weighted_sum += entry.score * weight
        total_weight += weight

    weighted_sum += age * AGE_WEIGHT + category_preference * CATEGORY_WEIGHT
    total_weight += AGE_WEIGHT + CATEGORY_WEIGHT

    return weighted_sum / total_weight


def score_suggestion(
    suggestion: Suggestion, preferences: SuggestionPreferences, now: datetime
) -> Suggestion:
    """Return a copy of ``suggestion`` with its relevance score computed.

    An urgency factor is appended when the suggestion expires. Any urgency
    entry left from an earlier scoring pass is replaced, so rescoring is
    stable.
    """
    factors = [f for f in suggestion.relevance_factors if f.factor != RelevanceFactor.URGENCY]
    if suggestion.expires is not None:
        factors.append(
            RelevanceFactorScore(
                factor=RelevanceFactor.URGENCY,
                score=urgency_factor(suggestion.expires, now),
            )
        )

    category_preference = 1.0 if preferences.is_category_enabled(suggestion.category) else 0.0
    score = weighted_relevance(factors, age_factor(suggestion.created, now), category_preference)
    score = apply_sensitivity(score, preferences.sensitivity_level)

    return suggestion.model_copy(
        update={
            "relevance_factors": factors,
            "relevance_score": min(1.0, max(0.0, score)),
        }
    )
