"""Unit tests for the relevance scoring model."""

from datetime import timedelta

import pytest

from adaptive_learning.models.pattern import PatternType
from adaptive_learning.models.suggestion import (
    RelevanceFactor,
    RelevanceFactorScore,
    SensitivityLevel,
    Suggestion,
    SuggestionCategory,
    SuggestionPreferences,
    SuggestionSource,
    SuggestionType,
)
from adaptive_learning.services.scoring import (
    age_factor,
    apply_sensitivity,
    factor_weight,
    score_suggestion,
    urgency_factor,
    weighted_relevance,
)


def _time_suggestion(now, confidence=0.9, expires_in=timedelta(hours=1)):
    return Suggestion(
        id="time-food_ordered-tod1200",
        title="Order your usual meal",
        description="",
        type=SuggestionType.ACTION,
        category=SuggestionCategory.FOOD,
        source=SuggestionSource(pattern_type=PatternType.TIME, confidence=confidence),
        relevance_factors=[
            RelevanceFactorScore(factor=RelevanceFactor.TIME, score=confidence),
            RelevanceFactorScore(factor=RelevanceFactor.FREQUENCY, score=0.7),
        ],
        created=now,
        expires=now + expires_in if expires_in is not None else None,
    )


class TestFactorWeights:
    def test_known_weights(self):
        assert factor_weight(RelevanceFactor.USER_PREFERENCE) == 2.0
        assert factor_weight(RelevanceFactor.URGENCY) == 1.7
        assert factor_weight(RelevanceFactor.TIME) == 1.5

    def test_unlisted_factors_weigh_one(self):
        assert factor_weight(RelevanceFactor.FREQUENCY) == 1.0
        assert factor_weight(RelevanceFactor.CONTEXT) == 1.0


class TestAgeFactor:
    def test_fresh_suggestion(self, fixed_now):
        assert age_factor(fixed_now, fixed_now) == 1.0

    def test_half_day_old(self, fixed_now):
        assert age_factor(fixed_now - timedelta(hours=12), fixed_now) == pytest.approx(0.5)

    def test_older_than_a_day(self, fixed_now):
        assert age_factor(fixed_now - timedelta(hours=30), fixed_now) == 0.0

    def test_created_in_the_future_is_clamped(self, fixed_now):
        assert age_factor(fixed_now + timedelta(hours=2), fixed_now) == 1.0


class TestUrgencyFactor:
    @pytest.mark.parametrize(
        "hours_left,expected",
        [(0.5, 0.9), (1.0, 0.7), (2.5, 0.7), (3.0, 0.3), (48, 0.3), (-1, 0.9)],
    )
    def test_bands(self, fixed_now, hours_left, expected):
        assert urgency_factor(fixed_now + timedelta(hours=hours_left), fixed_now) == expected


class TestSensitivity:
    def test_low_dampens(self):
        assert apply_sensitivity(0.5, SensitivityLevel.LOW) == pytest.approx(0.4)

    def test_medium_is_identity(self):
        assert apply_sensitivity(0.5, SensitivityLevel.MEDIUM) == 0.5

    def test_high_is_capped(self):
        assert apply_sensitivity(0.9, SensitivityLevel.HIGH) == 1.0


class TestWeightedRelevance:
    def test_no_factors(self):
        # Only age and category remain
        assert weighted_relevance([], 1.0, 1.0) == pytest.approx(1.0)
        assert weighted_relevance([], 1.0, 0.0) == pytest.approx(1.2 / 3.2)


class TestScoreSuggestion:
    def test_time_suggestion_score(self, fixed_now):
        """Time 0.9, frequency 0.7 and urgency 0.7 at creation time."""
        scored = score_suggestion(_time_suggestion(fixed_now), SuggestionPreferences(), fixed_now)

        assert scored.relevance_score == pytest.approx(6.44 / 7.4)
        assert scored.relevance_factors[-1].factor == RelevanceFactor.URGENCY
        assert scored.relevance_factors[-1].score == 0.7

    def test_disabled_category_lowers_score(self, fixed_now):
        prefs = SuggestionPreferences(categories_enabled={SuggestionCategory.FOOD: False})
        scored = score_suggestion(_time_suggestion(fixed_now), prefs, fixed_now)
        assert scored.relevance_score == pytest.approx(4.44 / 7.4)

    def test_no_urgency_without_expiry(self, fixed_now):
        scored = score_suggestion(
            _time_suggestion(fixed_now, expires_in=None), SuggestionPreferences(), fixed_now
        )
        factors = [f.factor for f in scored.relevance_factors]
        assert RelevanceFactor.URGENCY not in factors
        # (0.9*1.5 + 0.7 + 1.2 + 2.0) / 5.7
        assert scored.relevance_score == pytest.approx(5.25 / 5.7)

    def test_rescoring_keeps_single_urgency_entry(self, fixed_now):
        prefs = SuggestionPreferences()
        once = score_suggestion(_time_suggestion(fixed_now), prefs, fixed_now)
        twice = score_suggestion(once, prefs, fixed_now)

        urgency = [f for f in twice.relevance_factors if f.factor == RelevanceFactor.URGENCY]
        assert len(urgency) == 1
        assert twice.relevance_score == pytest.approx(once.relevance_score)

    def test_does_not_mutate_input(self, fixed_now):
        original = _time_suggestion(fixed_now)
        score_suggestion(original, SuggestionPreferences(), fixed_now)
        assert original.relevance_score == 0.0
        assert len(original.relevance_factors) == 2

    def test_high_sensitivity_clamps_to_one(self, fixed_now):
        prefs = SuggestionPreferences(sensitivity_level=SensitivityLevel.HIGH)
        scored = score_suggestion(_time_suggestion(fixed_now), prefs, fixed_now)
        assert scored.relevance_score == 1.0

    def test_score_decays_with_age(self, fixed_now):
        prefs = SuggestionPreferences()
        suggestion = _time_suggestion(fixed_now, expires_in=None)
        fresh = score_suggestion(suggestion, prefs, fixed_now)
        stale = score_suggestion(suggestion, prefs, fixed_now + timedelta(hours=12))
        assert stale.relevance_score < fresh.relevance_score
