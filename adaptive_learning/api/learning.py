"""Learning API endpoints: pattern detection, suggestions and feedback.

The endpoints are stateless. Callers send the stored events, preferences
and exclusions with each request and persist whatever comes back.
"""

from typing import Iterable

import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from adaptive_learning.models.request import (
    AnalyzeRequest,
    FeedbackRequest,
    PreferencesMergeRequest,
    SuggestionsRequest,
)
from adaptive_learning.services.feedback_service import (
    adapt_preferences,
    default_preferences,
    merge_preferences,
)
from adaptive_learning.services.pattern_analyzer import PatternAnalyzer
from adaptive_learning.services.suggestion_engine import Exclusions, rank_suggestions

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/learning", tags=["Learning"])


def _dump(models: Iterable[BaseModel]) -> list[dict]:
    return [model.model_dump(mode="json", by_alias=True) for model in models]


@router.post("/patterns")
async def detect_patterns(request: AnalyzeRequest) -> dict:
    """Detect behavioral patterns in a batch of events."""
    patterns = PatternAnalyzer().analyze(request.events)
    return {"patterns": _dump(patterns)}


@router.post("/suggestions")
async def get_suggestions(request: SuggestionsRequest) -> dict:
    """Run detection, generation, scoring and filtering for one user."""
    preferences = request.preferences or default_preferences()
    patterns = PatternAnalyzer().analyze(request.events)
    exclusions = Exclusions(
        dismissed=frozenset(request.dismissed),
        implemented=frozenset(request.implemented),
    )

    suggestions = rank_suggestions(patterns, preferences, exclusions)

    logger.info(
        "suggestions_served",
        event_count=len(request.events),
        pattern_count=len(patterns),
        suggestion_count=len(suggestions),
    )
    return {"suggestions": _dump(suggestions)}


@router.post("/feedback")
async def submit_feedback(request: FeedbackRequest) -> dict:
    """Apply one piece of feedback to the caller's preferences."""
    preferences = adapt_preferences(request.preferences, request.feedback)
    return {"preferences": preferences.model_dump(mode="json", by_alias=True)}


@router.post("/preferences/merge")
async def merge_preference_update(request: PreferencesMergeRequest) -> dict:
    """Merge a partial preference update over stored preferences."""
    preferences = merge_preferences(request.preferences, request.update)
    return {"preferences": preferences.model_dump(mode="json", by_alias=True)}
