"""Exceptions raised by the adaptive learning core.

Sparse or missing data never raises; only contract violations by the
caller do.
"""


class AdaptiveLearningError(Exception):
    """Base class for adaptive learning errors."""


class ScoringBeforeGenerationError(AdaptiveLearningError):
    """Relevance scoring was requested before any suggestions were generated."""

    def __init__(self, message: str = "Generate suggestions before scoring them"):
        super().__init__(message)
