"""Adaptive learning core: behavioral pattern detection and suggestion ranking."""

__version__ = "0.1.0"
