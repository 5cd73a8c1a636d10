"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Callable, Optional

import pytest
import structlog

from adaptive_learning.models.event import LocationInfo, TrackingEvent

USER_ID = "user-123"


def at(month: int, day: int, hour: int = 0, minute: int = 0, year: int = 2026) -> datetime:
    """UTC timestamp helper. 1 March 2026 is a Sunday."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_event(
    event_type: str,
    timestamp: datetime,
    metadata: Optional[dict] = None,
    location: Optional[LocationInfo] = None,
) -> TrackingEvent:
    return TrackingEvent(
        user_id=USER_ID,
        event_type=event_type,
        timestamp=timestamp,
        metadata=metadata or {},
        location_info=location,
    )


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration made by a test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def event_factory() -> Callable[..., TrackingEvent]:
    return make_event


@pytest.fixture
def fixed_now() -> datetime:
    return at(3, 10, 12, 0)


@pytest.fixture
def lunch_events() -> list[TrackingEvent]:
    """Five food orders around noon on five consecutive weekdays."""
    times = [(2, 12, 0), (3, 12, 10), (4, 12, 5), (5, 11, 55), (6, 12, 15)]
    return [
        make_event("food_ordered", at(3, day, hour, minute), {"restaurant": "Luigi's"})
        for day, hour, minute in times
    ]


@pytest.fixture
def sequence_events() -> list[TrackingEvent]:
    """app_opened -> query_sent -> model_selected, two minutes apart, on three mornings."""
    events = []
    for day in (2, 3, 4):
        events.append(make_event("app_opened", at(3, day, 9, 0)))
        events.append(make_event("query_sent", at(3, day, 9, 2)))
        events.append(make_event("model_selected", at(3, day, 9, 4)))
    return events
