"""Unit tests for pattern formatting helpers."""

import pytest

from adaptive_learning.models.pattern import (
    Frequency,
    FrequencyPattern,
    Location,
    LocationPattern,
    TimeOfDay,
    TimePattern,
    TimeUnit,
)
from adaptive_learning.services.formatting import (
    format_frequency,
    format_frequency_pattern,
    format_location_pattern,
    format_time_of_day,
    format_time_pattern,
    ordinal,
    should_trigger_time_pattern,
)
from tests.conftest import at


class TestOrdinal:
    @pytest.mark.parametrize(
        "n,expected",
        [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (13, "13th"), (22, "22nd"), (31, "31st")],
    )
    def test_suffixes(self, n, expected):
        assert ordinal(n) == expected


class TestFormatTimePattern:
    def test_time_of_day(self):
        assert format_time_of_day(0, 5) == "12:05 AM"
        assert format_time_of_day(12, 0) == "12:00 PM"
        assert format_time_of_day(18, 30) == "6:30 PM"

    def test_weekdays(self):
        pattern = TimePattern(
            event_type="x",
            time_of_day=TimeOfDay(hour=8, minute=30),
            day_of_week=[1, 2, 3, 4, 5],
            confidence=0.9,
        )
        assert format_time_pattern(pattern) == "8:30 AM weekdays"

    def test_weekend_and_every_day(self):
        weekend = TimePattern(event_type="x", day_of_week=[6, 0], confidence=0.9)
        every = TimePattern(event_type="x", day_of_week=list(range(7)), confidence=0.9)
        assert format_time_pattern(weekend) == "weekends"
        assert format_time_pattern(every) == "every day"

    def test_named_days(self):
        pattern = TimePattern(event_type="x", day_of_week=[1, 3], confidence=0.9)
        assert format_time_pattern(pattern) == "on Monday, Wednesday"

    def test_day_of_month(self):
        pattern = TimePattern(event_type="x", day_of_month=[15], confidence=0.9)
        assert format_time_pattern(pattern) == "on the 15th of the month"


class TestFormatFrequency:
    def test_plural_times(self):
        assert format_frequency(2, "day") == "2 times per day"

    def test_singular_time(self):
        assert format_frequency(1, "week") == "1 time per week"

    def test_duration(self):
        assert format_frequency(3, "week", 2) == "3 times per 2 weeks"

    def test_pattern(self):
        pattern = FrequencyPattern(
            event_type="x", frequency=Frequency(count=4, time_unit=TimeUnit.MONTH), confidence=0.8
        )
        assert format_frequency_pattern(pattern) == "4 times per month"


class TestFormatLocation:
    def test_named(self):
        pattern = LocationPattern(
            event_type="x",
            location=Location(latitude=1, longitude=2, radius_meters=100, location_name="Gym"),
            confidence=0.8,
        )
        assert format_location_pattern(pattern) == "Gym"

    def test_coordinates(self):
        pattern = LocationPattern(
            event_type="x",
            location=Location(latitude=40.7128, longitude=-74.006, radius_meters=100),
            confidence=0.8,
        )
        assert format_location_pattern(pattern) == "40.71280, -74.00600"


class TestShouldTrigger:
    def test_inside_tolerance(self):
        pattern = TimePattern(event_type="x", time_of_day=TimeOfDay(hour=12, minute=0), confidence=0.9)
        assert should_trigger_time_pattern(pattern, at(3, 2, 12, 25))
        assert not should_trigger_time_pattern(pattern, at(3, 2, 12, 31))

    def test_wraps_midnight(self):
        pattern = TimePattern(event_type="x", time_of_day=TimeOfDay(hour=23, minute=50), confidence=0.9)
        assert should_trigger_time_pattern(pattern, at(3, 3, 0, 10))

    def test_day_of_week(self):
        # 1 March 2026 is a Sunday
        pattern = TimePattern(event_type="x", day_of_week=[0], confidence=0.9)
        assert should_trigger_time_pattern(pattern, at(3, 1, 9, 0))
        assert not should_trigger_time_pattern(pattern, at(3, 2, 9, 0))

    def test_day_of_month_and_month(self):
        pattern = TimePattern(event_type="x", day_of_month=[15], month_of_year=[2], confidence=0.9)
        assert should_trigger_time_pattern(pattern, at(3, 15, 9, 0))
        assert not should_trigger_time_pattern(pattern, at(4, 15, 9, 0))
