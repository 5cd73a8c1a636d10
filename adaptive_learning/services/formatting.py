"""Human-readable renderings of patterns and time-pattern trigger checks."""

from datetime import datetime

from adaptive_learning.models.pattern import FrequencyPattern, LocationPattern, TimePattern

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEKDAYS = {1, 2, 3, 4, 5}
WEEKEND = {0, 6}
MINUTES_PER_DAY = 24 * 60


def ordinal(n: int) -> str:
    """1 -> '1st', 12 -> '12th', 22 -> '22nd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_time_of_day(hour: int, minute: int) -> str:
    hour12 = hour % 12 or 12
    am_pm = "AM" if hour < 12 else "PM"
    return f"{hour12}:{minute:02d} {am_pm}"


def format_time_pattern(pattern: TimePattern) -> str:
    """Describe when a time pattern recurs, e.g. '8:30 AM weekdays'."""
    parts = []

    if pattern.time_of_day:
        parts.append(format_time_of_day(pattern.time_of_day.hour, pattern.time_of_day.minute))

    if pattern.day_of_week:
        days = set(pattern.day_of_week)
        if len(days) == 7:
            parts.append("every day")
        elif days == WEEKDAYS:
            parts.append("weekdays")
        elif days == WEEKEND:
            parts.append("weekends")
        else:
            parts.append("on " + ", ".join(DAY_NAMES[day] for day in pattern.day_of_week))

    if pattern.day_of_month:
        days_text = ", ".join(ordinal(day) for day in pattern.day_of_month)
        parts.append(f"on the {days_text} of the month")

    return " ".join(parts)


def format_frequency(count: int, time_unit: str, duration: int = 1) -> str:
    times = f"{count} time{'' if count == 1 else 's'}"
    if duration == 1:
        return f"{times} per {time_unit}"
    return f"{times} per {duration} {time_unit}s"


def format_frequency_pattern(pattern: FrequencyPattern) -> str:
    frequency = pattern.frequency
    return format_frequency(frequency.count, frequency.time_unit.value, frequency.duration)


def format_location_pattern(pattern: LocationPattern) -> str:
    """Place name if known, otherwise coordinates at ~1 m precision."""
    location = pattern.location
    if location.location_name:
        return location.location_name
    return f"{location.latitude:.5f}, {location.longitude:.5f}"


def should_trigger_time_pattern(pattern: TimePattern, now: datetime) -> bool:
    """Whether ``now`` falls inside every dimension the pattern specifies."""
    if pattern.time_of_day:
        current = now.hour * 60 + now.minute
        anchor = pattern.time_of_day.hour * 60 + pattern.time_of_day.minute
        diff = abs(current - anchor)
        # Wrap around midnight
        diff = min(diff, MINUTES_PER_DAY - diff)
        if diff > pattern.time_of_day.tolerance_minutes:
            return False

    if pattern.day_of_week and (now.weekday() + 1) % 7 not in pattern.day_of_week:
        return False

    if pattern.day_of_month and now.day not in pattern.day_of_month:
        return False

    if pattern.month_of_year and now.month - 1 not in pattern.month_of_year:
        return False

    return True
