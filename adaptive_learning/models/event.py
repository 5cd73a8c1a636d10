"""Tracking event models for the adaptive learning core."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrackingEventType(str, Enum):
    """Known kinds of user actions reported by instrumentation."""

    # User interaction events
    QUERY_SENT = "query_sent"
    MODEL_SELECTED = "model_selected"
    SUGGESTION_ACCEPTED = "suggestion_accepted"
    SUGGESTION_DISMISSED = "suggestion_dismissed"
    SERVICE_CONNECTED = "service_connected"
    SERVICE_DISCONNECTED = "service_disconnected"
    AUTOMATION_CREATED = "automation_created"
    AUTOMATION_EDITED = "automation_edited"
    AUTOMATION_EXECUTED = "automation_executed"
    AUTOMATION_DELETED = "automation_deleted"
    TEMPLATE_SHARED = "template_shared"
    TEMPLATE_IMPORTED = "template_imported"
    SETTINGS_CHANGED = "settings_changed"
    # Service usage events
    TRANSPORTATION_BOOKED = "transportation_booked"
    FOOD_ORDERED = "food_ordered"
    CALENDAR_EVENT_CREATED = "calendar_event_created"
    MESSAGE_SENT = "message_sent"
    NOTIFICATION_SENT = "notification_sent"
    LOCATION_CHANGED = "location_changed"
    # System events
    APP_OPENED = "app_opened"
    APP_CLOSED = "app_closed"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"


class DeviceType(str, Enum):
    """Device form factor the event was captured on."""

    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


class DeviceInfo(CamelModel):
    """Descriptive device data attached to an event."""

    model_config = ConfigDict(frozen=True)

    type: DeviceType
    platform: Optional[str] = None
    browser: Optional[str] = None


class LocationInfo(CamelModel):
    """Where the user was when the event happened."""

    model_config = ConfigDict(frozen=True)

    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    location_name: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class TrackingEvent(CamelModel):
    """One observed user action.

    ``event_type`` stays a plain string so kinds added by instrumentation
    after this release still flow through detection. Naive timestamps are
    taken as UTC; wall-clock fields are read in the timestamp's own offset.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    user_id: str
    event_type: str = Field(..., min_length=1)
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    device_info: Optional[DeviceInfo] = None
    location_info: Optional[LocationInfo] = None

    @field_validator("event_type", mode="before")
    @classmethod
    def event_type_value(cls, v: Any) -> Any:
        """Accept TrackingEventType members as well as raw strings."""
        if isinstance(v, TrackingEventType):
            return v.value
        return v

    @field_validator("timestamp")
    @classmethod
    def timestamp_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def metadata_default(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def minutes_into_day(self) -> int:
        return self.timestamp.hour * 60 + self.timestamp.minute

    @property
    def day_of_week(self) -> int:
        """Day of week with 0 = Sunday."""
        return (self.timestamp.weekday() + 1) % 7
