"""Exception types shared across event-radar."""

from __future__ import annotations

import enum


class EventRadarError(Exception):
    """Base class for all event-radar errors."""


class MalformedRecord(EventRadarError):
    """Raised when a store document cannot be turned into an Event."""

    def __init__(self, errors: list[str], record_id: str | None = None):
        self.errors = errors
        self.record_id = record_id
        label = record_id or "<unknown>"
        super().__init__(f"Malformed record {label}: {'; '.join(errors)}")


class InvalidCoordinate(EventRadarError, ValueError):
    """Latitude/longitude outside the WGS84 range."""

    def __init__(self, latitude, longitude):
        self.latitude = latitude
        self.longitude = longitude
        super().__init__(
            f"invalid coordinate ({latitude}, {longitude}): "
            "latitude must be in [-90, 90] and longitude in [-180, 180]"
        )


class GeolocationError(EventRadarError):
    """Base class for failures to obtain the user's coordinate."""


class UnavailableReason(str, enum.Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"


_REASON_MESSAGES = {
    UnavailableReason.PERMISSION_DENIED: "Location permission denied",
    UnavailableReason.POSITION_UNAVAILABLE: "Location information unavailable",
    UnavailableReason.TIMEOUT: "Location request timed out",
}


class GeolocationUnavailable(GeolocationError):
    """The current position could not be determined."""

    def __init__(self, reason: UnavailableReason, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        message = _REASON_MESSAGES[reason]
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class GeocodeNotFound(GeolocationError):
    """A free-text address matched no known place."""

    def __init__(self, query: str):
        self.query = query
        super().__init__(f"No location found for '{query}'")


class StoreWriteFailure(EventRadarError):
    """A write to the event store failed. Never retried automatically."""
