"""Parser for event documents as returned by the event store.

Documents use the store's camelCase field names (``createdAt``,
``isActive``, ``imageUrl``, ``hostWebsite``); snake_case spellings are
accepted as well. Timestamps may be datetimes, ISO-8601 strings, epoch
milliseconds, or ``{"seconds": ..., "nanoseconds": ...}`` mappings.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping

from event_radar.errors import MalformedRecord
from event_radar.models import Event, EventLocation
from event_radar.parsers.base import EventParser

REQUIRED_FIELDS = ("date", "createdAt", "name", "venue", "location")

TIMESTAMP_FIELDS = ("date", "createdAt")

_ALIASES = {
    "createdAt": ("createdAt", "created_at"),
    "isActive": ("isActive", "is_active"),
    "imageUrl": ("imageUrl", "image_url"),
    "hostWebsite": ("hostWebsite", "host_website"),
}


class StoreDocumentParser(EventParser):
    """Parse a store document → Event."""

    def parse_document(self, document: Mapping[str, Any]) -> Event:
        if not isinstance(document, Mapping):
            raise MalformedRecord([f"expected a mapping, got {type(document).__name__}"])

        record_id = _get(document, "id")
        record_id = str(record_id) if record_id else None

        missing = [key for key in REQUIRED_FIELDS if _is_missing(key, _get(document, key))]
        if not record_id:
            missing.insert(0, "id")
        if missing:
            raise MalformedRecord(
                [f"missing required field '{key}'" for key in missing], record_id,
            )

        try:
            event = self._build(record_id, document)
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise MalformedRecord([str(exc) or type(exc).__name__], record_id) from exc

        errors = self.validate(event)
        if errors:
            raise MalformedRecord(errors, record_id)
        return event

    @staticmethod
    def _build(record_id: str, document: Mapping[str, Any]) -> Event:
        loc = document["location"]
        latitude = float(loc["latitude"])
        longitude = float(loc["longitude"])
        if not (math.isfinite(latitude) and math.isfinite(longitude)):
            raise ValueError(f"non-finite coordinate ({latitude}, {longitude})")

        return Event(
            id=record_id,
            name=str(document["name"]),
            venue=str(document["venue"]),
            description=str(document.get("description") or ""),
            date=_to_datetime(document["date"]),
            location=EventLocation(
                latitude=latitude,
                longitude=longitude,
                address=str(loc.get("address") or ""),
            ),
            created_at=_to_datetime(_get(document, "createdAt")),
            is_active=_get(document, "isActive") is True,
            image_url=_get(document, "imageUrl") or None,
            link=document.get("link") or None,
            host_website=_get(document, "hostWebsite") or None,
        )


def _is_missing(key: str, value: Any) -> bool:
    # epoch 0 is a real timestamp
    if key in TIMESTAMP_FIELDS:
        return value is None or value == ""
    return not value


def _get(document: Mapping[str, Any], key: str) -> Any:
    for alias in _ALIASES.get(key, (key,)):
        if alias in document:
            return document[alias]
    return None


def _to_datetime(value: Any) -> datetime:
    """Coerce a store timestamp to an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, bool):
        raise TypeError("boolean is not a timestamp")
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        if seconds is None:
            raise ValueError(f"unrecognised timestamp mapping {dict(value)!r}")
        dt = datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    else:
        raise TypeError(f"unsupported timestamp type {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
