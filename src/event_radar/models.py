"""Data models for events, interactions and saved records."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, asdict, field, fields
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in decimal degrees."""

    latitude: float             # [-90, 90]
    longitude: float            # [-180, 180]


@dataclass(frozen=True)
class EventLocation(Coordinate):
    address: str = ""


class Action(str, enum.Enum):
    """Outcome of a swipe."""

    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class Event:
    """A curated event as read from the store. Read-only to this package."""

    id: str
    name: str
    venue: str
    description: str
    date: datetime              # Always UTC
    location: EventLocation
    created_at: datetime        # Always UTC
    is_active: bool = True

    image_url: Optional[str] = None
    link: Optional[str] = None
    host_website: Optional[str] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        for key in ("date", "created_at"):
            d[key] = d[key].isoformat()
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class EventWithDistance(Event):
    """An Event annotated for display.

    ``distance`` is in miles. For saved events it is the value frozen at save
    time, since the user may have moved since.
    """

    distance: Optional[float] = None
    saved_event_id: Optional[str] = None

    @classmethod
    def from_event(
        cls,
        event: Event,
        distance: float | None = None,
        saved_event_id: str | None = None,
    ) -> EventWithDistance:
        base = {f.name: getattr(event, f.name) for f in fields(Event)}
        return cls(**base, distance=distance, saved_event_id=saved_event_id)


@dataclass(frozen=True)
class InteractionRecord:
    """One accept/reject decision. The interaction log is append-only."""

    user_id: str
    event_id: str
    action: Action
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        d = asdict(self)
        d["action"] = self.action.value
        d["timestamp"] = self.timestamp.isoformat()
        return json.dumps(d)

    @classmethod
    def from_json(cls, raw: str) -> InteractionRecord:
        d = json.loads(raw)
        d["action"] = Action(d["action"])
        d["timestamp"] = datetime.fromisoformat(d["timestamp"])
        return cls(**d)


@dataclass(frozen=True)
class SavedRecord:
    """A saved (accepted) event for one user."""

    saved_event_id: str
    user_id: str
    event_id: str
    saved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    distance_at_save: Optional[float] = None

    def to_json(self) -> str:
        d = asdict(self)
        d["saved_at"] = self.saved_at.isoformat()
        return json.dumps(d)

    @classmethod
    def from_json(cls, raw: str) -> SavedRecord:
        d = json.loads(raw)
        d["saved_at"] = datetime.fromisoformat(d["saved_at"])
        return cls(**d)
