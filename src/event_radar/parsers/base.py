"""Abstract base parser with validation logic."""

from __future__ import annotations

import abc
from typing import Any, Mapping

from event_radar.errors import MalformedRecord
from event_radar.models import Event


class EventParser(abc.ABC):
    """Abstract parser that converts a loosely-typed store document → Event."""

    @abc.abstractmethod
    def parse_document(self, document: Mapping[str, Any]) -> Event:
        """Parse one store document into an Event.

        Args:
            document: The raw document, including its ``id``.

        Returns:
            A validated Event.

        Raises:
            MalformedRecord: if required fields are missing or invalid.
        """

    def parse_many(
        self, documents: list[Mapping[str, Any]],
    ) -> tuple[list[Event], list[MalformedRecord]]:
        """Parse a batch, collecting failures instead of aborting."""
        events: list[Event] = []
        rejects: list[MalformedRecord] = []
        for document in documents:
            try:
                events.append(self.parse_document(document))
            except MalformedRecord as exc:
                rejects.append(exc)
        return events, rejects

    @staticmethod
    def validate(event: Event) -> list[str]:
        """Validate an Event. Returns list of error messages (empty = valid)."""
        errors: list[str] = []

        # Latitude: [-90, 90]
        if not -90 <= event.location.latitude <= 90:
            errors.append(f"latitude {event.location.latitude} out of range [-90, 90]")

        # Longitude: [-180, 180]
        if not -180 <= event.location.longitude <= 180:
            errors.append(f"longitude {event.location.longitude} out of range [-180, 180]")

        for key in ("date", "created_at"):
            if getattr(event, key).tzinfo is None:
                errors.append(f"{key} is not timezone-aware")

        # Required string fields
        if not event.id:
            errors.append("id is empty")
        if not event.name:
            errors.append("name is empty")
        if not event.venue:
            errors.append("venue is empty")

        return errors
