"""Discovery feed and saved-list ordering.

Everything here is synchronous and side-effect free apart from logging:
inputs are fully materialized, outputs are fresh lists, and no state is kept
between calls.
"""

from __future__ import annotations

import enum
import logging
import unicodedata
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

from event_radar.errors import MalformedRecord
from event_radar.geo import distance_miles, validate_coordinate
from event_radar.models import Coordinate, Event, EventWithDistance, SavedRecord
from event_radar.parsers import EventParser, StoreDocumentParser

logger = logging.getLogger(__name__)

_PARSER = StoreDocumentParser()


class SortKey(str, enum.Enum):
    DATE = "date"
    DISTANCE = "distance"
    NAME = "name"


class MissingDistance(str, enum.Enum):
    """Where saved events without a distance land when sorting by distance.

    AS_ZERO treats a missing distance as 0 miles, which is how saved lists
    have always been ordered; FIRST and LAST pin them to either end.
    """

    AS_ZERO = "zero"
    FIRST = "first"
    LAST = "last"


def _coerce(record: Event | Mapping[str, Any]) -> Event:
    if isinstance(record, Event):
        errors = EventParser.validate(record)
        if errors:
            raise MalformedRecord(errors, record.id or None)
        return record
    return _PARSER.parse_document(record)


def build_discovery_feed(
    raw_events: Iterable[Event | Mapping[str, Any]],
    user_location: Coordinate,
    seen_event_ids: Iterable[str],
    now: datetime,
) -> list[EventWithDistance]:
    """Turn a raw event batch into the ordered list shown to the user.

    Malformed records are logged and skipped; the rest of the batch is
    still returned. Events are kept only if active, still upcoming, and not
    already accepted or rejected by the user. The result is ordered by event
    date, ties keeping their input order. A naive ``now`` is taken as UTC.
    """
    validate_coordinate(user_location.latitude, user_location.longitude)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    seen = frozenset(seen_event_ids)

    feed: list[EventWithDistance] = []
    skipped = 0
    for record in raw_events:
        try:
            event = _coerce(record)
        except MalformedRecord as exc:
            skipped += 1
            logger.warning("Skipping event: %s", exc)
            continue

        if not event.is_active or event.date <= now:
            continue

        distance = distance_miles(user_location, event.location)

        if event.id in seen:
            continue

        feed.append(EventWithDistance.from_event(event, distance=distance))

    feed.sort(key=lambda e: e.date)

    logger.debug(
        "Discovery feed: %d event(s), %d malformed, %d seen id(s)",
        len(feed), skipped, len(seen),
    )
    return feed


def _name_key(name: str) -> str:
    # combining marks dropped, so "Éclair" collates under E
    decomposed = unicodedata.normalize("NFKD", name)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _distance_key(event: EventWithDistance, policy: MissingDistance) -> tuple[int, float]:
    if event.distance is None:
        if policy is MissingDistance.FIRST:
            return (0, 0.0)
        if policy is MissingDistance.LAST:
            return (2, 0.0)
        return (1, 0.0)
    return (1, event.distance)


def sort_saved_events(
    events: Sequence[EventWithDistance],
    key: SortKey | str,
    missing_distance: MissingDistance | str = MissingDistance.AS_ZERO,
) -> list[EventWithDistance]:
    """Return ``events`` re-ordered by date, distance or name (ascending).

    Names compare case-insensitively. Every key falls back to the event id,
    so the result does not depend on the order the list arrived in.
    """
    key = SortKey(key)
    policy = MissingDistance(missing_distance)

    if key is SortKey.DATE:
        sort_key = lambda e: (e.date, e.id)
    elif key is SortKey.DISTANCE:
        sort_key = lambda e: (_distance_key(e, policy), e.id)
    else:
        sort_key = lambda e: (_name_key(e.name), e.name.casefold(), e.name, e.id)

    return sorted(events, key=sort_key)


def _event_id_of(record: Any) -> str:
    if isinstance(record, Mapping):
        return record["eventId"] if "eventId" in record else record["event_id"]
    return record.event_id


def dedupe_by_event_id(records: Iterable[Any]) -> list[Any]:
    """Keep the first record for each event id, preserving order."""
    seen: set[str] = set()
    unique = []
    for record in records:
        event_id = _event_id_of(record)
        if event_id in seen:
            continue
        seen.add(event_id)
        unique.append(record)
    return unique


def materialize_saved_events(
    saved_records: Iterable[SavedRecord],
    documents: Mapping[str, Event | Mapping[str, Any]],
) -> list[EventWithDistance]:
    """Join saved records with their event details.

    ``documents`` maps event id → raw document (or Event). The distance shown
    is the one frozen at save time.
    """
    saved: list[EventWithDistance] = []
    for record in dedupe_by_event_id(saved_records):
        document = documents.get(record.event_id)
        if document is None:
            logger.info(
                "Saved event %s refers to missing event %s",
                record.saved_event_id, record.event_id,
            )
            continue
        try:
            event = _coerce(document)
        except MalformedRecord as exc:
            logger.warning("Skipping saved event %s: %s", record.saved_event_id, exc)
            continue
        saved.append(EventWithDistance.from_event(
            event,
            distance=record.distance_at_save,
            saved_event_id=record.saved_event_id,
        ))
    return saved
