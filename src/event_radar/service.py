"""Discovery service: wires the event store to the feed pipeline.

The current user and location are passed in on every call rather than held
as ambient state, so each operation is a plain function of its arguments and
the store's contents.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from event_radar.feed import (
    MissingDistance,
    SortKey,
    build_discovery_feed,
    materialize_saved_events,
    sort_saved_events,
)
from event_radar.models import Action, Coordinate, EventWithDistance
from event_radar.store import EventStore

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Swipe-feed operations for one store."""

    def __init__(self, store: EventStore):
        self.store = store

    def load_feed(
        self,
        user_id: str,
        user_location: Coordinate,
        now: datetime | None = None,
    ) -> list[EventWithDistance]:
        """Upcoming events the user has not swiped on yet, soonest first."""
        if now is None:
            now = datetime.now(timezone.utc)
        seen = self.store.get_interacted_event_ids(user_id)
        raw_events = self.store.fetch_active_future_events(now)
        feed = build_discovery_feed(raw_events, user_location, seen, now)
        logger.info("User %s: %d event(s) in feed", user_id, len(feed))
        return feed

    def swipe(self, user_id: str, event: EventWithDistance, action: Action | str) -> str | None:
        """Record a swipe. Accepting also saves the event.

        Returns the saved record id on accept, None on reject. Store errors
        propagate; a failed interaction write means nothing is saved.
        """
        action = Action(action)
        self.store.record_interaction(user_id, event.id, action)
        logger.info("User %s: %s %s", user_id, action.value, event.id)
        if action is Action.REJECT:
            return None
        return self.store.save_event(user_id, event.id, event.distance)

    def load_saved(
        self,
        user_id: str,
        key: SortKey | str = SortKey.DATE,
        missing_distance: MissingDistance | str = MissingDistance.AS_ZERO,
    ) -> list[EventWithDistance]:
        records = self.store.list_saved_events(user_id)
        if not records:
            return []
        documents = self.store.get_events_by_ids({r.event_id for r in records})
        saved = materialize_saved_events(records, documents)
        return sort_saved_events(saved, key, missing_distance)

    def remove_saved(self, user_id: str, event: EventWithDistance) -> None:
        """Drop a saved event and put it back into the user's rotation."""
        if not event.saved_event_id:
            raise ValueError(f"event {event.id} has no saved record to remove")
        self.store.remove_saved_event(event.saved_event_id)
        self.store.remove_interactions(user_id, event.id)
        logger.info("User %s: removed saved event %s", user_id, event.id)

    def reset_rejected(self, user_id: str) -> int:
        """Bring every rejected event back into the user's feed."""
        removed = self.store.remove_rejections(user_id)
        logger.info("User %s: reset %d rejected event(s)", user_id, removed)
        return removed
