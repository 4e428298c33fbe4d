"""Tests for the discovery service against the in-memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from event_radar.errors import StoreWriteFailure
from event_radar.models import Action, Coordinate
from event_radar.service import DiscoveryService
from event_radar.store import InMemoryEventStore

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
HOME = Coordinate(37.7749, -122.4194)


def _doc(event_id, name, days, lat, lon):
    return {
        "id": event_id,
        "name": name,
        "venue": "Venue",
        "description": "",
        "date": NOW + timedelta(days=days),
        "location": {"latitude": lat, "longitude": lon, "address": ""},
        "createdAt": NOW - timedelta(days=7),
        "isActive": True,
    }


@pytest.fixture
def store():
    return InMemoryEventStore([
        _doc("la", "Sunset Concert", 3, 34.0522, -118.2437),
        _doc("oak", "art fair", 1, 37.8044, -122.2712),
        _doc("sj", "Block Party", 2, 37.3382, -121.8863),
    ])


@pytest.fixture
def service(store):
    return DiscoveryService(store)


class TestLoadFeed:
    def test_full_feed_ordered_by_date(self, service):
        feed = service.load_feed("u1", HOME, now=NOW)
        assert [e.id for e in feed] == ["oak", "sj", "la"]
        assert all(e.distance is not None for e in feed)

    def test_swiped_events_do_not_repeat(self, service):
        feed = service.load_feed("u1", HOME, now=NOW)
        service.swipe("u1", feed[0], Action.REJECT)
        service.swipe("u1", feed[1], "accept")
        assert [e.id for e in service.load_feed("u1", HOME, now=NOW)] == ["la"]

    def test_other_users_unaffected(self, service):
        feed = service.load_feed("u1", HOME, now=NOW)
        service.swipe("u1", feed[0], Action.REJECT)
        assert len(service.load_feed("u2", HOME, now=NOW)) == 3


class TestSwipe:
    def test_accept_saves_distance(self, service, store):
        event = service.load_feed("u1", HOME, now=NOW)[0]
        saved_id = service.swipe("u1", event, Action.ACCEPT)
        assert saved_id is not None
        [record] = store.list_saved_events("u1")
        assert record.saved_event_id == saved_id
        assert record.distance_at_save == event.distance

    def test_reject_saves_nothing(self, service, store):
        event = service.load_feed("u1", HOME, now=NOW)[0]
        assert service.swipe("u1", event, Action.REJECT) is None
        assert store.list_saved_events("u1") == []

    def test_write_failure_propagates(self, store):
        class FailingStore(InMemoryEventStore):
            def record_interaction(self, user_id, event_id, action):
                raise StoreWriteFailure("record interaction failed")

        failing = FailingStore(store.documents.values())
        service = DiscoveryService(failing)
        event = service.load_feed("u1", HOME, now=NOW)[0]
        with pytest.raises(StoreWriteFailure):
            service.swipe("u1", event, Action.ACCEPT)
        assert failing.saved == []


class TestSavedList:
    def _accept_all(self, service):
        for event in service.load_feed("u1", HOME, now=NOW):
            service.swipe("u1", event, Action.ACCEPT)

    def test_sorted_by_name(self, service):
        self._accept_all(service)
        saved = service.load_saved("u1", "name")
        assert [e.name for e in saved] == ["art fair", "Block Party", "Sunset Concert"]

    def test_sorted_by_distance(self, service):
        self._accept_all(service)
        saved = service.load_saved("u1", "distance")
        assert [e.id for e in saved] == ["oak", "sj", "la"]

    def test_distance_frozen_at_save(self, service):
        self._accept_all(service)
        before = {e.id: e.distance for e in service.load_saved("u1")}
        # Moving elsewhere does not change saved distances
        service.load_feed("u1", Coordinate(40.7128, -74.0060), now=NOW)
        after = {e.id: e.distance for e in service.load_saved("u1")}
        assert before == after

    def test_duplicate_saves_collapsed(self, service, store):
        event = service.load_feed("u1", HOME, now=NOW)[0]
        service.swipe("u1", event, Action.ACCEPT)
        store.save_event("u1", event.id, 99.0)
        saved = service.load_saved("u1")
        assert len(saved) == 1
        assert saved[0].distance == event.distance

    def test_empty(self, service):
        assert service.load_saved("nobody") == []

    def test_remove_returns_event_to_feed(self, service, store):
        self._accept_all(service)
        assert service.load_feed("u1", HOME, now=NOW) == []
        target = service.load_saved("u1")[0]
        service.remove_saved("u1", target)
        assert target.id not in [e.id for e in service.load_saved("u1")]
        assert [e.id for e in service.load_feed("u1", HOME, now=NOW)] == [target.id]

    def test_remove_requires_saved_record(self, service):
        event = service.load_feed("u1", HOME, now=NOW)[0]
        with pytest.raises(ValueError):
            service.remove_saved("u1", event)


class TestResetRejected:
    def test_brings_back_rejected_only(self, service):
        feed = service.load_feed("u1", HOME, now=NOW)
        service.swipe("u1", feed[0], Action.REJECT)
        service.swipe("u1", feed[1], Action.REJECT)
        service.swipe("u1", feed[2], Action.ACCEPT)
        assert service.reset_rejected("u1") == 2
        assert [e.id for e in service.load_feed("u1", HOME, now=NOW)] == ["oak", "sj"]
