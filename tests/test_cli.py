"""Tests for the click command-line interface."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import psycopg2
import pytest
from click.testing import CliRunner

from event_radar import cli as cli_module
from event_radar.errors import StoreWriteFailure
from event_radar.service import DiscoveryService
from event_radar.store import InMemoryEventStore


@pytest.fixture
def store(monkeypatch):
    soon = datetime.now(timezone.utc) + timedelta(days=5)
    store = InMemoryEventStore([{
        "id": "e1",
        "name": "Jazz",
        "venue": "Hall",
        "date": soon,
        "location": {"latitude": 37.8, "longitude": -122.3},
        "createdAt": soon - timedelta(days=30),
        "isActive": True,
    }])
    monkeypatch.setattr(cli_module, "_get_service", lambda: DiscoveryService(store))
    return store


class TestDistanceCommand:
    def test_miles(self):
        result = CliRunner().invoke(
            cli_module.cli, ["distance", "--", "37.7749", "-122.4194", "34.0522", "-118.2437"],
        )
        assert result.exit_code == 0, result.output
        assert result.output.strip().endswith(" mi")

    def test_km(self):
        result = CliRunner().invoke(
            cli_module.cli, ["distance", "--unit", "km", "--", "0", "0", "0", "1"],
        )
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "111.2 km"

    def test_invalid_coordinate(self):
        result = CliRunner().invoke(cli_module.cli, ["distance", "--", "91", "0", "0", "0"])
        assert result.exit_code != 0
        assert "invalid coordinate" in result.output


class TestFeedCommands:
    def test_feed(self, store):
        result = CliRunner().invoke(
            cli_module.cli, ["feed", "--user", "u1", "--lat", "37.77", "--lon", "-122.42"],
        )
        assert result.exit_code == 0, result.output
        assert "Jazz" in result.output

    def test_lat_without_lon(self, store):
        result = CliRunner().invoke(cli_module.cli, ["feed", "--user", "u1", "--lat", "37.77"])
        assert result.exit_code != 0

    def test_swipe_accept_then_saved(self, store):
        runner = CliRunner()
        result = runner.invoke(
            cli_module.cli,
            ["swipe", "--user", "u1", "e1", "accept", "--lat", "37.77", "--lon", "-122.42"],
        )
        assert result.exit_code == 0, result.output
        [record] = store.list_saved_events("u1")
        assert record.distance_at_save is not None

        result = runner.invoke(cli_module.cli, ["saved", "--user", "u1", "--sort", "distance"])
        assert result.exit_code == 0, result.output
        assert "Jazz" in result.output

    def test_swipe_unknown_event(self, store):
        result = CliRunner().invoke(cli_module.cli, ["swipe", "--user", "u1", "nope", "reject"])
        assert result.exit_code != 0
        assert "Unknown event" in result.output

    def test_remove_and_reset(self, store):
        runner = CliRunner()
        runner.invoke(cli_module.cli, ["swipe", "--user", "u1", "e1", "accept",
                                       "--lat", "37.77", "--lon", "-122.42"])
        result = runner.invoke(cli_module.cli, ["remove", "--user", "u1", "e1"])
        assert result.exit_code == 0, result.output
        assert store.list_saved_events("u1") == []

        runner.invoke(cli_module.cli, ["swipe", "--user", "u1", "e1", "reject"])
        result = runner.invoke(cli_module.cli, ["reset-rejected", "--user", "u1"])
        assert result.exit_code == 0, result.output
        assert "Reset 1" in result.output


class _BrokenStore(InMemoryEventStore):
    """Reads fail like an unreachable database; writes fail like a rejected insert."""

    def get_interacted_event_ids(self, user_id):
        raise psycopg2.OperationalError("could not connect to server\n")

    def list_saved_events(self, user_id):
        raise psycopg2.OperationalError("could not connect to server\n")

    def record_interaction(self, user_id, event_id, action):
        raise StoreWriteFailure("record interaction failed: relation does not exist")

    def init_db(self):
        raise StoreWriteFailure("migration 001_init.sql failed: permission denied")


@pytest.fixture
def broken_store(monkeypatch, store):
    broken = _BrokenStore(store.documents.values())
    monkeypatch.setattr(cli_module, "_get_service", lambda: DiscoveryService(broken))
    monkeypatch.setattr(cli_module, "_get_store", lambda: broken)
    return broken


class TestStoreErrors:
    def _assert_clean_failure(self, result, message):
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Traceback" not in result.output
        assert f"Error: {message}" in result.output

    def test_feed_read_failure(self, broken_store):
        result = CliRunner().invoke(
            cli_module.cli, ["feed", "--user", "u1", "--lat", "37.77", "--lon", "-122.42"],
        )
        self._assert_clean_failure(result, "could not connect to server")

    def test_saved_read_failure(self, broken_store):
        result = CliRunner().invoke(cli_module.cli, ["saved", "--user", "u1"])
        self._assert_clean_failure(result, "could not connect to server")

    def test_init_db_failure(self, broken_store):
        result = CliRunner().invoke(cli_module.cli, ["init-db"])
        self._assert_clean_failure(result, "migration 001_init.sql failed")

    def test_swipe_write_failure(self, broken_store):
        result = CliRunner().invoke(cli_module.cli, ["swipe", "--user", "u1", "e1", "reject"])
        self._assert_clean_failure(result, "record interaction failed")
