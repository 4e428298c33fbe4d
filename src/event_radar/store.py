"""Event store: the data-access boundary for events, interactions and saves.

Reads return loosely-typed documents; turning them into Events is the
parser's job. Write failures propagate to the caller as StoreWriteFailure and
are never retried here.
"""

from __future__ import annotations

import abc
import contextlib
import logging
import pathlib
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

import psycopg2
import psycopg2.extras

from event_radar.config import DATABASE_URL
from event_radar.errors import StoreWriteFailure
from event_radar.models import Action, InteractionRecord, SavedRecord

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = pathlib.Path(__file__).parent / "migrations"


class EventStore(abc.ABC):
    """Everything the discovery service needs from persistence."""

    @abc.abstractmethod
    def fetch_active_future_events(self, now: datetime) -> list[dict]:
        """Raw event documents. May pre-filter on is_active/date."""

    @abc.abstractmethod
    def get_events_by_ids(self, event_ids: Iterable[str]) -> dict[str, dict]:
        """Batch lookup: event id → raw document. Unknown ids are omitted."""

    @abc.abstractmethod
    def get_interacted_event_ids(self, user_id: str) -> set[str]:
        ...

    @abc.abstractmethod
    def record_interaction(self, user_id: str, event_id: str, action: Action) -> None:
        ...

    @abc.abstractmethod
    def save_event(
        self, user_id: str, event_id: str, distance_at_save: float | None = None,
    ) -> str:
        """Create a saved record and return its id."""

    @abc.abstractmethod
    def list_saved_events(self, user_id: str) -> list[SavedRecord]:
        ...

    @abc.abstractmethod
    def remove_saved_event(self, saved_event_id: str) -> None:
        ...

    @abc.abstractmethod
    def remove_interactions(self, user_id: str, event_id: str) -> None:
        ...

    @abc.abstractmethod
    def remove_rejections(self, user_id: str) -> int:
        """Delete the user's reject interactions. Returns how many went."""


class InMemoryEventStore(EventStore):
    """Dict-backed store for tests and embedding."""

    def __init__(self, documents: Iterable[dict] = ()):
        self.documents: dict[str, dict] = {}
        self.interactions: list[InteractionRecord] = []
        self.saved: list[SavedRecord] = []
        for document in documents:
            self.add_document(document)

    def add_document(self, document: dict) -> None:
        self.documents[str(document["id"])] = dict(document)

    def fetch_active_future_events(self, now: datetime) -> list[dict]:
        # Unfiltered; build_discovery_feed applies is_active/date itself
        return [dict(d) for d in self.documents.values()]

    def get_events_by_ids(self, event_ids: Iterable[str]) -> dict[str, dict]:
        return {
            event_id: dict(self.documents[event_id])
            for event_id in event_ids
            if event_id in self.documents
        }

    def get_interacted_event_ids(self, user_id: str) -> set[str]:
        return {r.event_id for r in self.interactions if r.user_id == user_id}

    def record_interaction(self, user_id: str, event_id: str, action: Action) -> None:
        self.interactions.append(InteractionRecord(user_id, event_id, Action(action)))

    def save_event(
        self, user_id: str, event_id: str, distance_at_save: float | None = None,
    ) -> str:
        saved_event_id = uuid.uuid4().hex
        self.saved.append(SavedRecord(
            saved_event_id=saved_event_id,
            user_id=user_id,
            event_id=event_id,
            distance_at_save=distance_at_save,
        ))
        return saved_event_id

    def list_saved_events(self, user_id: str) -> list[SavedRecord]:
        return [r for r in self.saved if r.user_id == user_id]

    def remove_saved_event(self, saved_event_id: str) -> None:
        self.saved = [r for r in self.saved if r.saved_event_id != saved_event_id]

    def remove_interactions(self, user_id: str, event_id: str) -> None:
        self.interactions = [
            r for r in self.interactions
            if not (r.user_id == user_id and r.event_id == event_id)
        ]

    def remove_rejections(self, user_id: str) -> int:
        kept = [
            r for r in self.interactions
            if not (r.user_id == user_id and r.action is Action.REJECT)
        ]
        removed = len(self.interactions) - len(kept)
        self.interactions = kept
        return removed


# ── PostgreSQL ───────────────────────────────────────────────────────────


def _row_to_document(row: dict) -> dict:
    """Shape an events row like a store document."""
    location = None
    if row.get("latitude") is not None and row.get("longitude") is not None:
        location = {
            "latitude": row["latitude"],
            "longitude": row["longitude"],
            "address": row.get("address") or "",
        }
    return {
        "id": row["id"],
        "name": row.get("name"),
        "venue": row.get("venue"),
        "description": row.get("description") or "",
        "date": row.get("date"),
        "location": location,
        "imageUrl": row.get("image_url"),
        "link": row.get("link"),
        "hostWebsite": row.get("host_website"),
        "createdAt": row.get("created_at"),
        "isActive": row.get("is_active"),
    }


_EVENT_COLUMNS = """
    id, name, venue, description, date, latitude, longitude, address,
    image_url, link, host_website, created_at, is_active
"""


class PostgresEventStore(EventStore):
    """psycopg2-backed store. One short-lived connection per call."""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or DATABASE_URL

    def get_connection(self):
        return psycopg2.connect(self.dsn)

    @contextlib.contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self.get_connection()
        try:
            with conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    yield cur
        finally:
            conn.close()

    @contextlib.contextmanager
    def _write(self, what: str) -> Iterator[Any]:
        try:
            with self._cursor() as cur:
                yield cur
        except psycopg2.Error as exc:
            logger.error("Store write failed (%s): %s", what, exc)
            raise StoreWriteFailure(f"{what} failed: {exc}") from exc

    def init_db(self) -> None:
        """Create tables from the bundled migrations if they don't exist."""
        for sql_path in sorted(MIGRATIONS_DIR.glob("*.sql")):
            with self._write(f"migration {sql_path.name}") as cur:
                cur.execute(sql_path.read_text())

    def fetch_active_future_events(self, now: datetime) -> list[dict]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events"
                " WHERE is_active = TRUE AND date > %s ORDER BY date",
                (now,),
            )
            return [_row_to_document(dict(row)) for row in cur.fetchall()]

    def get_events_by_ids(self, event_ids: Iterable[str]) -> dict[str, dict]:
        ids = list(event_ids)
        if not ids:
            return {}
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE id = ANY(%s)",
                (ids,),
            )
            return {row["id"]: _row_to_document(dict(row)) for row in cur.fetchall()}

    def get_interacted_event_ids(self, user_id: str) -> set[str]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT DISTINCT event_id FROM user_event_interactions WHERE user_id = %s",
                (user_id,),
            )
            return {row["event_id"] for row in cur.fetchall()}

    def record_interaction(self, user_id: str, event_id: str, action: Action) -> None:
        with self._write("record interaction") as cur:
            cur.execute(
                """INSERT INTO user_event_interactions (user_id, event_id, action, timestamp)
                   VALUES (%s, %s, %s, %s)""",
                (user_id, event_id, Action(action).value, datetime.now(timezone.utc)),
            )

    def save_event(
        self, user_id: str, event_id: str, distance_at_save: float | None = None,
    ) -> str:
        saved_event_id = uuid.uuid4().hex
        with self._write("save event") as cur:
            cur.execute(
                """INSERT INTO saved_events (id, user_id, event_id, saved_at, distance_at_save)
                   VALUES (%s, %s, %s, %s, %s)""",
                (saved_event_id, user_id, event_id,
                 datetime.now(timezone.utc), distance_at_save),
            )
        return saved_event_id

    def list_saved_events(self, user_id: str) -> list[SavedRecord]:
        with self._cursor() as cur:
            cur.execute(
                """SELECT id, user_id, event_id, saved_at, distance_at_save
                   FROM saved_events WHERE user_id = %s ORDER BY saved_at, id""",
                (user_id,),
            )
            rows = cur.fetchall()
        return [
            SavedRecord(
                saved_event_id=r["id"],
                user_id=r["user_id"],
                event_id=r["event_id"],
                saved_at=r["saved_at"] if r["saved_at"].tzinfo
                else r["saved_at"].replace(tzinfo=timezone.utc),
                distance_at_save=r["distance_at_save"],
            )
            for r in rows
        ]

    def remove_saved_event(self, saved_event_id: str) -> None:
        with self._write("remove saved event") as cur:
            cur.execute("DELETE FROM saved_events WHERE id = %s", (saved_event_id,))

    def remove_interactions(self, user_id: str, event_id: str) -> None:
        with self._write("remove interactions") as cur:
            cur.execute(
                "DELETE FROM user_event_interactions WHERE user_id = %s AND event_id = %s",
                (user_id, event_id),
            )

    def remove_rejections(self, user_id: str) -> int:
        with self._write("reset rejected events") as cur:
            cur.execute(
                "DELETE FROM user_event_interactions WHERE user_id = %s AND action = %s",
                (user_id, Action.REJECT.value),
            )
            return cur.rowcount
