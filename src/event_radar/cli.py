"""CLI entrypoint for event-radar."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from event_radar.config import DEFAULT_DISTANCE_UNIT
from event_radar.errors import EventRadarError, MalformedRecord
from event_radar.feed import MissingDistance, SortKey
from event_radar.geo import distance_miles, format_distance, validate_coordinate
from event_radar.geolocation import Geocoder, IPLocationProvider, manual_location
from event_radar.logging_config import setup_logging
from event_radar.models import Action, Coordinate, EventWithDistance
from event_radar.parsers import StoreDocumentParser

console = Console()

UNITS = click.Choice(["miles", "km"])


def _get_store():
    from event_radar.store import PostgresEventStore
    return PostgresEventStore()


def _get_service():
    from event_radar.service import DiscoveryService
    return DiscoveryService(_get_store())


@contextlib.contextmanager
def _store_errors():
    """Report store and domain errors as CLI errors instead of tracebacks."""
    import psycopg2

    try:
        yield
    except (EventRadarError, psycopg2.Error) as exc:
        raise click.ClickException(str(exc).strip()) from exc


async def _locate(address: Optional[str]) -> Coordinate:
    if address:
        async with Geocoder() as geocoder:
            return await geocoder.geocode(address)
    async with IPLocationProvider() as provider:
        return await provider.get_current_coordinate()


def _resolve_location(
    lat: Optional[float], lon: Optional[float], address: Optional[str],
) -> Coordinate:
    """Manual coordinates win, then address geocoding, then IP lookup."""
    if (lat is None) != (lon is None):
        raise click.UsageError("--lat and --lon must be given together.")
    try:
        if lat is not None:
            return manual_location(lat, lon)
        return asyncio.run(_locate(address))
    except EventRadarError as exc:
        raise click.ClickException(str(exc)) from exc


def location_options(func):
    func = click.option("--address", default=None, help="Free-text address to geocode.")(func)
    func = click.option("--lon", type=float, default=None, help="Longitude (decimal degrees).")(func)
    func = click.option("--lat", type=float, default=None, help="Latitude (decimal degrees).")(func)
    return func


def _event_table(title: str, events: list[EventWithDistance], unit: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Event", style="bold")
    table.add_column("Venue")
    table.add_column("Date (UTC)")
    table.add_column("Distance", justify="right")

    for e in events:
        table.add_row(
            e.id,
            e.name,
            e.venue,
            f"{e.date:%a %b %d %H:%M}",
            format_distance(e.distance, unit) if e.distance is not None else "-",
        )
    return table


@click.group()
@click.option("--log-level", default=None, help="Logging level (default from EVENT_RADAR_LOG_LEVEL).")
def cli(log_level: Optional[str]):
    """Event Radar: swipe through upcoming events near you."""
    setup_logging(log_level)


@cli.command()
@click.argument("lat1", type=float)
@click.argument("lon1", type=float)
@click.argument("lat2", type=float)
@click.argument("lon2", type=float)
@click.option("--unit", default=DEFAULT_DISTANCE_UNIT, type=UNITS)
def distance(lat1: float, lon1: float, lat2: float, lon2: float, unit: str):
    """Great-circle distance between two points (use -- before negative values)."""
    try:
        a = validate_coordinate(lat1, lon1)
        b = validate_coordinate(lat2, lon2)
    except EventRadarError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(format_distance(distance_miles(a, b), unit))


@cli.command()
@click.option("--address", default=None, help="Free-text address to geocode.")
def locate(address: Optional[str]):
    """Show the coordinate event-radar would use for you."""
    coordinate = _resolve_location(None, None, address)
    click.echo(f"{coordinate.latitude:.5f}, {coordinate.longitude:.5f}")


@cli.command("init-db")
def init_db():
    """Create the database tables."""
    with _store_errors():
        _get_store().init_db()
    click.echo("Database initialised.")


@cli.command()
@click.option("--user", "user_id", required=True, help="User ID.")
@location_options
@click.option("--unit", default=DEFAULT_DISTANCE_UNIT, type=UNITS)
@click.option("--limit", default=20, help="Max results to display.")
def feed(user_id: str, lat, lon, address, unit: str, limit: int):
    """Show upcoming events you have not swiped on yet."""
    location = _resolve_location(lat, lon, address)
    with _store_errors():
        events = _get_service().load_feed(user_id, location)
    if not events:
        click.echo("No more events. Check back later, or run reset-rejected.")
        return
    console.print(_event_table(f"Upcoming events ({len(events)})", events[:limit], unit))


@cli.command()
@click.option("--user", "user_id", required=True, help="User ID.")
@click.argument("event_id")
@click.argument("action", type=click.Choice([a.value for a in Action]))
@location_options
def swipe(user_id: str, event_id: str, action: str, lat, lon, address):
    """Accept or reject an event. Accepted events are saved with their distance."""
    service = _get_service()
    with _store_errors():
        documents = service.store.get_events_by_ids([event_id])
    if event_id not in documents:
        raise click.ClickException(f"Unknown event '{event_id}'")
    try:
        event = StoreDocumentParser().parse_document(documents[event_id])
    except MalformedRecord as exc:
        raise click.ClickException(str(exc)) from exc

    dist = None
    if Action(action) is Action.ACCEPT:
        location = _resolve_location(lat, lon, address)
        dist = distance_miles(location, event.location)

    with _store_errors():
        service.swipe(user_id, EventWithDistance.from_event(event, distance=dist), action)
    click.echo(f"{action}: {event.name}")


@cli.command()
@click.option("--user", "user_id", required=True, help="User ID.")
@click.option("--sort", "sort_key", default=SortKey.DATE.value,
              type=click.Choice([k.value for k in SortKey]))
@click.option("--missing-distance", default=MissingDistance.AS_ZERO.value,
              type=click.Choice([m.value for m in MissingDistance]),
              help="Where events without a saved distance go when sorting by distance.")
@click.option("--unit", default=DEFAULT_DISTANCE_UNIT, type=UNITS)
def saved(user_id: str, sort_key: str, missing_distance: str, unit: str):
    """List saved events."""
    with _store_errors():
        events = _get_service().load_saved(user_id, sort_key, missing_distance)
    if not events:
        click.echo("No saved events yet.")
        return
    console.print(_event_table(f"Saved events (by {sort_key})", events, unit))


@cli.command()
@click.option("--user", "user_id", required=True, help="User ID.")
@click.argument("event_id")
def remove(user_id: str, event_id: str):
    """Remove a saved event and return it to the feed."""
    service = _get_service()
    with _store_errors():
        matches = [e for e in service.load_saved(user_id) if e.id == event_id]
    if not matches:
        raise click.ClickException(f"Event '{event_id}' is not in your saved list")
    with _store_errors():
        service.remove_saved(user_id, matches[0])
    click.echo(f"Removed {matches[0].name}")


@cli.command("reset-rejected")
@click.option("--user", "user_id", required=True, help="User ID.")
def reset_rejected(user_id: str):
    """Bring rejected events back into the feed."""
    with _store_errors():
        removed = _get_service().reset_rejected(user_id)
    click.echo(f"Reset {removed} rejected event(s).")
