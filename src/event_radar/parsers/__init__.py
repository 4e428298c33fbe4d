"""Parsers for converting raw store documents to Event."""

from event_radar.parsers.base import EventParser
from event_radar.parsers.document import StoreDocumentParser

__all__ = ["EventParser", "StoreDocumentParser"]
