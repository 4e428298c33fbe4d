"""Async clients that turn "where am I?" into a Coordinate.

Two paths exist: an IP-based lookup of the current position, and geocoding
of a manually entered address. Neither path ever substitutes a default
coordinate; callers get a typed error instead.
"""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from event_radar.config import PROVIDERS, ProviderConfig
from event_radar.errors import (
    GeocodeNotFound,
    GeolocationUnavailable,
    InvalidCoordinate,
    UnavailableReason,
)
from event_radar.geo import validate_coordinate
from event_radar.models import Coordinate

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple token-bucket rate limiter."""

    def __init__(self, rpm: int):
        self.min_interval = 60.0 / max(rpm, 1)
        self._last_call = 0.0

    async def acquire(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_call
        if elapsed < self.min_interval:
            await asyncio.sleep(self.min_interval - elapsed)
        self._last_call = time.monotonic()


class _ProviderClient:
    """Shared httpx plumbing for location providers."""

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._rate_limiter = RateLimiter(config.rate_limit_rpm)
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def manual_location(latitude: float, longitude: float) -> Coordinate:
    """Coordinate typed in by the user. Raises InvalidCoordinate if out of range."""
    return validate_coordinate(latitude, longitude)


class IPLocationProvider(_ProviderClient):
    """Approximate current position from the caller's public IP address.

    Expects an ip-api.com style JSON body: ``{"status": "success", "lat": ...,
    "lon": ...}``.
    """

    def __init__(self, config: ProviderConfig | None = None,
                 client: httpx.AsyncClient | None = None):
        super().__init__(config or PROVIDERS["iplocate"], client)

    async def get_current_coordinate(self) -> Coordinate:
        client = await self._get_client()
        await self._rate_limiter.acquire()
        try:
            resp = await client.get(self.config.base_url)
        except httpx.TimeoutException as exc:
            raise GeolocationUnavailable(UnavailableReason.TIMEOUT, str(exc) or None) from exc
        except httpx.RequestError as exc:
            raise GeolocationUnavailable(
                UnavailableReason.POSITION_UNAVAILABLE, str(exc) or None,
            ) from exc

        if resp.status_code in (401, 403):
            raise GeolocationUnavailable(
                UnavailableReason.PERMISSION_DENIED, f"HTTP {resp.status_code}",
            )
        if resp.is_error:
            raise GeolocationUnavailable(
                UnavailableReason.POSITION_UNAVAILABLE, f"HTTP {resp.status_code}",
            )

        try:
            data = resp.json()
            if data.get("status", "success") != "success":
                raise ValueError(data.get("message") or "lookup failed")
            return validate_coordinate(data["lat"], data["lon"])
        except (KeyError, TypeError, ValueError) as exc:
            # InvalidCoordinate is a ValueError too
            raise GeolocationUnavailable(
                UnavailableReason.POSITION_UNAVAILABLE, str(exc),
            ) from exc


class Geocoder(_ProviderClient):
    """Resolve free-text addresses with a Nominatim-compatible search API."""

    def __init__(self, config: ProviderConfig | None = None,
                 client: httpx.AsyncClient | None = None):
        super().__init__(config or PROVIDERS["geocoder"], client)

    async def geocode(self, address: str) -> Coordinate:
        """Return the best match for ``address``.

        Raises:
            GeocodeNotFound: nothing matched; the caller should ask again.
            GeolocationUnavailable: the service could not be reached.
        """
        query = address.strip()
        if not query:
            raise GeocodeNotFound(address)

        params = {"q": query, "format": "json", "limit": "1"}
        results = await self._request_with_retry(params)
        if not results:
            raise GeocodeNotFound(query)

        best = results[0]
        try:
            coordinate = validate_coordinate(best["lat"], best["lon"])
        except (KeyError, TypeError, InvalidCoordinate) as exc:
            raise GeocodeNotFound(query) from exc

        logger.debug("Geocoded '%s' to %s", query, coordinate)
        return coordinate

    async def _request_with_retry(self, params: dict) -> list:
        """Make HTTP request with exponential backoff retry."""
        client = await self._get_client()
        last_exc: Exception | None = None

        for attempt in range(self.config.max_retries + 1):
            await self._rate_limiter.acquire()
            try:
                resp = await client.get(self.config.base_url, params=params)
                # 4xx other than rate limiting will not get better on retry
                if resp.is_client_error and resp.status_code != 429:
                    raise GeolocationUnavailable(
                        UnavailableReason.POSITION_UNAVAILABLE, f"HTTP {resp.status_code}",
                    )
                resp.raise_for_status()
            except (httpx.HTTPStatusError, httpx.RequestError) as exc:
                last_exc = exc
                if attempt < self.config.max_retries:
                    backoff = self.config.retry_backoff_base * 2 ** attempt
                    logger.warning(
                        "%s: attempt %d/%d failed (%s), retrying in %.1fs",
                        self.config.name, attempt + 1, self.config.max_retries + 1,
                        exc, backoff,
                    )
                    await asyncio.sleep(backoff)
                continue

            try:
                return resp.json()
            except ValueError as exc:
                raise GeolocationUnavailable(
                    UnavailableReason.POSITION_UNAVAILABLE, "unreadable geocoder response",
                ) from exc

        reason = (
            UnavailableReason.TIMEOUT
            if isinstance(last_exc, httpx.TimeoutException)
            else UnavailableReason.POSITION_UNAVAILABLE
        )
        raise GeolocationUnavailable(
            reason, f"{self.config.name}: all {self.config.max_retries + 1} attempts failed",
        ) from last_exc
