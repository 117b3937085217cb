"""
Geocoding and weather lookups with caching, retry and stale fallback.

Geocodes never expire. Weather is fresh for 30 minutes; after that a new
fetch is attempted with exponential backoff, and if every attempt fails the
last known forecast is served with ``is_stale=True``.

Usage:
    lookups = GeoWeatherCache(OpenMeteoClient(), probe, event_bus)

    coords = await lookups.geocode("Louvre", "Paris")
    if coords:
        weather = await lookups.fetch_weather(coords.latitude, coords.longitude)
"""

from __future__ import annotations

import asyncio
import time
from datetime import date, timedelta
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from loguru import logger

from ..core.connectivity import ConnectivityProbe
from ..core.errors import LookupFailedError, ServiceUnavailableError, WeatherUnavailableError
from ..core.events import EventBus, EventType
from ..core.retry import SleepFn, exponential_backoff, with_retry
from .cache import StaleableCache
from .models import Coordinates, ItineraryLookup, WeatherResult
from .providers import OpenMeteoClient

DateLike = Union[date, str, None]


def _parse_date(value: DateLike) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def clamp_forecast_range(
    start_date: DateLike,
    end_date: DateLike,
    today: date,
    horizon_days: int = 14,
) -> Tuple[date, date]:
    """
    Fit a requested range into what the forecast API accepts.

    Past starts move to today, ends beyond the horizon move to the horizon,
    missing bounds default to today and the horizon, and an end before the
    start is raised to the start.
    """
    horizon = today + timedelta(days=horizon_days)

    start = _parse_date(start_date) or today
    start = min(max(start, today), horizon)

    end = _parse_date(end_date) or horizon
    end = max(min(end, horizon), start)

    return start, end


def _normalize_text(value: str) -> str:
    return " ".join(value.split()).casefold()


class GeoWeatherCache:
    """
    Cached geocoding and weather lookups for itinerary rendering.

    Concurrent misses on the same key are not deduplicated: both fetch, and
    the later result overwrites the earlier one.
    """

    def __init__(
        self,
        client: OpenMeteoClient,
        probe: Optional[ConnectivityProbe] = None,
        event_bus: Optional[EventBus] = None,
        weather_ttl: float = 1800,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        forecast_horizon_days: int = 14,
        coordinate_precision: int = 2,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the lookup cache.

        Args:
            client: Open-Meteo HTTP client.
            probe: Connectivity signal; offline skips network calls.
            event_bus: Where lookup results are published.
            weather_ttl: Seconds a forecast stays fresh.
            max_attempts: Weather fetch attempts before falling back.
            backoff_base: First retry delay; doubles on each retry.
            forecast_horizon_days: Furthest day the provider forecasts.
            coordinate_precision: Decimals kept in the weather cache key.
            sleep: Awaitable sleep used between retries.
            clock: Time source for cache ages.
            today: Date source for range clamping.
        """
        self.client = client
        self.probe = probe
        self.event_bus = event_bus
        self.max_attempts = max_attempts
        self.backoff = exponential_backoff(backoff_base)
        self.forecast_horizon_days = forecast_horizon_days
        self.coordinate_precision = coordinate_precision
        self._sleep = sleep
        self._today = today

        self._geocodes: StaleableCache[Coordinates] = StaleableCache(
            ttl_seconds=None, clock=clock, name="Geocode cache"
        )
        self._weather: StaleableCache[WeatherResult] = StaleableCache(
            ttl_seconds=weather_ttl, clock=clock, name="Weather cache"
        )

    # =========================================================================
    # Keys
    # =========================================================================

    @staticmethod
    def geocode_key(place_name: str, context: str = "") -> str:
        return f"{_normalize_text(place_name)}|{_normalize_text(context)}"

    def weather_key(self, latitude: float, longitude: float) -> str:
        p = self.coordinate_precision
        return f"{latitude:.{p}f},{longitude:.{p}f}"

    def _offline(self) -> bool:
        return self.probe is not None and not self.probe.is_online()

    # =========================================================================
    # Geocoding
    # =========================================================================

    async def geocode(self, place_name: str, context: str = "") -> Optional[Coordinates]:
        """
        Coordinates for a place within a destination context.

        Returns:
            Coordinates, or None when nothing matched or the lookup failed
        """
        key = self.geocode_key(place_name, context)

        entry = self._geocodes.get_fresh(key)
        if entry is not None:
            return entry.value

        if self._offline():
            logger.debug(f"Offline, skipping geocode for '{place_name}'")
            return None

        query = f"{place_name} {context}".strip()
        try:
            coords = await self.client.geocode(query)
        except LookupFailedError as e:
            logger.warning(f"Geocoding error for '{query}': {e}")
            return None

        if coords is None:
            return None

        self._geocodes.set(key, coords)
        await self._notify(
            EventType.GEOCODING_COMPLETE,
            place=place_name,
            context=context,
            coordinates=coords.to_dict(),
        )
        return coords

    # =========================================================================
    # Weather
    # =========================================================================

    async def fetch_weather(
        self,
        latitude: float,
        longitude: float,
        start_date: DateLike = None,
        end_date: DateLike = None,
    ) -> WeatherResult:
        """
        Forecast for a coordinate pair.

        Raises:
            WeatherUnavailableError: Every attempt failed and nothing is cached.
        """
        key = self.weather_key(latitude, longitude)

        fresh = self._weather.get_fresh(key)
        if fresh is not None:
            return fresh.value

        if self._offline():
            return self._serve_stale(key, latitude, longitude, ServiceUnavailableError("offline"))

        start, end = clamp_forecast_range(
            start_date, end_date, today=self._today(), horizon_days=self.forecast_horizon_days
        )
        logger.debug(f"Fetching weather for {key} from {start} to {end}")

        result = await with_retry(
            lambda: self.client.forecast(latitude, longitude, start, end),
            max_attempts=self.max_attempts,
            backoff=self.backoff,
            retry_on=(LookupFailedError,),
            sleep=self._sleep,
            label=f"Weather fetch {key}",
        )

        if not result.ok:
            return self._serve_stale(key, latitude, longitude, result.error)

        weather = result.value
        self._weather.set(key, weather)
        await self._notify(EventType.WEATHER_UPDATED, key=key, weather=weather.to_dict())
        return weather

    def _serve_stale(
        self,
        key: str,
        latitude: float,
        longitude: float,
        cause: Optional[BaseException],
    ) -> WeatherResult:
        entry = self._weather.mark_stale(key)
        if entry is None:
            raise WeatherUnavailableError(latitude, longitude, cause)

        logger.warning(f"Serving stale weather for {key}: {cause}")
        return entry.value.as_stale()

    def get_cached_weather(self, latitude: float, longitude: float) -> Optional[WeatherResult]:
        """Cached forecast without any network I/O, flagged stale if expired."""
        entry = self._weather.get(self.weather_key(latitude, longitude))
        if entry is None:
            return None
        if self._weather.is_fresh(entry):
            return entry.value
        return entry.value.as_stale()

    # =========================================================================
    # Itinerary
    # =========================================================================

    async def sync_itinerary(
        self,
        items: Iterable[Mapping[str, Any]],
        destination: str,
    ) -> List[ItineraryLookup]:
        """
        Geocode every item with a location and attach its weather.

        Items without a location, without a geocode match, or whose weather
        is unavailable are dropped.
        """

        async def lookup(item: Mapping[str, Any]) -> Optional[ItineraryLookup]:
            location = item.get("location")
            if not location:
                return None

            coords = await self.geocode(location, destination)
            if coords is None:
                return None

            try:
                weather = await self.fetch_weather(coords.latitude, coords.longitude)
            except WeatherUnavailableError as e:
                logger.warning(f"No weather for itinerary item {item.get('id')}: {e}")
                return None

            return ItineraryLookup(item_id=str(item.get("id")), coordinates=coords, weather=weather)

        results = await asyncio.gather(*(lookup(item) for item in items), return_exceptions=True)

        lookups = []
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Itinerary lookup failed: {result}")
            elif result is not None:
                lookups.append(result)
        return lookups

    def clear_cache(self) -> None:
        """Drop every cached geocode and forecast."""
        geocodes = self._geocodes.clear()
        forecasts = self._weather.clear()
        logger.info(f"Cleared {geocodes} geocodes and {forecasts} forecasts")

    async def close(self) -> None:
        await self.client.close()

    async def _notify(self, event_type: EventType, **data: Any) -> None:
        if self.event_bus:
            await self.event_bus.emit(event_type, source="geo_weather", **data)
