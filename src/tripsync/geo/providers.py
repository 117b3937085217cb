"""
Open-Meteo clients for geocoding and forecast weather.

Both APIs are free and need no key.

API Documentation: https://open-meteo.com/en/docs
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..core.errors import LookupFailedError
from .models import Coordinates, CurrentConditions, DailyForecast, WeatherResult

DAILY_FIELDS = [
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_probability_max",
    "weather_code",
    "apparent_temperature_max",
]
HOURLY_FIELDS = ["relative_humidity_2m"]


class OpenMeteoClient:
    """
    Thin HTTP client for the Open-Meteo geocoding and forecast APIs.

    Raises LookupFailedError on transport errors and non-2xx responses;
    an empty geocoding result is not an error and returns None.
    """

    GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
    FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(
        self,
        timeout: int = 30,
        geocoding_url: Optional[str] = None,
        forecast_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            timeout: HTTP request timeout in seconds
            geocoding_url: Override for the geocoding endpoint
            forecast_url: Override for the forecast endpoint
            client: Pre-built httpx client (tests pass one with a mock transport)
        """
        self.timeout = timeout
        self.geocoding_url = geocoding_url or self.GEOCODING_URL
        self.forecast_url = forecast_url or self.FORECAST_URL
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise LookupFailedError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise LookupFailedError(f"Invalid JSON from {url}: {e}") from e

    async def geocode(self, query: str) -> Optional[Coordinates]:
        """
        Best single match for a free-text place query.

        Returns:
            Coordinates, or None if nothing matched
        """
        data = await self._get_json(
            self.geocoding_url,
            {"name": query, "count": 1, "language": "en", "format": "json"},
        )

        results = data.get("results") or []
        if not results:
            logger.warning(f"No geocoding results for '{query}'")
            return None

        best = results[0]
        latitude, longitude = best.get("latitude"), best.get("longitude")
        if latitude is None or longitude is None:
            logger.warning(f"Geocoding result for '{query}' has no coordinates")
            return None
        return Coordinates(latitude=latitude, longitude=longitude)

    async def forecast(
        self,
        latitude: float,
        longitude: float,
        start_date: date,
        end_date: date,
    ) -> WeatherResult:
        """
        Daily forecast for a date range, normalized to WeatherResult.

        The range must already lie inside the provider's forecast horizon.
        """
        data = await self._get_json(
            self.forecast_url,
            {
                "latitude": latitude,
                "longitude": longitude,
                "daily": ",".join(DAILY_FIELDS),
                "hourly": ",".join(HOURLY_FIELDS),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "timezone": "auto",
            },
        )
        return normalize_forecast(latitude, longitude, data)


def _first(values: Optional[List[Any]]) -> Any:
    return (values or [0])[0] or 0


def normalize_forecast(latitude: float, longitude: float, data: Dict[str, Any]) -> WeatherResult:
    """Map an Open-Meteo forecast response to WeatherResult."""
    daily_data = data.get("daily") or {}
    hourly_data = data.get("hourly") or {}

    current = CurrentConditions(
        temperature=_first(daily_data.get("temperature_2m_max")),
        feels_like=_first(daily_data.get("apparent_temperature_max")),
        humidity=_first(hourly_data.get("relative_humidity_2m")),
        precipitation_probability=_first(daily_data.get("precipitation_probability_max")),
        weather_code=_first(daily_data.get("weather_code")),
    )

    times = daily_data.get("time") or []

    def column(name: str) -> List[Any]:
        return daily_data.get(name) or [None] * len(times)

    daily = [
        DailyForecast(
            date=date.fromisoformat(day),
            temp_max=temp_max,
            temp_min=temp_min,
            precipitation_probability=precipitation or 0,
            weather_code=code or 0,
        )
        for day, temp_max, temp_min, precipitation, code in zip(
            times,
            column("temperature_2m_max"),
            column("temperature_2m_min"),
            column("precipitation_probability_max"),
            column("weather_code"),
        )
    ]

    return WeatherResult(latitude=latitude, longitude=longitude, current=current, daily=daily)
