"""
TripSync geocoding and weather lookups.
"""

from .cache import CacheEntry, StaleableCache
from .models import (
    Coordinates,
    CurrentConditions,
    DailyForecast,
    ItineraryLookup,
    WeatherResult,
    WEATHER_DESCRIPTIONS,
)
from .providers import OpenMeteoClient, normalize_forecast
from .service import GeoWeatherCache, clamp_forecast_range

__all__ = [
    "CacheEntry",
    "StaleableCache",
    "Coordinates",
    "CurrentConditions",
    "DailyForecast",
    "ItineraryLookup",
    "WeatherResult",
    "WEATHER_DESCRIPTIONS",
    "OpenMeteoClient",
    "normalize_forecast",
    "GeoWeatherCache",
    "clamp_forecast_range",
]
