"""
Data models for geocoding and weather lookups.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional


# WMO weather code to description mapping (Open-Meteo)
WEATHER_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


@dataclass(frozen=True)
class Coordinates:
    """A geocoded point."""
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude}


@dataclass
class CurrentConditions:
    """Conditions for the first day of the requested range."""
    temperature: float = 0.0
    feels_like: float = 0.0
    humidity: int = 0
    precipitation_probability: int = 0
    weather_code: int = 0

    @property
    def condition(self) -> str:
        return WEATHER_DESCRIPTIONS.get(self.weather_code, "Unknown")


@dataclass
class DailyForecast:
    """One day of the forecast series."""
    date: date
    temp_max: float
    temp_min: float
    precipitation_probability: int
    weather_code: int

    @property
    def condition(self) -> str:
        return WEATHER_DESCRIPTIONS.get(self.weather_code, "Unknown")


@dataclass
class WeatherResult:
    """Normalized forecast for a coordinate pair."""
    latitude: float
    longitude: float
    current: CurrentConditions
    daily: List[DailyForecast] = field(default_factory=list)
    fetched_at: datetime = field(default_factory=datetime.now)
    is_stale: bool = False

    def as_stale(self) -> "WeatherResult":
        """Copy of this result flagged as served past its freshness window."""
        return replace(self, is_stale=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "current": {
                "temp": self.current.temperature,
                "feels_like": self.current.feels_like,
                "humidity": self.current.humidity,
                "precipitation_probability": self.current.precipitation_probability,
                "weather_code": self.current.weather_code,
                "condition": self.current.condition,
            },
            "daily": [
                {
                    "date": day.date.isoformat(),
                    "temp_max": day.temp_max,
                    "temp_min": day.temp_min,
                    "precipitation_probability": day.precipitation_probability,
                    "weather_code": day.weather_code,
                }
                for day in self.daily
            ],
            "fetched_at": self.fetched_at.isoformat(),
            "is_stale": self.is_stale,
        }


@dataclass
class ItineraryLookup:
    """Geocode and weather for one itinerary item."""
    item_id: str
    coordinates: Coordinates
    weather: Optional[WeatherResult] = None
