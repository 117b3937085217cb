"""
Shared fixtures for TripSync tests.
"""

import asyncio
import sys
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tripsync.core.connectivity import ManualConnectivityProbe
from tripsync.core.errors import RemoteError
from tripsync.core.events import EventBus
from tripsync.sync.remote import RemoteService
from tripsync.sync.storage import PendingChangeStore

TODAY = date(2026, 10, 19)

FORECAST_PAYLOAD = {
    "daily": {
        "time": ["2026-10-19", "2026-10-20"],
        "temperature_2m_max": [20.5, 22.0],
        "temperature_2m_min": [10.0, 11.5],
        "precipitation_probability_max": [10, None],
        "weather_code": [1, 61],
        "apparent_temperature_max": [19.0, 21.0],
    },
    "hourly": {"relative_humidity_2m": [65, 70]},
}


class FakeRemote(RemoteService):
    """
    In-memory remote that records every call.

    Attributes:
        calls: (operation, resource, record_id) tuples in call order.
        fail_on_call: 1-based call numbers that raise RemoteError.
        before_call: Hook run before each call (e.g. to drop connectivity).
        gate: If set, every call waits on it.
        user_id: Returned by current_user_id.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self.payloads: List[Dict[str, Any]] = []
        self.fail_on_call: set = set()
        self.before_call: Optional[Callable[[int], None]] = None
        self.gate: Optional[asyncio.Event] = None
        self.user_id: Optional[str] = "user-1"
        self._count = 0

    async def _record(self, operation: str, resource: str, record_id: Optional[str], payload=None):
        self._count += 1
        if self.before_call:
            self.before_call(self._count)
        if self.gate is not None:
            await self.gate.wait()
        if self._count in self.fail_on_call:
            raise RemoteError(resource, operation, "simulated failure")
        self.calls.append((operation, resource, record_id))
        self.payloads.append(payload or {})

    async def insert(self, resource, payload):
        await self._record("insert", resource, payload.get("id"), payload)

    async def update(self, resource, record_id, payload):
        await self._record("update", resource, record_id, payload)

    async def delete(self, resource, record_id):
        await self._record("delete", resource, record_id)

    async def upsert(self, resource, payload):
        await self._record("upsert", resource, payload.get("id"), payload)

    async def current_user_id(self):
        return self.user_id


class FakeClock:
    """Controllable time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class OpenMeteoStub:
    """
    httpx handler imitating the Open-Meteo geocoding and forecast APIs.

    Known places map to coordinates; ``forecast_failures`` makes that many
    forecast requests answer 503 before succeeding.
    """

    def __init__(self):
        self.places: Dict[str, Dict[str, Any]] = {}
        self.forecast_failures = 0
        self.geocode_status = 200
        self.requests: List[httpx.Request] = []

    def forecast_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/forecast")]

    def geocode_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/search")]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path.endswith("/search"):
            if self.geocode_status != 200:
                return httpx.Response(self.geocode_status)
            name = request.url.params["name"]
            for place, coords in self.places.items():
                if place in name:
                    return httpx.Response(200, json={"results": [coords]})
            return httpx.Response(200, json={})

        if self.forecast_failures > 0:
            self.forecast_failures -= 1
            return httpx.Response(503, json={"error": True, "reason": "unavailable"})
        return httpx.Response(200, json=FORECAST_PAYLOAD)


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def probe():
    return ManualConnectivityProbe(online=True)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def store(tmp_path):
    return PendingChangeStore(tmp_path / "pending.db")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def open_meteo():
    stub = OpenMeteoStub()
    stub.places["Louvre"] = {"latitude": 48.8606, "longitude": 2.3376}
    return stub
