"""
Unit tests for TripSync core modules.

Tests:
- Retry with exponential backoff
- Pending change storage
- Connectivity probes
- Stale-able cache
- Event bus
- Configuration and error messages
"""

import asyncio

import httpx
import pytest

from conftest import FakeClock, RecordingSleep
from tripsync.core.config import EnvSettings, get_config, load_yaml_config, resolve_path
from tripsync.core.connectivity import HttpConnectivityProbe, ManualConnectivityProbe
from tripsync.core.errors import (
    ConfigurationError,
    LookupFailedError,
    RemoteError,
    SyncAbortedError,
    WeatherUnavailableError,
    get_error_message,
    handle_api_error,
    user_message,
)
from tripsync.core.events import EventBus, EventType
from tripsync.core.retry import exponential_backoff, with_retry
from tripsync.geo.cache import StaleableCache
from tripsync.sync.models import ChangeKind, PendingChange, Resource
from tripsync.sync.storage import PendingChangeStore


class TestRetry:
    """Tests for with_retry."""

    def test_backoff_doubles(self):
        backoff = exponential_backoff(1.0, maximum=5.0)
        assert [backoff(i) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        sleep = RecordingSleep()

        async def operation():
            return "ok"

        result = await with_retry(operation, sleep=sleep)

        assert result.ok
        assert result.value == "ok"
        assert result.attempts == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleep = RecordingSleep()
        calls = []

        async def operation():
            calls.append(1)
            raise LookupFailedError("down")

        result = await with_retry(operation, max_attempts=3, sleep=sleep)

        assert not result.ok
        assert isinstance(result.error, LookupFailedError)
        assert len(calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_unlisted_errors_propagate(self):
        async def operation():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await with_retry(operation, retry_on=(LookupFailedError,), sleep=RecordingSleep())

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self):
        async def operation():
            return None

        with pytest.raises(ValueError):
            await with_retry(operation, max_attempts=0)


class TestPendingChangeStore:
    """Tests for PendingChangeStore."""

    def test_fifo_order(self, tmp_path):
        store = PendingChangeStore(tmp_path / "q.db")

        for record_id in ("c", "a", "b"):
            store.append(PendingChange(ChangeKind.DELETE, Resource.ITINERARY_ITEMS, {"id": record_id}))

        assert [c.payload["id"] for _, c in store.load_all()] == ["c", "a", "b"]
        assert store.count() == 3

    def test_round_trip_fields(self, tmp_path):
        store = PendingChangeStore(tmp_path / "q.db")
        change = PendingChange(ChangeKind.UPDATE, Resource.ITINERARY_ITEMS, {"id": "7", "title": "Café"})

        store.append(change)
        _, loaded = store.load_all()[0]

        assert loaded.change_id == change.change_id
        assert loaded.kind == ChangeKind.UPDATE
        assert loaded.payload == {"id": "7", "title": "Café"}
        assert loaded.enqueued_at == change.enqueued_at

    def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "nested" / "q.db"
        PendingChangeStore(db_path).append(PendingChange(ChangeKind.DELETE, Resource.ITINERARY_ITEMS, {"id": "1"}))

        assert PendingChangeStore(db_path).count() == 1

    def test_remove_through(self, tmp_path):
        store = PendingChangeStore(tmp_path / "q.db")
        seqs = [
            store.append(PendingChange(ChangeKind.DELETE, Resource.ITINERARY_ITEMS, {"id": str(i)}))
            for i in range(3)
        ]

        removed = store.remove_through(seqs[1])

        assert removed == 2
        assert [c.payload["id"] for _, c in store.load_all()] == ["2"]


class TestConnectivity:
    """Tests for connectivity probes."""

    def test_callbacks_fire_on_transitions_only(self):
        probe = ManualConnectivityProbe(online=True)
        seen = []
        remove = probe.on_change(seen.append)

        probe.set_online(True)
        probe.set_online(False)
        probe.set_online(False)
        probe.set_online(True)
        remove()
        probe.set_online(False)

        assert seen == [False, True]
        assert not probe.is_online()

    def test_failing_callback_does_not_block_others(self):
        probe = ManualConnectivityProbe()
        seen = []

        def broken(online):
            raise RuntimeError("boom")

        probe.on_change(broken)
        probe.on_change(seen.append)
        probe.set_online(False)

        assert seen == [False]

    @pytest.mark.asyncio
    async def test_http_probe_transport_error_is_offline(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        probe = HttpConnectivityProbe("https://example.test/health", client=client)

        assert await probe.check() is False
        assert not probe.is_online()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_probe_any_response_is_online(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        probe = HttpConnectivityProbe("https://example.test/health", online=False, client=client)

        assert await probe.check() is True
        assert probe.is_online()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_poll_loop_survives_unexpected_errors(self):
        """Test a non-transport failure is logged and polling continues."""
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.InvalidURL("bad url")
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        probe = HttpConnectivityProbe(
            "https://example.test/health", poll_interval=0.01, online=False, client=client
        )

        await probe.start()
        for _ in range(50):
            if probe.is_online():
                break
            await asyncio.sleep(0.01)

        assert probe.is_online()
        assert len(attempts) >= 2
        await probe.stop()
        await client.aclose()


class TestStaleableCache:
    """Tests for StaleableCache."""

    def test_expired_entries_are_kept(self):
        clock = FakeClock()
        cache = StaleableCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")

        clock.advance(11)

        assert cache.get_fresh("k") is None
        assert cache.get("k").value == "v"
        assert cache.size == 1

    def test_no_ttl_never_expires(self):
        clock = FakeClock()
        cache = StaleableCache(ttl_seconds=None, clock=clock)
        cache.set("k", "v")

        clock.advance(10 ** 9)

        assert cache.get_fresh("k").value == "v"

    def test_set_overwrites(self):
        cache = StaleableCache(ttl_seconds=10, clock=FakeClock())
        cache.set("k", "old")
        cache.mark_stale("k")
        cache.set("k", "new")

        entry = cache.get("k")
        assert entry.value == "new"
        assert not entry.is_stale
        assert cache.clear() == 1


class TestEventBus:
    """Tests for EventBus."""

    @pytest.mark.asyncio
    async def test_emit_reaches_subscribers(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(EventType.SYNC_COMPLETED, handler)
        await bus.emit(EventType.SYNC_COMPLETED, source="test", message="Synced 1 changes", synced=1)

        assert received[0].message == "Synced 1 changes"
        assert received[0].data == {"synced": 1}

    @pytest.mark.asyncio
    async def test_handler_error_is_isolated(self):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def recorder(event):
            received.append(event)

        bus.subscribe(EventType.WENT_ONLINE, broken)
        bus.subscribe_all(recorder)
        await bus.emit(EventType.WENT_ONLINE, source="test")

        assert len(received) == 1
        assert bus.unsubscribe(EventType.WENT_ONLINE, broken)


class TestConfig:
    """Tests for configuration loading."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = get_config(tmp_path / "missing.yaml")

        assert config.sync.sync_interval == 300
        assert config.geo_weather.weather_ttl == 1800
        assert config.geo_weather.max_attempts == 3
        assert config.geo_weather.forecast_horizon_days == 14

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("sync:\n  sync_interval: 60\ngeo_weather:\n  weather_ttl: 900\n", encoding="utf-8")

        assert load_yaml_config(path)["sync"]["sync_interval"] == 60
        config = get_config(path)
        assert config.sync.sync_interval == 60
        assert config.geo_weather.weather_ttl == 900

    def test_resolve_path(self, tmp_path):
        assert resolve_path(tmp_path / "x.db") == tmp_path / "x.db"
        assert resolve_path("data/x.db").is_absolute()

    def test_placeholder_credentials_are_unset(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "your_url_here")
        monkeypatch.setenv("SUPABASE_KEY", "your_key_here")

        env = EnvSettings(_env_file=None)

        assert env.supabase_url is None
        assert not env.supabase_configured

    def test_real_credentials(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
        monkeypatch.setenv("SUPABASE_KEY", "anon-key")

        assert EnvSettings(_env_file=None).supabase_configured


class TestErrors:
    """Tests for user-facing error messages."""

    def test_remote_failures_read_as_pending(self):
        assert user_message(RemoteError("itinerary_items", "delete", "timeout")) == "Sync still pending"
        assert user_message(SyncAbortedError("lost")) == "Sync still pending"

    def test_lookup_failures_read_as_unavailable(self):
        assert user_message(WeatherUnavailableError(1.0, 2.0)) == "Data unavailable"
        assert user_message(LookupFailedError("dns")) == "Data unavailable"

    def test_configuration_error(self):
        assert "SUPABASE_URL" in user_message(ConfigurationError("missing"), detailed=True)

    def test_unknown_key(self):
        assert get_error_message("nope") == "An error occurred: nope"

    def test_handle_api_error_classifies(self):
        assert "timed out" in handle_api_error("Sync", Exception("Read timeout"))
        assert "rate limit" in handle_api_error("Sync", Exception("429 Too Many Requests"))
        assert handle_api_error("Sync", Exception("weird"), "fallback") == "fallback"
