"""
Integration tests for the TripSync composition root and CLI.
"""

import json

import httpx
import pytest

from tripsync.app import TripSyncApp
from tripsync.cli import build_parser, main, run_command
from tripsync.core.config import EnvSettings, SyncConfig, TripSyncConfig
from tripsync.core.connectivity import ManualConnectivityProbe
from tripsync.core.errors import ConfigurationError
from tripsync.geo.providers import OpenMeteoClient
from tripsync.sync.models import ChangeKind, PendingChange, Resource


@pytest.fixture
def config(tmp_path):
    return TripSyncConfig(sync=SyncConfig(db_path=str(tmp_path / "pending.db")))


@pytest.fixture
def no_supabase(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_KEY", raising=False)
    return EnvSettings(_env_file=None)


@pytest.fixture
def geo_client(open_meteo):
    return OpenMeteoClient(client=httpx.AsyncClient(transport=httpx.MockTransport(open_meteo)))


class TestTripSyncApp:
    """Tests for TripSyncApp wiring."""

    @pytest.mark.asyncio
    async def test_offline_edit_syncs_on_reconnect(self, config, no_supabase, fake_remote, geo_client, tmp_path):
        probe = ManualConnectivityProbe(online=False)
        app = TripSyncApp(config=config, env=no_supabase, remote=fake_remote, probe=probe, geo_client=geo_client)

        async with app:
            await app.changes.enqueue(
                PendingChange(ChangeKind.DELETE, Resource.ITINERARY_ITEMS, {"id": "42"})
            )
            assert app.changes.get_status().pending_count == 1
            assert (tmp_path / "pending.db").exists()

            probe.set_online(True)
            await app.changes.wait_for_background()

            assert fake_remote.calls == [("delete", "itinerary_items", "42")]
            assert app.changes.get_status().pending_count == 0

    @pytest.mark.asyncio
    async def test_without_backend_lookups_still_work(self, config, no_supabase, geo_client):
        app = TripSyncApp(config=config, env=no_supabase, probe=ManualConnectivityProbe(), geo_client=geo_client)

        async with app:
            assert app.changes is None
            with pytest.raises(ConfigurationError):
                app.require_changes()

            coords = await app.lookups.geocode("Louvre", "Paris")
            assert coords is not None

    def test_manual_probe_without_url(self, config, no_supabase, geo_client):
        app = TripSyncApp(config=config, env=no_supabase, geo_client=geo_client)

        assert isinstance(app.probe, ManualConnectivityProbe)


class TestCli:
    """Tests for the command-line entry point."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out.lower()

    def test_check_config(self, tmp_path, capsys, no_supabase):
        path = tmp_path / "settings.yaml"
        path.write_text("sync:\n  sync_interval: 60\n", encoding="utf-8")

        assert main(["--check-config", "--config", str(path)]) == 0

        out = capsys.readouterr().out
        assert '"sync_interval": 60' in out
        assert "Supabase not configured" in out

    @pytest.mark.asyncio
    async def test_status_command(self, config, no_supabase, fake_remote, geo_client, capsys):
        app = TripSyncApp(
            config=config,
            env=no_supabase,
            remote=fake_remote,
            probe=ManualConnectivityProbe(online=False),
            geo_client=geo_client,
        )
        args = build_parser().parse_args(["--status"])

        async with app:
            assert await run_command(args, app) == 0

        status = json.loads(capsys.readouterr().out)
        assert status == {"online": False, "pending_count": 0, "syncing": False}

    @pytest.mark.asyncio
    async def test_geocode_command(self, config, no_supabase, geo_client, capsys):
        app = TripSyncApp(config=config, env=no_supabase, probe=ManualConnectivityProbe(), geo_client=geo_client)
        args = build_parser().parse_args(["--geocode", "Louvre", "--context", "Paris"])

        async with app:
            assert await run_command(args, app) == 0

        assert json.loads(capsys.readouterr().out) == {"lat": 48.8606, "lng": 2.3376}
