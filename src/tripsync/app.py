"""
Composition root for TripSync.

Builds one instance of every service from configuration and hands them to
the UI layer. There are no module-level singletons; whoever owns the app
owns the queue and the caches.

Usage:
    async with TripSyncApp() as app:
        await app.changes.enqueue(change)
        weather = await app.lookups.fetch_weather(48.85, 2.35)
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .core.config import EnvSettings, TripSyncConfig, get_config, get_env_settings, resolve_path
from .core.connectivity import ConnectivityProbe, HttpConnectivityProbe, ManualConnectivityProbe
from .core.errors import ConfigurationError, get_error_message
from .core.events import EventBus
from .geo.providers import OpenMeteoClient
from .geo.service import GeoWeatherCache
from .sync.queue import ChangeQueueSync
from .sync.remote import RemoteService, SupabaseRemote
from .sync.storage import PendingChangeStore


class TripSyncApp:
    """
    Owns the connectivity probe, event bus, change queue and lookup cache.

    The change queue needs a remote service; when none is passed and
    Supabase is not configured, ``changes`` is None and lookups still work.
    """

    def __init__(
        self,
        config: Optional[TripSyncConfig] = None,
        env: Optional[EnvSettings] = None,
        remote: Optional[RemoteService] = None,
        probe: Optional[ConnectivityProbe] = None,
        geo_client: Optional[OpenMeteoClient] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config or get_config()
        self.env = env or get_env_settings()
        self.event_bus = event_bus or EventBus()
        self.probe = probe or self._build_probe()

        geo_cfg = self.config.geo_weather
        self.lookups = GeoWeatherCache(
            client=geo_client or OpenMeteoClient(
                timeout=geo_cfg.timeout,
                geocoding_url=geo_cfg.geocoding_url,
                forecast_url=geo_cfg.forecast_url,
            ),
            probe=self.probe,
            event_bus=self.event_bus,
            weather_ttl=geo_cfg.weather_ttl,
            max_attempts=geo_cfg.max_attempts,
            backoff_base=geo_cfg.backoff_base,
            forecast_horizon_days=geo_cfg.forecast_horizon_days,
            coordinate_precision=geo_cfg.coordinate_precision,
        )

        self.store = PendingChangeStore(resolve_path(self.config.sync.db_path))

        remote = remote or self._build_remote()
        self.changes: Optional[ChangeQueueSync] = None
        if remote is not None:
            self.changes = ChangeQueueSync(
                store=self.store,
                remote=remote,
                probe=self.probe,
                event_bus=self.event_bus,
                sync_interval=self.config.sync.sync_interval,
                send_immediately=self.config.sync.send_immediately,
            )

    def _build_probe(self) -> ConnectivityProbe:
        cfg = self.config.connectivity
        if cfg.probe_url:
            return HttpConnectivityProbe(
                url=cfg.probe_url,
                poll_interval=cfg.poll_interval,
                timeout=cfg.timeout,
            )
        return ManualConnectivityProbe()

    def _build_remote(self) -> Optional[RemoteService]:
        if not self.env.supabase_configured:
            logger.warning(f"{get_error_message('supabase')}: changes will not sync")
            return None
        return SupabaseRemote(url=self.env.supabase_url, key=self.env.supabase_key)

    def require_changes(self) -> ChangeQueueSync:
        """The change queue, or ConfigurationError if there is no backend."""
        if self.changes is None:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set")
        return self.changes

    async def start(self) -> None:
        await self.probe.start()
        if self.changes:
            await self.changes.start()
        logger.info("TripSync started")

    async def close(self) -> None:
        if self.changes:
            await self.changes.stop()
        await self.probe.stop()
        await self.lookups.close()
        logger.info("TripSync stopped")

    async def __aenter__(self) -> "TripSyncApp":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
