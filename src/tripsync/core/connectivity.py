"""
Connectivity detection.

Components read ``is_online()`` before choosing between a network call and
the queue or cache, and register ``on_change`` callbacks to react to
transitions (drain the queue on reconnect, stop timers on disconnect).
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import httpx
from loguru import logger

ConnectivityCallback = Callable[[bool], None]


class ConnectivityProbe(ABC):
    """Process-wide online/offline signal."""

    def __init__(self, online: bool = True):
        self._online = online
        self._callbacks: List[ConnectivityCallback] = []

    def is_online(self) -> bool:
        return self._online

    def on_change(self, callback: ConnectivityCallback) -> Callable[[], None]:
        """
        Register a transition callback.

        Returns:
            A function that removes the callback again.
        """
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def _update(self, online: bool) -> None:
        """Record a new state and notify callbacks on transitions only."""
        if online == self._online:
            return

        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")

        for callback in list(self._callbacks):
            try:
                callback(online)
            except Exception as e:
                logger.error(f"Connectivity callback error: {e}")

    @abstractmethod
    async def start(self) -> None:
        """Begin watching the platform signal."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop watching."""


class ManualConnectivityProbe(ConnectivityProbe):
    """Probe whose state is set by the host application (or a test)."""

    def set_online(self, online: bool) -> None:
        self._update(online)

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class HttpConnectivityProbe(ConnectivityProbe):
    """
    Probe that polls a URL and treats any HTTP response as online.

    Transport errors (DNS failure, refused connection, timeout) mean offline.
    """

    def __init__(
        self,
        url: str,
        poll_interval: float = 15.0,
        timeout: float = 5.0,
        online: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(online=online)
        self.url = url
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._task: Optional[asyncio.Task] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def check(self) -> bool:
        """Poll once and update the state."""
        client = await self._get_client()
        try:
            await client.head(self.url)
            online = True
        except httpx.TransportError as e:
            logger.debug(f"Connectivity check failed: {e}")
            online = False

        self._update(online)
        return online

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.check()
            except Exception as e:
                logger.error(f"Connectivity check error: {e}")
            await asyncio.sleep(self.poll_interval)

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Connectivity probe polling {self.url} every {self.poll_interval}s")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
