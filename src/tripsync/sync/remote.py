"""
Remote persistence service.

Handles:
- Connection to Supabase
- Insert / update / delete / upsert on trip tables
- Current user lookup for per-user rows
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from loguru import logger
from supabase import Client, create_client

from ..core.errors import ConfigurationError, RemoteError


class RemoteService(ABC):
    """CRUD surface the change queue replays against. Failures raise RemoteError."""

    @abstractmethod
    async def insert(self, resource: str, payload: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def update(self, resource: str, record_id: str, payload: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def delete(self, resource: str, record_id: str) -> None: ...

    @abstractmethod
    async def upsert(self, resource: str, payload: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def current_user_id(self) -> Optional[str]: ...


class SupabaseRemote(RemoteService):
    """
    Supabase implementation of the remote service.

    The supabase-py client is blocking, so every call runs in a worker
    thread to keep the event loop free.

    Inserts are sent as ``upsert(..., ignore_duplicates=True)`` on ``id``:
    the change queue stamps a client-generated id on each insert, so a
    replayed insert that already reached the server is a no-op.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        """
        Initialize Supabase remote.

        Args:
            url: Supabase project URL
            key: Supabase anon key
            client: Pre-built client (takes precedence over url/key)
        """
        if client is None:
            if not url or not key:
                raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set")
            client = create_client(url, key)
            logger.info("Supabase client connected")

        self.client = client

    async def _execute(self, resource: str, operation: str, build: Callable[[], Any]) -> Any:
        """Run a query builder's ``execute()`` off-loop, normalizing errors."""
        try:
            return await asyncio.to_thread(lambda: build().execute())
        except Exception as e:
            logger.warning(f"Supabase {operation} on {resource} failed: {e}")
            raise RemoteError(resource, operation, str(e)) from e

    async def insert(self, resource: str, payload: Dict[str, Any]) -> None:
        if "id" in payload:
            await self._execute(
                resource,
                "insert",
                lambda: self.client.table(resource).upsert(
                    payload, on_conflict="id", ignore_duplicates=True
                ),
            )
        else:
            await self._execute(resource, "insert", lambda: self.client.table(resource).insert(payload))

    async def update(self, resource: str, record_id: str, payload: Dict[str, Any]) -> None:
        await self._execute(
            resource,
            "update",
            lambda: self.client.table(resource).update(payload).eq("id", record_id),
        )

    async def delete(self, resource: str, record_id: str) -> None:
        await self._execute(
            resource,
            "delete",
            lambda: self.client.table(resource).delete().eq("id", record_id),
        )

    async def upsert(self, resource: str, payload: Dict[str, Any]) -> None:
        await self._execute(resource, "upsert", lambda: self.client.table(resource).upsert(payload))

    async def current_user_id(self) -> Optional[str]:
        try:
            response = await asyncio.to_thread(self.client.auth.get_user)
        except Exception as e:
            logger.warning(f"Failed to read signed-in user: {e}")
            raise RemoteError("auth", "get_user", str(e)) from e

        if response is None or response.user is None:
            return None
        return response.user.id
