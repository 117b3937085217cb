"""
Offline change queue for TripSync.

Features:
- Immediate send when online, durable queue when offline or on failure
- FIFO replay of queued changes against the remote service
- All-or-nothing batch acknowledgement
- Automatic sync on reconnect and on a periodic timer
- Manual retry for the offline indicator

Usage:
    sync = ChangeQueueSync(store, remote, probe, event_bus)
    await sync.start()

    await sync.enqueue(PendingChange(ChangeKind.DELETE, "itinerary_items", {"id": "42"}))
    report = await sync.sync_pending()
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional, Set

from loguru import logger

from ..core.connectivity import ConnectivityProbe
from ..core.errors import SyncAbortedError, TripSyncError, handle_api_error
from ..core.events import EventBus, EventType
from .models import ChangeKind, PendingChange, Resource, SyncReport, SyncStatus
from .remote import RemoteService
from .storage import PendingChangeStore

ReplayHandler = Callable[[PendingChange], Awaitable[None]]


class ChangeQueueSync:
    """
    Delivers every mutating itinerary operation to the remote service,
    in enqueue order, across disconnections and transient failures.

    Only one sync run is active at a time. A batch is removed from storage
    only after every change in it replayed successfully; on any failure the
    whole batch stays for the next attempt. Replays are therefore
    at-least-once, which is safe because updates and deletes are idempotent
    and inserts carry a client-generated id.
    """

    def __init__(
        self,
        store: PendingChangeStore,
        remote: RemoteService,
        probe: ConnectivityProbe,
        event_bus: Optional[EventBus] = None,
        sync_interval: float = 300.0,
        send_immediately: bool = True,
    ):
        """
        Initialize the change queue.

        Args:
            store: Durable storage for pending changes.
            remote: Remote persistence service.
            probe: Connectivity signal.
            event_bus: Where notifications are published.
            sync_interval: Seconds between periodic syncs while online.
            send_immediately: Try the remote call before queueing when online.
        """
        self.store = store
        self.remote = remote
        self.probe = probe
        self.event_bus = event_bus
        self.sync_interval = sync_interval
        self.send_immediately = send_immediately

        self._syncing = False
        self._send_lock = asyncio.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._remove_listener: Optional[Callable[[], None]] = None

        self._handlers: Dict[str, ReplayHandler] = {
            Resource.WELLNESS_PROFILES: self._replay_wellness,
            Resource.WEATHER: self._replay_local_only,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    async def enqueue(self, change: PendingChange) -> None:
        """
        Record a mutation.

        Sent immediately when online and nothing older is waiting; otherwise,
        or if the send fails, appended to durable storage. Immediate sends are
        serialized so a failed send is stored ahead of any later change.
        Remote failures never reach the caller.

        Raises:
            ValueError: If an update or delete has no record id.
        """
        change = self._prepare(change)

        async with self._send_lock:
            if self.send_immediately and self.probe.is_online():
                if self.store.count() == 0:
                    try:
                        await self._replay(change)
                        logger.debug(f"Sent {change.kind.value} on {change.resource} immediately")
                        return
                    except TripSyncError as e:
                        logger.warning(f"Immediate send failed, queueing: {e}")
                else:
                    # Older changes must replay first
                    self._spawn(self.sync_pending())

            self.store.append(change)

        logger.info(f"Queued {change.kind.value} on {change.resource} for later sync")
        await self._notify(
            EventType.CHANGE_QUEUED,
            "Change saved offline - it will sync when reconnected",
            change=change.to_dict(),
        )

    async def sync_pending(self) -> SyncReport:
        """
        Replay all persisted changes in enqueue order.

        Returns a skipped report when offline or when another run is in
        flight. Never raises for remote or connectivity failures.
        """
        if not self.probe.is_online():
            return SyncReport.skipped_run("offline")

        if self._syncing:
            logger.debug("Sync already in progress, ignoring request")
            return SyncReport.skipped_run("sync already in progress")

        self._syncing = True
        report = SyncReport()

        try:
            batch = self.store.load_all()

            if not batch:
                logger.debug("No pending changes")
                return report

            report.attempted = len(batch)
            logger.info(f"Syncing {len(batch)} pending changes")
            await self._notify(EventType.SYNC_STARTED, "Syncing data...", pending=len(batch))

            replayed = 0
            try:
                for _, change in batch:
                    if not self.probe.is_online():
                        raise SyncAbortedError("connection lost during sync")
                    await self._replay(change)
                    replayed += 1
            except TripSyncError as e:
                report.failed = len(batch)
                report.error = str(e)
                logger.warning(
                    f"Sync failed after {replayed}/{len(batch)} replays, keeping batch: {e}"
                )
                await self._notify(
                    EventType.SYNC_FAILED,
                    "Failed to sync some changes",
                    error=handle_api_error("Sync", e),
                    pending=len(batch),
                )
                return report

            self.store.remove_through(batch[-1][0])
            if self.store.count():
                # Queued while this run was in flight
                self._spawn(self.sync_pending())
            report.synced = len(batch)
            logger.info(f"Synced {len(batch)} changes")
            await self._notify(
                EventType.SYNC_COMPLETED,
                f"Synced {len(batch)} changes",
                synced=len(batch),
            )
            return report

        finally:
            self._syncing = False
            report.finished_at = datetime.now()

    async def force_sync(self) -> SyncReport:
        """Manual retry, triggered from the offline indicator."""
        logger.info("Manual sync requested")
        return await self.sync_pending()

    def get_status(self) -> SyncStatus:
        """Current connectivity, queue length and whether a sync is running."""
        return SyncStatus(
            online=self.probe.is_online(),
            pending_count=self.store.count(),
            syncing=self._syncing,
        )

    @property
    def periodic_sync_active(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Watch connectivity, arm the periodic timer and drain leftovers."""
        if self._remove_listener is None:
            self._remove_listener = self.probe.on_change(self._on_connectivity_change)

        if self.probe.is_online():
            self._start_periodic_sync()
            if self.store.count():
                self._spawn(self.sync_pending())

        logger.info("Change queue started")

    async def stop(self) -> None:
        """Stop the timer and wait for in-flight background work."""
        if self._remove_listener:
            self._remove_listener()
            self._remove_listener = None

        timer = self._timer_task
        self._stop_periodic_sync()
        if timer:
            try:
                await timer
            except asyncio.CancelledError:
                pass

        await self.wait_for_background()
        logger.info("Change queue stopped")

    async def wait_for_background(self) -> None:
        """Wait until every background sync and notification has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # =========================================================================
    # Connectivity and timer
    # =========================================================================

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self._spawn(self._handle_online())
        else:
            self._stop_periodic_sync()
            self._spawn(
                self._notify(
                    EventType.WENT_OFFLINE,
                    "Offline mode - changes will sync when reconnected",
                )
            )

    async def _handle_online(self) -> None:
        logger.info("Connection restored")
        await self._notify(EventType.WENT_ONLINE, "Back online - syncing data...")
        await self.sync_pending()
        if self.probe.is_online():
            self._start_periodic_sync()

    def _start_periodic_sync(self) -> None:
        if self.periodic_sync_active:
            return
        try:
            self._timer_task = asyncio.get_running_loop().create_task(self._periodic_sync_loop())
        except RuntimeError:
            logger.debug("No running event loop, periodic sync not armed")

    def _stop_periodic_sync(self) -> None:
        if self._timer_task:
            self._timer_task.cancel()
            self._timer_task = None

    async def _periodic_sync_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sync_interval)
            if self.probe.is_online():
                await self.sync_pending()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run a coroutine in the background, keeping a reference to it."""
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop, background work skipped")
            return

        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # =========================================================================
    # Replay
    # =========================================================================

    @staticmethod
    def _prepare(change: PendingChange) -> PendingChange:
        """Validate a change and give inserts a client-generated id."""
        local_only = change.resource == Resource.WEATHER
        per_user = change.resource == Resource.WELLNESS_PROFILES and change.kind != ChangeKind.DELETE

        if change.kind in (ChangeKind.UPDATE, ChangeKind.DELETE) and not (local_only or per_user):
            if change.record_id is None:
                raise ValueError(f"{change.kind.value} on {change.resource} needs an 'id' in its payload")

        if change.kind == ChangeKind.INSERT and not local_only and "id" not in change.payload:
            change.payload = {**change.payload, "id": str(uuid.uuid4())}

        return change

    async def _replay(self, change: PendingChange) -> None:
        handler = self._handlers.get(change.resource, self._replay_record)
        await handler(change)

    async def _replay_record(self, change: PendingChange) -> None:
        """Generic table mapping: insert, update by id, delete by id."""
        if change.kind == ChangeKind.INSERT:
            await self.remote.insert(change.resource, change.payload)
        elif change.kind == ChangeKind.UPDATE:
            await self.remote.update(change.resource, change.record_id, change.payload)
        else:
            await self.remote.delete(change.resource, change.record_id)

    async def _replay_wellness(self, change: PendingChange) -> None:
        """Wellness profiles are one row per user, written by upsert."""
        if change.kind == ChangeKind.DELETE:
            await self.remote.delete(change.resource, change.record_id)
            return

        user_id = await self.remote.current_user_id()
        if user_id is None:
            logger.info("No signed-in user, dropping wellness profile change")
            return

        await self.remote.upsert(change.resource, {**change.payload, "user_id": user_id})

    async def _replay_local_only(self, change: PendingChange) -> None:
        logger.debug(f"{change.resource} is cached locally, nothing to send")

    async def _notify(self, event_type: EventType, message: str, **data) -> None:
        if self.event_bus:
            await self.event_bus.emit(event_type, source="change_queue", message=message, **data)
