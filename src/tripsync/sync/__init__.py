"""
TripSync change queue.

Queues itinerary mutations while offline and replays them in order.
"""

from .models import ChangeKind, PendingChange, Resource, SyncReport, SyncStatus
from .queue import ChangeQueueSync
from .remote import RemoteService, SupabaseRemote
from .storage import PendingChangeStore

__all__ = [
    "ChangeKind",
    "PendingChange",
    "Resource",
    "SyncReport",
    "SyncStatus",
    "ChangeQueueSync",
    "RemoteService",
    "SupabaseRemote",
    "PendingChangeStore",
]
