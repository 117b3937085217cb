"""
Data models for the offline change queue.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ChangeKind(Enum):
    """Kind of mutation recorded while offline."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class Resource:
    """Collections the client mutates."""
    ITINERARY_ITEMS = "itinerary_items"
    WELLNESS_PROFILES = "wellness_profiles"
    WEATHER = "weather"  # cached locally, never sent


@dataclass
class PendingChange:
    """A mutation waiting to reach the remote service."""
    kind: ChangeKind
    resource: str
    payload: Dict[str, Any] = field(default_factory=dict)
    enqueued_at: datetime = field(default_factory=datetime.now)
    change_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def record_id(self) -> Optional[str]:
        """Id of the target record, if the payload carries one."""
        record_id = self.payload.get("id")
        return str(record_id) if record_id is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change_id": self.change_id,
            "kind": self.kind.value,
            "resource": self.resource,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at.isoformat(),
        }


@dataclass
class SyncReport:
    """Result of one ``sync_pending`` run."""
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    skipped: bool = False
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return not self.skipped and self.error is None

    @classmethod
    def skipped_run(cls, reason: str) -> "SyncReport":
        now = datetime.now()
        return cls(skipped=True, error=reason, started_at=now, finished_at=now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "synced": self.synced,
            "failed": self.failed,
            "skipped": self.skipped,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class SyncStatus:
    """Snapshot for the offline indicator."""
    online: bool
    pending_count: int
    syncing: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "online": self.online,
            "pending_count": self.pending_count,
            "syncing": self.syncing,
        }
