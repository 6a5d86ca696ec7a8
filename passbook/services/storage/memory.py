"""
In-memory storage backends.

Used for tests and for running without a data file. Snapshots are
deep-copied on the way in and out so the store's working set can never
alias what was "persisted".
"""

from typing import Optional
from uuid import UUID

from passbook.models.account import StoreSnapshot
from passbook.models.audit import AuditEvent
from passbook.services.storage.interface import (
    AuditStorageInterface,
    RecordStorageInterface,
)


class InMemoryRecordStorage(RecordStorageInterface):
    """Keeps the last saved snapshot in memory."""

    def __init__(self, snapshot: Optional[StoreSnapshot] = None):
        self._snapshot = snapshot.model_copy(deep=True) if snapshot else StoreSnapshot()
        self.save_count = 0

    async def load(self) -> StoreSnapshot:
        return self._snapshot.model_copy(deep=True)

    async def save(self, snapshot: StoreSnapshot) -> bool:
        self._snapshot = snapshot.model_copy(deep=True)
        self.save_count += 1
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
