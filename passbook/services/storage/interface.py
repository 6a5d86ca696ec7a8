"""
Abstract Storage Interface

DESIGN DECISION: The entity store talks to its durable backend through
an abstract interface. This allows us to:
1. Keep records in a local JSON file today
2. Use in-memory storage for testing
3. Swap in SQLite later without touching the association or import logic

The interface is intentionally tiny. The store works on an in-memory
working set and hands the backend a complete snapshot on commit, so a
backend only ever needs to load everything and save everything.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from passbook.models.account import StoreSnapshot
from passbook.models.audit import AuditEvent


class RecordStorageInterface(ABC):
    """
    Abstract interface for the durable record backend.

    Any storage implementation (JSON file, in-memory, ...)
    must implement these methods.
    """

    @abstractmethod
    async def load(self) -> StoreSnapshot:
        """
        Load the last saved snapshot.

        Returns:
            The stored snapshot, or an empty one if nothing was saved yet

        Raises:
            StorageError: If the stored data cannot be read
        """
        pass

    @abstractmethod
    async def save(self, snapshot: StoreSnapshot) -> bool:
        """
        Replace the stored data with this snapshot.

        CRITICAL: Must be all-or-nothing. A failed save leaves the
        previously saved snapshot intact.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import run),
        in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class DuplicateAccountError(DuplicateError):
    """Same bank name, branch code and account number already registered."""

    def __init__(self, message: str = "An account with the same bank, branch code and account number already exists"):
        super().__init__(message)


class DuplicateTagError(DuplicateError):
    """A tag with the same name (ignoring case) already exists."""

    def __init__(self, message: str = "A tag with the same name already exists"):
        super().__init__(message)


class DanglingReferenceError(StorageError):
    """An association operation referenced an account or tag that is not in the store."""
    pass


class CommitError(StorageError):
    """Persisting the working set failed; uncommitted changes were discarded."""
    pass
