"""
Audit Logger

DESIGN DECISION: Every change to the user's records is logged.
This provides:
1. Traceability of what changed and when
2. A per-row trail for bulk imports
3. Debugging capability when a commit fails

The audit logger:
- Is async so it can sit next to the store commit in the same flow
- Gracefully handles failures (a broken audit sink never blocks a save)
- Supports correlation IDs to trace the events of one import run
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from passbook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from passbook.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional audit store (for later inspection)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("passbook.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # =========================================================================
    # RECORD EVENTS
    # =========================================================================

    async def log_account_created(
        self,
        account_id: UUID,
        bank_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_created(account_id, bank_name, correlation_id))

    async def log_account_updated(self, account_id: UUID, changed_fields: list[str]) -> None:
        await self.log(AuditEventBuilder.account_updated(account_id, changed_fields))

    async def log_account_deleted(self, account_id: UUID, removed_associations: int) -> None:
        await self.log(AuditEventBuilder.account_deleted(account_id, removed_associations))

    async def log_tag_created(self, tag_id: UUID, name: str) -> None:
        await self.log(AuditEventBuilder.tag_created(tag_id, name))

    async def log_tag_updated(self, tag_id: UUID, changed_fields: list[str]) -> None:
        await self.log(AuditEventBuilder.tag_updated(tag_id, changed_fields))

    async def log_tag_deleted(self, tag_id: UUID, removed_associations: int) -> None:
        await self.log(AuditEventBuilder.tag_deleted(tag_id, removed_associations))

    async def log_unused_tags_deleted(self, count: int) -> None:
        await self.log(AuditEventBuilder.unused_tags_deleted(count))

    async def log_default_tags_seeded(self, names: list[str]) -> None:
        await self.log(AuditEventBuilder.default_tags_seeded(names))

    async def log_tags_changed(
        self,
        account_id: UUID,
        added: list[UUID],
        removed: list[UUID],
    ) -> None:
        """Log an account's tag set changing. No-op changes are not logged."""
        if not added and not removed:
            return
        await self.log(AuditEventBuilder.tags_changed(account_id, added, removed))

    async def log_accounts_reordered(self, count: int) -> None:
        await self.log(AuditEventBuilder.accounts_reordered(count))

    async def log_reorder_rejected(self, reason: str) -> None:
        await self.log(AuditEventBuilder.reorder_rejected(reason))

    # =========================================================================
    # TRANSFER EVENTS
    # =========================================================================

    async def log_import_started(self, source: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.import_started(source, correlation_id))

    async def log_import_row_failed(
        self,
        row_number: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rejected import row."""
        await self.log(AuditEventBuilder.import_row_failed(row_number, error_message, correlation_id))

    async def log_import_completed(
        self,
        success_count: int,
        error_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.import_completed(success_count, error_count, correlation_id))

    async def log_import_failed(
        self,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log an import that aborted before or during commit."""
        await self.log(AuditEventBuilder.import_failed(error_type, error_message, correlation_id))

    async def log_export_completed(self, path: str, account_count: int) -> None:
        await self.log(AuditEventBuilder.export_completed(path, account_count))

    # =========================================================================
    # ERRORS
    # =========================================================================

    async def log_commit_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a commit that was rolled back."""
        await self.log(AuditEventBuilder.commit_failed(operation, error_message, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a CSV import).
    Pass it through all subsequent operations.
    """
    return uuid4()
