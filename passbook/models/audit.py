"""
Audit Models for Passbook

Every change to the user's records is logged for audit purposes.
This provides:
1. Traceability of what changed and when
2. Debugging information when an import goes wrong
3. A way to reconstruct what happened to a record

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from passbook.models.account import now_local


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Tags
    TAG_CREATED = "tag_created"
    TAG_UPDATED = "tag_updated"
    TAG_DELETED = "tag_deleted"
    UNUSED_TAGS_DELETED = "unused_tags_deleted"
    DEFAULT_TAGS_SEEDED = "default_tags_seeded"

    # Associations
    TAGS_CHANGED = "tags_changed"

    # Ordering
    ACCOUNTS_REORDERED = "accounts_reordered"
    REORDER_REJECTED = "reorder_rejected"

    # Bulk transfer
    IMPORT_STARTED = "import_started"
    IMPORT_ROW_FAILED = "import_row_failed"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    EXPORT_COMPLETED = "export_completed"

    # Persistence / system
    COMMIT_FAILED = "commit_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=now_local,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'tag', 'import')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all rows of one import)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, bank_name)
        event = AuditEventBuilder.import_completed(3, 1, correlation_id)
    """

    @staticmethod
    def account_created(
        account_id: UUID,
        bank_name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account created: {bank_name}",
            details={"bank_name": bank_name},
        )

    @staticmethod
    def account_updated(
        account_id: UUID,
        changed_fields: list[str]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_UPDATED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account updated: {', '.join(changed_fields) or 'no fields'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def account_deleted(
        account_id: UUID,
        removed_associations: int
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            entity_type="account",
            entity_id=account_id,
            description="Account deleted",
            details={"removed_associations": removed_associations},
        )

    @staticmethod
    def tag_created(tag_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAG_CREATED,
            entity_type="tag",
            entity_id=tag_id,
            description=f"Tag created: {name}",
            details={"name": name},
        )

    @staticmethod
    def tag_updated(tag_id: UUID, changed_fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAG_UPDATED,
            entity_type="tag",
            entity_id=tag_id,
            description=f"Tag updated: {', '.join(changed_fields) or 'no fields'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def tag_deleted(tag_id: UUID, removed_associations: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAG_DELETED,
            entity_type="tag",
            entity_id=tag_id,
            description="Tag deleted",
            details={"removed_associations": removed_associations},
        )

    @staticmethod
    def unused_tags_deleted(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNUSED_TAGS_DELETED,
            entity_type="tag",
            description=f"Deleted {count} unused tags",
            details={"count": count},
        )

    @staticmethod
    def default_tags_seeded(names: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_TAGS_SEEDED,
            entity_type="tag",
            description=f"Seeded {len(names)} default tags",
            details={"names": names},
        )

    @staticmethod
    def tags_changed(
        account_id: UUID,
        added: list[UUID],
        removed: list[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TAGS_CHANGED,
            entity_type="account",
            entity_id=account_id,
            description=f"Tags changed: +{len(added)} -{len(removed)}",
            details={
                "added": [str(tag_id) for tag_id in added],
                "removed": [str(tag_id) for tag_id in removed],
            },
        )

    @staticmethod
    def accounts_reordered(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNTS_REORDERED,
            entity_type="account",
            description=f"Reordered {count} accounts",
            details={"count": count},
        )

    @staticmethod
    def reorder_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REORDER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            description="Reorder rejected",
            error_message=reason,
        )

    @staticmethod
    def import_started(source: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"CSV import started: {source}",
            details={"source": source},
        )

    @staticmethod
    def import_row_failed(
        row_number: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_ROW_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"Import row {row_number} rejected",
            details={"row": row_number},
            error_message=error_message,
        )

    @staticmethod
    def import_completed(
        success_count: int,
        error_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if error_count else AuditSeverity.INFO,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"CSV import finished: {success_count} succeeded, {error_count} failed",
            details={
                "success_count": success_count,
                "error_count": error_count,
            },
        )

    @staticmethod
    def import_failed(
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"CSV import aborted: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def export_completed(path: str, account_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="export",
            description=f"Exported {account_count} accounts",
            details={
                "path": path,
                "account_count": account_count,
            },
        )

    @staticmethod
    def commit_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Commit failed during {operation}",
            error_code="commit_failed",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
