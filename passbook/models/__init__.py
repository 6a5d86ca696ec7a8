"""
Data Models Package

This package contains all Pydantic models used in Passbook.
All records flowing through the system must conform to these schemas.
"""

from passbook.models.account import (
    DEFAULT_TAGS,
    Account,
    Association,
    StoreSnapshot,
    Tag,
    now_local,
)
from passbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from passbook.models.results import (
    FilterState,
    ImportResult,
    TagChangeSet,
)

__all__ = [
    # Record models
    "DEFAULT_TAGS",
    "Account",
    "Association",
    "StoreSnapshot",
    "Tag",
    "now_local",
    # Results
    "FilterState",
    "ImportResult",
    "TagChangeSet",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
