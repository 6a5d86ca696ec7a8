"""Services package."""

from passbook.services.storage import (
    AuditStorageInterface,
    CommitError,
    DanglingReferenceError,
    DuplicateAccountError,
    DuplicateError,
    DuplicateTagError,
    EntityStore,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    JsonFileRecordStorage,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "CommitError",
    "DanglingReferenceError",
    "DuplicateAccountError",
    "DuplicateError",
    "DuplicateTagError",
    "EntityStore",
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
    "JsonFileRecordStorage",
    "NotFoundError",
    "RecordStorageInterface",
    "StorageError",
]
