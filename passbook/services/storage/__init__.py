"""
Storage Services Package

Provides the entity store, abstract backend interfaces and concrete
backends (JSON file, in-memory).
"""

from passbook.services.storage.interface import (
    AuditStorageInterface,
    CommitError,
    DanglingReferenceError,
    DuplicateAccountError,
    DuplicateError,
    DuplicateTagError,
    NotFoundError,
    RecordStorageInterface,
    StorageError,
)
from passbook.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStorage,
)
from passbook.services.storage.json_file import JsonFileRecordStorage
from passbook.services.storage.store import EntityStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStorageInterface",
    # Exceptions
    "CommitError",
    "DanglingReferenceError",
    "DuplicateAccountError",
    "DuplicateError",
    "DuplicateTagError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "EntityStore",
    "InMemoryAuditStorage",
    "InMemoryRecordStorage",
    "JsonFileRecordStorage",
]
