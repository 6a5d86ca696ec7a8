"""
Shared fixtures.

Everything runs against in-memory backends; tests that need a file
use pytest's tmp_path.
"""

import pytest

from passbook.associations import AssociationManager
from passbook.audit import AuditLogger
from passbook.config import Settings
from passbook.models.account import StoreSnapshot
from passbook.ordering import OrderingManager
from passbook.orchestrator import AccountBook
from passbook.services.storage import (
    EntityStore,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    StorageError,
)
from passbook.transfer import CSVService


class FailingRecordStorage(InMemoryRecordStorage):
    """Backend whose saves can be switched to fail."""

    def __init__(self, snapshot: StoreSnapshot = None):
        super().__init__(snapshot)
        self.fail_saves = False

    async def save(self, snapshot: StoreSnapshot) -> bool:
        if self.fail_saves:
            raise StorageError("disk full")
        return await super().save(snapshot)


@pytest.fixture
def backend():
    return FailingRecordStorage()


@pytest.fixture
def store(backend):
    return EntityStore(backend)


@pytest.fixture
def associations(store):
    return AssociationManager(store)


@pytest.fixture
def ordering(store):
    return OrderingManager(store)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def csv_service(store, associations, ordering, audit_logger, tmp_path):
    settings = Settings().transfer.model_copy(update={"export_directory": tmp_path})
    return CSVService(
        store,
        associations,
        ordering,
        settings=settings,
        audit_logger=audit_logger,
    )


@pytest.fixture
def book(store, audit_logger):
    return AccountBook(store=store, settings=Settings(), audit_logger=audit_logger)
