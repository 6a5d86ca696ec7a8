"""
Main Orchestrator for Passbook

This module ties together all the components and defines the
operations collaborators (a UI shell, scripts, tests) call:
1. Account and tag CRUD
2. Tag assignment
3. Manual reordering
4. CSV export / import

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every mutating operation ends in exactly one store commit
- A failed operation leaves nothing staged (the working set is rolled back)
- Every step is audited, failures included

This is the "glue" that keeps the store consistent even when an
individual step fails half-way.
"""

from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from passbook.associations import AssociationManager
from passbook.associations.manager import AccountRef, TagRef
from passbook.audit import AuditLogger, create_correlation_id
from passbook.config import Settings, get_settings
from passbook.models.account import DEFAULT_TAGS, Account, Association, Tag
from passbook.models.results import FilterState, ImportResult, TagChangeSet
from passbook.ordering import OrderingManager, ReorderRejectedError
from passbook.services.storage import (
    AuditStorageInterface,
    CommitError,
    EntityStore,
    InMemoryRecordStorage,
    JsonFileRecordStorage,
    RecordStorageInterface,
)
from passbook.transfer import CSVService


logger = structlog.get_logger(__name__)


class AccountBook:
    """
    Facade over the store, the managers and the CSV service.

    Usage:
        book = create_account_book()
        await book.initialize()
        account = await book.create_account("Example Bank", branch_code="001")
        await book.add_tag(account, book.list_tags()[0])
    """

    def __init__(
        self,
        store: Optional[EntityStore] = None,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings()
        app_settings = self._settings.app

        self._store = store or EntityStore()
        self._audit = audit_logger or AuditLogger()
        self._associations = AssociationManager(self._store)
        self._ordering = OrderingManager(
            self._store,
            max_search_length=app_settings.max_search_length,
        )
        self._csv = CSVService(
            self._store,
            self._associations,
            self._ordering,
            settings=self._settings.transfer,
            audit_logger=self._audit,
        )
        self._seed_on_start = app_settings.seed_default_tags

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def associations(self) -> AssociationManager:
        return self._associations

    @property
    def ordering(self) -> OrderingManager:
        return self._ordering

    @property
    def csv(self) -> CSVService:
        return self._csv

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _commit(self, operation: str) -> None:
        try:
            await self._store.commit()
        except CommitError as e:
            await self._audit.log_commit_failed(operation, str(e))
            raise

    async def _abort(self, operation: str, error: Exception) -> None:
        """Drop whatever the failed operation staged, then audit it."""
        self._store.rollback()
        await self._audit.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            details={"operation": operation},
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def initialize(self) -> list[Tag]:
        """
        Load the store and, on first launch, create the default tags.

        Seeding only happens when the store has no tags at all, so
        deleting a default tag does not bring it back on the next start.

        Returns:
            The tags created by seeding (empty when none were)
        """
        await self._store.load()
        if not self._seed_on_start or self._store.list_tags():
            return []
        return await self.seed_default_tags()

    async def seed_default_tags(self) -> list[Tag]:
        """
        Create every default tag whose name is not already taken.

        Safe to call repeatedly: names are compared ignoring case.
        """
        created = []
        for name, color in DEFAULT_TAGS:
            if self._store.find_duplicate_tag(name) is None:
                created.append(self._store.create_tag(name, color))

        if created:
            await self._commit("seed_default_tags")
            await self._audit.log_default_tags_seeded([tag.name for tag in created])
        return created

    # =========================================================================
    # VIEWS
    # =========================================================================

    def list_accounts(self, filter_state: Optional[FilterState] = None) -> list[Account]:
        """Accounts in display order, optionally filtered."""
        return self._ordering.filter_accounts(filter_state)

    def list_tags(self) -> list[Tag]:
        """Tags in display order."""
        return self._ordering.sorted_tags()

    def tags_for(self, account: AccountRef) -> list[Tag]:
        return self._associations.tags_for(account)

    def accounts_for(self, tag: TagRef) -> list[Account]:
        return self._associations.accounts_for(tag)

    def tag_usage_count(self, tag: TagRef) -> int:
        tag_id = tag.id if isinstance(tag, Tag) else tag
        return self._store.tag_usage_count(tag_id)

    def tag_is_used(self, tag: TagRef) -> bool:
        tag_id = tag.id if isinstance(tag, Tag) else tag
        return self._store.tag_is_used(tag_id)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def create_account(
        self,
        bank_name: str,
        branch_name: str = "",
        branch_code: str = "",
        account_number: str = "",
        tags: Optional[Iterable[TagRef]] = None,
    ) -> Account:
        """
        Create an account at the end of the list, optionally tagged.

        Raises:
            FieldValidationError: a field broke a validation rule
            DuplicateAccountError: same bank/branch code/account number exists
            DanglingReferenceError: a tag is not in the store
            CommitError: the change could not be saved
        """
        try:
            account = self._store.create_account(
                bank_name=bank_name,
                branch_name=branch_name,
                branch_code=branch_code,
                account_number=account_number,
                sort_index=self._ordering.next_account_sort_index(),
            )
            changes = TagChangeSet()
            if tags is not None:
                changes = self._associations.replace_tags(account, tags)
        except Exception as e:
            await self._abort("create_account", e)
            raise

        await self._commit("create_account")
        await self._audit.log_account_created(account.id, account.bank_name)
        await self._audit.log_tags_changed(account.id, changes.added, changes.removed)
        return account

    async def update_account(
        self,
        account: AccountRef,
        *,
        bank_name: Optional[str] = None,
        branch_name: Optional[str] = None,
        branch_code: Optional[str] = None,
        account_number: Optional[str] = None,
        tags: Optional[Iterable[TagRef]] = None,
    ) -> Account:
        """
        Change the given fields of an account.

        When tags is given the account's tag set is replaced with it.
        updated_at is refreshed even if no field value changed.
        """
        account_id = account.id if isinstance(account, Account) else account
        fields = {
            "bank_name": bank_name,
            "branch_name": branch_name,
            "branch_code": branch_code,
            "account_number": account_number,
        }
        try:
            updated = self._store.update_account(account_id, **fields)
            changes = TagChangeSet()
            if tags is not None:
                changes = self._associations.replace_tags(updated, tags)
        except Exception as e:
            await self._abort("update_account", e)
            raise

        await self._commit("update_account")
        await self._audit.log_account_updated(
            account_id,
            [name for name, value in fields.items() if value is not None],
        )
        await self._audit.log_tags_changed(account_id, changes.added, changes.removed)
        return self._store.require_account(account_id)

    async def delete_account(self, account: AccountRef) -> int:
        """Delete an account and its associations. Returns associations removed."""
        account_id = account.id if isinstance(account, Account) else account
        try:
            removed = self._store.delete_account(account_id)
        except Exception as e:
            await self._abort("delete_account", e)
            raise

        await self._commit("delete_account")
        await self._audit.log_account_deleted(account_id, removed)
        return removed

    # =========================================================================
    # TAGS
    # =========================================================================

    async def create_tag(self, name: str, color: str) -> Tag:
        """
        Create a tag at the end of the tag list.

        Raises:
            FieldValidationError: name or colour invalid
            DuplicateTagError: name already used (ignoring case)
        """
        try:
            tag = self._store.create_tag(name, color)
        except Exception as e:
            await self._abort("create_tag", e)
            raise

        await self._commit("create_tag")
        await self._audit.log_tag_created(tag.id, tag.name)
        return tag

    async def update_tag(
        self,
        tag: TagRef,
        *,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Tag:
        tag_id = tag.id if isinstance(tag, Tag) else tag
        try:
            updated = self._store.update_tag(tag_id, name=name, color=color)
        except Exception as e:
            await self._abort("update_tag", e)
            raise

        await self._commit("update_tag")
        changed = [field for field, value in (("name", name), ("color", color)) if value is not None]
        await self._audit.log_tag_updated(tag_id, changed)
        return self._store.require_tag(updated.id)

    async def delete_tag(self, tag: TagRef) -> int:
        """Delete a tag; accounts keep their other tags. Returns associations removed."""
        tag_id = tag.id if isinstance(tag, Tag) else tag
        try:
            removed = self._store.delete_tag(tag_id)
        except Exception as e:
            await self._abort("delete_tag", e)
            raise

        await self._commit("delete_tag")
        await self._audit.log_tag_deleted(tag_id, removed)
        return removed

    async def delete_unused_tags(self) -> int:
        count = self._store.delete_unused_tags()
        if count:
            await self._commit("delete_unused_tags")
            await self._audit.log_unused_tags_deleted(count)
        return count

    # =========================================================================
    # TAG ASSIGNMENT
    # =========================================================================

    async def add_tag(self, account: AccountRef, tag: TagRef) -> Association:
        """Attach a tag to an account; returns the (possibly existing) link."""
        try:
            before = len(self._store.list_associations())
            association = self._associations.add_tag(account, tag)
        except Exception as e:
            await self._abort("add_tag", e)
            raise

        if self._store.has_changes:
            await self._commit("add_tag")
            if len(self._store.list_associations()) > before:
                await self._audit.log_tags_changed(association.account_id, [association.tag_id], [])
        return association

    async def remove_tag(self, account: AccountRef, tag: TagRef) -> int:
        """Detach a tag from an account. Returns how many links were removed."""
        try:
            removed = self._associations.remove_tag(account, tag)
        except Exception as e:
            await self._abort("remove_tag", e)
            raise

        if removed:
            await self._commit("remove_tag")
            account_id = account.id if isinstance(account, Account) else account
            tag_id = tag.id if isinstance(tag, Tag) else tag
            await self._audit.log_tags_changed(account_id, [], [tag_id])
        return removed

    async def set_account_tags(
        self,
        account: AccountRef,
        tags: Iterable[TagRef],
    ) -> TagChangeSet:
        """Replace an account's tag set. A no-op change is not committed."""
        try:
            changes = self._associations.replace_tags(account, tags)
        except Exception as e:
            await self._abort("set_account_tags", e)
            raise

        if self._store.has_changes:
            await self._commit("set_account_tags")
            account_id = account.id if isinstance(account, Account) else account
            await self._audit.log_tags_changed(account_id, changes.added, changes.removed)
        return changes

    # =========================================================================
    # ORDERING
    # =========================================================================

    async def move_accounts(
        self,
        accounts_in_current_order: list[Account],
        from_positions: list[int],
        to_position: int,
        filter_state: Optional[FilterState] = None,
    ) -> list[Account]:
        """
        Move accounts in the full, unfiltered list and persist the new order.

        Raises:
            ReorderRejectedError: a filter is active or the list is partial
            ValueError: positions out of range
        """
        try:
            reordered = self._ordering.move_accounts(
                accounts_in_current_order,
                from_positions,
                to_position,
                filter_state=filter_state,
            )
        except ReorderRejectedError as e:
            await self._audit.log_reorder_rejected(str(e))
            raise
        except Exception as e:
            await self._abort("move_accounts", e)
            raise

        await self._commit("move_accounts")
        await self._audit.log_accounts_reordered(len(reordered))
        return reordered

    # =========================================================================
    # CSV
    # =========================================================================

    async def export_csv(self, directory: Optional[Union[str, Path]] = None) -> Path:
        """Write the CSV export and return its path."""
        return await self._csv.export_accounts_to_file(directory)

    async def import_csv(self, path: Union[str, Path]) -> ImportResult:
        """
        Import accounts from a CSV file.

        Row problems are reported in the result; file-level problems
        and commit failures raise (see CSVService).
        """
        correlation_id = create_correlation_id()
        return await self._csv.import_accounts_from_csv(path, correlation_id=correlation_id)

    async def import_csv_text(self, text: str) -> ImportResult:
        return await self._csv.import_accounts_from_text(text)


def create_record_backend(
    settings: Settings,
    use_storage: bool = True,
) -> RecordStorageInterface:
    """Pick the record backend the settings ask for."""
    storage_settings = settings.storage
    if use_storage and storage_settings.backend == "json":
        return JsonFileRecordStorage(storage_settings.data_path)
    return InMemoryRecordStorage()


def create_account_book(
    settings: Optional[Settings] = None,
    use_storage: bool = True,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AccountBook:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to get_settings()
        use_storage: Whether to persist to the configured backend.
                    Set to False for an in-memory book (tests, previews).
        audit_storage: Where audit events are persisted. When None they
                       are only logged through structlog.

    Returns:
        An AccountBook; call initialize() before use
    """
    settings = settings or get_settings()
    backend = create_record_backend(settings, use_storage)
    logger.debug("account_book_created", backend=type(backend).__name__)

    return AccountBook(
        store=EntityStore(backend),
        settings=settings,
        audit_logger=AuditLogger(audit_storage),
    )
