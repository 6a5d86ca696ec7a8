"""
Entity Store

Holds the working set of Accounts, Tags and Associations and persists it
through a RecordStorageInterface backend.

DESIGN DECISION: The store is a unit of work.
- Every create/update/delete changes the in-memory working set only
- commit() hands the backend one complete snapshot
- A failed commit rolls the working set back to the last committed
  snapshot, so callers never observe half-saved state

Admission checks (field validation, duplicate detection) happen here so
that every path into the store, single edits and bulk import alike,
enforces the same rules.
"""

from typing import Callable, Optional
from uuid import UUID

import structlog

from passbook.models.account import (
    Account,
    Association,
    StoreSnapshot,
    Tag,
    now_local,
)
from passbook.services.storage.interface import (
    CommitError,
    DanglingReferenceError,
    DuplicateAccountError,
    DuplicateTagError,
    NotFoundError,
    RecordStorageInterface,
)
from passbook.services.storage.memory import InMemoryRecordStorage
from passbook.validation import ensure_valid_account, ensure_valid_tag


logger = structlog.get_logger(__name__)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class EntityStore:
    """
    In-memory working set over a durable backend.

    Natural order (insertion order) is preserved for accounts and tags;
    that is the order list queries and CSV export use.
    """

    def __init__(self, backend: Optional[RecordStorageInterface] = None):
        self._backend = backend or InMemoryRecordStorage()
        self._accounts: dict[UUID, Account] = {}
        self._tags: dict[UUID, Tag] = {}
        self._associations: dict[UUID, Association] = {}
        self._committed = StoreSnapshot()
        self._dirty = False

    @property
    def backend(self) -> RecordStorageInterface:
        return self._backend

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def load(self) -> None:
        """Replace the working set with what the backend holds."""
        snapshot = await self._backend.load()
        self._hydrate(snapshot)
        self._committed = self._snapshot()
        logger.info(
            "store_loaded",
            accounts=len(self._accounts),
            tags=len(self._tags),
            associations=len(self._associations),
        )

    async def commit(self) -> None:
        """
        Persist the whole working set in one backend save.

        Raises:
            CommitError: save failed; the working set has been rolled
                back to the last committed snapshot
        """
        snapshot = self._snapshot()
        try:
            await self._backend.save(snapshot)
        except Exception as e:
            logger.error("store_commit_failed", error=str(e))
            self.rollback()
            raise CommitError(f"Failed to save changes: {e}") from e

        self._committed = snapshot
        self._dirty = False

    def rollback(self) -> None:
        """
        Discard uncommitted changes.

        Live objects are rebuilt, so references held from before the
        rollback are stale; look records up again by id.
        """
        self._hydrate(self._committed)

    @property
    def has_changes(self) -> bool:
        return self._dirty

    def _snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            accounts=[a.model_copy(deep=True) for a in self._accounts.values()],
            tags=[t.model_copy(deep=True) for t in self._tags.values()],
            associations=[a.model_copy() for a in self._associations.values()],
        )

    def _hydrate(self, snapshot: StoreSnapshot) -> None:
        self._accounts = {}
        for account in snapshot.accounts:
            copy = account.model_copy(deep=True)
            copy._clear_links()
            self._accounts[copy.id] = copy

        self._tags = {}
        for tag in snapshot.tags:
            copy = tag.model_copy(deep=True)
            copy._clear_links()
            self._tags[copy.id] = copy

        # Back-references are derived from the association list
        self._associations = {}
        seen_pairs: set[tuple[UUID, UUID]] = set()
        for association in snapshot.associations:
            pair = (association.account_id, association.tag_id)
            if association.account_id not in self._accounts or association.tag_id not in self._tags:
                logger.warning("dangling_association_dropped", association_id=str(association.id))
                continue
            if pair in seen_pairs:
                logger.warning("duplicate_association_dropped", association_id=str(association.id))
                continue
            seen_pairs.add(pair)
            self._link(association.model_copy())

        self._dirty = False

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def get_account(self, account_id: UUID) -> Optional[Account]:
        return self._accounts.get(account_id)

    def require_account(self, account_id: UUID) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    def list_accounts(
        self,
        predicate: Optional[Callable[[Account], bool]] = None,
    ) -> list[Account]:
        """Accounts in natural order, optionally filtered."""
        accounts = list(self._accounts.values())
        if predicate is None:
            return accounts
        return [account for account in accounts if predicate(account)]

    def max_account_sort_index(self) -> int:
        """Highest sort index in use, -1 for an empty store."""
        return max((a.sort_index for a in self._accounts.values()), default=-1)

    def find_duplicate_account(
        self,
        bank_name: str,
        branch_code: str,
        account_number: str,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Account]:
        """
        Find an account with the same bank, branch code and account number.

        Accounts missing a branch code or account number are never
        duplicates of anything.
        """
        bank_name = _clean(bank_name)
        branch_code = _clean(branch_code)
        account_number = _clean(account_number)
        if not branch_code or not account_number:
            return None

        for existing in self._accounts.values():
            if existing.id == exclude_id:
                continue
            if (
                existing.bank_name == bank_name
                and existing.branch_code == branch_code
                and existing.account_number == account_number
            ):
                return existing
        return None

    def create_account(
        self,
        bank_name: str,
        branch_name: str = "",
        branch_code: str = "",
        account_number: str = "",
        sort_index: Optional[int] = None,
    ) -> Account:
        """
        Validate and stage a new account.

        Raises:
            FieldValidationError: a field broke a validation rule
            DuplicateAccountError: same bank/branch code/account number exists
        """
        ensure_valid_account(bank_name, branch_name, branch_code, account_number)

        if self.find_duplicate_account(bank_name, branch_code, account_number) is not None:
            raise DuplicateAccountError()

        if sort_index is None:
            sort_index = self.max_account_sort_index() + 1

        account = Account(
            bank_name=_clean(bank_name),
            branch_name=_clean(branch_name),
            branch_code=_clean(branch_code),
            account_number=_clean(account_number),
            sort_index=sort_index,
        )
        self._accounts[account.id] = account
        self._dirty = True
        return account

    def update_account(
        self,
        account_id: UUID,
        *,
        bank_name: Optional[str] = None,
        branch_name: Optional[str] = None,
        branch_code: Optional[str] = None,
        account_number: Optional[str] = None,
    ) -> Account:
        """
        Merge the provided fields into an account.

        Fields left as None keep their current value. The merged record is
        validated as a whole, and updated_at is always refreshed.
        """
        account = self.require_account(account_id)

        changes = {
            name: _clean(value)
            for name, value in (
                ("bank_name", bank_name),
                ("branch_name", branch_name),
                ("branch_code", branch_code),
                ("account_number", account_number),
            )
            if value is not None
        }
        merged = {
            "bank_name": account.bank_name,
            "branch_name": account.branch_name,
            "branch_code": account.branch_code,
            "account_number": account.account_number,
            **changes,
        }

        ensure_valid_account(**merged)
        if self.find_duplicate_account(
            merged["bank_name"],
            merged["branch_code"],
            merged["account_number"],
            exclude_id=account.id,
        ) is not None:
            raise DuplicateAccountError()

        for name, value in changes.items():
            setattr(account, name, value)
        account.updated_at = now_local()
        self._dirty = True
        return account

    def assign_account_order(self, account_ids: list[UUID]) -> None:
        """Give the listed accounts sort indices 0..N-1 in list order."""
        accounts = [self.require_account(account_id) for account_id in account_ids]
        for index, account in enumerate(accounts):
            account.sort_index = index
        self._dirty = True

    def delete_account(self, account_id: UUID) -> int:
        """
        Delete an account and every association referencing it.

        Returns:
            Number of associations removed by the cascade
        """
        account = self.require_account(account_id)
        removed = 0
        for association_id in account.association_ids:
            if self._unlink(association_id):
                removed += 1
        del self._accounts[account.id]
        self._dirty = True
        return removed

    # =========================================================================
    # TAGS
    # =========================================================================

    def get_tag(self, tag_id: UUID) -> Optional[Tag]:
        return self._tags.get(tag_id)

    def require_tag(self, tag_id: UUID) -> Tag:
        tag = self._tags.get(tag_id)
        if tag is None:
            raise NotFoundError(f"Tag not found: {tag_id}")
        return tag

    def list_tags(
        self,
        predicate: Optional[Callable[[Tag], bool]] = None,
    ) -> list[Tag]:
        tags = list(self._tags.values())
        if predicate is None:
            return tags
        return [tag for tag in tags if predicate(tag)]

    def find_tag_by_name(self, name: str) -> Optional[Tag]:
        """Exact (case-sensitive) name lookup."""
        name = _clean(name)
        for tag in self._tags.values():
            if tag.name == name:
                return tag
        return None

    def find_duplicate_tag(
        self,
        name: str,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Tag]:
        """Case-insensitive name match, ignoring the tag being edited."""
        folded = _clean(name).casefold()
        for tag in self._tags.values():
            if tag.id != exclude_id and tag.name.casefold() == folded:
                return tag
        return None

    def create_tag(
        self,
        name: str,
        color: str,
        sort_index: Optional[int] = None,
    ) -> Tag:
        """
        Validate and stage a new tag.

        Raises:
            FieldValidationError: name or colour invalid
            DuplicateTagError: name already used (ignoring case)
        """
        ensure_valid_tag(name, color)
        if self.find_duplicate_tag(name) is not None:
            raise DuplicateTagError()

        if sort_index is None:
            sort_index = max((t.sort_index for t in self._tags.values()), default=-1) + 1

        tag = Tag(name=_clean(name), color=_clean(color), sort_index=sort_index)
        self._tags[tag.id] = tag
        self._dirty = True
        return tag

    def update_tag(
        self,
        tag_id: UUID,
        *,
        name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Tag:
        tag = self.require_tag(tag_id)
        new_name = _clean(name) if name is not None else tag.name
        new_color = _clean(color) if color is not None else tag.color

        ensure_valid_tag(new_name, new_color)
        if self.find_duplicate_tag(new_name, exclude_id=tag.id) is not None:
            raise DuplicateTagError()

        tag.name = new_name
        tag.color = new_color
        tag.updated_at = now_local()
        self._dirty = True
        return tag

    def delete_tag(self, tag_id: UUID) -> int:
        """
        Delete a tag and every association referencing it.

        The accounts that carried it keep all their other tags.
        """
        tag = self.require_tag(tag_id)
        removed = 0
        for association_id in tag.association_ids:
            if self._unlink(association_id):
                removed += 1
        del self._tags[tag.id]
        self._dirty = True
        return removed

    def assign_tag_order(self, tag_ids: list[UUID]) -> None:
        tags = [self.require_tag(tag_id) for tag_id in tag_ids]
        for index, tag in enumerate(tags):
            tag.sort_index = index
        self._dirty = True

    def tag_usage_count(self, tag_id: UUID) -> int:
        return self.require_tag(tag_id).account_count

    def tag_is_used(self, tag_id: UUID) -> bool:
        return self.require_tag(tag_id).is_used

    def delete_unused_tags(self) -> int:
        """Delete every tag no account carries. Returns how many went."""
        unused = [tag.id for tag in self._tags.values() if not tag.is_used]
        for tag_id in unused:
            del self._tags[tag_id]
        if unused:
            self._dirty = True
        return len(unused)

    # =========================================================================
    # ASSOCIATIONS (read side; writes go through AssociationManager)
    # =========================================================================

    def get_association(self, association_id: UUID) -> Optional[Association]:
        return self._associations.get(association_id)

    def list_associations(self) -> list[Association]:
        return list(self._associations.values())

    def associations_for_account(self, account_id: UUID) -> list[Association]:
        account = self.require_account(account_id)
        return [self._associations[a_id] for a_id in account.association_ids]

    def associations_for_tag(self, tag_id: UUID) -> list[Association]:
        tag = self.require_tag(tag_id)
        return [self._associations[a_id] for a_id in tag.association_ids]

    def _link(self, association: Association) -> None:
        # AssociationManager only
        account = self._accounts.get(association.account_id)
        tag = self._tags.get(association.tag_id)
        if account is None or tag is None:
            raise DanglingReferenceError(
                f"Association {association.id} references a missing account or tag"
            )
        self._associations[association.id] = association
        account._attach(association.id)
        tag._attach(association.id)
        self._dirty = True

    def _unlink(self, association_id: UUID) -> bool:
        # AssociationManager and delete cascades only
        association = self._associations.pop(association_id, None)
        if association is None:
            return False
        account = self._accounts.get(association.account_id)
        if account is not None:
            account._detach(association_id)
        tag = self._tags.get(association.tag_id)
        if tag is not None:
            tag._detach(association_id)
        self._dirty = True
        return True
