"""
Association Manager

The only writer of the Account <-> Tag relationship.

GUARANTEES (checked on every mutating call, not only on creation):
1. At most one Association exists per (account, tag) pair
2. Every Association is linked from both its Account and its Tag
3. Associations never reference records missing from the store

Field contents are NOT validated here; that is the validation layer's job.
The only failure this module raises is DanglingReferenceError.
"""

from typing import Iterable, Union
from uuid import UUID

import structlog

from passbook.models.account import Account, Association, Tag
from passbook.models.results import TagChangeSet
from passbook.services.storage import DanglingReferenceError, EntityStore


logger = structlog.get_logger(__name__)

AccountRef = Union[Account, UUID]
TagRef = Union[Tag, UUID]


class AssociationManager:
    """
    Maintains the many-to-many relationship between Accounts and Tags.

    Callers may pass model instances or ids. Instances are always
    re-resolved against the store by id, so a stale object from before
    a rollback still addresses the live record.
    """

    def __init__(self, store: EntityStore):
        self._store = store

    def _resolve_account(self, account: AccountRef) -> Account:
        account_id = account.id if isinstance(account, Account) else account
        live = self._store.get_account(account_id)
        if live is None:
            raise DanglingReferenceError(f"Account is not in the store: {account_id}")
        return live

    def _resolve_tag(self, tag: TagRef) -> Tag:
        tag_id = tag.id if isinstance(tag, Tag) else tag
        live = self._store.get_tag(tag_id)
        if live is None:
            raise DanglingReferenceError(f"Tag is not in the store: {tag_id}")
        return live

    def _pair_associations(self, account: Account, tag: Tag) -> list[Association]:
        return [
            association
            for association in self._store.associations_for_account(account.id)
            if association.tag_id == tag.id
        ]

    def add_tag(self, account: AccountRef, tag: TagRef) -> Association:
        """
        Link a tag to an account.

        No-op if the pair is already linked; the existing Association is
        returned. Surplus duplicates for the pair, if any, are removed
        keeping the oldest.
        """
        live_account = self._resolve_account(account)
        live_tag = self._resolve_tag(tag)

        existing = self._pair_associations(live_account, live_tag)
        if existing:
            keep = min(existing, key=lambda a: a.created_at)
            for surplus in existing:
                if surplus.id != keep.id:
                    logger.warning(
                        "duplicate_association_collapsed",
                        association_id=str(surplus.id),
                        account_id=str(live_account.id),
                        tag_id=str(live_tag.id),
                    )
                    self._store._unlink(surplus.id)
            return keep

        association = Association(account_id=live_account.id, tag_id=live_tag.id)
        self._store._link(association)
        return association

    def remove_tag(self, account: AccountRef, tag: TagRef) -> int:
        """
        Unlink a tag from an account.

        Returns:
            Number of associations removed (0 if the pair was not linked)
        """
        live_account = self._resolve_account(account)
        live_tag = self._resolve_tag(tag)

        removed = 0
        for association in self._pair_associations(live_account, live_tag):
            if self._store._unlink(association.id):
                removed += 1
        return removed

    def replace_tags(
        self,
        account: AccountRef,
        desired_tags: Iterable[TagRef],
    ) -> TagChangeSet:
        """
        Make the account's tag set equal to desired_tags.

        Tags already linked and still desired keep their original
        Association (and creation timestamp). Calling this twice with the
        same set changes nothing the second time.

        Raises:
            DanglingReferenceError: before any change, if the account or
                any desired tag is not in the store
        """
        live_account = self._resolve_account(account)
        desired: dict[UUID, Tag] = {}
        for tag in desired_tags:
            live_tag = self._resolve_tag(tag)
            desired[live_tag.id] = live_tag

        current_ids = {
            association.tag_id
            for association in self._store.associations_for_account(live_account.id)
        }

        changes = TagChangeSet()
        for tag_id in [t for t in current_ids if t not in desired]:
            if self.remove_tag(live_account, tag_id):
                changes.removed.append(tag_id)

        # add_tag on kept tags is a no-op that still collapses duplicates
        for tag_id, live_tag in desired.items():
            self.add_tag(live_account, live_tag)
            if tag_id not in current_ids:
                changes.added.append(tag_id)

        return changes

    def tags_for(self, account: AccountRef) -> list[Tag]:
        """Tags of an account, in the order they were attached."""
        live_account = self._resolve_account(account)
        return [
            self._store.require_tag(association.tag_id)
            for association in self._store.associations_for_account(live_account.id)
        ]

    def accounts_for(self, tag: TagRef) -> list[Account]:
        """Accounts carrying a tag, in the order they were tagged."""
        live_tag = self._resolve_tag(tag)
        return [
            self._store.require_account(association.account_id)
            for association in self._store.associations_for_tag(live_tag.id)
        ]

    def verify_integrity(self) -> list[str]:
        """
        Check the relationship invariants across the whole store.

        Returns:
            One message per violation; empty when consistent
        """
        problems = []
        seen_pairs: dict[tuple[UUID, UUID], UUID] = {}

        for association in self._store.list_associations():
            account = self._store.get_account(association.account_id)
            tag = self._store.get_tag(association.tag_id)
            if account is None or tag is None:
                problems.append(f"Association {association.id} is dangling")
                continue
            if association.id not in account.association_ids:
                problems.append(f"Association {association.id} missing from account {account.id}")
            if association.id not in tag.association_ids:
                problems.append(f"Association {association.id} missing from tag {tag.id}")
            pair = (account.id, tag.id)
            if pair in seen_pairs:
                problems.append(f"Account {account.id} is linked to tag {tag.id} more than once")
            seen_pairs[pair] = association.id

        for record in [*self._store.list_accounts(), *self._store.list_tags()]:
            for association_id in record.association_ids:
                association = self._store.get_association(association_id)
                if association is None:
                    problems.append(f"{type(record).__name__} {record.id} references unknown association {association_id}")
                elif record.id not in (association.account_id, association.tag_id):
                    problems.append(f"{type(record).__name__} {record.id} holds foreign association {association_id}")

        return problems
