"""
Ordering Manager

Owns the manual display order of Accounts (and Tags).

Display order is (sort_index, bank_name): indices may tie, and ties are
broken by bank name using plain ordinal string comparison.

CRITICAL: A reorder always rewrites the indices of the whole list to a
dense 0..N-1 sequence, so it is only allowed against the complete,
unfiltered list. Moving items inside a search result would rewrite the
global order from a partial view. This is enforced here, not only in
the UI.
"""

from typing import Optional, Sequence, TypeVar
from uuid import UUID

import structlog

from passbook.models.account import Account, Tag
from passbook.models.results import FilterState
from passbook.services.storage import EntityStore
from passbook.validation import FieldValidationError, validate_search_query
from passbook.validation.validator import DEFAULT_SEARCH_MAX_LENGTH


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ReorderRejectedError(Exception):
    """A reorder was attempted against a filtered or incomplete list."""
    pass


def move_items(
    items: Sequence[T],
    from_positions: Sequence[int],
    to_position: int,
) -> list[T]:
    """
    List-move semantics of a drag-and-drop list.

    The items at from_positions are taken out (keeping their relative
    order) and re-inserted before the item that was originally at
    to_position. to_position == len(items) means "move to the end".

    Raises:
        ValueError: a position is out of range
    """
    count = len(items)
    positions = sorted(set(from_positions))
    if any(p < 0 or p >= count for p in positions):
        raise ValueError(f"Source positions out of range for {count} items: {list(from_positions)}")
    if not 0 <= to_position <= count:
        raise ValueError(f"Destination {to_position} out of range for {count} items")

    moving = [items[p] for p in positions]
    taken = set(positions)
    remaining = [item for index, item in enumerate(items) if index not in taken]
    insert_at = to_position - sum(1 for p in positions if p < to_position)
    return remaining[:insert_at] + moving + remaining[insert_at:]


def account_sort_key(account: Account) -> tuple[int, str]:
    return (account.sort_index, account.bank_name)


def tag_sort_key(tag: Tag) -> tuple[int, str]:
    return (tag.sort_index, tag.name)


class OrderingManager:
    """Reorders, sorts and filters the account list."""

    def __init__(
        self,
        store: EntityStore,
        max_search_length: int = DEFAULT_SEARCH_MAX_LENGTH,
    ):
        self._store = store
        self._max_search_length = max_search_length

    def sorted_accounts(self, accounts: Optional[Sequence[Account]] = None) -> list[Account]:
        """Accounts in display order (all accounts when none are given)."""
        if accounts is None:
            accounts = self._store.list_accounts()
        return sorted(accounts, key=account_sort_key)

    def sorted_tags(self, tags: Optional[Sequence[Tag]] = None) -> list[Tag]:
        if tags is None:
            tags = self._store.list_tags()
        return sorted(tags, key=tag_sort_key)

    def next_account_sort_index(self) -> int:
        """Index that places a new account after every existing one."""
        return self._store.max_account_sort_index() + 1

    def filter_accounts(self, filter_state: Optional[FilterState] = None) -> list[Account]:
        """
        Accounts matching the filter, in display order.

        Search is a case-insensitive substring match over bank name,
        branch name and branch code. A tag filter keeps only accounts
        carrying that tag.

        Raises:
            FieldValidationError: search text longer than allowed
        """
        filter_state = filter_state or FilterState()
        kind = validate_search_query(filter_state.search_text, self._max_search_length)
        if kind is not None:
            raise FieldValidationError(kind)

        needle = filter_state.search_text.strip().casefold()

        def matches(account: Account) -> bool:
            if needle and not any(
                needle in value.casefold()
                for value in (account.bank_name, account.branch_name, account.branch_code)
            ):
                return False
            if filter_state.tag_id is not None:
                tag_ids = {
                    association.tag_id
                    for association in self._store.associations_for_account(account.id)
                }
                return filter_state.tag_id in tag_ids
            return True

        return self.sorted_accounts(self._store.list_accounts(matches))

    def _require_complete(self, given_ids: list[UUID], all_ids: set[UUID], kind: str) -> None:
        if len(given_ids) != len(set(given_ids)) or set(given_ids) != all_ids:
            raise ReorderRejectedError(
                f"Reordering requires the complete, unfiltered {kind} list"
            )

    def move_accounts(
        self,
        accounts_in_current_order: Sequence[Account],
        from_positions: Sequence[int],
        to_position: int,
        filter_state: Optional[FilterState] = None,
    ) -> list[Account]:
        """
        Move accounts within the displayed list and re-index densely.

        After the move every account in the list has sort_index equal to
        its new position.

        Raises:
            ReorderRejectedError: a filter is active, or the list given is
                not every account in the store; no index is changed
            ValueError: positions out of range
        """
        if filter_state is not None and filter_state.is_active:
            raise ReorderRejectedError("Reordering is disabled while a filter is active")

        given_ids = [account.id for account in accounts_in_current_order]
        self._require_complete(
            given_ids,
            {account.id for account in self._store.list_accounts()},
            "account",
        )

        reordered = move_items(given_ids, from_positions, to_position)
        self._store.assign_account_order(reordered)
        logger.debug("accounts_reordered", count=len(reordered))
        return [self._store.require_account(account_id) for account_id in reordered]

    def move_tags(
        self,
        tags_in_current_order: Sequence[Tag],
        from_positions: Sequence[int],
        to_position: int,
    ) -> list[Tag]:
        """Same as move_accounts for the tag list. Tag lists are never filtered."""
        given_ids = [tag.id for tag in tags_in_current_order]
        self._require_complete(
            given_ids,
            {tag.id for tag in self._store.list_tags()},
            "tag",
        )

        reordered = move_items(given_ids, from_positions, to_position)
        self._store.assign_tag_order(reordered)
        return [self._store.require_tag(tag_id) for tag_id in reordered]

    def normalize_account_order(self) -> list[Account]:
        """
        Rewrite all account indices densely in current display order.

        Repairs stores where several accounts share an index (e.g. data
        written before manual ordering existed).
        """
        ordered = self.sorted_accounts()
        self._store.assign_account_order([account.id for account in ordered])
        return ordered
