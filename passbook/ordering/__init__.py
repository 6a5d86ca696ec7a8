"""Manual ordering package."""

from passbook.ordering.manager import (
    OrderingManager,
    ReorderRejectedError,
    account_sort_key,
    move_items,
)

__all__ = [
    "OrderingManager",
    "ReorderRejectedError",
    "account_sort_key",
    "move_items",
]
