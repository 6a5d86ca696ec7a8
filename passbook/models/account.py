"""
Core Data Models for Passbook

These models define the records kept by the system:
1. Account - a bank account the user wants to remember
2. Tag - a coloured label the user groups accounts with
3. Association - the join record linking one Account to one Tag

DESIGN DECISION: Accounts and Tags never hold each other directly.
They only hold the ids of the Associations that reference them, and those
back-references are private. The AssociationManager (and the store's delete
cascade) is the only code allowed to change them, so the two sides of the
relationship can never drift apart.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


def now_local() -> datetime:
    """Current local wall-clock time (naive), used for all record timestamps."""
    return datetime.now()


# Seeded on first launch; names are skipped when already present.
DEFAULT_TAGS: list[tuple[str, str]] = [
    ("Personal", "#FF6B6B"),
    ("Family", "#4ECDC4"),
    ("Work", "#45B7D1"),
    ("Savings", "#96CEB4"),
    ("Investment", "#FECA57"),
    ("Emergency", "#FF9FF3"),
]


class _LinkedRecord(BaseModel):
    """
    Base for records that are referenced by Associations.

    Holds the private back-reference list. Order is association creation
    order, which is also the order tags are exported in.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    _association_ids: list[UUID] = PrivateAttr(default_factory=list)

    @property
    def association_ids(self) -> tuple[UUID, ...]:
        """Read-only view of the Associations referencing this record."""
        return tuple(self._association_ids)

    def _attach(self, association_id: UUID) -> None:
        # AssociationManager / EntityStore only
        if association_id not in self._association_ids:
            self._association_ids.append(association_id)

    def _detach(self, association_id: UUID) -> None:
        # AssociationManager / EntityStore only
        self._association_ids = [
            existing for existing in self._association_ids
            if existing != association_id
        ]

    def _clear_links(self) -> None:
        self._association_ids = []


class Account(_LinkedRecord):
    """
    A bank account record.

    Optional fields are stored as empty strings when absent, never None,
    so duplicate checks and CSV export can treat them uniformly.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    bank_name: str = Field(
        ...,
        description="Bank name (required)"
    )
    branch_name: str = Field(
        default="",
        description="Branch name"
    )
    branch_code: str = Field(
        default="",
        description="Three digit branch code, 001-999"
    )
    account_number: str = Field(
        default="",
        description="Seven digit account number"
    )
    created_at: datetime = Field(
        default_factory=now_local,
        description="When the account was created"
    )
    updated_at: datetime = Field(
        default_factory=now_local,
        description="Last update timestamp"
    )
    sort_index: int = Field(
        default=0,
        description="Manual display position; ties are broken by bank name"
    )

    @property
    def display_name(self) -> str:
        return f"{self.bank_name} {self.branch_name} ({self.branch_code})"


class Tag(_LinkedRecord):
    """A coloured label. Names are unique ignoring case."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        description="Tag name (required)"
    )
    color: str = Field(
        ...,
        description="Colour as #RRGGBB"
    )
    created_at: datetime = Field(default_factory=now_local)
    updated_at: datetime = Field(default_factory=now_local)
    sort_index: int = 0

    @property
    def account_count(self) -> int:
        return len(self._association_ids)

    @property
    def is_used(self) -> bool:
        return bool(self._association_ids)


class Association(BaseModel):
    """
    Join record between exactly one Account and exactly one Tag.

    CRITICAL: At most one Association may exist per (account, tag) pair.
    Only the AssociationManager creates or destroys these.
    """

    id: UUID = Field(default_factory=uuid4)
    account_id: UUID
    tag_id: UUID
    created_at: datetime = Field(default_factory=now_local)


class StoreSnapshot(BaseModel):
    """
    Everything the store persists, in natural order.

    Back-references are not serialized; they are rebuilt from
    the associations list on load.
    """

    accounts: list[Account] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    associations: list[Association] = Field(default_factory=list)
