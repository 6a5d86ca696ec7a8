"""
Result and request models exchanged with collaborators.

These are plain value objects: the UI layer builds a FilterState,
and receives ImportResult / TagChangeSet back from the core.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FilterState(BaseModel):
    """
    The list filter currently applied by the caller.

    CRITICAL: Manual reordering is only allowed when this is inactive.
    Reordering a filtered subset would rewrite the global order from a partial view.
    """

    search_text: str = Field(
        default="",
        description="Free-text search over bank name, branch name and branch code"
    )
    tag_id: Optional[UUID] = Field(
        default=None,
        description="Only show accounts carrying this tag"
    )

    @property
    def is_active(self) -> bool:
        return bool(self.search_text.strip()) or self.tag_id is not None


class TagChangeSet(BaseModel):
    """What replace_tags actually changed."""

    added: list[UUID] = Field(default_factory=list)
    removed: list[UUID] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class ImportResult(BaseModel):
    """
    Outcome of a CSV import run.

    Row failures never abort the run; they are counted here with one
    human-readable message each, in input order.
    """

    success_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def summary(self) -> str:
        if self.error_count == 0:
            return f"Imported {self.success_count} accounts"
        return f"{self.success_count} succeeded, {self.error_count} failed"
