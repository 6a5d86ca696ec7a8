"""
Field Validation

Pure, stateless checks for the fields of Accounts and Tags.

Each rule maps to exactly one ValidationErrorKind. Rules are checked in
priority order (required -> length -> format -> range) and the first
failing rule is the one reported, so the same input always yields the
same error.

IMPORTANT: Validation NEVER silently fixes issues.
Trimming is only used to decide whether a value is present and how long
it is; the caller decides what to store.
"""

import re
from enum import Enum
from typing import Optional


BANK_NAME_MAX_LENGTH = 50
BRANCH_NAME_MAX_LENGTH = 50
TAG_NAME_MAX_LENGTH = 30
DEFAULT_SEARCH_MAX_LENGTH = 100

# [0-9] rather than \d: only ASCII digits are accepted
_BRANCH_CODE_PATTERN = re.compile(r"[0-9]{3}")
_ACCOUNT_NUMBER_PATTERN = re.compile(r"[0-9]{7}")
_COLOR_PATTERN = re.compile(r"#[0-9A-Fa-f]{6}")


class ValidationErrorKind(str, Enum):
    """Closed set of field validation failures."""
    BANK_NAME_REQUIRED = "bank_name_required"
    BANK_NAME_TOO_LONG = "bank_name_too_long"
    BRANCH_NAME_TOO_LONG = "branch_name_too_long"
    BRANCH_CODE_INVALID_FORMAT = "branch_code_invalid_format"
    BRANCH_CODE_OUT_OF_RANGE = "branch_code_out_of_range"
    ACCOUNT_NUMBER_INVALID_FORMAT = "account_number_invalid_format"
    TAG_NAME_REQUIRED = "tag_name_required"
    TAG_NAME_TOO_LONG = "tag_name_too_long"
    TAG_COLOR_INVALID_FORMAT = "tag_color_invalid_format"
    SEARCH_QUERY_TOO_LONG = "search_query_too_long"

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    @property
    def field(self) -> str:
        return _FIELDS[self]


_MESSAGES = {
    ValidationErrorKind.BANK_NAME_REQUIRED: "Bank name is required",
    ValidationErrorKind.BANK_NAME_TOO_LONG:
        f"Bank name must be at most {BANK_NAME_MAX_LENGTH} characters",
    ValidationErrorKind.BRANCH_NAME_TOO_LONG:
        f"Branch name must be at most {BRANCH_NAME_MAX_LENGTH} characters",
    ValidationErrorKind.BRANCH_CODE_INVALID_FORMAT: "Branch code must be 3 digits",
    ValidationErrorKind.BRANCH_CODE_OUT_OF_RANGE: "Branch code must be between 001 and 999",
    ValidationErrorKind.ACCOUNT_NUMBER_INVALID_FORMAT: "Account number must be 7 digits",
    ValidationErrorKind.TAG_NAME_REQUIRED: "Tag name is required",
    ValidationErrorKind.TAG_NAME_TOO_LONG:
        f"Tag name must be at most {TAG_NAME_MAX_LENGTH} characters",
    ValidationErrorKind.TAG_COLOR_INVALID_FORMAT: "Colour must be in #RRGGBB format",
    ValidationErrorKind.SEARCH_QUERY_TOO_LONG: "Search text is too long",
}

_FIELDS = {
    ValidationErrorKind.BANK_NAME_REQUIRED: "bank_name",
    ValidationErrorKind.BANK_NAME_TOO_LONG: "bank_name",
    ValidationErrorKind.BRANCH_NAME_TOO_LONG: "branch_name",
    ValidationErrorKind.BRANCH_CODE_INVALID_FORMAT: "branch_code",
    ValidationErrorKind.BRANCH_CODE_OUT_OF_RANGE: "branch_code",
    ValidationErrorKind.ACCOUNT_NUMBER_INVALID_FORMAT: "account_number",
    ValidationErrorKind.TAG_NAME_REQUIRED: "name",
    ValidationErrorKind.TAG_NAME_TOO_LONG: "name",
    ValidationErrorKind.TAG_COLOR_INVALID_FORMAT: "color",
    ValidationErrorKind.SEARCH_QUERY_TOO_LONG: "search_text",
}


class FieldValidationError(ValueError):
    """A single field failed validation."""

    def __init__(self, kind: ValidationErrorKind):
        self.kind = kind
        self.field = kind.field
        self.message = kind.message
        super().__init__(kind.message)


def validate_account(
    bank_name: str,
    branch_name: Optional[str] = "",
    branch_code: Optional[str] = "",
    account_number: Optional[str] = "",
) -> Optional[ValidationErrorKind]:
    """
    Check the fields of an Account.

    Returns:
        None if every rule passes, otherwise the first failing kind.
    """
    bank_name = (bank_name or "").strip()
    if not bank_name:
        return ValidationErrorKind.BANK_NAME_REQUIRED
    if len(bank_name) > BANK_NAME_MAX_LENGTH:
        return ValidationErrorKind.BANK_NAME_TOO_LONG

    branch_name = (branch_name or "").strip()
    if branch_name and len(branch_name) > BRANCH_NAME_MAX_LENGTH:
        return ValidationErrorKind.BRANCH_NAME_TOO_LONG

    branch_code = (branch_code or "").strip()
    if branch_code:
        if not _BRANCH_CODE_PATTERN.fullmatch(branch_code):
            return ValidationErrorKind.BRANCH_CODE_INVALID_FORMAT
        if not 1 <= int(branch_code) <= 999:
            return ValidationErrorKind.BRANCH_CODE_OUT_OF_RANGE

    account_number = (account_number or "").strip()
    if account_number and not _ACCOUNT_NUMBER_PATTERN.fullmatch(account_number):
        return ValidationErrorKind.ACCOUNT_NUMBER_INVALID_FORMAT

    return None


def validate_color(color: str) -> bool:
    """True if the colour (ignoring surrounding whitespace) is #RRGGBB."""
    return _COLOR_PATTERN.fullmatch((color or "").strip()) is not None


def validate_tag(name: str, color: str) -> Optional[ValidationErrorKind]:
    """Check the fields of a Tag. None means valid."""
    name = (name or "").strip()
    if not name:
        return ValidationErrorKind.TAG_NAME_REQUIRED
    if len(name) > TAG_NAME_MAX_LENGTH:
        return ValidationErrorKind.TAG_NAME_TOO_LONG
    if not validate_color(color):
        return ValidationErrorKind.TAG_COLOR_INVALID_FORMAT
    return None


def validate_search_query(
    text: str,
    max_length: int = DEFAULT_SEARCH_MAX_LENGTH,
) -> Optional[ValidationErrorKind]:
    if len((text or "").strip()) > max_length:
        return ValidationErrorKind.SEARCH_QUERY_TOO_LONG
    return None


def ensure_valid_account(
    bank_name: str,
    branch_name: Optional[str] = "",
    branch_code: Optional[str] = "",
    account_number: Optional[str] = "",
) -> None:
    """
    Raising form of validate_account.

    Raises:
        FieldValidationError: carrying the first failing kind
    """
    kind = validate_account(bank_name, branch_name, branch_code, account_number)
    if kind is not None:
        raise FieldValidationError(kind)


def ensure_valid_tag(name: str, color: str) -> None:
    kind = validate_tag(name, color)
    if kind is not None:
        raise FieldValidationError(kind)
