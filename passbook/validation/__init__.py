"""Field validation package."""

from passbook.validation.validator import (
    FieldValidationError,
    ValidationErrorKind,
    ensure_valid_account,
    ensure_valid_tag,
    validate_account,
    validate_color,
    validate_search_query,
    validate_tag,
)

__all__ = [
    "FieldValidationError",
    "ValidationErrorKind",
    "ensure_valid_account",
    "ensure_valid_tag",
    "validate_account",
    "validate_color",
    "validate_search_query",
    "validate_tag",
]
