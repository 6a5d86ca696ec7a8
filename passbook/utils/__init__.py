"""Shared utilities."""

from passbook.utils.atomic_io import atomic_write_text

__all__ = ["atomic_write_text"]
