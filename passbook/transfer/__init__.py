"""CSV import/export package."""

from passbook.transfer.csv_service import (
    EXPORT_HEADER,
    CSVError,
    CSVService,
    CSVWriteError,
    FileAccessError,
    InvalidFormatError,
    InvalidRowFormatError,
)

__all__ = [
    "EXPORT_HEADER",
    "CSVError",
    "CSVService",
    "CSVWriteError",
    "FileAccessError",
    "InvalidFormatError",
    "InvalidRowFormatError",
]
